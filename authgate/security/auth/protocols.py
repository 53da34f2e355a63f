# -*- coding: utf-8 -*-
"""
RU: Контракты внешних соавторов ядра 2FA (провайдеры, приложения, хранилища,
    сессия, login-токены, события) и простые value-типы.

EN: Contracts of the collaborators the two-factor core talks to (providers,
    apps, stores, session, login tokens, events) plus small value types.

Implementations are duck-typed: anything with matching methods satisfies a
protocol. ``TwoFactorProvider`` is ``runtime_checkable`` so factories can be
sanity-checked at resolution time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Sequence, Tuple, runtime_checkable

__all__ = [
    "UserProtocol",
    "UserRef",
    "LoginToken",
    "AppManifest",
    "TwoFactorProvider",
    "ProviderFactory",
    "AppSupplierProtocol",
    "UserConfigStoreProtocol",
    "SessionStoreProtocol",
    "LoginTokenResolverProtocol",
    "RememberTokenIssuerProtocol",
    "EventSinkProtocol",
]


class UserProtocol(Protocol):
    """Anything exposing a stable unique user identifier."""

    @property
    def uid(self) -> str: ...


@dataclass(frozen=True, slots=True)
class UserRef:
    """Minimal user reference handed in by the host application."""

    uid: str

    def __post_init__(self) -> None:
        if not isinstance(self.uid, str) or not self.uid.strip():
            raise ValueError("uid must be a non-empty string")


@dataclass(frozen=True, slots=True)
class LoginToken:
    """Persisted login token as seen by the core: only its opaque id matters."""

    id: str
    uid: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AppManifest:
    """Manifest of one app; lists the two-factor provider identifiers it ships."""

    app_id: str
    two_factor_providers: Tuple[str, ...] = field(default_factory=tuple)


@runtime_checkable
class TwoFactorProvider(Protocol):
    """One second-factor method (TOTP, backup codes, ...)."""

    @property
    def provider_id(self) -> str: ...

    @property
    def display_name(self) -> str: ...

    def is_enabled_for_user(self, user: UserProtocol) -> bool: ...

    def verify_challenge(self, user: UserProtocol, challenge: str) -> bool: ...


ProviderFactory = Callable[[], TwoFactorProvider]


class AppSupplierProtocol(Protocol):
    """Read-only view of installed apps; manifests are pure data."""

    def list_enabled_apps(self, user: UserProtocol) -> Sequence[str]: ...

    def get_app_manifest(self, app_id: str) -> AppManifest: ...


class UserConfigStoreProtocol(Protocol):
    """Persistent per-user key/value settings grouped by namespace."""

    def get_user_value(self, uid: str, namespace: str, key: str, default: Any = None) -> Any: ...

    def set_user_value(self, uid: str, namespace: str, key: str, value: Any) -> None: ...

    def delete_user_value(self, uid: str, namespace: str, key: str) -> None: ...

    def list_user_keys(self, uid: str, namespace: str) -> Tuple[str, ...]: ...


class SessionStoreProtocol(Protocol):
    """The current request's session."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...

    def exists(self, key: str) -> bool: ...

    def current_session_id(self) -> str: ...


class LoginTokenResolverProtocol(Protocol):
    """Maps a live session id to its persisted login token."""

    def token_for_session(self, session_id: str) -> LoginToken:
        """Raises InvalidTokenError if the token is unknown or expired."""
        ...


class RememberTokenIssuerProtocol(Protocol):
    """Issues the long-lived "remember this device" token; fire-and-forget."""

    def issue(self, user: UserProtocol) -> None: ...


class EventSinkProtocol(Protocol):
    """Narrow message-passing capability for activity and domain events."""

    def emit(self, kind: str, payload: Any) -> None: ...
