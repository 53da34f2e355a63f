# -*- coding: utf-8 -*-
"""
In-memory collaborators for the two-factor core.

Process-bound, no persistence: the host replaces them with its real session
backend, config database and token service. They are complete enough to wire
the core end to end for local runs and tests.
"""

from __future__ import annotations

import copy
import logging
import secrets
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from authgate.security.auth.exceptions import InvalidTokenError
from authgate.security.auth.protocols import AppManifest, LoginToken, UserProtocol

__all__ = [
    "InMemorySessionStore",
    "InMemoryUserConfigStore",
    "InMemoryLoginTokenStore",
    "StaticAppSupplier",
    "RecordingRememberTokenIssuer",
]

LOG = logging.getLogger(__name__)


class InMemorySessionStore:
    """Session of a single client; values live as long as the object."""

    def __init__(self, session_id: Optional[str] = None) -> None:
        self._session_id = session_id or secrets.token_urlsafe(18)
        self._values: Dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def exists(self, key: str) -> bool:
        return key in self._values

    def current_session_id(self) -> str:
        return self._session_id

    def regenerate_id(self) -> str:
        """Rotate the session id, keeping its values (as after privilege change)."""
        self._session_id = secrets.token_urlsafe(18)
        return self._session_id

    def clear(self) -> None:
        """Drop all values, e.g. on session expiry."""
        self._values.clear()


class InMemoryUserConfigStore:
    """``{uid: {namespace: {key: value}}}`` kept in a dict."""

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def get_user_value(self, uid: str, namespace: str, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._data.get(uid, {}).get(namespace, {}).get(key, default))

    def set_user_value(self, uid: str, namespace: str, key: str, value: Any) -> None:
        self._data.setdefault(uid, {}).setdefault(namespace, {})[key] = copy.deepcopy(value)

    def delete_user_value(self, uid: str, namespace: str, key: str) -> None:
        by_ns = self._data.get(uid)
        if not by_ns or namespace not in by_ns:
            return
        by_ns[namespace].pop(key, None)
        if not by_ns[namespace]:
            del by_ns[namespace]
        if not by_ns:
            del self._data[uid]

    def list_user_keys(self, uid: str, namespace: str) -> Tuple[str, ...]:
        return tuple(self._data.get(uid, {}).get(namespace, {}).keys())


class InMemoryLoginTokenStore:
    """Issues one login token per session id and resolves it back."""

    def __init__(self) -> None:
        self._by_session: Dict[str, LoginToken] = {}

    def issue(self, session_id: str, uid: Optional[str] = None) -> LoginToken:
        token = LoginToken(id=secrets.token_hex(16), uid=uid)
        self._by_session[session_id] = token
        LOG.debug("Login token issued sid=%s", session_id)
        return token

    def rebind(self, old_session_id: str, new_session_id: str) -> None:
        """Move a token to a regenerated session id."""
        token = self._by_session.pop(old_session_id, None)
        if token is None:
            raise InvalidTokenError("Unknown session")
        self._by_session[new_session_id] = token

    def revoke(self, session_id: str) -> None:
        if self._by_session.pop(session_id, None) is not None:
            LOG.debug("Login token revoked sid=%s", session_id)

    def token_for_session(self, session_id: str) -> LoginToken:
        token = self._by_session.get(session_id)
        if token is None:
            raise InvalidTokenError("Token does not exist")
        return token


class StaticAppSupplier:
    """
    Fixed app catalogue.

    Args:
        manifests: App manifests in enumeration order.
        enabled_for: Optional per-uid override of enabled app ids; users not
            listed get every app in catalogue order.
    """

    def __init__(
        self,
        manifests: Sequence[AppManifest] = (),
        enabled_for: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        self._manifests: Dict[str, AppManifest] = {m.app_id: m for m in manifests}
        self._order: List[str] = [m.app_id for m in manifests]
        self._enabled_for: Dict[str, List[str]] = {
            uid: list(app_ids) for uid, app_ids in (enabled_for or {}).items()
        }

    def add(self, manifest: AppManifest) -> None:
        if manifest.app_id not in self._manifests:
            self._order.append(manifest.app_id)
        self._manifests[manifest.app_id] = manifest

    def disable_app(self, app_id: str) -> None:
        self._order = [a for a in self._order if a != app_id]
        self._manifests.pop(app_id, None)

    def list_enabled_apps(self, user: UserProtocol) -> Tuple[str, ...]:
        app_ids = self._enabled_for.get(user.uid, self._order)
        return tuple(a for a in app_ids if a in self._manifests)

    def get_app_manifest(self, app_id: str) -> AppManifest:
        try:
            return self._manifests[app_id]
        except KeyError:
            return AppManifest(app_id=app_id)


class RecordingRememberTokenIssuer:
    """Remembers which users were granted a "remember this device" token."""

    def __init__(self) -> None:
        self.issued_for: List[str] = []

    def issue(self, user: UserProtocol) -> None:
        self.issued_for.append(user.uid)
        LOG.info("Remember-device token issued uid=%s", user.uid)
