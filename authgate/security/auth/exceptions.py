"""
Exceptions of the two-factor subsystem.

Hierarchy:
    TwoFactorError (base)
    ├── ProviderResolutionError   fatal for a provider enumeration call
    ├── InvalidTokenError         login token unknown/expired, recovered locally
    ├── AuditPublishError         activity/event delivery failed, logged and swallowed
    └── ConfigStoreError
        ├── ConfigStoreReadError
        └── ConfigStoreWriteError

Security Note:
    Messages never contain challenge responses, seeds or token secrets.
"""

from __future__ import annotations

from typing import Optional

__all__: list[str] = [
    "TwoFactorError",
    "ProviderResolutionError",
    "InvalidTokenError",
    "AuditPublishError",
    "ConfigStoreError",
    "ConfigStoreReadError",
    "ConfigStoreWriteError",
]


class TwoFactorError(Exception):
    """Base error of the two-factor subsystem."""


class ProviderResolutionError(TwoFactorError):
    """
    A provider named in an app manifest could not be instantiated.

    Attributes:
        identifier: Provider identifier from the manifest.
        app_id: App whose manifest named it, when known.
    """

    def __init__(self, identifier: str, app_id: Optional[str] = None) -> None:
        self.identifier = identifier
        self.app_id = app_id
        suffix = f" (app '{app_id}')" if app_id else ""
        super().__init__(f"Could not load two-factor auth provider {identifier}{suffix}")


class InvalidTokenError(TwoFactorError):
    """The login token for a session is unknown, revoked or expired."""


class AuditPublishError(TwoFactorError):
    """An activity or domain event could not be delivered."""


class ConfigStoreError(TwoFactorError):
    """Base error of the persistent user config store."""


class ConfigStoreReadError(ConfigStoreError):
    """Reading or decrypting the config store failed."""


class ConfigStoreWriteError(ConfigStoreError):
    """Writing the config store failed."""
