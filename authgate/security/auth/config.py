# -*- coding: utf-8 -*-
"""
RU: Конфигурация 2FA: ключи сессии, пространства имён пользовательских настроек,
    идентификаторы резервных кодов и имена событий.
EN: Two-factor configuration: session keys, user config namespaces,
    backup-code identifiers and event names.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Final, Mapping

SESSION_UID_KEY: Final[str] = "two_factor_auth_uid"
SESSION_UID_DONE: Final[str] = "two_factor_auth_passed"
REMEMBER_LOGIN: Final[str] = "two_factor_remember_login"
APP_PASSWORD_KEY: Final[str] = "app_password"

BACKUP_CODES_APP_ID: Final[str] = "twofactor_backupcodes"
BACKUP_CODES_PROVIDER_ID: Final[str] = "backup_codes"

EVENT_SUCCESS: Final[str] = "twofactor.provider.success"
EVENT_FAILED: Final[str] = "twofactor.provider.failed"


@dataclass(frozen=True)
class TwoFactorSettings:
    """
    Names used by the two-factor core when talking to its collaborators.

    Attributes:
        session_pending_key: Session key holding the UID with an outstanding challenge.
        session_done_key: Session key holding the UID that passed 2FA.
        session_remember_key: Session key holding the "remember this device" choice.
        app_password_key: Session key present when logged in with an app password.
        disabled_namespace: Config namespace of the per-user disabled flag.
        disabled_key: Config key of the per-user disabled flag.
        ledger_namespace: Config namespace of pending login tokens.
        backup_app_id: App shipping the backup-codes provider.
        backup_provider_id: Provider id of the backup-codes provider.
        activity_app: ``app`` field of published activity events.
        activity_type: ``type`` field of published activity events.
        success_subject: Activity subject after a passed challenge.
        failed_subject: Activity subject after a failed challenge.
        success_event: Domain event name after a passed challenge.
        failed_event: Domain event name after a failed challenge.

    Examples:
        >>> TwoFactorSettings().ledger_namespace
        'login_token_2fa'
        >>> TwoFactorSettings.from_mapping({"ledger_namespace": "pending_2fa"}).ledger_namespace
        'pending_2fa'
    """

    session_pending_key: str = SESSION_UID_KEY
    session_done_key: str = SESSION_UID_DONE
    session_remember_key: str = REMEMBER_LOGIN
    app_password_key: str = APP_PASSWORD_KEY
    disabled_namespace: str = "core"
    disabled_key: str = "two_factor_auth_disabled"
    ledger_namespace: str = "login_token_2fa"
    backup_app_id: str = BACKUP_CODES_APP_ID
    backup_provider_id: str = BACKUP_CODES_PROVIDER_ID
    activity_app: str = "core"
    activity_type: str = "security"
    success_subject: str = "twofactor_success"
    failed_subject: str = "twofactor_failed"
    success_event: str = EVENT_SUCCESS
    failed_event: str = EVENT_FAILED

    def __post_init__(self) -> None:
        """Validate that every name is a non-empty string."""
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"{f.name} must be a non-empty string")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TwoFactorSettings":
        """
        Build settings from a plain mapping, e.g. a parsed config file section.

        Raises:
            ValueError: on unknown keys or empty values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown two-factor settings: {', '.join(unknown)}")
        return cls(**dict(data))


DEFAULT_SETTINGS: Final[TwoFactorSettings] = TwoFactorSettings()
