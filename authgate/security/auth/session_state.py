# -*- coding: utf-8 -*-
"""
RU: Флаги сессии для текущей попытки входа: «2FA ожидается», «2FA пройдена»,
    «запомнить устройство». Видимость только в пределах одной сессии.

EN: Session flags of the current login attempt: "2FA pending", "2FA satisfied"
    and "remember this device". Visible only within one session.
"""

from __future__ import annotations

import logging
from typing import Optional

from authgate.security.auth.config import DEFAULT_SETTINGS, TwoFactorSettings
from authgate.security.auth.protocols import SessionStoreProtocol

__all__ = ["SessionStateTracker"]

LOG = logging.getLogger(__name__)


class SessionStateTracker:
    """Thin read/write wrapper over the session store."""

    def __init__(
        self,
        session: SessionStoreProtocol,
        settings: TwoFactorSettings = DEFAULT_SETTINGS,
    ) -> None:
        self._session = session
        self._settings = settings

    def mark_pending(self, uid: str, remember: bool) -> None:
        self._session.set(self._settings.session_pending_key, uid)
        self._session.set(self._settings.session_remember_key, bool(remember))
        LOG.debug("2FA pending uid=%s remember=%s", uid, bool(remember))

    def clear_pending(self) -> None:
        """Remove the pending and remember flags together."""
        self._session.remove(self._settings.session_pending_key)
        self._session.remove(self._settings.session_remember_key)

    def mark_satisfied(self, uid: str) -> None:
        self._session.set(self._settings.session_done_key, uid)
        LOG.debug("2FA satisfied uid=%s", uid)

    def is_satisfied_for(self, uid: str) -> bool:
        key = self._settings.session_done_key
        return self._session.exists(key) and self._session.get(key) == uid

    def is_pending_set(self) -> bool:
        return self._session.exists(self._settings.session_pending_key)

    def pending_uid(self) -> Optional[str]:
        if not self.is_pending_set():
            return None
        value = self._session.get(self._settings.session_pending_key)
        return str(value) if value is not None else None

    def consume_remember(self) -> bool:
        """Read the remember choice; the caller clears it with ``clear_pending``."""
        return self._session.get(self._settings.session_remember_key) is True

    def is_app_password_session(self) -> bool:
        """Logged in with a long-lived app credential instead of the login form."""
        return self._session.exists(self._settings.app_password_key)

    def session_id(self) -> str:
        return self._session.current_session_id()
