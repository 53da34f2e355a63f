# -*- coding: utf-8 -*-
"""
RU: Журнал login-токенов, для которых вход ещё требует 2FA. Хранится в
    персистентных пользовательских настройках и переживает истечение сессии.

EN: Ledger of login tokens that still owe a second factor. Kept in the
    persistent per-user config store so it survives session expiry: a user
    cannot skip 2FA by waiting for the session to lapse while the login token
    stays valid.

Layout in the config store: namespace ``login_token_2fa``, key = token id,
value = creation timestamp (epoch seconds). An entry exists iff that token
still requires 2FA completion.
"""

from __future__ import annotations

import logging
from typing import Tuple

from authgate.security.auth.config import DEFAULT_SETTINGS, TwoFactorSettings
from authgate.security.auth.protocols import (
    LoginTokenResolverProtocol,
    UserConfigStoreProtocol,
    UserProtocol,
)

__all__ = ["PendingLoginTokenLedger"]

LOG = logging.getLogger(__name__)


class PendingLoginTokenLedger:
    """Per-user record of login tokens awaiting 2FA."""

    def __init__(
        self,
        config_store: UserConfigStoreProtocol,
        token_resolver: LoginTokenResolverProtocol,
        settings: TwoFactorSettings = DEFAULT_SETTINGS,
    ) -> None:
        self._config = config_store
        self._tokens = token_resolver
        self._namespace = settings.ledger_namespace

    def token_id_for_session(self, session_id: str) -> str:
        """
        Map a live session id to its login token id.

        Raises:
            InvalidTokenError: the token is unknown or expired.
        """
        return self._tokens.token_for_session(session_id).id

    def record(self, user: UserProtocol, token_id: str, timestamp: int) -> None:
        """Upsert: a second call for the same token only refreshes the timestamp."""
        self._config.set_user_value(user.uid, self._namespace, token_id, int(timestamp))
        LOG.debug("Ledger entry recorded uid=%s", user.uid)

    def requires_two_factor(self, user: UserProtocol, token_id: str) -> bool:
        return token_id in self.pending_token_ids(user)

    def pending_token_ids(self, user: UserProtocol) -> Tuple[str, ...]:
        return tuple(self._config.list_user_keys(user.uid, self._namespace))

    def clear(self, user: UserProtocol, token_id: str) -> None:
        self._config.delete_user_value(user.uid, self._namespace, token_id)
        LOG.debug("Ledger entry cleared uid=%s", user.uid)

    def clear_all(self, user: UserProtocol) -> int:
        """Drop every entry of the user; returns how many were removed."""
        keys = self.pending_token_ids(user)
        for key in keys:
            self._config.delete_user_value(user.uid, self._namespace, key)
        if keys:
            LOG.debug("Ledger cleared uid=%s entries=%d", user.uid, len(keys))
        return len(keys)
