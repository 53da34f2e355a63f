# -*- coding: utf-8 -*-
"""
Модуль: security/auth/second_method/totp.py

RU: TOTP (RFC 6238) провайдер второго фактора. Совместим с Google Authenticator,
    Authy, FreeOTP. Секрет хранится в пользовательских настройках.

EN: TOTP (RFC 6238) second-factor provider compatible with Google Authenticator,
    Authy and FreeOTP. The base32 seed lives in the user config store; codes
    are checked with ``pyotp`` within ±1 time step and a used step is never
    accepted twice.
"""

from __future__ import annotations

import hmac
import logging
import time
from typing import Any, Callable, Dict, Final, Optional

import pyotp

from authgate.security.auth.protocols import UserConfigStoreProtocol, UserProtocol

__all__ = [
    "TotpProvider",
    "TOTP_PROVIDER_ID",
    "DEFAULT_ISSUER",
]

LOG = logging.getLogger(__name__)

# ---- Constants ----
TOTP_PROVIDER_ID: Final[str] = "totp"
TOTP_NAMESPACE: Final[str] = "twofactor_totp"
DEFAULT_ISSUER: Final[str] = "authgate"
DEFAULT_DIGITS: Final[int] = 6
DEFAULT_INTERVAL: Final[int] = 30  # seconds
VALID_WINDOW: Final[int] = 1  # accept codes ±1 time step


class TotpProvider:
    """
    TOTP provider backed by the user config store.

    Lifecycle: ``setup`` stores a fresh seed (not yet enabled), ``enable``
    turns it on after the user proves possession with a first code,
    ``remove`` deletes it.

    Example:
        >>> provider = TotpProvider(store)
        >>> info = provider.setup(alice, username="alice@example.com")
        >>> provider.enable(alice, pyotp.TOTP(info["secret"]).now())
        True
        >>> provider.is_enabled_for_user(alice)
        True
    """

    def __init__(
        self,
        config_store: UserConfigStoreProtocol,
        issuer: str = DEFAULT_ISSUER,
        clock: Callable[[], float] = time.time,
        namespace: str = TOTP_NAMESPACE,
    ) -> None:
        self._config = config_store
        self._issuer = issuer
        self._clock = clock
        self._namespace = namespace

    @property
    def provider_id(self) -> str:
        return TOTP_PROVIDER_ID

    @property
    def display_name(self) -> str:
        return "TOTP (Authenticator app)"

    # ---------- Provider contract ----------

    def is_enabled_for_user(self, user: UserProtocol) -> bool:
        return bool(self._get(user, "enabled", False)) and bool(self._get(user, "secret"))

    def verify_challenge(self, user: UserProtocol, challenge: str) -> bool:
        """Check a code; wrong, malformed and replayed codes all return False."""
        if not self.is_enabled_for_user(user):
            return False
        return self._check_and_consume(user, challenge)

    # ---------- Setup ----------

    def setup(self, user: UserProtocol, secret: Optional[str] = None, username: str = "") -> Dict[str, Any]:
        """
        Store a new seed for the user, disabled until ``enable`` succeeds.

        Returns:
            ``{"secret": ..., "uri": "otpauth://..."}`` for QR rendering.
        """
        secret = secret or pyotp.random_base32()
        self._set(user, "secret", secret)
        self._set(user, "enabled", False)
        self._set(user, "last_used_time_step", None)
        uri = pyotp.TOTP(secret, digits=DEFAULT_DIGITS, interval=DEFAULT_INTERVAL).provisioning_uri(
            name=username or user.uid, issuer_name=self._issuer
        )
        LOG.info("TOTP seed provisioned uid=%s", user.uid)
        return {"secret": secret, "uri": uri}

    def enable(self, user: UserProtocol, otp: str) -> bool:
        """Enable TOTP once the user submits a valid first code."""
        if not self._get(user, "secret"):
            return False
        if not self._check_and_consume(user, otp):
            return False
        self._set(user, "enabled", True)
        LOG.info("TOTP enabled uid=%s", user.uid)
        return True

    def remove(self, user: UserProtocol) -> None:
        for key in self._config.list_user_keys(user.uid, self._namespace):
            self._config.delete_user_value(user.uid, self._namespace, key)
        LOG.info("TOTP removed uid=%s", user.uid)

    # ---------- Internals ----------

    @staticmethod
    def validate_otp_format(otp: str, expected_digits: int = DEFAULT_DIGITS) -> bool:
        """
        Example:
            >>> TotpProvider.validate_otp_format("123456")
            True
            >>> TotpProvider.validate_otp_format("12a456")
            False
        """
        return isinstance(otp, str) and otp.isdigit() and len(otp) == expected_digits

    def _check_and_consume(self, user: UserProtocol, otp: str) -> bool:
        otp = (otp or "").strip().replace(" ", "")
        if not self.validate_otp_format(otp):
            return False

        totp = pyotp.TOTP(self._get(user, "secret"), digits=DEFAULT_DIGITS, interval=DEFAULT_INTERVAL)
        now = self._clock()
        current_step = int(now // DEFAULT_INTERVAL)
        last_used = self._get(user, "last_used_time_step")

        for offset in range(-VALID_WINDOW, VALID_WINDOW + 1):
            if not hmac.compare_digest(totp.at(now, offset), otp):
                continue
            step = current_step + offset
            if last_used is not None and step <= int(last_used):
                LOG.warning("TOTP replay rejected uid=%s", user.uid)
                return False
            self._set(user, "last_used_time_step", step)
            return True
        return False

    def _get(self, user: UserProtocol, key: str, default: Any = None) -> Any:
        return self._config.get_user_value(user.uid, self._namespace, key, default)

    def _set(self, user: UserProtocol, key: str, value: Any) -> None:
        self._config.set_user_value(user.uid, self._namespace, key, value)
