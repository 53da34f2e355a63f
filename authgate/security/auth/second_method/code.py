# -*- coding: utf-8 -*-
"""
Модуль: security/auth/second_method/code.py

RU: Одноразовые резервные коды (backup/recovery codes) с блокировкой после
    серии неудачных попыток.

EN: Single-use backup/recovery codes with a lockout after repeated failures.
    Only SHA-256 digests of the codes are persisted; plaintext codes are
    returned once from ``generate``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import time
from typing import Any, Callable, Dict, Final, List

from authgate.security.auth.config import BACKUP_CODES_PROVIDER_ID
from authgate.security.auth.protocols import UserConfigStoreProtocol, UserProtocol

__all__ = [
    "BackupCodesProvider",
    "format_code",
    "MAX_ATTEMPTS",
    "LOCK_SECONDS",
]

LOG = logging.getLogger(__name__)

# ---- Constants ----
BACKUP_NAMESPACE: Final[str] = "twofactor_backupcodes"
CODE_BITS: Final[int] = 64
BLOCK_SIZE: Final[int] = 4
DEFAULT_COUNT: Final[int] = 10
MAX_ATTEMPTS: Final[int] = 5
LOCK_SECONDS: Final[int] = 180


def format_code(raw_hex: str, block_size: int = BLOCK_SIZE) -> str:
    """
    Format raw hex code into human-readable blocks.

    Example:
        >>> format_code("a1b2c3d4e5f6", 4)
        'a1b2-c3d4-e5f6'
    """
    return "-".join(raw_hex[i : i + block_size] for i in range(0, len(raw_hex), block_size))


def _normalize(code: str) -> str:
    return (code or "").replace("-", "").replace(" ", "").strip().lower()


def _digest(code: str) -> str:
    return hashlib.sha256(_normalize(code).encode("utf-8")).hexdigest()


class BackupCodesProvider:
    """
    Backup-code provider; the registry keeps it out of regular challenge lists.

    Example:
        >>> provider = BackupCodesProvider(store)
        >>> codes = provider.generate(alice, count=5)
        >>> provider.verify_challenge(alice, codes[0])
        True
        >>> provider.verify_challenge(alice, codes[0])
        False
    """

    def __init__(
        self,
        config_store: UserConfigStoreProtocol,
        clock: Callable[[], float] = time.time,
        namespace: str = BACKUP_NAMESPACE,
    ) -> None:
        self._config = config_store
        self._clock = clock
        self._namespace = namespace

    @property
    def provider_id(self) -> str:
        return BACKUP_CODES_PROVIDER_ID

    @property
    def display_name(self) -> str:
        return "Backup code"

    def is_enabled_for_user(self, user: UserProtocol) -> bool:
        return self.remaining_codes(user) > 0

    def verify_challenge(self, user: UserProtocol, challenge: str) -> bool:
        if self.is_locked(user):
            LOG.warning("Backup code attempt during lockout uid=%s", user.uid)
            return False

        digest = _digest(challenge)
        codes: List[Dict[str, Any]] = self._get(user, "codes", [])
        for entry in codes:
            if hmac.compare_digest(entry["hash"], digest) and not entry["used"]:
                entry["used"] = True
                entry["used_at"] = int(self._clock())
                self._reset_failures(user)
                # consumed code is written last
                self._set(user, "codes", codes)
                return True

        self._register_failure(user)
        return False

    def generate(self, user: UserProtocol, count: int = DEFAULT_COUNT) -> List[str]:
        """Replace all codes with a fresh batch and return them formatted."""
        if count < 1:
            raise ValueError("count must be positive")
        plain = [format_code(secrets.token_hex(CODE_BITS // 8)) for _ in range(count)]
        self._set(
            user,
            "codes",
            [{"hash": _digest(c), "used": False, "used_at": None} for c in plain],
        )
        self._set(user, "failed_attempts", 0)
        self._set(user, "lock_until", None)
        LOG.info("Backup codes generated uid=%s count=%d", user.uid, count)
        return plain

    def remaining_codes(self, user: UserProtocol) -> int:
        return sum(1 for c in self._get(user, "codes", []) if not c["used"])

    def is_locked(self, user: UserProtocol) -> bool:
        lock_until = self._get(user, "lock_until")
        return lock_until is not None and self._clock() < float(lock_until)

    def remove(self, user: UserProtocol) -> None:
        for key in self._config.list_user_keys(user.uid, self._namespace):
            self._config.delete_user_value(user.uid, self._namespace, key)

    def _reset_failures(self, user: UserProtocol) -> None:
        if self._get(user, "failed_attempts", 0):
            self._set(user, "failed_attempts", 0)
        if self._get(user, "lock_until") is not None:
            self._set(user, "lock_until", None)

    def _register_failure(self, user: UserProtocol) -> None:
        failures = int(self._get(user, "failed_attempts", 0)) + 1
        if failures >= MAX_ATTEMPTS:
            self._set(user, "lock_until", int(self._clock()) + LOCK_SECONDS)
            failures = 0
            LOG.warning("Backup codes locked for %ds uid=%s", LOCK_SECONDS, user.uid)
        self._set(user, "failed_attempts", failures)

    def _get(self, user: UserProtocol, key: str, default: Any = None) -> Any:
        return self._config.get_user_value(user.uid, self._namespace, key, default)

    def _set(self, user: UserProtocol, key: str, value: Any) -> None:
        self._config.set_user_value(user.uid, self._namespace, key, value)
