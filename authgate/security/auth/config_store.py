# -*- coding: utf-8 -*-
"""
RU: Персистентное хранилище пользовательских настроек в зашифрованном файле
    (AES-256-GCM) с атомарной записью.

EN: Persistent per-user config store kept in one AES-256-GCM encrypted file
    with atomic writes.

On-disk format: JSON ``{"v": 1, "n": base64(nonce), "c": base64(ciphertext||tag)}``;
the plaintext is JSON ``{uid: {namespace: {key: value}}}``. Values must be
JSON-serialisable.

Thread-safety:
- An RLock guards every read-modify-write cycle.
- Writes go to a temp file in the same directory and replace the target.

No values, keys or nonces are logged; only structural events.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import stat
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Final, Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from authgate.security.auth.exceptions import (
    ConfigStoreError,
    ConfigStoreReadError,
    ConfigStoreWriteError,
)

__all__ = ["EncryptedFileUserConfigStore", "KEY_LEN"]

_LOGGER: Final = logging.getLogger(__name__)

KEY_LEN: Final[int] = 32
NONCE_LEN: Final[int] = 12
_FORMAT_VERSION: Final[int] = 1
_AAD: Final[bytes] = b"authgate.user-config.v1"

_Data = Dict[str, Dict[str, Dict[str, Any]]]


def _b64e(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64d(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


class EncryptedFileUserConfigStore:
    """
    Encrypted file implementation of the user config store contract.

    Args:
        filepath: Store file (created on first write).
        key_provider: Callable returning the 32-byte AES key; the key is kept
            outside this object and fetched per operation.

    Raises:
        ConfigStoreError: on invalid initialization parameters.

    Example:
        >>> store = EncryptedFileUserConfigStore("users.bin", lambda: key)
        >>> store.set_user_value("alice", "core", "two_factor_auth_disabled", 1)
        >>> store.get_user_value("alice", "core", "two_factor_auth_disabled", 0)
        1
    """

    def __init__(self, filepath: str, key_provider: Callable[[], bytes]) -> None:
        if not isinstance(filepath, str) or not filepath:
            raise ConfigStoreError("Invalid config store path")
        self._filepath: Path = Path(filepath).resolve()
        self._key_provider = key_provider
        self._lock = threading.RLock()

    # ---------- Contract ----------

    def get_user_value(self, uid: str, namespace: str, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(uid, {}).get(namespace, {}).get(key, default)

    def set_user_value(self, uid: str, namespace: str, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data.setdefault(uid, {}).setdefault(namespace, {})[key] = value
            self._write(data)

    def delete_user_value(self, uid: str, namespace: str, key: str) -> None:
        with self._lock:
            data = self._read()
            by_ns = data.get(uid)
            if not by_ns or key not in by_ns.get(namespace, {}):
                return
            del by_ns[namespace][key]
            if not by_ns[namespace]:
                del by_ns[namespace]
            if not by_ns:
                del data[uid]
            self._write(data)

    def list_user_keys(self, uid: str, namespace: str) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._read().get(uid, {}).get(namespace, {}).keys())

    def rotate_key(self, new_key_provider: Callable[[], bytes]) -> None:
        """Re-encrypt the whole store under a new key."""
        with self._lock:
            data = self._read()
            old_provider = self._key_provider
            self._key_provider = new_key_provider
            try:
                self._write(data)
            except Exception:
                self._key_provider = old_provider
                raise
            _LOGGER.info("User config store re-encrypted.")

    # ---------- Internals ----------

    def _key(self) -> bytes:
        key = self._key_provider()
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_LEN:
            raise ConfigStoreError("Config store key must be 32 bytes")
        return bytes(key)

    def _read(self) -> _Data:
        if not self._filepath.exists():
            return {}
        try:
            envelope = json.loads(self._filepath.read_text(encoding="utf-8"))
            if not isinstance(envelope, dict) or envelope.get("v") != _FORMAT_VERSION:
                raise ValueError("Unsupported envelope")
            nonce = _b64d(envelope["n"])
            combined = _b64d(envelope["c"])
        except Exception as exc:
            _LOGGER.error("Config store parse error: %s", exc.__class__.__name__)
            raise ConfigStoreReadError("Invalid config store format") from exc

        try:
            plaintext = AESGCM(self._key()).decrypt(nonce, combined, _AAD)
        except InvalidTag as exc:
            _LOGGER.error("Config store authentication failed")
            raise ConfigStoreReadError("Config store authentication failed") from exc

        try:
            data = json.loads(plaintext.decode("utf-8"))
        except Exception as exc:
            raise ConfigStoreReadError("Corrupt config store payload") from exc
        if not isinstance(data, dict):
            raise ConfigStoreReadError("Corrupt config store payload")
        return data

    def _write(self, data: _Data) -> None:
        try:
            plaintext = json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise ConfigStoreWriteError("Value is not JSON-serialisable") from exc

        nonce = os.urandom(NONCE_LEN)
        combined = AESGCM(self._key()).encrypt(nonce, plaintext, _AAD)
        envelope = json.dumps({"v": _FORMAT_VERSION, "n": _b64e(nonce), "c": _b64e(combined)})

        self._filepath.parent.mkdir(parents=True, exist_ok=True)
        tmp_path: Optional[str] = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=".userconfig-", suffix=".tmp", dir=str(self._filepath.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_f:
                tmp_f.write(envelope)
                tmp_f.flush()
                os.fsync(tmp_f.fileno())
            Path(tmp_path).replace(self._filepath)
            tmp_path = None
        except OSError as exc:
            _LOGGER.error("Config store write failed: %s", exc.__class__.__name__)
            raise ConfigStoreWriteError("Failed to write config store") from exc
        finally:
            if tmp_path is not None and Path(tmp_path).exists():
                Path(tmp_path).unlink()

        try:
            os.chmod(self._filepath, stat.S_IRUSR | stat.S_IWUSR)
        except OSError as exc:
            _LOGGER.warning("Could not set strict permissions: %s", exc.__class__.__name__)
