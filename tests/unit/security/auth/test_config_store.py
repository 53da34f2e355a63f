import os
from pathlib import Path

import pytest

from authgate.security.auth.config_store import KEY_LEN, EncryptedFileUserConfigStore
from authgate.security.auth.exceptions import (
    ConfigStoreError,
    ConfigStoreReadError,
    ConfigStoreWriteError,
)

KEY = b"k" * KEY_LEN
OTHER_KEY = b"o" * KEY_LEN


@pytest.fixture
def path(tmp_path: Path) -> Path:
    return tmp_path / "store" / "users.bin"


@pytest.fixture
def store(path: Path) -> EncryptedFileUserConfigStore:
    return EncryptedFileUserConfigStore(str(path), lambda: KEY)


def test_missing_file_reads_defaults(store: EncryptedFileUserConfigStore, path: Path) -> None:
    assert store.get_user_value("alice", "core", "flag", 0) == 0
    assert store.list_user_keys("alice", "core") == ()
    assert not path.exists()


def test_roundtrip_and_persistence(store: EncryptedFileUserConfigStore, path: Path) -> None:
    store.set_user_value("alice", "login_token_2fa", "tok-1", 1_700_000_000)
    store.set_user_value("alice", "twofactor_backupcodes", "codes", [{"hash": "ab", "used": False}])
    again = EncryptedFileUserConfigStore(str(path), lambda: KEY)
    assert again.get_user_value("alice", "login_token_2fa", "tok-1") == 1_700_000_000
    assert again.get_user_value("alice", "twofactor_backupcodes", "codes") == [
        {"hash": "ab", "used": False}
    ]
    assert again.list_user_keys("alice", "login_token_2fa") == ("tok-1",)


def test_file_is_encrypted(store: EncryptedFileUserConfigStore, path: Path) -> None:
    store.set_user_value("alice", "core", "two_factor_auth_disabled", 1)
    raw = path.read_bytes()
    assert b"alice" not in raw
    assert b"two_factor_auth_disabled" not in raw


def test_delete_cleans_up(store: EncryptedFileUserConfigStore) -> None:
    store.set_user_value("alice", "ns", "a", 1)
    store.set_user_value("alice", "ns", "b", 2)
    store.delete_user_value("alice", "ns", "a")
    store.delete_user_value("alice", "ns", "missing")
    assert store.list_user_keys("alice", "ns") == ("b",)
    store.delete_user_value("alice", "ns", "b")
    assert store.list_user_keys("alice", "ns") == ()


def test_wrong_key_fails_closed(store: EncryptedFileUserConfigStore, path: Path) -> None:
    store.set_user_value("alice", "ns", "k", "v")
    wrong = EncryptedFileUserConfigStore(str(path), lambda: OTHER_KEY)
    with pytest.raises(ConfigStoreReadError):
        wrong.get_user_value("alice", "ns", "k")


def test_corrupt_file(store: EncryptedFileUserConfigStore, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("not json", encoding="utf-8")
    with pytest.raises(ConfigStoreReadError):
        store.list_user_keys("alice", "ns")


def test_bad_key_length(path: Path) -> None:
    store = EncryptedFileUserConfigStore(str(path), lambda: b"short")
    with pytest.raises(ConfigStoreError):
        store.set_user_value("alice", "ns", "k", 1)


def test_invalid_path() -> None:
    with pytest.raises(ConfigStoreError):
        EncryptedFileUserConfigStore("", lambda: KEY)


def test_unserialisable_value(store: EncryptedFileUserConfigStore) -> None:
    with pytest.raises(ConfigStoreWriteError):
        store.set_user_value("alice", "ns", "k", object())


def test_rotate_key(store: EncryptedFileUserConfigStore, path: Path) -> None:
    store.set_user_value("alice", "ns", "k", "v")
    store.rotate_key(lambda: OTHER_KEY)
    assert store.get_user_value("alice", "ns", "k") == "v"
    with pytest.raises(ConfigStoreReadError):
        EncryptedFileUserConfigStore(str(path), lambda: KEY).get_user_value("alice", "ns", "k")


def test_rotate_key_rolls_back_on_bad_key(store: EncryptedFileUserConfigStore) -> None:
    store.set_user_value("alice", "ns", "k", "v")
    with pytest.raises(ConfigStoreError):
        store.rotate_key(lambda: b"bad")
    assert store.get_user_value("alice", "ns", "k") == "v"


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions only")
def test_file_permissions(store: EncryptedFileUserConfigStore, path: Path) -> None:
    store.set_user_value("alice", "ns", "k", "v")
    assert (path.stat().st_mode & 0o777) == 0o600
