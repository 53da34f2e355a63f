import pytest

from authgate.security.auth.exceptions import InvalidTokenError
from authgate.security.auth.memory import (
    InMemoryLoginTokenStore,
    InMemorySessionStore,
    InMemoryUserConfigStore,
    RecordingRememberTokenIssuer,
    StaticAppSupplier,
)
from authgate.security.auth.protocols import AppManifest, UserRef


def test_session_store_basics() -> None:
    s = InMemorySessionStore("sid")
    assert s.current_session_id() == "sid"
    s.set("k", 1)
    assert s.exists("k") and s.get("k") == 1
    s.remove("k")
    s.remove("k")
    assert not s.exists("k") and s.get("k") is None


def test_session_regenerate_keeps_values() -> None:
    s = InMemorySessionStore("sid")
    s.set("k", "v")
    new_id = s.regenerate_id()
    assert new_id != "sid"
    assert s.get("k") == "v"


def test_config_store_copies_values() -> None:
    store = InMemoryUserConfigStore()
    value = {"codes": [1, 2]}
    store.set_user_value("alice", "ns", "k", value)
    value["codes"].append(3)
    fetched = store.get_user_value("alice", "ns", "k")
    assert fetched == {"codes": [1, 2]}
    fetched["codes"].append(4)
    assert store.get_user_value("alice", "ns", "k") == {"codes": [1, 2]}


def test_config_store_delete_and_keys() -> None:
    store = InMemoryUserConfigStore()
    assert store.get_user_value("alice", "ns", "k", "dflt") == "dflt"
    store.set_user_value("alice", "ns", "a", 1)
    store.set_user_value("alice", "ns", "b", 2)
    assert store.list_user_keys("alice", "ns") == ("a", "b")
    store.delete_user_value("alice", "ns", "a")
    store.delete_user_value("alice", "ns", "missing")
    store.delete_user_value("nobody", "ns", "a")
    assert store.list_user_keys("alice", "ns") == ("b",)
    store.delete_user_value("alice", "ns", "b")
    assert store.list_user_keys("alice", "ns") == ()


def test_login_token_store() -> None:
    tokens = InMemoryLoginTokenStore()
    token = tokens.issue("sid-1", "alice")
    assert tokens.token_for_session("sid-1") == token
    tokens.rebind("sid-1", "sid-2")
    assert tokens.token_for_session("sid-2").id == token.id
    with pytest.raises(InvalidTokenError):
        tokens.token_for_session("sid-1")
    with pytest.raises(InvalidTokenError):
        tokens.rebind("sid-1", "sid-3")
    tokens.revoke("sid-2")
    with pytest.raises(InvalidTokenError):
        tokens.token_for_session("sid-2")


def test_app_supplier_order_and_overrides() -> None:
    apps = StaticAppSupplier(
        [AppManifest("b", ("x",)), AppManifest("a", ("y",))],
        enabled_for={"bob": ["a", "ghost"]},
    )
    assert apps.list_enabled_apps(UserRef("alice")) == ("b", "a")
    assert apps.list_enabled_apps(UserRef("bob")) == ("a",)
    assert apps.get_app_manifest("unknown").two_factor_providers == ()

    apps.add(AppManifest("c", ("z",)))
    apps.disable_app("b")
    assert apps.list_enabled_apps(UserRef("alice")) == ("a", "c")


def test_remember_issuer_records() -> None:
    issuer = RecordingRememberTokenIssuer()
    issuer.issue(UserRef("alice"))
    assert issuer.issued_for == ["alice"]


def test_user_ref_validation() -> None:
    with pytest.raises(ValueError):
        UserRef("  ")


def test_revoke_drops_session_binding() -> None:
    tokens = InMemoryLoginTokenStore()
    tokens.issue("sid-1", "alice")
    tokens.revoke("sid-1")
    tokens.revoke("sid-1")
    assert tokens._by_session == {}
    with pytest.raises(InvalidTokenError):
        tokens.token_for_session("sid-1")
    fresh = tokens.issue("sid-1", "alice")
    assert tokens.token_for_session("sid-1") == fresh
