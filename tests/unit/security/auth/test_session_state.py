import pytest

from authgate.security.auth.config import TwoFactorSettings
from authgate.security.auth.memory import InMemorySessionStore
from authgate.security.auth.session_state import SessionStateTracker


@pytest.fixture
def session() -> InMemorySessionStore:
    return InMemorySessionStore("sid-1")


@pytest.fixture
def state(session: InMemorySessionStore) -> SessionStateTracker:
    return SessionStateTracker(session)


def test_fresh_session_has_no_flags(state: SessionStateTracker) -> None:
    assert state.is_pending_set() is False
    assert state.pending_uid() is None
    assert state.is_satisfied_for("alice") is False
    assert state.consume_remember() is False
    assert state.is_app_password_session() is False
    assert state.session_id() == "sid-1"


def test_mark_pending_and_clear(state: SessionStateTracker, session: InMemorySessionStore) -> None:
    state.mark_pending("alice", remember=True)
    assert state.is_pending_set() is True
    assert state.pending_uid() == "alice"
    assert state.consume_remember() is True
    assert session.get("two_factor_auth_uid") == "alice"

    state.clear_pending()
    assert state.is_pending_set() is False
    assert state.consume_remember() is False
    assert not session.exists("two_factor_remember_login")


def test_remember_requires_real_true(state: SessionStateTracker, session: InMemorySessionStore) -> None:
    session.set("two_factor_remember_login", "true")
    assert state.consume_remember() is False
    state.mark_pending("alice", remember=False)
    assert state.consume_remember() is False


def test_satisfied_is_uid_specific(state: SessionStateTracker) -> None:
    state.mark_satisfied("alice")
    assert state.is_satisfied_for("alice") is True
    assert state.is_satisfied_for("bob") is False
    state.clear_pending()
    assert state.is_satisfied_for("alice") is True


def test_app_password_marker(state: SessionStateTracker, session: InMemorySessionStore) -> None:
    session.set("app_password", "token-xyz")
    assert state.is_app_password_session() is True


def test_custom_keys_are_used(session: InMemorySessionStore) -> None:
    settings = TwoFactorSettings(session_pending_key="pending", session_done_key="done")
    state = SessionStateTracker(session, settings)
    state.mark_pending("alice", remember=False)
    state.mark_satisfied("alice")
    assert session.get("pending") == "alice"
    assert session.get("done") == "alice"


def test_sessions_do_not_share_flags() -> None:
    a = SessionStateTracker(InMemorySessionStore("a"))
    b = SessionStateTracker(InMemorySessionStore("b"))
    a.mark_pending("alice", remember=False)
    assert b.is_pending_set() is False
