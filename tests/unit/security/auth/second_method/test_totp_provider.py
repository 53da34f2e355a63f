# tests/unit/security/auth/second_method/test_totp_provider.py

import pyotp
import pytest

from authgate.security.auth.memory import InMemoryUserConfigStore
from authgate.security.auth.protocols import TwoFactorProvider, UserRef
from authgate.security.auth.second_method.totp import TotpProvider

ALICE = UserRef("alice")
START = 1_700_000_010


class Clock:
    def __init__(self, start: float) -> None:
        self.t = start

    def now(self) -> float:
        return self.t

    def add(self, seconds: float) -> None:
        self.t += seconds


@pytest.fixture
def clock() -> Clock:
    return Clock(START)


@pytest.fixture
def store() -> InMemoryUserConfigStore:
    return InMemoryUserConfigStore()


@pytest.fixture
def provider(store: InMemoryUserConfigStore, clock: Clock) -> TotpProvider:
    return TotpProvider(store, issuer="TestApp", clock=clock.now)


def enabled_secret(provider: TotpProvider, clock: Clock) -> str:
    secret = provider.setup(ALICE)["secret"]
    assert provider.enable(ALICE, pyotp.TOTP(secret).at(clock.now()))
    return secret


def test_satisfies_provider_protocol(provider: TotpProvider) -> None:
    assert isinstance(provider, TwoFactorProvider)
    assert provider.provider_id == "totp"
    assert provider.display_name


def test_setup_is_disabled_until_confirmed(provider: TotpProvider) -> None:
    info = provider.setup(ALICE, username="alice@example.com")
    assert info["uri"].startswith("otpauth://totp/")
    assert "TestApp" in info["uri"]
    assert provider.is_enabled_for_user(ALICE) is False
    code = pyotp.TOTP(info["secret"]).at(START)
    assert provider.verify_challenge(ALICE, code) is False


def test_setup_with_custom_secret(provider: TotpProvider, clock: Clock) -> None:
    custom = pyotp.random_base32()
    assert provider.setup(ALICE, secret=custom)["secret"] == custom
    assert provider.enable(ALICE, pyotp.TOTP(custom).at(clock.now())) is True
    assert provider.is_enabled_for_user(ALICE) is True


def test_enable_rejects_wrong_code(provider: TotpProvider) -> None:
    totp = pyotp.TOTP(provider.setup(ALICE)["secret"])
    valid = {totp.at(START, offset) for offset in (-1, 0, 1)}
    wrong = next(c for c in ("000000", "111111", "222222", "333333") if c not in valid)
    assert provider.enable(ALICE, wrong) is False
    assert provider.is_enabled_for_user(ALICE) is False


def test_enable_without_setup(provider: TotpProvider) -> None:
    assert provider.enable(ALICE, "123456") is False


def test_verify_next_code_and_reject_replay(provider: TotpProvider, clock: Clock) -> None:
    secret = enabled_secret(provider, clock)
    clock.add(30)
    code = pyotp.TOTP(secret).at(clock.now())
    assert provider.verify_challenge(ALICE, code) is True
    assert provider.verify_challenge(ALICE, code) is False


def test_code_used_for_enabling_is_not_reusable(provider: TotpProvider, clock: Clock) -> None:
    secret = enabled_secret(provider, clock)
    assert provider.verify_challenge(ALICE, pyotp.TOTP(secret).at(clock.now())) is False


def test_window_accepts_next_step(provider: TotpProvider, clock: Clock) -> None:
    secret = enabled_secret(provider, clock)
    ahead = pyotp.TOTP(secret).at(clock.now() + 30)
    assert provider.verify_challenge(ALICE, ahead) is True


def test_older_step_rejected_after_newer_used(provider: TotpProvider, clock: Clock) -> None:
    secret = enabled_secret(provider, clock)
    clock.add(60)
    totp = pyotp.TOTP(secret)
    assert provider.verify_challenge(ALICE, totp.at(clock.now())) is True
    assert provider.verify_challenge(ALICE, totp.at(clock.now() - 30)) is False


def test_code_outside_window_rejected(provider: TotpProvider, clock: Clock) -> None:
    secret = enabled_secret(provider, clock)
    clock.add(300)
    assert provider.verify_challenge(ALICE, pyotp.TOTP(secret).at(clock.now() - 120)) is False


@pytest.mark.parametrize("otp", ["", "12345", "1234567", "abcdef", "12 34a6"])
def test_malformed_codes_return_false(provider: TotpProvider, clock: Clock, otp: str) -> None:
    enabled_secret(provider, clock)
    clock.add(30)
    assert provider.verify_challenge(ALICE, otp) is False


def test_spaces_are_ignored(provider: TotpProvider, clock: Clock) -> None:
    secret = enabled_secret(provider, clock)
    clock.add(30)
    code = pyotp.TOTP(secret).at(clock.now())
    assert provider.verify_challenge(ALICE, f" {code[:3]} {code[3:]} ") is True


def test_remove_disables(provider: TotpProvider, store: InMemoryUserConfigStore, clock: Clock) -> None:
    enabled_secret(provider, clock)
    provider.remove(ALICE)
    assert provider.is_enabled_for_user(ALICE) is False
    assert store.list_user_keys("alice", "twofactor_totp") == ()


def test_users_are_isolated(provider: TotpProvider, clock: Clock) -> None:
    secret = enabled_secret(provider, clock)
    bob = UserRef("bob")
    assert provider.is_enabled_for_user(bob) is False
    assert provider.verify_challenge(bob, pyotp.TOTP(secret).at(clock.now() + 30)) is False


def test_validate_otp_format() -> None:
    assert TotpProvider.validate_otp_format("123456") is True
    assert TotpProvider.validate_otp_format("abc123") is False
    assert TotpProvider.validate_otp_format("12345678", 8) is True
