# -*- coding: utf-8 -*-
"""
RU: Оркестратор второго фактора: решает, нужна ли ещё 2FA для сессии,
    готовит вход с 2FA и проверяет ответ провайдера с побочными эффектами
    (флаги сессии, журнал login-токенов, события аудита).

EN: Second-factor orchestrator. Decides whether the session still owes a second
    factor, prepares a 2FA login and verifies a provider response with its side
    effects (session flags, login-token ledger, audit and domain events).

States of one login attempt (session flags + ledger):

    NoChallengeNeeded   terminal
    ChallengePending    prepare_two_factor_login() was called, not yet verified
    ChallengeSatisfied  terminal, verify_challenge() passed or token never needed 2FA

Single-threaded per request; no locking. Concurrent verifications for the same
user may both emit success events, which is tolerated.

Example:
    >>> manager.prepare_two_factor_login(alice, remember_device=False)
    >>> manager.needs_second_factor(alice)
    True
    >>> manager.verify_challenge("totp", alice, "123456")
    True
    >>> manager.needs_second_factor(alice)
    False
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from authgate.security.auth.config import DEFAULT_SETTINGS, TwoFactorSettings
from authgate.security.auth.events import ActivityEvent
from authgate.security.auth.exceptions import InvalidTokenError
from authgate.security.auth.login_token_ledger import PendingLoginTokenLedger
from authgate.security.auth.protocols import (
    EventSinkProtocol,
    RememberTokenIssuerProtocol,
    TwoFactorProvider,
    UserProtocol,
)
from authgate.security.auth.provider_registry import ProviderRegistry
from authgate.security.auth.session_state import SessionStateTracker

__all__ = ["TwoFactorManager"]


def _now() -> int:
    return int(time.time())


class TwoFactorManager:
    """
    Public two-factor surface for the host application.

    DI: every collaborator is passed to the constructor; nothing is looked up
    globally. ``remember_issuer`` is the narrow callback into the login
    subsystem for "remember this device" tokens.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        session_state: SessionStateTracker,
        ledger: PendingLoginTokenLedger,
        activity_sink: EventSinkProtocol,
        event_bus: EventSinkProtocol,
        remember_issuer: RememberTokenIssuerProtocol,
        settings: TwoFactorSettings = DEFAULT_SETTINGS,
        clock: Callable[[], int] = _now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self.registry = registry
        self.session_state = session_state
        self.ledger = ledger
        self._activity = activity_sink
        self._events = event_bus
        self._remember = remember_issuer
        self._settings = settings
        self._clock = clock

    # ---------- Provider pass-through ----------

    def is_two_factor_authenticated(self, user: UserProtocol) -> bool:
        return self.registry.is_two_factor_authenticated(user)

    def enable_two_factor_authentication(self, user: UserProtocol) -> None:
        self.registry.enable_two_factor_authentication(user)

    def disable_two_factor_authentication(self, user: UserProtocol) -> None:
        self.registry.disable_two_factor_authentication(user)

    def get_providers(
        self,
        user: UserProtocol,
        include_backup_provider: bool = False,
        filter_to_enabled: bool = True,
    ) -> Dict[str, TwoFactorProvider]:
        return self.registry.get_providers(user, include_backup_provider, filter_to_enabled)

    def get_provider(self, user: UserProtocol, provider_id: str) -> Optional[TwoFactorProvider]:
        return self.registry.get_provider(user, provider_id)

    def get_backup_provider(self, user: UserProtocol) -> Optional[TwoFactorProvider]:
        return self.registry.get_backup_provider(user)

    # ---------- Decision ----------

    def needs_second_factor(self, user: Optional[UserProtocol]) -> bool:
        """
        Whether the current session must still pass a second factor.

        Session flags are consulted before the ledger and the providers; the
        "no provider left" check runs last so it always beats a stale pending
        flag and a user is never stuck in a challenge loop.
        """
        if user is None:
            return False

        if self.session_state.is_app_password_session():
            return False

        if not self.session_state.is_pending_set():
            if self.session_state.is_satisfied_for(user.uid):
                return False

            # Session may have been rebuilt from a login token: ask the ledger.
            try:
                token_id = self.ledger.token_id_for_session(self.session_state.session_id())
                if not self.ledger.requires_two_factor(user, token_id):
                    self.session_state.mark_satisfied(user.uid)
                    return False
            except InvalidTokenError:
                # fail open: an unresolvable token imposes no ledger requirement
                self._logger.debug("No valid login token for session uid=%s", user.uid)

        if not self.registry.is_two_factor_authenticated(user):
            self.session_state.clear_pending()
            removed = self.ledger.clear_all(user)
            self._logger.info(
                "No second factor left, letting user pass uid=%s cleared=%d", user.uid, removed
            )
            return False

        return True

    def prepare_two_factor_login(self, user: UserProtocol, remember_device: bool) -> None:
        """
        Start a 2FA login; call once per login attempt before showing the challenge.

        Raises:
            InvalidTokenError: the session has no login token to track.
        """
        self.session_state.mark_pending(user.uid, remember_device)
        token_id = self.ledger.token_id_for_session(self.session_state.session_id())
        self.ledger.record(user, token_id, self._clock())
        self._logger.info("Two-factor login prepared uid=%s", user.uid)

    # ---------- Verification ----------

    def verify_challenge(self, provider_id: str, user: UserProtocol, challenge: str) -> bool:
        """
        Verify a challenge response with the given provider.

        Returns:
            True on success. False for an unknown provider (no side effects) or a
            wrong response (session left pending so the user may retry).

        Raises:
            ProviderResolutionError: providers of the user cannot be resolved.
        """
        provider = self.registry.get_provider(user, provider_id)
        if provider is None:
            return False

        passed = bool(provider.verify_challenge(user, challenge))
        if passed:
            self._on_success(user, provider)
        else:
            self._on_failure(user, provider)
        return passed

    def _on_success(self, user: UserProtocol, provider: TwoFactorProvider) -> None:
        if self.session_state.consume_remember():
            self._remember.issue(user)
        self.session_state.clear_pending()
        self.session_state.mark_satisfied(user.uid)

        try:
            token_id = self.ledger.token_id_for_session(self.session_state.session_id())
            self.ledger.clear(user, token_id)
        except InvalidTokenError:
            self._logger.warning(
                "Login token vanished during 2FA, ledger entry not cleared uid=%s", user.uid
            )

        self._logger.info(
            "Two-factor challenge passed uid=%s provider=%s", user.uid, provider.provider_id
        )
        self._dispatch(self._settings.success_event, user, provider)
        self._publish_activity(user, self._settings.success_subject, provider)

    def _on_failure(self, user: UserProtocol, provider: TwoFactorProvider) -> None:
        self._logger.warning(
            "Two-factor challenge failed uid=%s provider=%s", user.uid, provider.provider_id
        )
        self._dispatch(self._settings.failed_event, user, provider)
        self._publish_activity(user, self._settings.failed_subject, provider)

    # ---------- Event delivery (best effort) ----------

    def _dispatch(self, event_name: str, user: UserProtocol, provider: TwoFactorProvider) -> None:
        payload: Dict[str, Any] = {"uid": user.uid, "provider": provider.display_name}
        try:
            self._events.emit(event_name, payload)
        except Exception as exc:
            self._logger.warning(
                "Could not dispatch %s: %s", event_name, exc.__class__.__name__, exc_info=True
            )

    def _publish_activity(self, user: UserProtocol, subject: str, provider: TwoFactorProvider) -> None:
        activity = ActivityEvent(
            app=self._settings.activity_app,
            type=self._settings.activity_type,
            actor_uid=user.uid,
            affected_uid=user.uid,
            subject=subject,
            params={"provider": provider.display_name},
        )
        try:
            self._activity.emit(subject, activity)
        except Exception as exc:
            self._logger.warning(
                "Could not publish %s activity: %s",
                subject,
                exc.__class__.__name__,
                exc_info=True,
            )
