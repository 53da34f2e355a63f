# -*- coding: utf-8 -*-
"""
Registry of two-factor providers applicable to a user.

Resolution runs in two explicit phases:

1. manifests of the user's enabled apps are read (pure data, enumeration order
   kept as supplied) and provider identifiers collected;
2. every identifier is instantiated through the factory mapping injected at
   wiring time.

A factory that is missing or raises aborts the whole call with
``ProviderResolutionError``: a half-populated provider list is never returned.

Example:
    >>> registry = ProviderRegistry(apps, {"totp": lambda: TotpProvider(store)}, store)
    >>> sorted(registry.get_providers(UserRef("alice")))
    ['totp']
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Tuple

from authgate.security.auth.config import DEFAULT_SETTINGS, TwoFactorSettings
from authgate.security.auth.exceptions import ProviderResolutionError
from authgate.security.auth.protocols import (
    AppSupplierProtocol,
    ProviderFactory,
    TwoFactorProvider,
    UserConfigStoreProtocol,
    UserProtocol,
)

__all__ = ["ProviderRegistry"]

LOG = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Resolves providers per user and owns the per-user "2FA disabled" flag.

    Providers are built fresh on each query; nothing is cached between calls.
    """

    def __init__(
        self,
        app_supplier: AppSupplierProtocol,
        provider_factories: Mapping[str, ProviderFactory],
        config_store: UserConfigStoreProtocol,
        settings: TwoFactorSettings = DEFAULT_SETTINGS,
    ) -> None:
        self._apps = app_supplier
        self._factories: Dict[str, ProviderFactory] = dict(provider_factories)
        self._config = config_store
        self._settings = settings

    # ---------- Provider lookup ----------

    def get_providers(
        self,
        user: UserProtocol,
        include_backup_provider: bool = False,
        filter_to_enabled: bool = True,
    ) -> Dict[str, TwoFactorProvider]:
        """
        Return ``provider_id -> provider`` for the user.

        Args:
            user: User whose enabled apps are consulted.
            include_backup_provider: Keep the backup-codes provider. Off by default
                so backup codes are never offered as a regular challenge.
            filter_to_enabled: Keep only providers the user has set up.

        Raises:
            ProviderResolutionError: a manifest names a provider that cannot be built.
        """
        planned = self._collect_identifiers(user, include_backup_provider)

        providers: Dict[str, TwoFactorProvider] = {}
        for app_id, identifier in planned:
            provider = self._instantiate(identifier, app_id)
            # later registrations win on id collisions
            providers[provider.provider_id] = provider

        if not include_backup_provider:
            providers.pop(self._settings.backup_provider_id, None)

        if filter_to_enabled:
            providers = {
                pid: p for pid, p in providers.items() if p.is_enabled_for_user(user)
            }
        LOG.debug(
            "Resolved providers uid=%s ids=%s backup=%s filtered=%s",
            user.uid,
            list(providers),
            include_backup_provider,
            filter_to_enabled,
        )
        return providers

    def get_provider(self, user: UserProtocol, provider_id: str) -> Optional[TwoFactorProvider]:
        """Enabled provider by id, backup codes included; None if absent."""
        return self.get_providers(user, include_backup_provider=True).get(provider_id)

    def get_backup_provider(self, user: UserProtocol) -> Optional[TwoFactorProvider]:
        """The backup-codes provider if the user has it enabled."""
        return self.get_provider(user, self._settings.backup_provider_id)

    # ---------- Enable / disable ----------

    def is_two_factor_authenticated(self, user: UserProtocol) -> bool:
        """True iff 2FA is not disabled for the user and at least one provider is enabled."""
        if self.is_disabled_for_user(user):
            return False
        return len(self.get_providers(user)) > 0

    def is_disabled_for_user(self, user: UserProtocol) -> bool:
        raw = self._config.get_user_value(
            user.uid, self._settings.disabled_namespace, self._settings.disabled_key, 0
        )
        try:
            return int(raw) != 0
        except (TypeError, ValueError):
            # non-numeric flags read as zero, 2FA stays enforced
            return False

    def disable_two_factor_authentication(self, user: UserProtocol) -> None:
        self._config.set_user_value(
            user.uid, self._settings.disabled_namespace, self._settings.disabled_key, 1
        )
        LOG.info("Two-factor authentication disabled uid=%s", user.uid)

    def enable_two_factor_authentication(self, user: UserProtocol) -> None:
        self._config.delete_user_value(
            user.uid, self._settings.disabled_namespace, self._settings.disabled_key
        )
        LOG.info("Two-factor authentication enabled uid=%s", user.uid)

    # ---------- Internals ----------

    def _collect_identifiers(
        self, user: UserProtocol, include_backup_provider: bool
    ) -> List[Tuple[str, str]]:
        planned: List[Tuple[str, str]] = []
        for app_id in self._apps.list_enabled_apps(user):
            if not include_backup_provider and app_id == self._settings.backup_app_id:
                continue
            manifest = self._apps.get_app_manifest(app_id)
            for identifier in manifest.two_factor_providers:
                planned.append((app_id, identifier))
        return planned

    def _instantiate(self, identifier: str, app_id: str) -> TwoFactorProvider:
        factory = self._factories.get(identifier)
        if factory is None:
            LOG.error("No factory for two-factor provider %s (app %s)", identifier, app_id)
            raise ProviderResolutionError(identifier, app_id)
        try:
            provider = factory()
        except Exception as exc:
            LOG.error(
                "Factory for two-factor provider %s failed: %s",
                identifier,
                exc.__class__.__name__,
            )
            raise ProviderResolutionError(identifier, app_id) from exc
        if not isinstance(provider, TwoFactorProvider):
            raise ProviderResolutionError(identifier, app_id)
        return provider
