from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from authgate.security.auth.config import (
    BACKUP_CODES_APP_ID,
    BACKUP_CODES_PROVIDER_ID,
    TwoFactorSettings,
)
from authgate.security.auth.config_store import EncryptedFileUserConfigStore
from authgate.security.auth.events import LoggingEventSink
from authgate.security.auth.login_token_ledger import PendingLoginTokenLedger
from authgate.security.auth.memory import (
    InMemoryLoginTokenStore,
    InMemorySessionStore,
    InMemoryUserConfigStore,
    RecordingRememberTokenIssuer,
    StaticAppSupplier,
)
from authgate.security.auth.protocols import (
    AppManifest,
    AppSupplierProtocol,
    EventSinkProtocol,
    LoginTokenResolverProtocol,
    ProviderFactory,
    RememberTokenIssuerProtocol,
    SessionStoreProtocol,
    UserConfigStoreProtocol,
)
from authgate.security.auth.provider_registry import ProviderRegistry
from authgate.security.auth.second_method.code import BackupCodesProvider
from authgate.security.auth.second_method.totp import TOTP_PROVIDER_ID, TotpProvider
from authgate.security.auth.session_state import SessionStateTracker
from authgate.security.auth.two_factor_manager import TwoFactorManager

TOTP_APP_ID = "twofactor_totp"


def default_app_manifests() -> Sequence[AppManifest]:
    """Apps shipping the bundled TOTP and backup-code providers."""
    return (
        AppManifest(app_id=TOTP_APP_ID, two_factor_providers=(TOTP_PROVIDER_ID,)),
        AppManifest(app_id=BACKUP_CODES_APP_ID, two_factor_providers=(BACKUP_CODES_PROVIDER_ID,)),
    )


class AppContext:
    """
    Dependency Injection context for authgate.

    Long-lived collaborators (config store, token resolver, app catalogue,
    provider factories, sinks) are built once here; ``manager_for`` binds them
    to the session of one request.
    """

    def __init__(
        self,
        config_store: Optional[UserConfigStoreProtocol] = None,
        storage_path: Optional[str] = None,
        key_provider: Optional[Callable[[], bytes]] = None,
        app_supplier: Optional[AppSupplierProtocol] = None,
        provider_factories: Optional[Mapping[str, ProviderFactory]] = None,
        token_resolver: Optional[LoginTokenResolverProtocol] = None,
        activity_sink: Optional[EventSinkProtocol] = None,
        event_bus: Optional[EventSinkProtocol] = None,
        remember_issuer: Optional[RememberTokenIssuerProtocol] = None,
        settings: Optional[TwoFactorSettings] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        # Persistent per-user settings: encrypted file if a path is given, memory otherwise
        if config_store is None and storage_path is not None:
            if key_provider is None:
                raise ValueError("key_provider is required with storage_path")
            config_store = EncryptedFileUserConfigStore(storage_path, key_provider)
        self.config_store: UserConfigStoreProtocol = config_store or InMemoryUserConfigStore()

        self.settings: TwoFactorSettings = settings or TwoFactorSettings()
        self.app_supplier: AppSupplierProtocol = app_supplier or StaticAppSupplier(
            default_app_manifests()
        )
        self.provider_factories: Dict[str, ProviderFactory] = dict(
            provider_factories or self._default_factories()
        )
        self.token_resolver: LoginTokenResolverProtocol = token_resolver or InMemoryLoginTokenStore()
        self.activity_sink: EventSinkProtocol = activity_sink or LoggingEventSink()
        self.event_bus: EventSinkProtocol = event_bus or LoggingEventSink()
        self.remember_issuer: RememberTokenIssuerProtocol = (
            remember_issuer or RecordingRememberTokenIssuer()
        )
        self.clock = clock

        self.registry = ProviderRegistry(
            self.app_supplier, self.provider_factories, self.config_store, self.settings
        )
        self.ledger = PendingLoginTokenLedger(self.config_store, self.token_resolver, self.settings)

    def _default_factories(self) -> Dict[str, ProviderFactory]:
        return {
            TOTP_PROVIDER_ID: lambda: TotpProvider(self.config_store),
            BACKUP_CODES_PROVIDER_ID: lambda: BackupCodesProvider(self.config_store),
        }

    def manager_for(self, session: SessionStoreProtocol) -> TwoFactorManager:
        """Two-factor manager bound to the session of the current request."""
        extra: Dict[str, Any] = {}
        if self.clock is not None:
            extra["clock"] = self.clock
        return TwoFactorManager(
            registry=self.registry,
            session_state=SessionStateTracker(session, self.settings),
            ledger=self.ledger,
            activity_sink=self.activity_sink,
            event_bus=self.event_bus,
            remember_issuer=self.remember_issuer,
            settings=self.settings,
            **extra,
        )

    def new_session(self) -> InMemorySessionStore:
        """Fresh in-memory session (local runs and tests)."""
        return InMemorySessionStore()


_ctx: Optional[AppContext] = None


def get_app_context(**kwargs: Any) -> AppContext:
    """
    Returns global app context (singleton!). Keyword arguments only apply on first call.
    """
    global _ctx
    if _ctx is None:
        _ctx = AppContext(**kwargs)
    return _ctx


def reset_app_context() -> None:
    """Drop the global context (tests, reconfiguration)."""
    global _ctx
    _ctx = None
