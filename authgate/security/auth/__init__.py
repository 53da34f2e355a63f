"""
Two-factor authentication core: provider registry, session flags, pending
login-token ledger and the ``TwoFactorManager`` orchestrator.
"""

from authgate.security.auth.config import TwoFactorSettings
from authgate.security.auth.exceptions import (
    AuditPublishError,
    InvalidTokenError,
    ProviderResolutionError,
    TwoFactorError,
)
from authgate.security.auth.login_token_ledger import PendingLoginTokenLedger
from authgate.security.auth.protocols import AppManifest, LoginToken, UserRef
from authgate.security.auth.provider_registry import ProviderRegistry
from authgate.security.auth.session_state import SessionStateTracker
from authgate.security.auth.two_factor_manager import TwoFactorManager

__all__ = [
    "AppManifest",
    "AuditPublishError",
    "InvalidTokenError",
    "LoginToken",
    "PendingLoginTokenLedger",
    "ProviderRegistry",
    "ProviderResolutionError",
    "SessionStateTracker",
    "TwoFactorError",
    "TwoFactorManager",
    "TwoFactorSettings",
    "UserRef",
]
