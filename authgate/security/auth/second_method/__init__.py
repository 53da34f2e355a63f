"""
Модуль second_method: провайдеры второго фактора для authgate.
- TOTP (Time-Based One-Time Password)
- Backup codes (single-use)
"""

from authgate.security.auth.second_method.code import BackupCodesProvider
from authgate.security.auth.second_method.totp import TotpProvider

__all__ = ["BackupCodesProvider", "TotpProvider"]
