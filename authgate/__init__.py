"""
authgate
========

RU: Оркестрация второго фактора (2FA) для сессии, уже прошедшей проверку пароля:
    решение «нужен ли ещё второй фактор», выбор провайдеров, проверка ответа
    и учёт незавершённых входов по login-токенам.

EN: Second-factor orchestration for an already password-authenticated session:
    deciding whether a second factor is still owed, selecting challenge providers,
    verifying the submitted response and tracking unfinished logins per login token.

Example:
    >>> from authgate import get_logger
    >>> from authgate.app_context import get_app_context
    >>> logger = get_logger(__name__)
    >>> ctx = get_app_context()
    >>> manager = ctx.manager_for(ctx.new_session())
    >>> manager.needs_second_factor(None)
    False

The log level of the package logger is read from the ``AUTHGATE_LOG_LEVEL``
environment variable (DEBUG, INFO, WARNING, ERROR, CRITICAL; default INFO).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

__version__ = "0.1.0"

_ROOT_LOGGER_NAME = "authgate"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the package root logger once.

    Adds a stderr handler with a structured format. Repeated calls only adjust
    the level, handlers are never duplicated.

    Args:
        level: Level name; falls back to ``AUTHGATE_LOG_LEVEL`` and then INFO.

    Returns:
        The ``authgate`` root logger.
    """
    level_name = (level or os.environ.get("AUTHGATE_LOG_LEVEL", "INFO")).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    root_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    root_logger.setLevel(log_level)
    if root_logger.handlers:
        return root_logger

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    return root_logger


def get_logger(module_name: str) -> logging.Logger:
    """
    Return a logger inside the ``authgate`` namespace.

    Example:
        >>> get_logger("custom.module").name
        'authgate.custom.module'
    """
    if module_name.startswith(_ROOT_LOGGER_NAME):
        return logging.getLogger(module_name)
    if module_name == "__main__":
        return logging.getLogger(f"{_ROOT_LOGGER_NAME}.main")
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{module_name.lstrip('.')}")


__all__ = [
    "__version__",
    "configure_logging",
    "get_logger",
]
