"""Central logging utilities for the policy back-office.

Key Features
------------
1. configure_logging(): idempotent initialization of the root logger.
2. get_logger(name): typed helper that always returns a configured logger.
3. level_from_name(name): translate a settings level name into ``logging``.
"""

from __future__ import annotations

import logging
from typing import Final

from beartype import beartype

__all__: Final = [
    "configure_logging",
    "get_logger",
    "level_from_name",
]

_DEFAULT_LOG_FORMAT: Final = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_ROOT_LOGGER_NAME: Final = "policy_backoffice"
_is_configured: bool = False


@beartype
def level_from_name(name: str) -> int:
    """Return the numeric level for ``name`` (``INFO`` when unknown)."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


@beartype
def configure_logging(
    *,
    level: int = logging.INFO,
    fmt: str = _DEFAULT_LOG_FORMAT,
    force: bool = False,
) -> None:
    """Configure the root logger exactly once.

    Calling this function multiple times is safe: configuration is only
    applied on the first invocation unless ``force`` is set, which replaces
    the existing handlers (used by the application factory).
    """
    global _is_configured
    if _is_configured and not force:
        return

    logging.basicConfig(level=level, format=fmt, force=force)
    _is_configured = True


@beartype
def get_logger(name: str | None = None, *, level: int | None = None) -> logging.Logger:
    """Return a module-scoped logger that is guaranteed to be configured."""
    configure_logging()
    logger = logging.getLogger(name or _ROOT_LOGGER_NAME)
    if level is not None:
        logger.setLevel(level)
    return logger
