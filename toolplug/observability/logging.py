"""Process-wide logging setup for the API and the scheduled jobs."""

from __future__ import annotations

import logging
import os
from typing import Final

_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Upstream SDKs log every request at INFO
_NOISY_LOGGERS: Final[tuple[str, ...]] = ("urllib3", "google", "httpx", "grpc")

_configured_level: int | None = None


def _resolve_level(level_name: str | None = None) -> int:
    name = (level_name or os.getenv("TOOLPLUG_LOG_LEVEL", "INFO")).upper()
    return getattr(logging, name, logging.INFO)


def configure_logging(level_name: str | None = None) -> int:
    """Attach the stream handler once and (re)apply the root level.

    Called implicitly by get_logger(); the CLI calls it directly so that
    ``--log-level`` can override TOOLPLUG_LOG_LEVEL.
    """
    global _configured_level

    level = _resolve_level(level_name)
    root = logging.getLogger()

    if _configured_level is None:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        root.addHandler(handler)
        for noisy in _NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    root.setLevel(level)
    _configured_level = level
    return level


def get_logger(name: str) -> logging.Logger:
    """Return a module logger sharing the single process handler."""
    level = _configured_level if _configured_level is not None else configure_logging()
    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
