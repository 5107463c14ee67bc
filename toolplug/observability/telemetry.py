"""
In-process telemetry for the curation and dispatch jobs.

Nothing is exported to a metrics backend: events are structured log lines
and counters live in memory so tests can read them back. Callers must
redact emails before passing them as fields.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("toolplug.telemetry")

_COUNTERS: dict[str, int] = {}


def log_event(event_name: str, **fields: Any) -> None:
    """
    Emit one structured event line.

    Side Effects:
        - Writes to logger (info level)
    """
    rendered = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
    logger.info("event=%s %s", event_name, rendered)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter; ``increment=0`` reads it.

    Side Effects:
        - Modifies _COUNTERS dict (in-memory state)
    """
    value = _COUNTERS.get(name, 0) + increment
    _COUNTERS[name] = value
    if increment:
        logger.debug("counter=%s value=%s", name, value)
    return value


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Time a block and log its duration.

    Side Effects:
        - Writes to logger (debug level)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.debug("timing=%s seconds=%.6f", metric_name, elapsed)


def reset_telemetry() -> None:
    """
    Clear counters (tests).

    Side Effects:
        - Clears _COUNTERS
    """
    _COUNTERS.clear()
