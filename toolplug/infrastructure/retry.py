"""
Retry helper for outbound HTTP adapters (email delivery, confirmation mail).
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

import requests

from toolplug.observability.telemetry import counter, log_event

T = TypeVar("T")


class AdapterError(RuntimeError):
    """
    An upstream HTTP call failed; ``status_code`` is None for transport errors.

    ``retryable`` overrides the status-based decision in RetryPolicy, for
    adapters that know a failed call must not be repeated.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str = "",
        retryable: bool | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.retryable = retryable


@dataclass
class RetryPolicy:
    """
    Run a callable with exponential backoff.

    AdapterErrors are retried when they carry no status (transport failure),
    a 429, or a 5xx, unless the error sets ``retryable``; any other status
    is raised straight away.  Exceptions listed in ``retry_on`` are retried
    as well; everything else propagates on the first attempt.
    """

    stage: str
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0
    jitter: float = 0.1
    sleep_fn: Callable[[float], None] = time.sleep
    retry_on: tuple[type[BaseException], ...] = field(
        default=(requests.RequestException, TimeoutError, ConnectionError)
    )

    def execute(self, func: Callable[..., T], *args, **kwargs) -> T:
        attempt = 0
        last_error: Exception | None = None

        while attempt < self.max_attempts:
            attempt += 1
            try:
                return func(*args, **kwargs)
            except AdapterError as exc:
                log_event(
                    "stage_error",
                    stage=self.stage,
                    error=str(exc),
                    status=exc.status_code,
                    attempt=attempt,
                )
                if not self._should_retry(exc):
                    raise
                last_error = exc
            except self.retry_on as exc:
                log_event("stage_error", stage=self.stage, error=str(exc), attempt=attempt)
                last_error = exc  # type: ignore[assignment]

            if attempt >= self.max_attempts:
                break

            self._backoff(attempt)

        assert last_error is not None
        counter(f"{self.stage}.retry_exhausted")
        raise last_error

    def _should_retry(self, exc: AdapterError) -> bool:
        if exc.retryable is not None:
            return exc.retryable
        status = exc.status_code
        if status is None:
            return True
        return bool(status == 429 or 500 <= status < 600)

    def _backoff(self, attempt: int) -> None:
        counter("retry_count")
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        delay += random.uniform(0, self.jitter)
        log_event("retry_scheduled", stage=self.stage, attempt=attempt, delay=round(delay, 3))
        self.sleep_fn(delay)
