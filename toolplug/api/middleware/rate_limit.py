"""Per-IP rate limiting for the public signup endpoint

Each signup sends an email through Brevo, so unthrottled POSTs to
/api/subscribe cost money and hurt sender reputation.
"""

from __future__ import annotations

import ipaddress
import os
import time
from collections.abc import Callable
from typing import Any

from cachetools import TTLCache
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from toolplug.config import SIGNUP_RATE_LIMIT_MAX_IPS, SIGNUP_RATE_LIMIT_PER_HOUR
from toolplug.observability.telemetry import counter, log_event
from toolplug.utils.redaction import redact

WINDOW_SECONDS = 3600

LIMITED_PATHS = {("POST", "/api/subscribe")}


class SignupRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding one-hour window of signups per client IP.

    Buckets live in a TTLCache so idle IPs expire and memory stays bounded.
    Single-process only; multiple instances each keep their own counts.
    """

    def __init__(
        self,
        app: Any,
        per_hour: int = SIGNUP_RATE_LIMIT_PER_HOUR,
        max_ips: int = SIGNUP_RATE_LIMIT_MAX_IPS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(app)
        self.per_hour = per_hour
        self.clock = clock
        self.buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=max_ips, ttl=WINDOW_SECONDS * 2
        )
        # Set by the edge proxy; X-Forwarded-For is only trusted alongside it
        self._trusted_proxy_header = "CF-Connecting-IP"

    @staticmethod
    def _is_valid_ip(ip_str: str) -> bool:
        try:
            ipaddress.ip_address(ip_str)
            return True
        except ValueError:
            return False

    def _get_client_ip(self, request: Request) -> str:
        """Client IP, trusting forwarding headers only from the proxy (or in development)."""
        proxied = request.headers.get(self._trusted_proxy_header, "").strip()
        if proxied and self._is_valid_ip(proxied):
            return proxied

        if os.getenv("TOOLPLUG_ENV", "development") == "development":
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                ip = forwarded.split(",")[0].strip()
                if self._is_valid_ip(ip):
                    return ip

        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if (request.method, request.url.path) not in LIMITED_PATHS:
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        now = self.clock()
        bucket = [ts for ts in self.buckets.get(client_ip, []) if now - ts < WINDOW_SECONDS]

        if len(bucket) >= self.per_hour:
            counter("api.rate_limit.signup_exceeded")
            log_event("api.rate_limit.signup_exceeded", ip=redact(client_ip), count=len(bucket))
            retry_after = max(1, int(WINDOW_SECONDS - (now - bucket[0])))
            self.buckets[client_ip] = bucket
            return JSONResponse(
                status_code=429,
                content={
                    "ok": False,
                    "error": "Too many signups from this address. Please try again later.",
                    "retry_after": retry_after,
                },
                headers={"Retry-After": str(retry_after)},
            )

        bucket.append(now)
        self.buckets[client_ip] = bucket

        response = await call_next(request)
        response.headers["X-RateLimit-Limit-Hour"] = str(self.per_hour)
        response.headers["X-RateLimit-Remaining-Hour"] = str(max(0, self.per_hour - len(bucket)))
        return response
