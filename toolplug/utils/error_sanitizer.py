"""
Error message sanitization for HTTP responses.

Admin and API responses carry a short error string; anything that looks like
a path, traceback, SQL detail or credential is replaced by a generic message.
"""

from __future__ import annotations

import re

from toolplug.observability.logging import get_logger

logger = get_logger(__name__)

SENSITIVE_PATTERNS = [
    # File paths
    r"/[^\s]+\.py",
    r"[A-Za-z]:\\[^\s]+",
    # Stack trace indicators
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    # Database errors
    r"sqlite3?\.",
    r"UNIQUE constraint",
    r"no such table",
    r"no such column",
    # Credentials
    r"[A-Za-z0-9_-]{32,}",
    r"Bearer [A-Za-z0-9._-]+",
    r"api-key",
    # Internal module names
    r"toolplug\.[a-z_.]+",
]

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication required.",
    403: "Access denied.",
    404: "Resource not found.",
    422: "Invalid data format.",
    429: "Too many requests. Please try again later.",
    500: "An internal error occurred. Please try again later.",
    502: "Upstream service error. Please try again later.",
    503: "Service temporarily unavailable.",
}

MAX_PASSTHROUGH_LENGTH = 160


def sanitize_error_message(message: str, status_code: int = 500) -> str:
    """
    Return ``message`` if it is short and harmless, else a generic message.

    Operators read admin errors ("feed rate limited", "no items in window"),
    so short plain messages pass through for every status code.
    """
    fallback = GENERIC_MESSAGES.get(status_code, "An error occurred.")
    if not message:
        return fallback

    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            logger.warning("Sanitized sensitive error pattern: %s", pattern)
            return fallback

    if len(message) <= MAX_PASSTHROUGH_LENGTH and "\n" not in message:
        return message

    return fallback


def get_safe_error_detail(error: Exception, status_code: int = 500) -> str:
    """Log the full error and return the sanitized message for the client."""
    logger.error("Error (status=%d): %s - %s", status_code, type(error).__name__, error)
    return sanitize_error_message(str(error), status_code)
