"""
Email address helpers shared by signup, status lookup and dispatch.
"""

from __future__ import annotations

import base64
import re

# Deliberately loose: something@something.tld with no whitespace
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
MAX_EMAIL_LENGTH = 254


def normalize_email(email: str | None) -> str:
    """
    Canonical form used at every write and lookup.

    Examples:
        >>> normalize_email("Foo@Example.com ")
        'foo@example.com'
    """
    if not email:
        return ""
    return email.strip().lower()


def is_valid_email(email: str | None) -> bool:
    """True when the normalized address has a plausible shape."""
    normalized = normalize_email(email)
    return bool(normalized) and len(normalized) <= MAX_EMAIL_LENGTH and bool(
        EMAIL_PATTERN.match(normalized)
    )


def b64url_email(email: str) -> str:
    """Unpadded urlsafe base64 of an address, for feedback links."""
    return base64.urlsafe_b64encode(email.encode("utf-8")).decode("ascii").rstrip("=")
