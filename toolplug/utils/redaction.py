"""
Redaction helpers for telemetry and LLM prompts.

- redact(): Hash sensitive strings (subscriber emails) for correlation without exposure
- sanitize_for_prompt(): Strip prompt-injection patterns from third-party text
"""

from __future__ import annotations

import re
from hashlib import sha256

# Launch copy is written by whoever posted the product, so it is untrusted
INJECTION_PATTERNS = [
    r"ignore\s+(previous|above|all)\s+instructions?",
    r"disregard\s+(previous|above|all)\s+instructions?",
    r"new\s+instructions?:",
    r"system\s*:",
    r"assistant\s*:",
    r"\[INST\]",
    r"\[/INST\]",
    r"<\|im_start\|>",
    r"<\|im_end\|>",
]
INJECTION_REGEX = re.compile("|".join(INJECTION_PATTERNS), re.IGNORECASE)


def redact(value: str | None) -> str:
    """
    Return a stable hash representation of a sensitive string.
    """
    if not value:
        return "hash:missing"
    digest = sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"hash:{digest}"


def sanitize_for_prompt(text: str | None, max_length: int = 800) -> str:
    """
    Truncate and scrub product copy before it goes into a prompt.

    Braces are removed as well since the model is asked to answer in JSON.
    """
    if not text:
        return ""

    text = text[:max_length]
    text = INJECTION_REGEX.sub("[REDACTED]", text)
    text = re.sub(r"[<>{}|\\]", "", text)
    return text.strip()
