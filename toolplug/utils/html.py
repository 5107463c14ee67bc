"""HTML-to-text conversion for the plain-text part of outgoing emails."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup


def html_to_text(html: str) -> str:
    """Convert an HTML email body to readable plain text.

    Links keep their target in parentheses so the plain-text part still
    carries the call-to-action and unsubscribe URLs.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["script", "style", "head"]):
        tag.decompose()

    for anchor in soup.find_all("a"):
        href = anchor.get("href")
        label = anchor.get_text(strip=True)
        if href and label and href != label:
            anchor.replace_with(f"{label} ({href})")

    text = soup.get_text(separator="\n")

    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
