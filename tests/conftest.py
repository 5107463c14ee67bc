"""
Pytest configuration for ToolPlug tests

Provides a throwaway database per test plus fake collaborators for the three
upstreams (feed, LLM, email) so no test touches the network.
"""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from toolplug.errors import EmailDeliveryError
from toolplug.feed.models import CandidateItem
from toolplug.infrastructure.database import get_db_connection, init_database, reset_pool
from toolplug.observability.telemetry import reset_telemetry
from toolplug.subscriptions.models import Subscriber
from toolplug.subscriptions.repository import SubscriberRepository

# Wednesday 2025-02-12 15:00 UTC is 10:00 in New York (send_day 3)
WEDNESDAY_NOON_UTC = datetime(2025, 2, 12, 15, 0, tzinfo=UTC)

GOOD_BLURB = {
    "summary": "A tidy tool for a messy job.",
    "why_bullets": ["Fast", "Focused", "Friendly"],
    "best_bullets": ["Builders", "Teams", "Tinkerers"],
}


@pytest.fixture(autouse=True)
def reset_state():
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep real credentials from a developer shell out of tests."""
    for name in ("PH_DEV_TOKEN", "BREVO_API_KEY", "TOOLPLUG_ADMIN_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Fresh schema in a temp file; the process pool is pointed at it."""
    db_path = tmp_path / "toolplug.db"
    monkeypatch.setenv("TOOLPLUG_DB_PATH", str(db_path))
    reset_pool()
    init_database()
    yield db_path
    reset_pool()


@pytest.fixture
def make_item():
    """Factory for CandidateItem with bland text (no keyword matches)."""

    def _make(
        item_id: str,
        votes: int = 0,
        created_at: datetime | None = None,
        topics: tuple[str, ...] = (),
        name: str | None = None,
        tagline: str = "",
        description: str = "",
        thumbnail_url: str | None = None,
    ) -> CandidateItem:
        return CandidateItem(
            id=item_id,
            name=name or f"tool {item_id}",
            tagline=tagline,
            description=description,
            site_url=f"https://example.com/{item_id}",
            created_at=created_at or WEDNESDAY_NOON_UTC - timedelta(hours=1),
            vote_score=votes,
            topics=frozenset(topics),
            thumbnail_url=thumbnail_url,
        )

    return _make


def count_rows(table: str, **where: Any) -> int:
    """Row count read straight from the test database."""
    clause = " AND ".join(f"{column} = ?" for column in where) or "1 = 1"
    with get_db_connection() as conn:
        row = conn.execute(
            f"SELECT COUNT(*) FROM {table} WHERE {clause}", tuple(where.values())
        ).fetchone()
    return int(row[0])


def confirmed(email: str) -> Subscriber | None:
    return next((s for s in SubscriberRepository.list_confirmed() if s.email == email), None)


class FakeLLM:
    """
    Stands in for call_llm.

    Returns GOOD_BLURB as JSON unless the prompt mentions a product listed in
    ``fail_for`` (raises) or ``responses`` has an override for it.
    """

    def __init__(self, fail_for: set[str] | None = None, responses: dict[str, str] | None = None):
        self.fail_for = fail_for or set()
        self.responses = responses or {}
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, prompt: str, **kwargs: Any) -> str:
        with self._lock:
            self.prompts.append(prompt)
        for name in self.fail_for:
            if f"Product: {name}\n" in prompt:
                raise ConnectionError(f"LLM unavailable for {name}")
        for name, response in self.responses.items():
            if f"Product: {name}\n" in prompt:
                return response
        return json.dumps(GOOD_BLURB)


class FakeEmailClient:
    """Records sends; addresses in ``fail_for`` get a 500 from the 'service'."""

    def __init__(self, fail_for: set[str] | None = None, configured: bool = True):
        self.fail_for = fail_for or set()
        self.configured = configured
        self.sent: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def ensure_configured(self) -> str:
        if not self.configured:
            from toolplug.errors import ConfigurationError

            raise ConfigurationError("Missing BREVO_API_KEY")
        return "test-key"

    def send(self, to_email: str, subject: str, html: str, text: str | None = None) -> None:
        self.ensure_configured()
        if to_email in self.fail_for:
            raise EmailDeliveryError(
                "Email service returned 500", status_code=500, body="upstream exploded"
            )
        with self._lock:
            self.sent.append({"to": to_email, "subject": subject, "html": html, "text": text})


class FakeFeed:
    """Returns canned items for any window, or raises ``error``."""

    def __init__(self, items: list[CandidateItem] | None = None, error: Exception | None = None):
        self.items = items or []
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def fetch_window(self, start, end, max_pages, page_size, rate_limit_policy=None):
        self.calls.append(
            {
                "start": start,
                "end": end,
                "max_pages": max_pages,
                "page_size": page_size,
                "policy": rate_limit_policy,
            }
        )
        if self.error is not None:
            raise self.error
        return [item for item in self.items if start <= item.created_at < end]


class FakeResponse:
    """Just enough of requests.Response for the HTTP adapters."""

    def __init__(
        self,
        status_code: int = 200,
        json_data: Any = None,
        text: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.status_code = status_code
        self._json = json_data
        self.text = text if text is not None else (json.dumps(json_data) if json_data is not None else "")
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class FakeSession:
    """Replays queued responses (or exceptions) and records each POST."""

    def __init__(self, responses: list[FakeResponse | Exception]):
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def post(self, url: str, headers=None, json=None, timeout=None):  # noqa: A002
        self.requests.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_email():
    return FakeEmailClient()
