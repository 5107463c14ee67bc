"""
Product Hunt GraphQL client.

Pages through ``posts(order: NEWEST)`` and returns the launches whose
``createdAt`` falls inside a window.  Pages are fetched strictly one after
another with a short delay between them; Product Hunt rate limits the
developer token aggressively.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any

import requests

from toolplug.config import (
    FEED_API_URL,
    FEED_PAGE_DELAY_SECONDS,
    FEED_RATE_LIMIT_MAX_WAIT_SECONDS,
    FEED_RATE_LIMIT_RETRY_DELAY_SECONDS,
    FEED_TIMEOUT_SECONDS,
    FEED_TOPICS_PER_ITEM,
    FEED_USER_AGENT,
    product_hunt_token,
)
from toolplug.errors import ConfigurationError, FeedError, FeedRateLimitedError
from toolplug.feed.models import CandidateItem
from toolplug.observability.logging import get_logger
from toolplug.observability.telemetry import counter, log_event, time_block

logger = get_logger(__name__)

POSTS_QUERY = """
query Posts($first: Int!, $after: String, $topicsFirst: Int!) {
  posts(first: $first, order: NEWEST, after: $after) {
    pageInfo { endCursor hasNextPage }
    edges {
      node {
        id
        name
        tagline
        description
        url
        website
        createdAt
        votesCount
        thumbnail { url }
        topics(first: $topicsFirst) { edges { node { slug name } } }
      }
    }
  }
}
"""

RATE_LIMIT_MARKER = "rate_limit_reached"


class RateLimitPolicy(str, Enum):
    """What to do after waiting out a rate limit."""

    STOP = "stop"  # Return what has been collected so far
    RETRY_ONCE = "retry_once"  # One retry per fetch, then stop


class _RateLimited(Exception):
    def __init__(self, reset_in: float | None):
        super().__init__("rate limited")
        self.reset_in = reset_in


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _reset_in(data: Any, response: requests.Response) -> float | None:
    """Server-advised wait in seconds, from the error payload or Retry-After."""
    try:
        return float(data["errors"][0]["details"]["reset_in"])
    except (KeyError, IndexError, TypeError, ValueError):
        pass
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            return None
    return None


class ProductHuntClient:
    """Windowed reader over the Product Hunt launch feed."""

    def __init__(
        self,
        token: str | None = None,
        session: requests.Session | None = None,
        api_url: str = FEED_API_URL,
        timeout: float = FEED_TIMEOUT_SECONDS,
        page_delay: float = FEED_PAGE_DELAY_SECONDS,
        sleep_fn: Callable[[float], None] = time.sleep,
    ):
        self._token = token
        self.session = session or requests.Session()
        self.api_url = api_url
        self.timeout = timeout
        self.page_delay = page_delay
        self.sleep_fn = sleep_fn

    def _headers(self) -> dict[str, str]:
        token = (self._token or product_hunt_token()).strip()
        if not token:
            raise ConfigurationError("Missing PH_DEV_TOKEN")
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": FEED_USER_AGENT,
        }

    def _fetch_page(
        self, headers: dict[str, str], page_size: int, after: str | None
    ) -> dict[str, Any]:
        """
        POST one page of the posts query and return the ``posts`` connection.

        Raises:
            _RateLimited: On HTTP 429 or a rate_limit_reached error payload
            FeedError: On transport errors, non-2xx, GraphQL errors or bad JSON
        """
        payload = {
            "query": POSTS_QUERY,
            "variables": {"first": page_size, "after": after, "topicsFirst": FEED_TOPICS_PER_ITEM},
        }
        try:
            response = self.session.post(
                self.api_url, headers=headers, json=payload, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise FeedError(f"Product Hunt request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        raw = json.dumps(data) if data is not None else response.text
        if response.status_code == 429 or RATE_LIMIT_MARKER in (raw or ""):
            raise _RateLimited(_reset_in(data, response))

        if not response.ok or data is None or (isinstance(data, dict) and data.get("errors")):
            raise FeedError(
                f"Product Hunt API error (status {response.status_code}): {(raw or '')[:300]}"
            )

        posts = (data.get("data") or {}).get("posts") if isinstance(data, dict) else None
        if not isinstance(posts, dict):
            raise FeedError("Product Hunt API returned no posts connection")
        return posts

    def fetch_window(
        self,
        start: datetime,
        end: datetime,
        max_pages: int,
        page_size: int,
        rate_limit_policy: RateLimitPolicy = RateLimitPolicy.STOP,
    ) -> list[CandidateItem]:
        """
        Collect launches with ``start <= created_at < end``.

        Paging stops at the last page, an empty page, a page whose last item
        is older than ``start``, or ``max_pages``.  Items come back in no
        particular order.

        Raises:
            ConfigurationError: If PH_DEV_TOKEN is not set
            FeedRateLimitedError: If rate limited before any page succeeded
            FeedError: For any other upstream failure

        Side Effects:
            - Sleeps between pages and while waiting out rate limits
            - Increments feed.* counters
        """
        headers = self._headers()
        collected: dict[str, CandidateItem] = {}
        after: str | None = None
        pages_ok = 0
        page = 0
        # RETRY_ONCE allows a single retry per call, whichever page hits the limit
        retry_used = False

        with time_block("feed.fetch_window"):
            while page < max_pages:
                if page > 0 or retry_used:
                    self.sleep_fn(self.page_delay)

                try:
                    posts = self._fetch_page(headers, page_size, after)
                except _RateLimited as rl:
                    counter("feed.rate_limited")
                    wait = rl.reset_in
                    if wait is None and rate_limit_policy is RateLimitPolicy.RETRY_ONCE:
                        wait = FEED_RATE_LIMIT_RETRY_DELAY_SECONDS
                    wait = min(FEED_RATE_LIMIT_MAX_WAIT_SECONDS, max(0.0, wait or 0.0))
                    log_event(
                        "feed.rate_limited",
                        page=page + 1,
                        wait=wait,
                        policy=rate_limit_policy.value,
                        pages_ok=pages_ok,
                    )
                    if wait:
                        self.sleep_fn(wait)

                    if rate_limit_policy is RateLimitPolicy.RETRY_ONCE and not retry_used:
                        retry_used = True
                        continue
                    if pages_ok == 0:
                        raise FeedRateLimitedError(
                            "Product Hunt rate limit reached before any page was fetched",
                            reset_in=rl.reset_in,
                        ) from None
                    break

                pages_ok += 1
                page += 1

                edges = posts.get("edges") or []
                nodes = [edge.get("node") for edge in edges if isinstance(edge, dict)]
                for node in nodes:
                    if not isinstance(node, dict):
                        counter("feed.malformed_node")
                        continue
                    try:
                        item = CandidateItem.from_node(node)
                    except ValueError as e:
                        counter("feed.malformed_node")
                        logger.debug("Skipping malformed node: %s", e)
                        continue
                    collected.setdefault(item.id, item)

                page_info = posts.get("pageInfo") or {}
                after = page_info.get("endCursor") or None
                last_node = nodes[-1] if nodes and isinstance(nodes[-1], dict) else {}
                last_created = _parse_timestamp(last_node.get("createdAt"))

                if not nodes or not page_info.get("hasNextPage") or not after:
                    break
                if last_created is not None and last_created < start:
                    break

        in_window = [item for item in collected.values() if start <= item.created_at < end]
        counter("feed.pages", pages_ok)
        log_event(
            "feed.window_fetched",
            pages=pages_ok,
            fetched=len(collected),
            in_window=len(in_window),
            start=start.isoformat(),
            end=end.isoformat(),
        )
        return in_window
