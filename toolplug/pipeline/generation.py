"""
Generate phase: fetch -> classify -> generate -> store, once per period.

Weekly periods get one pick per category, generated in STRICT mode and
stored all-or-nothing.  Daily and monthly periods get a single LENIENT pick.

Whenever fresh generation fails (feed error, empty window, strict
generation failure) and the period already has content, that content is
reported with source "cached" instead of the error.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from toolplug.config import GENERATION_MAX_WORKERS, GENERATION_PACING_SECONDS
from toolplug.content.generator import ContentGenerator, GeneratedContent, GenerationMode
from toolplug.curation.categories import Category
from toolplug.curation.classifier import classify_detailed, top_item
from toolplug.errors import ContentGenerationError, FeedError, GenerationFailedError
from toolplug.feed.client import ProductHuntClient, RateLimitPolicy
from toolplug.feed.models import CandidateItem
from toolplug.observability.logging import get_logger
from toolplug.observability.telemetry import counter, log_event, time_block
from toolplug.pipeline.periods import (
    PeriodKind,
    Window,
    generation_window,
    kind_of,
    paging_for,
    period_key_for,
)
from toolplug.storage.models import GeneratedPick
from toolplug.storage.picks import PeriodStore

logger = get_logger(__name__)

# Preview widens the window until something turns up
PREVIEW_WINDOWS: tuple[tuple[timedelta, int], ...] = (
    (timedelta(days=1), 4),
    (timedelta(days=7), 4),
    (timedelta(days=30), 8),
)
PREVIEW_PAGE_SIZE = 25


@dataclass
class GenerationResult:
    period_key: str
    kind: PeriodKind
    source: str  # "fresh" | "cached" | "empty"
    ok: bool = True
    window: Window | None = None
    picks: list[GeneratedPick] = field(default_factory=list)
    candidates: dict[str, dict[str, Any]] = field(default_factory=dict)
    counts: dict[str, int] | None = None
    backfilled: list[str] = field(default_factory=list)
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ok": self.ok,
            "source": self.source,
            "period_key": self.period_key,
            "kind": self.kind.value,
            "window": self.window.as_dict() if self.window else None,
            "picks": [pick.summary() for pick in self.picks],
        }
        if self.candidates:
            data["candidates"] = self.candidates
        if self.counts is not None:
            data["counts"] = self.counts
        if self.backfilled:
            data["backfilled"] = self.backfilled
        if self.note:
            data["note"] = self.note
        return data


def _to_pick(
    period_key: str, category: Category | None, content: GeneratedContent
) -> GeneratedPick:
    return GeneratedPick(
        period_key=period_key,
        category=category,
        subject=content.subject,
        body_html=content.body_html,
        link=content.link,
        product_name=content.product_name,
    )


class GenerationPipeline:
    """Runs the generate phase for one period key."""

    def __init__(
        self,
        feed_client: ProductHuntClient | None = None,
        generator: ContentGenerator | None = None,
        clock: Callable[[], datetime] | None = None,
        max_workers: int = GENERATION_MAX_WORKERS,
        pacing_seconds: float = GENERATION_PACING_SECONDS,
        sleep_fn: Callable[[float], None] = time.sleep,
    ):
        self.feed_client = feed_client or ProductHuntClient()
        self.generator = generator or ContentGenerator()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.max_workers = max(1, max_workers)
        self.pacing_seconds = pacing_seconds
        self.sleep_fn = sleep_fn

    def _cached(
        self, period_key: str, kind: PeriodKind, window: Window | None, note: str | None
    ) -> GenerationResult | None:
        picks = PeriodStore.list_for_period(period_key)
        if not picks:
            return None
        counter("generation.served_cached")
        return GenerationResult(
            period_key=period_key, kind=kind, source="cached", window=window, picks=picks, note=note
        )

    def _fallback(
        self, period_key: str, kind: PeriodKind, window: Window, error: Exception
    ) -> GenerationResult:
        """Cached content if there is any, else GenerationFailedError."""
        logger.warning("Generation for %s failed: %s", period_key, error)
        log_event("generation.failed", period_key=period_key, error=type(error).__name__)
        cached = self._cached(period_key, kind, window, note=f"served cached content: {error}")
        if cached is not None:
            return cached
        raise GenerationFailedError(str(error), period_key=period_key) from error

    def _fetch(self, kind: PeriodKind, window: Window) -> list[CandidateItem]:
        max_pages, page_size = paging_for(kind)
        policy = RateLimitPolicy.RETRY_ONCE if kind is PeriodKind.WEEK else RateLimitPolicy.STOP
        return self.feed_client.fetch_window(
            window.start, window.end, max_pages, page_size, rate_limit_policy=policy
        )

    def generate(
        self, period_key: str | None = None, kind: PeriodKind | None = None, force: bool = False
    ) -> GenerationResult:
        """
        Generate (or reuse) content for a period.

        Existing content is returned as-is unless ``force`` is set.

        Raises:
            ValueError: For malformed or future period keys
            ConfigurationError: If feed or LLM credentials are missing
            GenerationFailedError: If generation failed with nothing cached
        """
        if period_key is None:
            period_key = period_key_for(kind or PeriodKind.WEEK, self.clock())
        kind = kind_of(period_key)
        window = generation_window(period_key, self.clock())

        if not force:
            cached = self._cached(period_key, kind, None, note=None)
            if cached is not None:
                return cached

        with time_block(f"generation.{kind.value}"):
            try:
                items = self._fetch(kind, window)
            except FeedError as e:
                return self._fallback(period_key, kind, window, e)

            top = top_item(items)
            if top is None:
                cached = self._cached(period_key, kind, window, note="no launches in window")
                if cached is not None:
                    return cached
                log_event("generation.empty", period_key=period_key)
                return GenerationResult(
                    period_key=period_key,
                    kind=kind,
                    source="empty",
                    window=window,
                    note="no launches in window",
                )

            if kind.is_categorized:
                return self._generate_categorized(period_key, kind, window, items)
            return self._generate_single(period_key, kind, window, top)

    def _generate_single(
        self, period_key: str, kind: PeriodKind, window: Window, top: CandidateItem
    ) -> GenerationResult:
        content = self.generator.generate(top, None, mode=GenerationMode.LENIENT, kind=kind)
        pick = PeriodStore.replace(period_key, None, _to_pick(period_key, None, content))
        log_event("generation.stored", period_key=period_key, picks=1)
        return GenerationResult(
            period_key=period_key,
            kind=kind,
            source="fresh",
            window=window,
            picks=[pick],
            candidates={"top": top.summary()},
        )

    def _generate_categorized(
        self, period_key: str, kind: PeriodKind, window: Window, items: list[CandidateItem]
    ) -> GenerationResult:
        classification = classify_detailed(items)
        ordered = classification.ordered_picks()

        futures: list[tuple[Category, Future[GeneratedContent]]] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for index, (category, item) in enumerate(ordered):
                if index and self.pacing_seconds:
                    self.sleep_fn(self.pacing_seconds)
                futures.append(
                    (
                        category,
                        pool.submit(
                            self.generator.generate,
                            item,
                            category,
                            mode=GenerationMode.STRICT,
                            kind=kind,
                        ),
                    )
                )

        picks: list[GeneratedPick] = []
        failures: list[ContentGenerationError] = []
        for category, future in futures:
            try:
                picks.append(_to_pick(period_key, category, future.result()))
            except ContentGenerationError as e:
                counter("generation.strict_failure")
                log_event("generation.category_failed", period_key=period_key, category=category.value)
                failures.append(e)

        if failures:
            # Nothing written: the stored period stays exactly as it was
            first = failures[0]
            error = ContentGenerationError(
                f"{len(failures)} of {len(ordered)} categories failed; first: {first}",
                product_name=first.product_name,
            )
            return self._fallback(period_key, kind, window, error)

        PeriodStore.replace_period(period_key, picks)
        log_event("generation.stored", period_key=period_key, picks=len(picks))
        return GenerationResult(
            period_key=period_key,
            kind=kind,
            source="fresh",
            window=window,
            picks=picks,
            candidates={category.value: item.summary() for category, item in ordered},
            counts=classification.counts,
            backfilled=[category.value for category in classification.backfilled],
        )

    def preview(self) -> dict[str, Any] | None:
        """
        Single lenient pick for the landing page; nothing is persisted.

        Today's cached daily pick if there is one, else the top launch of the
        last day, week or month (first window with any launches).  None when
        all windows are empty.
        """
        now = self.clock()
        day_key = period_key_for(PeriodKind.DAY, now)
        cached = PeriodStore.read(day_key, None)
        if cached is not None:
            return {
                "source": "cached",
                "period_key": day_key,
                "subject": cached.subject,
                "html": cached.body_html,
                "link": cached.link,
                "product": cached.product_name,
            }

        for length, max_pages in PREVIEW_WINDOWS:
            items = self.feed_client.fetch_window(
                now - length,
                now,
                max_pages,
                PREVIEW_PAGE_SIZE,
                rate_limit_policy=RateLimitPolicy.RETRY_ONCE,
            )
            top = top_item(items)
            if top is None:
                continue
            content = self.generator.generate(
                top, None, mode=GenerationMode.LENIENT, kind=PeriodKind.DAY
            )
            return {
                "source": "on-demand",
                "period_key": day_key,
                "subject": content.subject,
                "html": content.body_html,
                "link": content.link,
                "product": content.product_name,
            }
        return None


def generate_period(
    period_key: str | None = None, kind: PeriodKind | None = None, force: bool = False
) -> GenerationResult:
    """Entry point used by the admin route and the CLI."""
    return GenerationPipeline().generate(period_key, kind=kind, force=force)
