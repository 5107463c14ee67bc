"""
Dispatch Engine: deliver a period's queued picks to matching subscribers.

Per subscriber, in order:
    1. already in the send log for the period   -> skipped_already_sent
    2. no declared category has a pick           -> skipped_no_match
    3. send one pick (random among matches)      -> sent | failed
    4. on success only, INSERT OR IGNORE into the send log

A failed send leaves no send-log row, so a later run retries that address.
Deliveries run on a bounded thread pool; failures are recorded per
recipient and never abort the batch.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo

from toolplug.config import (
    DISPATCH_ERROR_BODY_CHARS,
    DISPATCH_MAX_WORKERS,
    DISPATCH_TIMEZONE,
    SITE_DOMAIN,
)
from toolplug.curation.categories import Category
from toolplug.dispatch.email_client import BrevoEmailClient
from toolplug.dispatch.furniture import decorate
from toolplug.dispatch.send_log import SendLog
from toolplug.errors import EmailDeliveryError
from toolplug.observability.logging import get_logger
from toolplug.observability.telemetry import counter, log_event, time_block
from toolplug.pipeline.periods import kind_of, local_week_key, sunday_weekday
from toolplug.storage.models import GeneratedPick, PickStatus
from toolplug.storage.picks import PeriodStore
from toolplug.subscriptions.models import Subscriber
from toolplug.subscriptions.repository import SubscriberRepository
from toolplug.utils.html import html_to_text
from toolplug.utils.redaction import redact

logger = get_logger(__name__)

SENT = "sent"
FAILED = "failed"
ALREADY_SENT = "skipped_already_sent"


@dataclass
class DispatchReport:
    period_key: str
    ok: bool = True
    message: str | None = None
    weekday: int | None = None
    total_subscribers: int = 0
    sent: int = 0
    failed: int = 0
    skipped_already_sent: int = 0
    skipped_no_match: int = 0
    marked_sent: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if not self.errors:
            data.pop("errors")
        return data


@dataclass(frozen=True)
class _Delivery:
    subscriber: Subscriber
    pick: GeneratedPick


def matching_picks(subscriber: Subscriber, picks: list[GeneratedPick]) -> list[GeneratedPick]:
    """
    Picks this subscriber may receive, in their category order.

    A single-pick period (category None) matches everyone.
    """
    by_category: dict[Category | None, GeneratedPick] = {pick.category: pick for pick in picks}
    if None in by_category:
        return [by_category[None]]
    return [by_category[c] for c in subscriber.categories if c in by_category]


class DispatchEngine:
    """Sends a period's picks; see module docstring for the per-subscriber rules."""

    def __init__(
        self,
        email_client: BrevoEmailClient | None = None,
        rng: random.Random | None = None,
        max_workers: int = DISPATCH_MAX_WORKERS,
        timezone: str = DISPATCH_TIMEZONE,
        clock: Callable[[], datetime] | None = None,
        domain: str = SITE_DOMAIN,
    ):
        self.email_client = email_client or BrevoEmailClient(domain=domain)
        self.rng = rng or random.Random()
        self.max_workers = max(1, max_workers)
        self.timezone = ZoneInfo(timezone)
        self.clock = clock or (lambda: datetime.now(UTC))
        self.domain = domain

    def current_weekday(self) -> int:
        """Weekday in the dispatch timezone, 0 = Sunday."""
        return sunday_weekday(self.clock().astimezone(self.timezone))

    def _choose(self, matches: list[GeneratedPick]) -> GeneratedPick:
        if len(matches) == 1:
            return matches[0]
        return self.rng.choice(matches)

    def _deliver(self, period_key: str, delivery: _Delivery) -> tuple[str, dict[str, Any] | None]:
        subscriber, pick = delivery.subscriber, delivery.pick
        if SendLog.has_sent(subscriber.email, period_key):
            return ALREADY_SENT, None

        html = decorate(
            pick.body_html,
            domain=self.domain,
            kind=kind_of(period_key),
            product_name=pick.product_name,
            email=subscriber.email,
            unsub_token=subscriber.unsub_token,
        )
        try:
            self.email_client.send(subscriber.email, pick.subject, html, html_to_text(html))
        except EmailDeliveryError as e:
            return FAILED, {
                "email": redact(subscriber.email),
                "status": e.status_code,
                "body": (e.body or str(e))[:DISPATCH_ERROR_BODY_CHARS],
            }

        if not SendLog.record(subscriber.email, period_key):
            # An overlapping run delivered and recorded first
            counter("dispatch.record_conflict")
        return SENT, None

    def dispatch(self, period_key: str, restrict_to_weekday: bool = True) -> DispatchReport:
        """
        Deliver ``period_key`` to confirmed subscribers.

        With ``restrict_to_weekday`` only subscribers whose send_day is
        today (in the dispatch timezone) are considered.  Picks are marked
        sent only after an unrestricted run with no failures, because a
        weekday-restricted run leaves later cohorts still to serve.

        Raises:
            ConfigurationError: If the email service is not configured
            ValueError: If ``period_key`` is malformed
        """
        kind_of(period_key)
        report = DispatchReport(period_key=period_key)

        picks = PeriodStore.list_for_period(period_key, status=PickStatus.QUEUED)
        if not picks:
            report.ok = False
            report.message = "no_queued_picks"
            log_event("dispatch.noop", period_key=period_key)
            return report

        self.email_client.ensure_configured()

        if restrict_to_weekday:
            report.weekday = self.current_weekday()
        subscribers = SubscriberRepository.list_confirmed(send_day=report.weekday)

        seen: set[str] = set()
        deliveries: list[_Delivery] = []
        for subscriber in subscribers:
            if subscriber.email in seen:
                continue
            seen.add(subscriber.email)
            matches = matching_picks(subscriber, picks)
            if not matches:
                report.skipped_no_match += 1
                continue
            deliveries.append(_Delivery(subscriber, self._choose(matches)))
        report.total_subscribers = len(seen)

        if not report.total_subscribers:
            report.message = "no_matching_subscribers"

        with time_block("dispatch.run"), ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            outcomes = list(pool.map(lambda d: self._deliver(period_key, d), deliveries))

        for outcome, error in outcomes:
            if outcome == SENT:
                report.sent += 1
            elif outcome == ALREADY_SENT:
                report.skipped_already_sent += 1
            else:
                report.failed += 1
                report.errors.append(error or {})

        if not restrict_to_weekday and report.failed == 0:
            report.marked_sent = PeriodStore.mark_sent(period_key)

        counter("dispatch.sent", report.sent)
        counter("dispatch.failed", report.failed)
        log_event(
            "dispatch.completed",
            period_key=period_key,
            weekday=report.weekday,
            subscribers=report.total_subscribers,
            sent=report.sent,
            failed=report.failed,
            skipped_already_sent=report.skipped_already_sent,
            skipped_no_match=report.skipped_no_match,
        )
        return report


def default_week_key(now: datetime | None = None) -> str:
    """
    Week to dispatch when none is given.

    Taken from the dispatch timezone so a Sunday-evening run in New York
    (already Monday in UTC) still serves the week its cohort belongs to.
    """
    return local_week_key(now or datetime.now(UTC), ZoneInfo(DISPATCH_TIMEZONE))


def dispatch_period(period_key: str, restrict_to_weekday: bool = True) -> DispatchReport:
    """Entry point used by the admin route and the CLI."""
    return DispatchEngine().dispatch(period_key, restrict_to_weekday=restrict_to_weekday)
