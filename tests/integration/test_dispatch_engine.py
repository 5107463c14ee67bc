"""
Integration tests for the dispatch engine

Real database for picks, subscribers and the send log; fake email client.
The clock is pinned to a Wednesday morning in New York (send_day 3).
"""

from __future__ import annotations

import random
from datetime import UTC, datetime

import pytest
import requests
from conftest import (
    WEDNESDAY_NOON_UTC,
    FakeEmailClient,
    FakeResponse,
    FakeSession,
    confirmed,
    count_rows,
)

from toolplug.curation.categories import Category
from toolplug.dispatch.email_client import BrevoEmailClient
from toolplug.dispatch.engine import DispatchEngine, default_week_key, matching_picks
from toolplug.dispatch.send_log import SendLog
from toolplug.errors import ConfigurationError
from toolplug.storage.models import GeneratedPick, PickStatus
from toolplug.storage.picks import PeriodStore
from toolplug.subscriptions.models import PendingSubscriber
from toolplug.subscriptions.repository import SubscriberRepository

WEEK = "2025-W07"


def subscribe(email: str, send_day: int, categories: list[Category]) -> None:
    SubscriberRepository.add_pending(
        PendingSubscriber(
            email=email, send_day=send_day, categories=categories, confirm_token=f"c-{email}"
        )
    )
    SubscriberRepository.confirm(f"c-{email}", f"u-{email}")


def weekly_pick(category: Category) -> GeneratedPick:
    return GeneratedPick(
        period_key=WEEK,
        category=category,
        subject=f"Weekly {category.value}",
        body_html=f"<p>{category.value} pick</p>",
        link=f"https://example.com/{category.value}",
        product_name=f"{category.value} tool",
    )


def make_engine(email_client) -> DispatchEngine:
    return DispatchEngine(
        email_client=email_client,
        rng=random.Random(0),
        max_workers=2,
        clock=lambda: WEDNESDAY_NOON_UTC,
        domain="toolplug.test",
    )


@pytest.fixture
def week_content(temp_db):
    PeriodStore.replace_period(WEEK, [weekly_pick(Category.DEV), weekly_pick(Category.OPS)])


def test_weekday_restricted_dispatch(week_content, fake_email):
    subscribe("wed-dev@x.co", 3, [Category.DEV])
    subscribe("wed-design@x.co", 3, [Category.DESIGN])
    subscribe("mon-dev@x.co", 1, [Category.DEV])

    report = make_engine(fake_email).dispatch(WEEK)

    assert report.ok is True
    assert report.weekday == 3
    assert report.total_subscribers == 2
    assert report.sent == 1
    assert report.skipped_no_match == 1
    assert report.marked_sent == 0

    [message] = fake_email.sent
    assert message["to"] == "wed-dev@x.co"
    assert message["subject"] == "Weekly dev"
    assert "https://toolplug.test/api/unsubscribe?token=u-wed-dev%40x.co" in message["html"]
    assert "/api/feedback?src=weekly" in message["html"]
    assert "Unsubscribe" in message["text"]
    assert SendLog.has_sent("wed-dev@x.co", WEEK)
    # Restricted runs never flip picks to sent
    assert len(PeriodStore.list_for_period(WEEK, status=PickStatus.QUEUED)) == 2


def test_rerun_skips_already_sent(week_content, fake_email):
    subscribe("wed-dev@x.co", 3, [Category.DEV])
    engine = make_engine(fake_email)

    engine.dispatch(WEEK)
    second = engine.dispatch(WEEK)

    assert second.sent == 0
    assert second.skipped_already_sent == 1
    assert len(fake_email.sent) == 1


def test_failures_are_reported_and_retried_next_run(week_content):
    subscribe("good@x.co", 3, [Category.DEV])
    subscribe("bad@x.co", 3, [Category.OPS])
    flaky = FakeEmailClient(fail_for={"bad@x.co"})

    report = make_engine(flaky).dispatch(WEEK, restrict_to_weekday=False)

    assert report.sent == 1
    assert report.failed == 1
    assert report.marked_sent == 0
    [error] = report.errors
    assert error["status"] == 500
    assert error["body"] == "upstream exploded"
    assert "bad@x.co" not in error["email"]
    assert not SendLog.has_sent("bad@x.co", WEEK)

    # Upstream recovers: only the failed address is retried, then picks are closed out
    flaky.fail_for.clear()
    retry = make_engine(flaky).dispatch(WEEK, restrict_to_weekday=False)
    assert retry.sent == 1
    assert retry.skipped_already_sent == 1
    assert retry.marked_sent == 2
    assert [m["to"] for m in flaky.sent] == ["good@x.co", "bad@x.co"]


def test_unrestricted_run_marks_picks_sent(week_content, fake_email):
    subscribe("mon@x.co", 1, [Category.OPS])
    subscribe("fri@x.co", 5, [Category.DEV, Category.OPS])

    report = make_engine(fake_email).dispatch(WEEK, restrict_to_weekday=False)

    assert report.weekday is None
    assert report.sent == 2
    assert report.marked_sent == 2
    assert PeriodStore.list_for_period(WEEK, status=PickStatus.QUEUED) == []

    # Nothing queued any more
    again = make_engine(fake_email).dispatch(WEEK, restrict_to_weekday=False)
    assert again.ok is False
    assert again.message == "no_queued_picks"


def test_no_queued_picks(temp_db, fake_email):
    report = make_engine(fake_email).dispatch(WEEK)
    assert report.ok is False
    assert report.message == "no_queued_picks"
    assert report.to_dict()["sent"] == 0
    assert "errors" not in report.to_dict()


def test_no_matching_subscribers(week_content, fake_email):
    subscribe("mon@x.co", 1, [Category.DEV])
    report = make_engine(fake_email).dispatch(WEEK)
    assert report.ok is True
    assert report.message == "no_matching_subscribers"
    assert fake_email.sent == []


def test_unconfigured_email_is_fatal(week_content):
    subscribe("wed-dev@x.co", 3, [Category.DEV])
    with pytest.raises(ConfigurationError):
        make_engine(FakeEmailClient(configured=False)).dispatch(WEEK)


def test_single_pick_period_reaches_everyone(temp_db, fake_email):
    PeriodStore.replace(
        "2025-02",
        None,
        GeneratedPick(
            period_key="2025-02",
            subject="Monthly Launch Highlight - Thing",
            body_html="<p>Thing</p>",
            product_name="Thing",
        ),
    )
    subscribe("design@x.co", 3, [Category.DESIGN])
    subscribe("wild@x.co", 3, [Category.WILDCARD])

    report = make_engine(fake_email).dispatch("2025-02")

    assert report.sent == 2
    assert {m["subject"] for m in fake_email.sent} == {"Monthly Launch Highlight - Thing"}


def test_matching_picks_follow_subscriber_categories(week_content):
    picks = PeriodStore.list_for_period(WEEK)
    subscribe("multi@x.co", 3, [Category.OPS, Category.DEV, Category.CREATORS])
    subscriber = confirmed("multi@x.co")

    matched = matching_picks(subscriber, picks)
    assert [pick.category for pick in matched] == [Category.DEV, Category.OPS]


def test_random_choice_is_among_matches(week_content, fake_email):
    subscribe("multi@x.co", 3, [Category.DEV, Category.OPS])
    make_engine(fake_email).dispatch(WEEK)
    assert fake_email.sent[0]["subject"] in {"Weekly dev", "Weekly ops"}


def test_wednesday_subscriber_gets_exactly_one_pick(temp_db, fake_email):
    PeriodStore.replace_period(WEEK, [weekly_pick(Category.DEV), weekly_pick(Category.DESIGN)])
    subscribe("reader@x.co", 3, [Category.DEV, Category.DESIGN])
    engine = make_engine(fake_email)

    first = engine.dispatch(WEEK, restrict_to_weekday=True)
    assert first.sent == 1
    [message] = fake_email.sent
    assert message["subject"] in {"Weekly dev", "Weekly design"}
    assert count_rows("send_log", period_key=WEEK) == 1

    second = engine.dispatch(WEEK, restrict_to_weekday=True)
    assert second.sent == 0
    assert second.skipped_already_sent == 1
    assert len(fake_email.sent) == 1
    assert count_rows("send_log", period_key=WEEK) == 1


def test_read_timeout_is_one_failed_post_and_next_run_delivers(week_content):
    subscribe("slow@x.co", 3, [Category.DEV])
    session = FakeSession(
        [requests.exceptions.ReadTimeout("read timed out"), FakeResponse(201, {})]
    )
    client = BrevoEmailClient(
        api_key="brevo-key", session=session, domain="toolplug.test", sleep_fn=lambda _: None
    )

    first = make_engine(client).dispatch(WEEK)
    assert first.failed == 1
    assert first.sent == 0
    assert len(session.requests) == 1
    assert not SendLog.has_sent("slow@x.co", WEEK)

    second = make_engine(client).dispatch(WEEK)
    assert second.sent == 1
    assert len(session.requests) == 2
    assert SendLog.has_sent("slow@x.co", WEEK)


def test_default_week_follows_the_send_day_calendar():
    # Sunday 23:00 in New York: the Sunday cohort still belongs to W07
    sunday_night = datetime(2025, 2, 17, 4, 0, tzinfo=UTC)
    engine = make_engine(FakeEmailClient())
    engine.clock = lambda: sunday_night

    assert engine.current_weekday() == 0
    assert default_week_key(sunday_night) == "2025-W07"
