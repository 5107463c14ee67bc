"""
Integration tests for signup, confirmation and unsubscribe

Real database, fake email client.
"""

from __future__ import annotations

import itertools

import pytest
from conftest import FakeEmailClient, confirmed, count_rows

from toolplug.curation.categories import Category
from toolplug.errors import ConfirmationDeliveryError, InvalidSignupError
from toolplug.subscriptions.models import ConfirmOutcome, UnsubscribeOutcome
from toolplug.subscriptions.repository import SubscriberRepository
from toolplug.subscriptions.service import SubscriptionService


def sequential_tokens():
    numbers = itertools.count(1)
    return lambda: f"token-{next(numbers)}"


@pytest.fixture
def service(temp_db, fake_email):
    return SubscriptionService(
        email_client=fake_email, domain="toolplug.test", token_factory=sequential_tokens()
    )


def test_signup_stores_normalized_pending_and_sends_link(service, fake_email):
    token = service.submit_signup("  Reader@Example.COM ", 3, ["ops", "dev"])

    assert token == "token-1"
    assert count_rows("pending_subscribers", email="reader@example.com") == 1
    assert SubscriberRepository.is_subscribed("reader@example.com") is False

    [message] = fake_email.sent
    assert message["to"] == "reader@example.com"
    assert "https://toolplug.test/api/confirm?token=token-1" in message["html"]
    assert "https://toolplug.test/api/confirm?token=token-1" in message["text"]
    # Labels listed in declaration order
    assert "Dev Discoveries · Ops" in message["html"]


@pytest.mark.parametrize(
    ("email", "send_day", "categories", "error"),
    [
        ("not-an-email", 1, ["dev"], "Invalid email"),
        ("a@b.co", 7, ["dev"], "Invalid send_day"),
        ("a@b.co", -1, ["dev"], "Invalid send_day"),
        ("a@b.co", True, ["dev"], "Invalid send_day"),
        ("a@b.co", 1, [], "Pick at least one category"),
        ("a@b.co", 1, ["dev", "gaming"], "Unknown category: gaming"),
    ],
)
def test_invalid_signups_store_nothing(service, fake_email, email, send_day, categories, error):
    with pytest.raises(InvalidSignupError, match=error):
        service.submit_signup(email, send_day, categories)
    assert fake_email.sent == []
    assert count_rows("pending_subscribers", email="a@b.co") == 0


def test_confirm_promotes_pending(service):
    token = service.submit_signup("a@b.co", 5, ["design"])

    assert service.confirm(token) is ConfirmOutcome.CONFIRMED
    subscriber = confirmed("a@b.co")
    assert subscriber.send_day == 5
    assert subscriber.categories == [Category.DESIGN]
    assert subscriber.unsub_token == "token-2"
    assert count_rows("pending_subscribers", email="a@b.co") == 0

    # Replaying the link finds nothing to confirm
    assert service.confirm(token) is ConfirmOutcome.NOT_FOUND


def test_second_confirmation_for_same_email_is_idempotent(service):
    first = service.submit_signup("a@b.co", 1, ["dev"])
    second = service.submit_signup("A@B.co", 4, ["ops"])
    assert count_rows("pending_subscribers", email="a@b.co") == 2

    assert service.confirm(first) is ConfirmOutcome.CONFIRMED
    assert service.confirm(second) is ConfirmOutcome.ALREADY_CONFIRMED

    assert len(SubscriberRepository.list_confirmed()) == 1
    # The first confirmation's preferences stand
    assert confirmed("a@b.co").send_day == 1
    assert count_rows("pending_subscribers", email="a@b.co") == 0


def test_unknown_or_missing_confirm_token(service):
    assert service.confirm("nope") is ConfirmOutcome.NOT_FOUND
    assert service.confirm("") is ConfirmOutcome.NOT_FOUND


def test_unsubscribe_removes_subscriber(service):
    service.confirm(service.submit_signup("a@b.co", 2, ["creators"]))
    unsub_token = confirmed("a@b.co").unsub_token

    assert service.unsubscribe(unsub_token) is UnsubscribeOutcome.REMOVED
    assert service.check_status("a@b.co") == {"subscribed": False}
    assert service.unsubscribe(unsub_token) is UnsubscribeOutcome.NOT_FOUND
    assert service.unsubscribe(None) is UnsubscribeOutcome.NOT_FOUND


def test_check_status_normalizes(service):
    service.confirm(service.submit_signup("a@b.co", 2, ["dev"]))
    assert service.check_status(" A@B.CO ") == {"subscribed": True}
    assert service.check_status("") == {"subscribed": False}


def test_list_confirmed_filters_by_send_day(service):
    service.confirm(service.submit_signup("mon@b.co", 1, ["dev"]))
    service.confirm(service.submit_signup("wed@b.co", 3, ["dev"]))

    assert [s.email for s in SubscriberRepository.list_confirmed(3)] == ["wed@b.co"]
    assert len(SubscriberRepository.list_confirmed()) == 2


def test_confirmation_email_failure_keeps_pending(temp_db):
    failing = FakeEmailClient(fail_for={"a@b.co"})
    service = SubscriptionService(email_client=failing, token_factory=sequential_tokens())

    with pytest.raises(ConfirmationDeliveryError):
        service.submit_signup("a@b.co", 3, ["dev"])

    # The pending row survives and its link still works
    assert count_rows("pending_subscribers", email="a@b.co") == 1
    assert service.confirm("token-1") is ConfirmOutcome.CONFIRMED


def test_case_and_whitespace_variants_are_one_subscriber(service):
    service.confirm(service.submit_signup("Foo@Example.com ", 3, ["dev"]))
    outcome = service.confirm(service.submit_signup("foo@example.com", 3, ["dev"]))

    assert outcome is ConfirmOutcome.ALREADY_CONFIRMED
    assert [s.email for s in SubscriberRepository.list_confirmed()] == ["foo@example.com"]
