"""Brevo email client against a fake HTTP session"""

from __future__ import annotations

import pytest
import requests
from conftest import FakeResponse, FakeSession

from toolplug.dispatch.email_client import BrevoEmailClient
from toolplug.errors import ConfigurationError, EmailDeliveryError
from toolplug.observability.telemetry import counter


def make_client(responses, api_key: str | None = "brevo-key"):
    session = FakeSession(responses)
    client = BrevoEmailClient(
        api_key=api_key,
        session=session,
        domain="toolplug.test",
        api_url="https://email.test/v3/smtp/email",
        max_attempts=2,
        sleep_fn=lambda _: None,
    )
    return client, session


def test_payload_and_headers():
    client, session = make_client([FakeResponse(201, {"messageId": "m1"})])
    client.send("reader@example.com", "Hello", '<p>Hi <a href="https://x.test">there</a></p>')

    [request] = session.requests
    assert request["url"] == "https://email.test/v3/smtp/email"
    assert request["headers"] == {"api-key": "brevo-key", "content-type": "application/json"}
    payload = request["json"]
    assert payload["sender"] == {"email": "hello@toolplug.test", "name": "ToolPlug"}
    assert payload["replyTo"] == payload["sender"]
    assert payload["to"] == [{"email": "reader@example.com"}]
    assert payload["subject"] == "Hello"
    # Plain-text part derived from the HTML when not given
    assert payload["textContent"] == "Hi\nthere (https://x.test)"
    assert counter("email.sent", 0) == 1


def test_explicit_text_part_is_kept():
    client, _ = make_client([FakeResponse(201, {})])
    payload = client.build_payload("a@b.co", "S", "<p>x</p>", "plain text")
    assert payload["textContent"] == "plain text"


def test_server_errors_are_retried():
    client, session = make_client([FakeResponse(503, text="busy"), FakeResponse(201, {})])
    client.send("a@b.co", "S", "<p>x</p>")
    assert len(session.requests) == 2


def test_connection_errors_are_retried_then_reported():
    client, session = make_client(
        [
            requests.exceptions.ConnectTimeout("connect"),
            requests.exceptions.ConnectionError("refused"),
        ]
    )
    with pytest.raises(EmailDeliveryError) as exc_info:
        client.send("a@b.co", "S", "<p>x</p>")
    assert exc_info.value.status_code is None
    assert len(session.requests) == 2
    assert counter("email.failed", 0) == 1


def test_connection_error_is_retried_until_sent():
    client, session = make_client(
        [requests.exceptions.ConnectionError("refused"), FakeResponse(201, {})]
    )
    client.send("a@b.co", "S", "<p>x</p>")
    assert len(session.requests) == 2
    assert counter("email.sent", 0) == 1


@pytest.mark.parametrize(
    "error",
    [
        requests.exceptions.ReadTimeout("read timed out"),
        requests.exceptions.ChunkedEncodingError("broken response"),
    ],
)
def test_errors_after_the_request_went_out_are_not_resent(error):
    client, session = make_client([error, FakeResponse(201, {})])
    with pytest.raises(EmailDeliveryError, match="after sending") as exc_info:
        client.send("a@b.co", "S", "<p>x</p>")

    assert exc_info.value.retryable is False
    assert len(session.requests) == 1
    assert counter("email.unconfirmed", 0) == 1
    assert counter("email.failed", 0) == 1


def test_client_errors_fail_immediately_with_body():
    client, session = make_client([FakeResponse(400, text='{"code":"invalid_parameter"}')])
    with pytest.raises(EmailDeliveryError) as exc_info:
        client.send("a@b.co", "S", "<p>x</p>")

    assert exc_info.value.status_code == 400
    assert "invalid_parameter" in exc_info.value.body
    assert len(session.requests) == 1


def test_missing_key_is_configuration_error():
    client, session = make_client([], api_key=None)
    with pytest.raises(ConfigurationError, match="BREVO_API_KEY"):
        client.send("a@b.co", "S", "<p>x</p>")
    assert session.requests == []


def test_key_read_from_environment(monkeypatch):
    monkeypatch.setenv("BREVO_API_KEY", " env-key ")
    client, _ = make_client([], api_key=None)
    assert client.ensure_configured() == "env-key"
