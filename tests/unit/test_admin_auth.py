"""Unit tests for admin API key authentication"""

from __future__ import annotations

import pytest
from fastapi import HTTPException

from toolplug.api.middleware.auth import APIKeyAuth, require_admin_auth


def test_no_configured_key_allows_everything():
    assert APIKeyAuth(api_key="").verify(None, None) is True


def test_api_key_header_accepted():
    assert APIKeyAuth(api_key="sekret").verify("sekret", None) is True


def test_bearer_header_accepted():
    assert APIKeyAuth(api_key="sekret").verify(None, "Bearer sekret") is True


def test_missing_credentials_is_401():
    with pytest.raises(HTTPException) as exc_info:
        APIKeyAuth(api_key="sekret").verify(None, None)
    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


@pytest.mark.parametrize("header", ["Basic sekret", "Bearer", "sekret"])
def test_malformed_authorization_is_401(header):
    with pytest.raises(HTTPException) as exc_info:
        APIKeyAuth(api_key="sekret").verify(None, header)
    assert exc_info.value.status_code == 401


def test_wrong_key_is_403():
    with pytest.raises(HTTPException) as exc_info:
        APIKeyAuth(api_key="sekret").verify("guess", None)
    assert exc_info.value.status_code == 403


def test_dependency_reads_environment_per_call(monkeypatch):
    assert require_admin_auth(api_key=None, authorization=None) is True

    monkeypatch.setenv("TOOLPLUG_ADMIN_API_KEY", "sekret")
    with pytest.raises(HTTPException):
        require_admin_auth(api_key=None, authorization=None)
    assert require_admin_auth(api_key="sekret", authorization=None) is True
