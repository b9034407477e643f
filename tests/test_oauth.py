"""
Tests for Harvest OAuth token exchange and refresh.
"""
import time
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import respx

from portal.config import settings
from portal.harvest.oauth import (
    OAuthError,
    build_authorize_url,
    calculate_token_expiration,
    exchange_code,
    is_token_expired,
    refresh_harvest_token,
    hours_to_seconds,
    seconds_to_hours,
)


@pytest.fixture
def oauth_credentials(monkeypatch):
    monkeypatch.setattr(settings, "HARVEST_OAUTH_CLIENT_ID", "client-id")
    monkeypatch.setattr(settings, "HARVEST_OAUTH_CLIENT_SECRET", "client-secret")


def test_build_authorize_url(oauth_credentials):
    url = urlparse(build_authorize_url("state-123"))
    query = parse_qs(url.query)

    assert f"{url.scheme}://{url.netloc}{url.path}" == settings.HARVEST_AUTHORIZE_URL
    assert query["client_id"] == ["client-id"]
    assert query["response_type"] == ["code"]
    assert query["state"] == ["state-123"]
    assert query["redirect_uri"] == [settings.oauth_redirect_uri]


@pytest.mark.asyncio
@respx.mock
async def test_exchange_code_success(oauth_credentials):
    route = respx.post(settings.HARVEST_TOKEN_URL).mock(
        return_value=httpx.Response(200, json={
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "token_type": "bearer",
            "expires_in": 1209600,
        })
    )

    tokens = await exchange_code("the-code")

    assert tokens.access_token == "access-1"
    assert tokens.refresh_token == "refresh-1"
    form = parse_qs(route.calls.last.request.content.decode())
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["the-code"]
    assert route.calls.last.request.headers["User-Agent"] == "PMO Harvest Portal (token-refresh)"


@pytest.mark.asyncio
@respx.mock
async def test_exchange_code_failure_raises(oauth_credentials):
    respx.post(settings.HARVEST_TOKEN_URL).mock(
        return_value=httpx.Response(400, json={"error": "invalid_grant", "error_description": "Code expired"})
    )

    with pytest.raises(OAuthError, match="Code expired"):
        await exchange_code("stale")


@pytest.mark.asyncio
@respx.mock
async def test_exchange_code_malformed_body_raises(oauth_credentials):
    respx.post(settings.HARVEST_TOKEN_URL).mock(return_value=httpx.Response(200, text="not json"))

    with pytest.raises(OAuthError, match="Malformed token response"):
        await exchange_code("the-code")


@pytest.mark.asyncio
async def test_exchange_code_without_credentials(monkeypatch):
    monkeypatch.setattr(settings, "HARVEST_OAUTH_CLIENT_ID", None)

    with pytest.raises(OAuthError, match="Missing OAuth credentials"):
        await exchange_code("code")


@pytest.mark.asyncio
@respx.mock
async def test_refresh_success(oauth_credentials):
    route = respx.post(settings.HARVEST_TOKEN_URL).mock(
        return_value=httpx.Response(200, json={
            "access_token": "access-2",
            "refresh_token": "refresh-2",
            "expires_in": 3600,
        })
    )

    result = await refresh_harvest_token("refresh-1")

    assert result.success is True
    assert result.access_token == "access-2"
    assert result.refresh_token == "refresh-2"
    assert result.expires_in == 3600
    form = parse_qs(route.calls.last.request.content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["refresh_token"] == ["refresh-1"]


@pytest.mark.asyncio
@respx.mock
async def test_refresh_failure_does_not_raise(oauth_credentials):
    respx.post(settings.HARVEST_TOKEN_URL).mock(
        return_value=httpx.Response(401, json={"error": "invalid_grant"})
    )

    result = await refresh_harvest_token("revoked")

    assert result.success is False
    assert result.error == "invalid_grant"


@pytest.mark.asyncio
@respx.mock
async def test_refresh_non_json_body_does_not_raise(oauth_credentials):
    respx.post(settings.HARVEST_TOKEN_URL).mock(
        return_value=httpx.Response(200, text="<html>maintenance</html>")
    )

    result = await refresh_harvest_token("refresh-1")

    assert result.success is False
    assert result.error == "Malformed token response from Harvest"


@pytest.mark.asyncio
@respx.mock
async def test_refresh_without_access_token_does_not_raise(oauth_credentials):
    respx.post(settings.HARVEST_TOKEN_URL).mock(
        return_value=httpx.Response(200, json={"token_type": "bearer"})
    )

    result = await refresh_harvest_token("refresh-1")

    assert result.success is False
    assert result.access_token is None


@pytest.mark.asyncio
@respx.mock
async def test_refresh_network_error_does_not_raise(oauth_credentials):
    respx.post(settings.HARVEST_TOKEN_URL).mock(side_effect=httpx.ConnectError("refused"))

    result = await refresh_harvest_token("refresh-1")

    assert result.success is False
    assert result.error


@pytest.mark.asyncio
async def test_refresh_without_credentials(monkeypatch):
    monkeypatch.setattr(settings, "HARVEST_OAUTH_CLIENT_SECRET", None)

    result = await refresh_harvest_token("refresh-1")

    assert result.success is False
    assert result.error == "Missing OAuth credentials"


def test_is_token_expired():
    now = int(time.time())
    assert is_token_expired(None)
    assert is_token_expired(now - 10)
    assert is_token_expired(now + 60)  # inside the default 5 minute buffer
    assert not is_token_expired(now + 3600)
    assert not is_token_expired(now + 60, buffer_seconds=0)


def test_calculate_token_expiration():
    now = int(time.time())
    assert now + 3600 <= calculate_token_expiration(3600) <= now + 3601


def test_seconds_to_hours():
    assert seconds_to_hours(126000) == 35


def test_hours_to_seconds():
    assert hours_to_seconds(40) == 144000
    assert hours_to_seconds(0.5) == 1800
