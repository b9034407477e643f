"""
Harvest OAuth2: authorize URL, code exchange and access token refresh.
"""
from __future__ import annotations
import logging
import time
from typing import Optional
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ValidationError

from portal.config import settings
from portal.utils.http import create_http_client

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


class TokenSet(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None


class TokenRefreshResult(BaseModel):
    success: bool
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    error: Optional[str] = None


class OAuthError(Exception):
    """Code exchange with Harvest ID failed."""


def build_authorize_url(state: str, redirect_uri: Optional[str] = None) -> str:
    query = urlencode({
        "client_id": settings.HARVEST_OAUTH_CLIENT_ID or "",
        "response_type": "code",
        "state": state,
        "redirect_uri": redirect_uri or settings.oauth_redirect_uri,
    })
    return f"{settings.HARVEST_AUTHORIZE_URL}?{query}"


def _credentials() -> tuple[str, str]:
    client_id = settings.HARVEST_OAUTH_CLIENT_ID
    client_secret = settings.HARVEST_OAUTH_CLIENT_SECRET
    if not client_id or not client_secret:
        raise OAuthError("Missing OAuth credentials")
    return client_id, client_secret


async def _post_token(form: dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.Response:
    async with create_http_client(
        user_agent="PMO Harvest Portal (token-refresh)", transport=transport
    ) as client:
        return await client.post(
            settings.HARVEST_TOKEN_URL,
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )


def _parse_tokens(response: httpx.Response) -> TokenSet:
    """Raises ValueError or ValidationError when the body is not a token set."""
    return TokenSet.model_validate(response.json())


def _error_from(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    if not isinstance(data, dict):
        return fallback
    return data.get("error_description") or data.get("error") or fallback


async def exchange_code(
    code: str,
    redirect_uri: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TokenSet:
    """Trade an authorization code for an access/refresh token pair."""
    client_id, client_secret = _credentials()
    try:
        response = await _post_token({
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri or settings.oauth_redirect_uri,
        }, transport=transport)
    except httpx.HTTPError as e:
        raise OAuthError(f"Harvest token endpoint unreachable: {e}") from e

    if response.status_code >= 400:
        raise OAuthError(_error_from(response, "Authorization code exchange failed"))
    try:
        return _parse_tokens(response)
    except (ValueError, ValidationError) as e:
        raise OAuthError("Malformed token response from Harvest") from e


async def refresh_harvest_token(
    refresh_token: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TokenRefreshResult:
    """
    Refresh an expired access token.
    Never raises: failures come back as success=False with an error message.
    """
    try:
        client_id, client_secret = _credentials()
        response = await _post_token({
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "refresh_token",
        }, transport=transport)
    except (OAuthError, httpx.HTTPError) as e:
        logger.error(f"Error refreshing Harvest token: {e}")
        return TokenRefreshResult(success=False, error=str(e) or "Unknown error")

    if response.status_code >= 400:
        error = _error_from(response, "Token refresh failed")
        logger.warning(f"Harvest token refresh failed: {error}")
        return TokenRefreshResult(success=False, error=error)

    try:
        tokens = _parse_tokens(response)
    except (ValueError, ValidationError):
        logger.warning("Harvest token refresh returned a malformed body")
        return TokenRefreshResult(success=False, error="Malformed token response from Harvest")

    return TokenRefreshResult(
        success=True,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )


def is_token_expired(expires_at: Optional[float], buffer_seconds: int = 5 * 60) -> bool:
    """True when the token is gone or expires within buffer_seconds (epoch seconds)."""
    if not expires_at:
        return True
    return expires_at - int(time.time()) <= buffer_seconds


def calculate_token_expiration(expires_in: int) -> int:
    return int(time.time()) + expires_in


def hours_to_seconds(hours: float) -> int:
    return round(hours * SECONDS_PER_HOUR)


def seconds_to_hours(seconds: float) -> float:
    return seconds / SECONDS_PER_HOUR
