"""
Sign-in with Harvest OAuth2 and the session endpoints.
"""
import logging
from typing import Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from portal.auth.dependencies import session_cookie
from portal.auth.session import HARVEST_PROVIDER, OAuthAccount, SessionUser, session_store
from portal.config import settings
from portal.errors import UNAUTHORIZED, PortalError
from portal.harvest.client import HarvestAPIError, HarvestClient
from portal.harvest.oauth import (
    OAuthError,
    build_authorize_url,
    calculate_token_expiration,
    exchange_code,
    refresh_harvest_token,
)
from portal.harvest.types import HarvestProfile
from portal.observability.metrics import token_refreshes_total
from portal.utils.ids import session_token
from portal.utils.logging import log_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

STATE_COOKIE = "portal.oauth_state"
CALLBACK_COOKIE = "portal.callback_url"
STATE_MAX_AGE = 10 * 60
DEFAULT_CALLBACK = "/dashboard"
AUTH_ERROR_PATH = "/auth-error"


def safe_callback(url: Optional[str]) -> str:
    """Only same-site relative paths are followed after sign-in."""
    if not url or not url.startswith("/") or any(ord(ch) < 0x20 for ch in url):
        return DEFAULT_CALLBACK
    # Browsers read a backslash as a slash: "/\host" means "//host".
    target = urlsplit(url.replace("\\", "/"))
    if target.scheme or target.netloc:
        return DEFAULT_CALLBACK
    return url


def auth_error(reason: str) -> RedirectResponse:
    response = RedirectResponse(f"{AUTH_ERROR_PATH}?error={reason}", status_code=302)
    response.delete_cookie(STATE_COOKIE)
    response.delete_cookie(CALLBACK_COOKIE)
    return response


@router.get("/sign-in")
async def sign_in(request: Request):
    """Start the Harvest OAuth flow."""
    state = session_token()
    response = RedirectResponse(build_authorize_url(state), status_code=302)
    cookie = dict(max_age=STATE_MAX_AGE, httponly=True, samesite="lax", secure=settings.is_production)
    response.set_cookie(STATE_COOKIE, state, **cookie)
    response.set_cookie(CALLBACK_COOKIE, safe_callback(request.query_params.get("callbackUrl")), **cookie)
    return response


@router.get("/api/auth/callback/harvest")
async def oauth_callback(request: Request):
    params = request.query_params
    if params.get("error"):
        logger.warning(f"Harvest OAuth returned an error: {params.get('error')}")
        return auth_error("oauth_denied")

    expected = request.cookies.get(STATE_COOKIE)
    if not expected or params.get("state") != expected:
        raise PortalError(400, "Invalid OAuth state")
    code = params.get("code")
    if not code:
        raise PortalError(400, "Missing authorization code")

    try:
        tokens = await exchange_code(code)
    except OAuthError as e:
        log_error("Harvest code exchange failed", e, logger=logger)
        return auth_error("token_exchange")

    try:
        async with HarvestClient(tokens.access_token) as client:
            profile = HarvestProfile.model_validate(await client.get_current_user())
    except (HarvestAPIError, ValidationError) as e:
        log_error("Failed to load Harvest profile", e, logger=logger)
        return auth_error("profile")

    user = SessionUser.from_profile(profile)
    session = await session_store.create(user)
    await session_store.save_account(OAuthAccount(
        user_id=user.id,
        provider_id=HARVEST_PROVIDER,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        access_token_expires_at=(
            calculate_token_expiration(tokens.expires_in) if tokens.expires_in else None
        ),
    ))

    response = RedirectResponse(safe_callback(request.cookies.get(CALLBACK_COOKIE)), status_code=302)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        session.token,
        max_age=session_store.ttl,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    response.delete_cookie(STATE_COOKIE)
    response.delete_cookie(CALLBACK_COOKIE)
    return response


@router.get("/api/auth/session")
async def current_session(request: Request):
    session = await session_store.get(session_cookie(request))
    if session is None:
        raise PortalError(401, UNAUTHORIZED)
    return session.public_dict()


@router.post("/api/auth/sign-out")
async def sign_out(request: Request):
    await session_store.delete(session_cookie(request))
    response = JSONResponse({"success": True})
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response


@router.post("/api/auth/refresh-harvest-token")
async def refresh_token(request: Request):
    """
    Refresh the caller's Harvest access token with the stored refresh token.
    A failed refresh answers 401 with requiresReauth so the browser signs in again.
    """
    session = await session_store.get(session_cookie(request))
    if session is None:
        raise PortalError(401, "Unauthorized - no active session")

    account = await session_store.get_account(session.user.id)
    if account is None or not account.refresh_token:
        raise PortalError(400, "No refresh token found for Harvest account")

    result = await refresh_harvest_token(account.refresh_token)
    if not result.success or not result.access_token or not result.refresh_token:
        token_refreshes_total.labels(outcome="failure").inc()
        logger.error(f"Token refresh failed: {result.error}")
        raise PortalError(401, result.error or "Failed to refresh token", requires_reauth=True)

    token_refreshes_total.labels(outcome="success").inc()
    await session_store.update_account_tokens(
        session.user.id,
        result.access_token,
        result.refresh_token,
        calculate_token_expiration(result.expires_in) if result.expires_in else None,
    )
    return {
        "success": True,
        "accessToken": result.access_token,
        "expiresIn": result.expires_in,
        "message": "Token refreshed successfully",
    }
