"""
FastAPI dependencies shared by every /api/harvest route.

The order is fixed: session (401), role (403), Harvest token (401). Routes
then validate their input and call Harvest inside harvest_call().
"""
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, Request

from portal.auth.roles import is_admin, is_admin_or_manager
from portal.auth.session import Session, session_store
from portal.config import settings
from portal.errors import (
    FORBIDDEN_ADMIN,
    FORBIDDEN_ADMIN_OR_MANAGER,
    NO_HARVEST_TOKEN,
    UNAUTHORIZED,
    PortalError,
    format_locked_period_error,
)
from portal.harvest.client import HarvestAPIError, HarvestClient
from portal.harvest.oauth import calculate_token_expiration, is_token_expired, refresh_harvest_token
from portal.observability.metrics import auth_failures_total, harvest_upstream_errors_total, token_refreshes_total
from portal.utils.logging import log_error

logger = logging.getLogger(__name__)


def session_cookie(request: Request) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_session(request: Request) -> Session:
    session = await session_store.get(session_cookie(request))
    if session is None:
        auth_failures_total.labels(reason="session").inc()
        raise PortalError(401, UNAUTHORIZED)
    request.state.session = session
    return session


async def require_admin(session: Session = Depends(get_session)) -> Session:
    if not is_admin(session):
        auth_failures_total.labels(reason="role").inc()
        raise PortalError(403, FORBIDDEN_ADMIN)
    return session


async def require_admin_or_manager(session: Session = Depends(get_session)) -> Session:
    if not is_admin_or_manager(session):
        auth_failures_total.labels(reason="role").inc()
        raise PortalError(403, FORBIDDEN_ADMIN_OR_MANAGER)
    return session


async def get_access_token(session: Session = Depends(get_session)) -> str:
    """
    The session user's Harvest access token.

    A token inside the refresh buffer is refreshed in place when a refresh
    token is on file; if that fails the current token is still tried.
    """
    account = await session_store.get_account(session.user.id)
    if account is None or not account.access_token:
        auth_failures_total.labels(reason="token").inc()
        raise PortalError(401, NO_HARVEST_TOKEN)

    if (
        account.refresh_token
        and account.access_token_expires_at is not None
        and is_token_expired(account.access_token_expires_at, settings.TOKEN_REFRESH_BUFFER_SECONDS)
    ):
        result = await refresh_harvest_token(account.refresh_token)
        if result.success and result.access_token:
            token_refreshes_total.labels(outcome="success").inc()
            account = await session_store.update_account_tokens(
                session.user.id,
                result.access_token,
                result.refresh_token,
                calculate_token_expiration(result.expires_in) if result.expires_in else None,
            )
        else:
            token_refreshes_total.labels(outcome="failure").inc()
            logger.warning(f"Automatic Harvest token refresh failed for user {session.user.id}")

    return account.access_token


async def get_harvest_client(access_token: str = Depends(get_access_token)) -> AsyncIterator[HarvestClient]:
    client = HarvestClient(access_token)
    try:
        yield client
    finally:
        await client.close()


@asynccontextmanager
async def harvest_call(message: str, **context) -> AsyncIterator[None]:
    """
    Wrap an upstream call: PortalError passes through, anything else is
    logged and re-raised as a 500 carrying a sanitized message.
    """
    try:
        yield
    except PortalError:
        raise
    except HarvestAPIError as e:
        harvest_upstream_errors_total.labels(status=str(e.status_code)).inc()
        log_error(message, e, context, logger=logger)
        raise PortalError(500, format_locked_period_error(e.message or message)) from None
    except Exception as e:
        log_error(message, e, context, logger=logger)
        raise PortalError(500, message) from None
