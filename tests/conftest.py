"""
Shared fixtures: a TestClient on the app and helpers to seed signed-in users.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient

from portal.auth.session import OAuthAccount, Role, SessionUser, get_permissions_for_role, session_store
from portal.cache import response_cache
from portal.config import settings
from portal.main import app

HARVEST = settings.HARVEST_BASE_URL.rstrip("/")


def make_user(role: Role = Role.MEMBER, harvest_user_id: int = 1001) -> SessionUser:
    return SessionUser(
        id=str(harvest_user_id),
        email="ada@example.com",
        name="Ada Lovelace",
        first_name="Ada",
        last_name="Lovelace",
        harvest_user_id=harvest_user_id,
        access_roles=[role],
        primary_role=role,
        permissions=get_permissions_for_role(role),
    )


def sign_in(client, role: Role = Role.MEMBER, access_token="harvest-token", harvest_user_id: int = 1001):
    """Seed a session (and, unless access_token is None, a Harvest account) and set the cookie."""
    user = make_user(role, harvest_user_id)
    session = asyncio.run(session_store.create(user))
    if access_token is not None:
        asyncio.run(session_store.save_account(OAuthAccount(user_id=user.id, access_token=access_token)))
    client.cookies.set(settings.SESSION_COOKIE_NAME, session.token)
    return session


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_state():
    yield
    asyncio.run(session_store.clear())
    asyncio.run(response_cache.clear())
