"""
Server-side sessions for users signed in through Harvest OAuth.

A session is created on OAuth callback from the Harvest /users/me profile and
handed to every route as an explicit Session value. The Harvest tokens live
beside it as an OAuthAccount. Storage is in-memory; sessions do not survive a
restart and the app must run as a single worker.
"""
from __future__ import annotations
import asyncio
import logging
import time
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from portal.config import settings
from portal.harvest.oauth import seconds_to_hours
from portal.harvest.types import HarvestProfile
from portal.utils.ids import session_token

logger = logging.getLogger(__name__)

HARVEST_PROVIDER = "harvest"


class Role(str, Enum):
    ADMINISTRATOR = "administrator"
    MANAGER = "manager"
    MEMBER = "member"


class Permissions(BaseModel):
    timeEntries: List[str] = Field(default_factory=list)
    expenses: List[str] = Field(default_factory=list)
    projects: List[str] = Field(default_factory=list)
    users: List[str] = Field(default_factory=list)
    reports: List[str] = Field(default_factory=list)


def get_permissions_for_role(role: Role) -> Permissions:
    """Resource -> allowed actions for a Harvest access role."""
    if role == Role.ADMINISTRATOR:
        return Permissions(
            timeEntries=["create", "read", "update", "delete"],
            expenses=["create", "read", "update", "delete", "approve"],
            projects=["read", "manage"],
            users=["read", "manage"],
            reports=["read", "export"],
        )

    permissions = Permissions(
        timeEntries=["create", "read", "update", "delete"],
        expenses=["create", "read", "update", "delete"],
        projects=["read"],
        reports=["read"],
    )
    if role == Role.MANAGER:
        permissions.expenses.append("approve")
        permissions.projects.append("manage")
        permissions.users.append("read")
        permissions.reports.append("export")
    return permissions


def parse_roles(raw: List[str]) -> List[Role]:
    roles = []
    for value in raw:
        try:
            roles.append(Role(value))
        except ValueError:
            logger.debug(f"Ignoring unknown Harvest access role {value!r}")
    return roles


class SessionUser(BaseModel):
    id: str
    email: str
    name: str
    image: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    harvest_user_id: int
    access_roles: List[Role] = Field(default_factory=list)
    harvest_roles: List[str] = Field(default_factory=list)
    primary_role: Role = Role.MEMBER
    is_contractor: bool = False
    weekly_capacity_hours: Optional[float] = None
    default_hourly_rate: Optional[float] = None
    cost_rate: Optional[float] = None
    permissions: Permissions = Field(default_factory=Permissions)

    @classmethod
    def from_profile(cls, profile: HarvestProfile) -> "SessionUser":
        access_roles = parse_roles(profile.access_roles)
        primary_role = access_roles[0] if access_roles else Role.MEMBER
        return cls(
            id=str(profile.id),
            email=profile.email,
            name=f"{profile.first_name} {profile.last_name}".strip(),
            image=profile.avatar_url,
            first_name=profile.first_name,
            last_name=profile.last_name,
            harvest_user_id=profile.id,
            access_roles=access_roles,
            harvest_roles=list(profile.roles),
            primary_role=primary_role,
            is_contractor=profile.is_contractor,
            weekly_capacity_hours=(
                seconds_to_hours(profile.weekly_capacity)
                if profile.weekly_capacity is not None else None
            ),
            default_hourly_rate=profile.default_hourly_rate,
            cost_rate=profile.cost_rate,
            permissions=get_permissions_for_role(primary_role),
        )


class Session(BaseModel):
    token: str
    user: SessionUser
    created_at: float
    updated_at: float
    expires_at: float

    def public_dict(self) -> dict:
        """Session as returned to the browser (no token)."""
        return {
            "user": self.user.model_dump(mode="json"),
            "session": {
                "userId": self.user.id,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
                "expiresAt": self.expires_at,
            },
        }


class OAuthAccount(BaseModel):
    user_id: str
    provider_id: str = HARVEST_PROVIDER
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    access_token_expires_at: Optional[float] = None  # epoch seconds


class SessionStore:
    """
    In-memory session and OAuth account store.
    All access goes through an asyncio lock; one store per process.
    """

    def __init__(self, ttl: Optional[int] = None, update_age: Optional[int] = None):
        self.ttl = ttl or settings.SESSION_TTL_SECONDS
        self.update_age = update_age or settings.SESSION_UPDATE_AGE_SECONDS
        self._sessions: Dict[str, Session] = {}
        self._accounts: Dict[tuple, OAuthAccount] = {}
        self._lock = asyncio.Lock()

    async def create(self, user: SessionUser) -> Session:
        now = time.time()
        session = Session(
            token=session_token(),
            user=user,
            created_at=now,
            updated_at=now,
            expires_at=now + self.ttl,
        )
        async with self._lock:
            self._sessions[session.token] = session
        logger.info(f"Session created for Harvest user {user.harvest_user_id}")
        return session

    async def get(self, token: Optional[str]) -> Optional[Session]:
        """Live session for token; expired sessions are evicted, old ones renewed."""
        if not token:
            return None
        now = time.time()
        async with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if now >= session.expires_at:
                del self._sessions[token]
                return None
            if now - session.updated_at >= self.update_age:
                session.updated_at = now
                session.expires_at = now + self.ttl
            return session

    async def delete(self, token: Optional[str]) -> None:
        if not token:
            return
        async with self._lock:
            self._sessions.pop(token, None)

    async def save_account(self, account: OAuthAccount) -> None:
        async with self._lock:
            self._accounts[(account.user_id, account.provider_id)] = account

    async def get_account(self, user_id: str, provider_id: str = HARVEST_PROVIDER) -> Optional[OAuthAccount]:
        async with self._lock:
            return self._accounts.get((user_id, provider_id))

    async def update_account_tokens(
        self,
        user_id: str,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: Optional[float],
        provider_id: str = HARVEST_PROVIDER,
    ) -> OAuthAccount:
        async with self._lock:
            account = self._accounts.get((user_id, provider_id)) or OAuthAccount(
                user_id=user_id, provider_id=provider_id
            )
            account.access_token = access_token
            if refresh_token:
                account.refresh_token = refresh_token
            account.access_token_expires_at = expires_at
            self._accounts[(user_id, provider_id)] = account
            return account

    async def purge_expired(self) -> int:
        now = time.time()
        async with self._lock:
            stale = [t for t, s in self._sessions.items() if now >= s.expires_at]
            for token in stale:
                del self._sessions[token]
        if stale:
            logger.info(f"Purged {len(stale)} expired sessions")
        return len(stale)

    async def clear(self) -> None:
        async with self._lock:
            self._sessions.clear()
            self._accounts.clear()


session_store = SessionStore()
