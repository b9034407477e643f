"""
Tests for the background purge job.
"""
import time

import pytest
from fastapi.testclient import TestClient

from conftest import make_user
from portal import scheduler as sched
from portal.auth.session import session_store
from portal.cache import response_cache
from portal.main import app


@pytest.mark.asyncio
async def test_purge_expired_sessions_and_cache_entries():
    live = await session_store.create(make_user(harvest_user_id=1))
    stale = await session_store.create(make_user(harvest_user_id=2))
    stale.expires_at = time.time() - 1
    await response_cache.put("k", 1, ttl=60)

    await sched.purge_expired()

    assert await session_store.get(live.token) is not None
    assert await session_store.get(stale.token) is None
    assert await response_cache.get("k") == 1


@pytest.mark.asyncio
async def test_scheduler_registers_purge_job():
    scheduler = sched.start_scheduler()
    try:
        assert scheduler.get_job(sched.PURGE_JOB_ID) is not None
        assert sched.start_scheduler() is scheduler
    finally:
        sched.shutdown_scheduler()
    assert sched.scheduler is None


def test_app_lifespan_runs_the_scheduler():
    with TestClient(app) as client:
        assert client.get("/healthz").status_code == 200
        assert sched.scheduler is not None
        assert sched.scheduler.get_job(sched.PURGE_JOB_ID) is not None
    assert sched.scheduler is None
