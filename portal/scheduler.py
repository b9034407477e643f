"""
Background maintenance jobs.
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from portal.auth.session import session_store
from portal.cache import response_cache
from portal.config import settings

logger = logging.getLogger(__name__)

scheduler: Optional[AsyncIOScheduler] = None

PURGE_JOB_ID = "purge-expired"


async def purge_expired() -> None:
    """Drop expired sessions and cache entries."""
    sessions = await session_store.purge_expired()
    entries = await response_cache.purge_expired()
    logger.debug(f"Purge removed {sessions} sessions and {entries} cache entries")


def start_scheduler() -> AsyncIOScheduler:
    global scheduler
    if scheduler is None:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            purge_expired,
            IntervalTrigger(minutes=settings.SESSION_SWEEP_MINUTES),
            id=PURGE_JOB_ID,
            replace_existing=True,
        )
        scheduler.start()
    return scheduler


def shutdown_scheduler() -> None:
    global scheduler
    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
