from fastapi import APIRouter, Depends

from portal import cache
from portal.auth.dependencies import get_access_token, get_harvest_client, harvest_call
from portal.config import settings
from portal.harvest.client import HarvestClient

router = APIRouter(prefix="/api/harvest/expense-categories", tags=["expenses"])


@router.get("")
async def list_expense_categories(
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    async with harvest_call("Failed to fetch expense categories"):
        return await cache.cached(
            access_token, "expense-categories", settings.CACHE_TTL_EXPENSE_CATEGORIES,
            lambda: client.get_expense_categories({"is_active": True}),
        )
