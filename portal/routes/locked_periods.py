import asyncio
from datetime import date, timedelta

from fastapi import APIRouter, Depends

from portal.auth.dependencies import get_harvest_client, harvest_call
from portal.harvest.client import HarvestClient
from portal.harvest.types import Expense, TimeEntry
from portal.timesheets import locked_weeks_from

router = APIRouter(prefix="/api/harvest/locked-periods", tags=["time-entries"])

LOOKBACK_DAYS = 365


@router.get("")
async def list_locked_periods(client: HarvestClient = Depends(get_harvest_client)):
    """
    Weeks of the past year that hold approved (locked) time or expenses.

    Only the first page (100 items) of each collection is inspected.
    """
    today = date.today()
    params = {
        "from": (today - timedelta(days=LOOKBACK_DAYS)).isoformat(),
        "to": today.isoformat(),
        "per_page": 100,
    }
    async with harvest_call("Failed to fetch locked periods"):
        time_data, expense_data = await asyncio.gather(
            client.get_time_entries(params),
            client.get_expenses(params),
        )
        entries = [TimeEntry.model_validate(e) for e in (time_data or {}).get("time_entries", [])]
        expenses = [Expense.model_validate(e) for e in (expense_data or {}).get("expenses", [])]

    weeks = locked_weeks_from(entries, expenses)
    return {"locked_weeks": [w.model_dump(by_alias=True) for w in weeks]}
