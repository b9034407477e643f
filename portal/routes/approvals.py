"""
Approval views: pending time and expenses grouped by user and week, the
per-week timesheet grid, and the caller's dashboard summary.
"""
from datetime import date, timedelta
from typing import List

from fastapi import APIRouter, Depends, Request

from portal import cache
from portal.auth.dependencies import (
    get_access_token,
    get_harvest_client,
    get_session,
    harvest_call,
    require_admin_or_manager,
)
from portal.auth.roles import filter_by_project_ids, get_managed_project_ids, is_manager_only
from portal.auth.session import Session
from portal.config import settings
from portal.errors import PortalError
from portal.harvest.client import HarvestClient
from portal.harvest.types import Expense, TimeEntry
from portal.routes.common import query_dict
from portal.schemas import ApprovalQuery
from portal.timesheets import (
    create_timesheet_grid,
    format_week_range,
    group_expenses_by_user_and_week,
    group_time_entries_by_user_and_week,
    week_bounds,
)
from portal.validation import parse_id, validate_request

router = APIRouter(tags=["approvals"])


def parse_week_start(value: str) -> date:
    """Path week start -> the Monday of that week."""
    try:
        day = date.fromisoformat(value)
    except ValueError:
        raise PortalError(400, "Invalid week start") from None
    return week_bounds(day)[0]


async def scope_to_managed(items: List, session: Session, client: HarvestClient, access_token: str) -> List:
    if not is_manager_only(session):
        return items
    managed = await cache.cached(
        access_token, "managed-projects", settings.CACHE_TTL_MANAGED_PROJECTS,
        lambda: get_managed_project_ids(client),
    )
    return filter_by_project_ids(items, managed)


async def fetch_time_entries(client: HarvestClient, params: dict) -> List[TimeEntry]:
    raw = await client.get_all_pages(client.get_time_entries, "time_entries", params)
    return [TimeEntry.model_validate(e) for e in raw]


async def fetch_expenses(client: HarvestClient, params: dict) -> List[Expense]:
    raw = await client.get_all_pages(client.get_expenses, "expenses", params)
    return [Expense.model_validate(e) for e in raw]


def week_params(request: Request, user_id: int, start: date) -> dict:
    query = validate_request(ApprovalQuery, query_dict(request))
    return {
        **query.to_params(),
        "user_id": user_id,
        "from": start.isoformat(),
        "to": (start + timedelta(days=6)).isoformat(),
    }


@router.get("/api/approvals/time")
async def pending_timesheets(
    request: Request,
    session: Session = Depends(require_admin_or_manager),
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    """Time entries with the given approval status, one sheet per user and week."""
    query = validate_request(ApprovalQuery, query_dict(request))
    async with harvest_call("Failed to fetch time entries for approval"):
        entries = await fetch_time_entries(client, query.to_params())
        entries = await scope_to_managed(entries, session, client, access_token)
    return [sheet.model_dump(by_alias=True, mode="json") for sheet in group_time_entries_by_user_and_week(entries)]


@router.get("/api/approvals/time/{user_id}/{week_start}")
async def timesheet_detail(
    user_id: str,
    week_start: str,
    request: Request,
    session: Session = Depends(require_admin_or_manager),
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    uid = parse_id(user_id, "user ID")
    start = parse_week_start(week_start)
    params = week_params(request, uid, start)

    async with harvest_call("Failed to fetch timesheet", user_id=uid, week_start=start.isoformat()):
        entries = await fetch_time_entries(client, params)
        entries = await scope_to_managed(entries, session, client, access_token)
    if not entries:
        raise PortalError(404, "No timesheet found")

    sheet = group_time_entries_by_user_and_week(entries)[0]
    return {
        "timesheet": sheet.model_dump(by_alias=True, mode="json"),
        "grid": create_timesheet_grid(entries, start).model_dump(by_alias=True, mode="json"),
        "weekRange": format_week_range(start),
    }


@router.get("/api/approvals/expenses")
async def pending_expense_sheets(
    request: Request,
    session: Session = Depends(require_admin_or_manager),
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    query = validate_request(ApprovalQuery, query_dict(request))
    async with harvest_call("Failed to fetch expenses for approval"):
        expenses = await fetch_expenses(client, query.to_params())
        expenses = await scope_to_managed(expenses, session, client, access_token)
    return [sheet.model_dump(by_alias=True, mode="json") for sheet in group_expenses_by_user_and_week(expenses)]


@router.get("/api/approvals/expenses/{user_id}/{week_start}")
async def expense_sheet_detail(
    user_id: str,
    week_start: str,
    request: Request,
    session: Session = Depends(require_admin_or_manager),
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    uid = parse_id(user_id, "user ID")
    start = parse_week_start(week_start)
    params = week_params(request, uid, start)

    async with harvest_call("Failed to fetch expense sheet", user_id=uid, week_start=start.isoformat()):
        expenses = await fetch_expenses(client, params)
        expenses = await scope_to_managed(expenses, session, client, access_token)
    if not expenses:
        raise PortalError(404, "No expense sheet found")

    sheet = group_expenses_by_user_and_week(expenses)[0]
    return {
        "expense_sheet": sheet.model_dump(by_alias=True, mode="json"),
        "weekRange": format_week_range(start),
    }


@router.get("/api/dashboard")
async def dashboard(
    session: Session = Depends(get_session),
    client: HarvestClient = Depends(get_harvest_client),
):
    """The caller's roles and permissions plus this week's hours and expenses."""
    start, end = week_bounds(date.today())
    params = {
        "user_id": session.user.harvest_user_id,
        "from": start.isoformat(),
        "to": end.isoformat(),
    }
    async with harvest_call("Failed to load dashboard"):
        entries = await fetch_time_entries(client, params)
        expenses = await fetch_expenses(client, params)

    return {
        "user": session.user.model_dump(mode="json"),
        "roles": [role.value for role in session.user.access_roles],
        "permissions": session.user.permissions.model_dump(),
        "week": {
            "weekStart": start.isoformat(),
            "weekEnd": end.isoformat(),
            "weekRange": format_week_range(start),
            "totalHours": sum(e.hours for e in entries),
            "entryCount": len(entries),
            "totalExpenses": sum(e.total_cost for e in expenses),
            "expenseCount": len(expenses),
        },
    }
