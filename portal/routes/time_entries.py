from fastapi import APIRouter, Depends, Request

from portal.harvest.client import HarvestClient
from portal.auth.dependencies import get_harvest_client, harvest_call
from portal.routes.common import SUCCESS, query_dict, read_json
from portal.schemas import TimeEntryCreate, TimeEntryQuery, TimeEntryUpdate
from portal.validation import parse_id, validate_request

router = APIRouter(prefix="/api/harvest/time-entries", tags=["time-entries"])


@router.get("")
async def list_time_entries(request: Request, client: HarvestClient = Depends(get_harvest_client)):
    """List time entries visible to the caller's Harvest token."""
    query = validate_request(TimeEntryQuery, query_dict(request))
    async with harvest_call("Failed to fetch time entries"):
        return await client.get_time_entries(query.to_params())


@router.post("", status_code=201)
async def create_time_entry(request: Request, client: HarvestClient = Depends(get_harvest_client)):
    body = validate_request(TimeEntryCreate, await read_json(request))
    async with harvest_call("Failed to create time entry"):
        return await client.create_time_entry(body.to_create())


@router.get("/{entry_id}")
async def get_time_entry(entry_id: str, client: HarvestClient = Depends(get_harvest_client)):
    time_entry_id = parse_id(entry_id, "time entry ID")
    async with harvest_call("Failed to fetch time entry", time_entry_id=time_entry_id):
        return await client.get_time_entry(time_entry_id)


@router.patch("/{entry_id}")
async def update_time_entry(
    entry_id: str, request: Request, client: HarvestClient = Depends(get_harvest_client)
):
    time_entry_id = parse_id(entry_id, "time entry ID")
    body = validate_request(TimeEntryUpdate, await read_json(request))
    async with harvest_call("Failed to update time entry", time_entry_id=time_entry_id):
        return await client.update_time_entry(time_entry_id, body.to_update())


@router.delete("/{entry_id}")
async def delete_time_entry(entry_id: str, client: HarvestClient = Depends(get_harvest_client)):
    time_entry_id = parse_id(entry_id, "time entry ID")
    async with harvest_call("Failed to delete time entry", time_entry_id=time_entry_id):
        await client.delete_time_entry(time_entry_id)
    return SUCCESS


@router.patch("/{entry_id}/restart")
async def restart_time_entry(entry_id: str, client: HarvestClient = Depends(get_harvest_client)):
    """Restart a stopped timer."""
    time_entry_id = parse_id(entry_id, "time entry ID")
    async with harvest_call("Failed to restart time entry", time_entry_id=time_entry_id):
        return await client.restart_time_entry(time_entry_id)


@router.patch("/{entry_id}/stop")
async def stop_time_entry(entry_id: str, client: HarvestClient = Depends(get_harvest_client)):
    """Stop a running timer."""
    time_entry_id = parse_id(entry_id, "time entry ID")
    async with harvest_call("Failed to stop time entry", time_entry_id=time_entry_id):
        return await client.stop_time_entry(time_entry_id)
