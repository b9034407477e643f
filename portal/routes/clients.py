from fastapi import APIRouter, Depends, Request

from portal.auth.dependencies import get_harvest_client, harvest_call, require_admin, require_admin_or_manager
from portal.harvest.client import HarvestClient
from portal.routes.common import SUCCESS, query_dict, read_json
from portal.schemas import ClientCreate, ClientUpdate, ListQuery
from portal.validation import parse_id, validate_request

router = APIRouter(prefix="/api/harvest/clients", tags=["clients"])


@router.get("", dependencies=[Depends(require_admin)])
async def list_clients(request: Request, client: HarvestClient = Depends(get_harvest_client)):
    query = validate_request(ListQuery, query_dict(request))
    async with harvest_call("Failed to fetch clients"):
        return await client.get_clients(query.to_params())


@router.post("", status_code=201, dependencies=[Depends(require_admin)])
async def create_client(request: Request, client: HarvestClient = Depends(get_harvest_client)):
    body = validate_request(ClientCreate, await read_json(request))
    async with harvest_call("Failed to create client"):
        return await client.create_client(body.to_create())


@router.get("/{client_id}", dependencies=[Depends(require_admin_or_manager)])
async def get_client(client_id: str, client: HarvestClient = Depends(get_harvest_client)):
    cid = parse_id(client_id, "client ID")
    async with harvest_call("Failed to fetch client", client_id=cid):
        return await client.get_client(cid)


@router.patch("/{client_id}", dependencies=[Depends(require_admin_or_manager)])
async def update_client(client_id: str, request: Request, client: HarvestClient = Depends(get_harvest_client)):
    cid = parse_id(client_id, "client ID")
    body = validate_request(ClientUpdate, await read_json(request))
    async with harvest_call("Failed to update client", client_id=cid):
        return await client.update_client(cid, body.to_update())


@router.delete("/{client_id}", dependencies=[Depends(require_admin_or_manager)])
async def delete_client(client_id: str, client: HarvestClient = Depends(get_harvest_client)):
    cid = parse_id(client_id, "client ID")
    async with harvest_call("Failed to delete client", client_id=cid):
        await client.delete_client(cid)
    return SUCCESS
