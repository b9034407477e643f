from fastapi import APIRouter, Depends, Request

from portal import cache
from portal.auth.dependencies import get_access_token, get_harvest_client, harvest_call, require_admin
from portal.config import settings
from portal.harvest.client import HarvestClient
from portal.routes.common import SUCCESS, query_dict, read_json
from portal.schemas import ListQuery, UserCreate, UserUpdate
from portal.validation import parse_id, validate_request

router = APIRouter(prefix="/api/harvest/users", tags=["users"])


@router.get("", dependencies=[Depends(require_admin)])
async def list_users(request: Request, client: HarvestClient = Depends(get_harvest_client)):
    query = validate_request(ListQuery, query_dict(request))
    async with harvest_call("Failed to fetch users"):
        return await client.get_users(query.to_params())


@router.post("", status_code=201, dependencies=[Depends(require_admin)])
async def create_user(request: Request, client: HarvestClient = Depends(get_harvest_client)):
    body = validate_request(UserCreate, await read_json(request))
    async with harvest_call("Failed to create user"):
        return await client.create_user(body.to_create())


# Registered before /{user_id} so "me" is not parsed as an id.
@router.get("/me")
async def get_me(
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    """The signed-in user's Harvest profile."""
    async with harvest_call("Failed to fetch current user"):
        return await cache.cached(
            access_token, "current-user", settings.CACHE_TTL_CURRENT_USER, client.get_current_user
        )


@router.get("/{user_id}", dependencies=[Depends(require_admin)])
async def get_user(user_id: str, client: HarvestClient = Depends(get_harvest_client)):
    uid = parse_id(user_id, "user ID")
    async with harvest_call("Failed to fetch user", user_id=uid):
        return await client.get_user(uid)


@router.patch("/{user_id}", dependencies=[Depends(require_admin)])
async def update_user(
    user_id: str,
    request: Request,
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    uid = parse_id(user_id, "user ID")
    body = validate_request(UserUpdate, await read_json(request))
    async with harvest_call("Failed to update user", user_id=uid):
        user = await client.update_user(uid, body.to_update())
    await cache.invalidate(access_token, "current-user")
    return user


@router.delete("/{user_id}", dependencies=[Depends(require_admin)])
async def delete_user(user_id: str, client: HarvestClient = Depends(get_harvest_client)):
    uid = parse_id(user_id, "user ID")
    async with harvest_call("Failed to delete user", user_id=uid):
        await client.delete_user(uid)
    return SUCCESS


@router.get("/{user_id}/project-assignments", dependencies=[Depends(require_admin)])
async def list_project_assignments_of_user(
    user_id: str, request: Request, client: HarvestClient = Depends(get_harvest_client)
):
    """Projects a given user is assigned to, with their manager flag."""
    uid = parse_id(user_id, "user ID")
    query = validate_request(ListQuery, query_dict(request))
    async with harvest_call("Failed to fetch project assignments", user_id=uid):
        return await client.get_user_project_assignments(uid, query.to_params())
