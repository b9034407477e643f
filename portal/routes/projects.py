from fastapi import APIRouter, Depends, Request, Response

from portal import cache
from portal.auth.dependencies import (
    get_access_token,
    get_harvest_client,
    harvest_call,
    require_admin,
    require_admin_or_manager,
)
from portal.auth.roles import get_managed_project_ids, is_manager_only
from portal.auth.session import Session
from portal.config import settings
from portal.harvest.client import HarvestClient
from portal.routes.common import SUCCESS, query_dict, read_json
from portal.schemas import ListQuery, ProjectCreate, ProjectUpdate, UserAssignmentCreate, UserAssignmentUpdate
from portal.validation import parse_id, validate_request

router = APIRouter(prefix="/api/harvest/projects", tags=["projects"])


async def managed_ids(client: HarvestClient, access_token: str) -> list[int]:
    return await cache.cached(
        access_token, "managed-projects", settings.CACHE_TTL_MANAGED_PROJECTS,
        lambda: get_managed_project_ids(client),
    )


@router.get("")
async def list_projects(
    request: Request,
    session: Session = Depends(require_admin_or_manager),
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    """
    Projects for the admin screens; active only unless is_active=false.
    Managers who are not admins only get the projects they manage.
    """
    query = validate_request(ListQuery, query_dict(request))
    params = query.to_params()
    params.setdefault("is_active", True)

    async with harvest_call("Failed to fetch projects"):
        projects = await cache.cached(
            access_token, "projects", settings.CACHE_TTL_PROJECTS,
            lambda: client.get_projects(params),
            sorted(params.items()),
        )
        if is_manager_only(session):
            allowed = set(await managed_ids(client, access_token))
            projects = {
                **projects,
                "projects": [p for p in projects.get("projects", []) if p.get("id") in allowed],
            }
    return projects


@router.post("", status_code=201, dependencies=[Depends(require_admin)])
async def create_project(
    request: Request,
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    body = validate_request(ProjectCreate, await read_json(request))
    async with harvest_call("Failed to create project"):
        project = await client.create_project(body.to_create())
    await cache.invalidate(access_token, "projects")
    return project


@router.get("/{project_id}", dependencies=[Depends(require_admin_or_manager)])
async def get_project(project_id: str, client: HarvestClient = Depends(get_harvest_client)):
    pid = parse_id(project_id, "project ID")
    async with harvest_call("Failed to fetch project", project_id=pid):
        return await client.get_project(pid)


@router.patch("/{project_id}", dependencies=[Depends(require_admin_or_manager)])
async def update_project(
    project_id: str,
    request: Request,
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    pid = parse_id(project_id, "project ID")
    body = validate_request(ProjectUpdate, await read_json(request))
    async with harvest_call("Failed to update project", project_id=pid):
        project = await client.update_project(pid, body.to_update())
    await cache.invalidate(access_token, "projects")
    return project


@router.delete("/{project_id}", dependencies=[Depends(require_admin_or_manager)])
async def delete_project(
    project_id: str,
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    pid = parse_id(project_id, "project ID")
    async with harvest_call("Failed to delete project", project_id=pid):
        await client.delete_project(pid)
    await cache.invalidate(access_token, "projects")
    return SUCCESS


@router.get("/{project_id}/tasks")
async def list_project_tasks(
    project_id: str,
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    """Active task assignments of a project, for the time entry form."""
    pid = parse_id(project_id, "project ID")
    async with harvest_call("Failed to fetch task assignments", project_id=pid):
        return await cache.cached(
            access_token, "tasks", settings.CACHE_TTL_TASKS,
            lambda: client.get_task_assignments(pid, {"is_active": True}),
            pid,
        )


# Project user assignments

@router.get("/{project_id}/user-assignments", dependencies=[Depends(require_admin_or_manager)])
async def list_user_assignments(
    project_id: str, request: Request, client: HarvestClient = Depends(get_harvest_client)
):
    pid = parse_id(project_id, "project ID")
    query = validate_request(ListQuery, query_dict(request))
    async with harvest_call("Failed to fetch user assignments", project_id=pid):
        return await client.get_project_user_assignments(pid, query.to_params())


@router.post("/{project_id}/user-assignments", status_code=201, dependencies=[Depends(require_admin_or_manager)])
async def create_user_assignment(
    project_id: str,
    request: Request,
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    pid = parse_id(project_id, "project ID")
    body = validate_request(UserAssignmentCreate, await read_json(request))
    async with harvest_call("Failed to create user assignment", project_id=pid):
        assignment = await client.create_user_assignment(pid, body.to_create())
    await cache.invalidate(access_token, "managed-projects")
    return assignment


def _assignment_ids(project_id: str, assignment_id: str) -> tuple[int, int]:
    label = "project ID or assignment ID"
    return parse_id(project_id, label), parse_id(assignment_id, label)


@router.patch("/{project_id}/user-assignments/{assignment_id}", dependencies=[Depends(require_admin_or_manager)])
async def update_user_assignment(
    project_id: str,
    assignment_id: str,
    request: Request,
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    pid, aid = _assignment_ids(project_id, assignment_id)
    body = validate_request(UserAssignmentUpdate, await read_json(request))
    async with harvest_call("Failed to update user assignment", project_id=pid, assignment_id=aid):
        assignment = await client.update_user_assignment(pid, aid, body.to_update())
    await cache.invalidate(access_token, "managed-projects")
    return assignment


@router.delete(
    "/{project_id}/user-assignments/{assignment_id}",
    status_code=204,
    dependencies=[Depends(require_admin_or_manager)],
)
async def delete_user_assignment(
    project_id: str,
    assignment_id: str,
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    pid, aid = _assignment_ids(project_id, assignment_id)
    async with harvest_call("Failed to delete user assignment", project_id=pid, assignment_id=aid):
        await client.delete_user_assignment(pid, aid)
    await cache.invalidate(access_token, "managed-projects")
    return Response(status_code=204)
