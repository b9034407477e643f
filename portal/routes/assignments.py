"""
Assignment lookups that work for every signed-in user.

Harvest's /projects and /projects/{id}/task_assignments need manager rights,
so members read their projects and tasks through /users/me instead.
"""
from fastapi import APIRouter, Depends, Request

from portal import cache
from portal.auth.dependencies import get_access_token, get_harvest_client, harvest_call
from portal.auth.roles import get_managed_project_ids
from portal.config import settings
from portal.errors import PortalError
from portal.harvest.client import HarvestClient
from portal.validation import parse_id

router = APIRouter(prefix="/api/harvest", tags=["assignments"])

PAGINATION_KEYS = ("per_page", "total_pages", "total_entries", "next_page", "previous_page", "page", "links")


@router.get("/user-project-assignments")
async def user_project_assignments(request: Request, client: HarvestClient = Depends(get_harvest_client)):
    """
    The caller's projects in the /projects response shape.
    With raw=true the Harvest project_assignments payload is returned as is.
    """
    raw = request.query_params.get("raw", "").lower() == "true"
    async with harvest_call("Failed to fetch project assignments"):
        data = await client.get_current_user_project_assignments() or {}
    if raw:
        return data
    return {
        "projects": [pa.get("project") for pa in data.get("project_assignments", [])],
        **{key: data.get(key) for key in PAGINATION_KEYS},
    }


@router.get("/user-task-assignments")
async def user_task_assignments(
    request: Request,
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    project_id = request.query_params.get("projectId")
    if not project_id:
        raise PortalError(400, "projectId query parameter is required")
    pid = parse_id(project_id, "project ID")
    async with harvest_call("Failed to fetch task assignments", project_id=pid):
        return await cache.cached(
            access_token, "tasks", settings.CACHE_TTL_TASKS,
            lambda: client.get_current_user_task_assignments(pid),
            "me", pid,
        )


@router.get("/managed-projects")
async def managed_projects(
    access_token: str = Depends(get_access_token),
    client: HarvestClient = Depends(get_harvest_client),
):
    """Ids of the projects the caller is a project manager of."""
    async with harvest_call("Failed to fetch managed projects"):
        ids = await cache.cached(
            access_token, "managed-projects", settings.CACHE_TTL_MANAGED_PROJECTS,
            lambda: get_managed_project_ids(client),
        )
    return {"project_ids": ids}
