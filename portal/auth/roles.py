"""
Role checks and manager project scoping.
"""
from __future__ import annotations
from typing import Any, Iterable, List, Optional, Sequence, TypeVar

from portal.auth.session import Role, Session
from portal.harvest.client import HarvestClient
from portal.harvest.types import ProjectAssignment

T = TypeVar("T")


def has_role(session: Optional[Session], role: Role) -> bool:
    if session is None:
        return False
    return role in session.user.access_roles


def is_admin(session: Optional[Session]) -> bool:
    return has_role(session, Role.ADMINISTRATOR)


def is_manager(session: Optional[Session]) -> bool:
    return has_role(session, Role.MANAGER)


def is_admin_or_manager(session: Optional[Session]) -> bool:
    return is_admin(session) or is_manager(session)


def is_manager_only(session: Optional[Session]) -> bool:
    """Managers whose visibility is limited to the projects they manage."""
    return is_manager(session) and not is_admin(session)


def has_permission(session: Optional[Session], resource: str, action: str) -> bool:
    if session is None:
        return False
    return action in getattr(session.user.permissions, resource, [])


def managed_project_ids(assignments: Iterable[dict | ProjectAssignment]) -> List[int]:
    """Project ids of the assignments flagged is_project_manager."""
    ids = []
    for raw in assignments:
        assignment = raw if isinstance(raw, ProjectAssignment) else ProjectAssignment.model_validate(raw)
        if assignment.is_project_manager is True:
            ids.append(assignment.project.id)
    return ids


async def get_managed_project_ids(client: HarvestClient) -> List[int]:
    assignments = await client.get_all_pages(
        client.get_current_user_project_assignments, "project_assignments"
    )
    return managed_project_ids(assignments)


async def can_manage_project(client: HarvestClient, project_id: int) -> bool:
    return project_id in await get_managed_project_ids(client)


def _project_id(item: Any) -> Optional[int]:
    project = item.get("project") if isinstance(item, dict) else getattr(item, "project", None)
    if project is None:
        return None
    return project.get("id") if isinstance(project, dict) else getattr(project, "id", None)


def filter_by_project_ids(items: Iterable[T], project_ids: Sequence[int]) -> List[T]:
    """Keep items whose project.id is in project_ids (dicts or models)."""
    allowed = set(project_ids)
    return [item for item in items if _project_id(item) in allowed]
