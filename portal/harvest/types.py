"""
Pydantic models for the Harvest API v2 objects the portal reads.
Only the fields the portal relies on are declared; everything else is kept.
"""
from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class HarvestModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class ApprovalStatus(str, Enum):
    UNSUBMITTED = "unsubmitted"
    SUBMITTED = "submitted"
    APPROVED = "approved"


class UserRef(HarvestModel):
    id: int
    name: str = ""


class ProjectRef(HarvestModel):
    id: int
    name: str = ""
    code: Optional[str] = None


class TaskRef(HarvestModel):
    id: int
    name: str = ""


class ClientRef(HarvestModel):
    id: int
    name: str = ""
    currency: Optional[str] = None


class ExpenseCategoryRef(HarvestModel):
    id: int
    name: str = ""
    unit_name: Optional[str] = None
    unit_price: Optional[float] = None


class Receipt(HarvestModel):
    url: str
    file_name: str
    file_size: Optional[int] = None
    content_type: Optional[str] = None


class TimeEntry(HarvestModel):
    """Time entry model."""
    id: int
    spent_date: date
    hours: float = 0.0
    notes: Optional[str] = None
    user: UserRef
    project: ProjectRef
    task: TaskRef
    client: Optional[ClientRef] = None
    billable: bool = False
    is_locked: bool = False
    is_billed: bool = False
    is_running: bool = False
    approval_status: Optional[ApprovalStatus] = None


class Expense(HarvestModel):
    """Expense model."""
    id: int
    spent_date: date
    total_cost: float = 0.0
    units: Optional[float] = None
    notes: Optional[str] = None
    user: UserRef
    project: ProjectRef
    expense_category: Optional[ExpenseCategoryRef] = None
    client: Optional[ClientRef] = None
    receipt: Optional[Receipt] = None
    billable: bool = False
    is_locked: bool = False
    is_billed: bool = False
    approval_status: Optional[ApprovalStatus] = None


class TaskAssignment(HarvestModel):
    id: int
    is_active: bool = True
    task: TaskRef


class ProjectAssignment(HarvestModel):
    """Entry of /users/me/project_assignments."""
    id: int
    is_project_manager: bool = False
    is_active: bool = True
    project: ProjectRef
    client: Optional[ClientRef] = None
    task_assignments: List[TaskAssignment] = []


class HarvestProfile(HarvestModel):
    """/users/me payload used to build a session."""
    id: int
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    avatar_url: Optional[str] = None
    is_contractor: bool = False
    weekly_capacity: Optional[int] = None
    default_hourly_rate: Optional[float] = None
    cost_rate: Optional[float] = None
    roles: List[str] = []
    access_roles: List[str] = []
