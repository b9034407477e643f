"""
Request body and query models for the /api/harvest routes.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, PositiveInt

from portal.harvest.oauth import hours_to_seconds

ISO_DATE = r"^\d{4}-\d{2}-\d{2}$"

BillBy = Literal["Project", "Tasks", "People", "None"]
BudgetBy = Literal["project", "project_cost", "task", "task_fees", "person", "none"]
ApprovalStatusFilter = Literal["unsubmitted", "submitted", "approved"]


class RequestModel(BaseModel):
    def to_create(self) -> dict:
        """Body for a create call: unset optionals dropped, defaults kept."""
        return self.model_dump(exclude_none=True)

    def to_update(self) -> dict:
        """Body for a PATCH call: only what the caller actually sent."""
        return self.model_dump(exclude_unset=True)


# Time entries

class TimeEntryCreate(RequestModel):
    project_id: PositiveInt
    task_id: PositiveInt
    spent_date: str = Field(pattern=ISO_DATE)
    hours: float = Field(gt=0, le=24, allow_inf_nan=False)
    notes: Optional[str] = Field(default=None, max_length=5000)
    user_id: Optional[PositiveInt] = None


class TimeEntryUpdate(RequestModel):
    project_id: Optional[PositiveInt] = None
    task_id: Optional[PositiveInt] = None
    spent_date: Optional[str] = Field(default=None, pattern=ISO_DATE)
    hours: Optional[float] = Field(default=None, gt=0, le=24, allow_inf_nan=False)
    notes: Optional[str] = Field(default=None, max_length=5000)


class TimeEntryQuery(RequestModel):
    page: Optional[PositiveInt] = None
    per_page: Optional[int] = Field(default=None, ge=1, le=2000)
    user_id: Optional[PositiveInt] = None
    project_id: Optional[PositiveInt] = None
    from_: Optional[str] = Field(default=None, alias="from", pattern=ISO_DATE)
    to: Optional[str] = Field(default=None, pattern=ISO_DATE)
    is_running: Optional[bool] = None
    approval_status: Optional[ApprovalStatusFilter] = None

    def to_params(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# Expenses

class ExpenseCreate(RequestModel):
    project_id: PositiveInt
    expense_category_id: PositiveInt
    spent_date: str = Field(pattern=ISO_DATE)
    total_cost: float = Field(gt=0, allow_inf_nan=False)
    units: Optional[PositiveInt] = None
    notes: Optional[str] = Field(default=None, max_length=5000)
    billable: Optional[bool] = None
    user_id: Optional[PositiveInt] = None


class ExpenseUpdate(RequestModel):
    project_id: Optional[PositiveInt] = None
    expense_category_id: Optional[PositiveInt] = None
    spent_date: Optional[str] = Field(default=None, pattern=ISO_DATE)
    total_cost: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    units: Optional[PositiveInt] = None
    notes: Optional[str] = Field(default=None, max_length=5000)
    billable: Optional[bool] = None


class ExpenseQuery(RequestModel):
    page: Optional[PositiveInt] = None
    per_page: Optional[int] = Field(default=None, ge=1, le=2000)
    user_id: Optional[PositiveInt] = None
    project_id: Optional[PositiveInt] = None
    from_: Optional[str] = Field(default=None, alias="from", pattern=ISO_DATE)
    to: Optional[str] = Field(default=None, pattern=ISO_DATE)
    is_billed: Optional[bool] = None
    approval_status: Optional[ApprovalStatusFilter] = None

    def to_params(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# Projects (admin / manager)

class ProjectCreate(RequestModel):
    client_id: PositiveInt
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=50)
    is_billable: bool = True
    bill_by: BillBy = "Project"
    budget_by: BudgetBy = "none"
    budget: Optional[float] = Field(default=None, gt=0)
    cost_budget: Optional[float] = Field(default=None, gt=0)
    starts_on: Optional[str] = Field(default=None, pattern=ISO_DATE)
    ends_on: Optional[str] = Field(default=None, pattern=ISO_DATE)
    is_active: bool = True


class ProjectUpdate(RequestModel):
    client_id: Optional[PositiveInt] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    is_billable: Optional[bool] = None
    bill_by: Optional[BillBy] = None
    budget_by: Optional[BudgetBy] = None
    budget: Optional[float] = Field(default=None, gt=0)
    cost_budget: Optional[float] = Field(default=None, gt=0)
    starts_on: Optional[str] = Field(default=None, pattern=ISO_DATE)
    ends_on: Optional[str] = Field(default=None, pattern=ISO_DATE)
    is_active: Optional[bool] = None


# Users (admin)

class UserFields(RequestModel):
    """weekly_capacity is in seconds, as Harvest stores it; weekly_capacity_hours is converted."""

    weekly_capacity_hours: Optional[float] = Field(default=None, ge=0, le=168)

    def _with_capacity(self, body: dict) -> dict:
        hours = body.pop("weekly_capacity_hours", None)
        if hours is not None:
            body["weekly_capacity"] = hours_to_seconds(hours)
        return body

    def to_create(self) -> dict:
        return self._with_capacity(super().to_create())

    def to_update(self) -> dict:
        return self._with_capacity(super().to_update())


class UserCreate(UserFields):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    telephone: Optional[str] = Field(default=None, max_length=50)
    timezone: Optional[str] = None
    has_access_to_all_future_projects: Optional[bool] = None
    is_contractor: Optional[bool] = None
    is_active: Optional[bool] = None
    weekly_capacity: Optional[int] = Field(default=None, ge=0)
    default_hourly_rate: Optional[float] = Field(default=None, gt=0)
    cost_rate: Optional[float] = Field(default=None, gt=0)
    roles: Optional[List[str]] = None
    access_roles: Optional[List[str]] = None


class UserUpdate(UserFields):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    telephone: Optional[str] = Field(default=None, max_length=50)
    timezone: Optional[str] = None
    has_access_to_all_future_projects: Optional[bool] = None
    is_contractor: Optional[bool] = None
    is_active: Optional[bool] = None
    weekly_capacity: Optional[int] = Field(default=None, ge=0)
    default_hourly_rate: Optional[float] = Field(default=None, gt=0)
    cost_rate: Optional[float] = Field(default=None, gt=0)
    roles: Optional[List[str]] = None
    access_roles: Optional[List[str]] = None


# Clients (admin)

class ClientCreate(RequestModel):
    name: str = Field(min_length=1, max_length=255)
    is_active: bool = True
    address: Optional[str] = Field(default=None, max_length=500)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)  # ISO 4217


class ClientUpdate(RequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    is_active: Optional[bool] = None
    address: Optional[str] = Field(default=None, max_length=500)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


# Project user assignments (admin / manager)

class UserAssignmentCreate(RequestModel):
    user_id: PositiveInt
    is_project_manager: bool = False
    use_default_rates: bool = True
    hourly_rate: Optional[float] = Field(default=None, gt=0)
    budget: Optional[float] = Field(default=None, gt=0)


class UserAssignmentUpdate(RequestModel):
    is_project_manager: Optional[bool] = None
    use_default_rates: Optional[bool] = None
    hourly_rate: Optional[float] = Field(default=None, gt=0)
    budget: Optional[float] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class ListQuery(RequestModel):
    is_active: Optional[bool] = None
    updated_since: Optional[str] = None
    page: Optional[PositiveInt] = None
    per_page: Optional[int] = Field(default=None, ge=1, le=2000)

    def to_params(self) -> dict:
        return self.model_dump(exclude_none=True)


# Approval views

class ApprovalQuery(RequestModel):
    approval_status: ApprovalStatusFilter = "submitted"
    from_: Optional[str] = Field(default=None, alias="from", pattern=ISO_DATE)
    to: Optional[str] = Field(default=None, pattern=ISO_DATE)
    user_id: Optional[PositiveInt] = None
    project_id: Optional[PositiveInt] = None

    def to_params(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# Reports

class TimeReportQuery(RequestModel):
    from_: str = Field(alias="from", pattern=ISO_DATE)
    to: str = Field(pattern=ISO_DATE)
    user_id: Optional[PositiveInt] = None
    client_id: Optional[PositiveInt] = None
    project_id: Optional[PositiveInt] = None

    def to_params(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
