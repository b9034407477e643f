"""
Harvest payload builders for tests.
"""
from portal.harvest.types import Expense, TimeEntry

_ids = iter(range(1, 1_000_000))


def time_entry_payload(spent_date, hours, user_id=7, project_id=1, task_id=10, **extra):
    payload = {
        "id": next(_ids),
        "spent_date": spent_date,
        "hours": hours,
        "user": {"id": user_id, "name": f"User {user_id}"},
        "project": {"id": project_id, "name": f"Project {project_id}", "code": f"P{project_id}"},
        "task": {"id": task_id, "name": f"Task {task_id}"},
    }
    payload.update(extra)
    return payload


def expense_payload(spent_date, total_cost, user_id=7, project_id=1, **extra):
    payload = {
        "id": next(_ids),
        "spent_date": spent_date,
        "total_cost": total_cost,
        "user": {"id": user_id, "name": f"User {user_id}"},
        "project": {"id": project_id, "name": f"Project {project_id}"},
        "expense_category": {"id": 5, "name": "Travel"},
    }
    payload.update(extra)
    return payload


def time_entry(spent_date, hours, **kwargs) -> TimeEntry:
    return TimeEntry.model_validate(time_entry_payload(spent_date, hours, **kwargs))


def expense(spent_date, total_cost, **kwargs) -> Expense:
    return Expense.model_validate(expense_payload(spent_date, total_cost, **kwargs))
