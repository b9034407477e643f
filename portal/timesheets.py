"""
Weekly grouping of time entries and expenses, and the approval grid.

Weeks run Monday to Sunday and are keyed by ISO 8601 week-year and week
number, so 2024-12-30 belongs to 2025-W01. Groups and grid rows come out in
order of first appearance in the input; nothing is sorted.
"""
from __future__ import annotations
from datetime import date, timedelta
from typing import Dict, Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from portal.harvest.types import Expense, TimeEntry

DAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WeeklyTimesheet(CamelModel):
    user_id: int
    user_name: str
    week_start: str
    week_end: str
    week_number: int
    year: int
    entries: List[TimeEntry]
    total_hours: float
    entry_count: int


class WeeklyExpenseSheet(CamelModel):
    user_id: int
    user_name: str
    week_start: str
    week_end: str
    week_number: int
    year: int
    expenses: List[Expense]
    total_cost: float
    expense_count: int


class TaskDayHours(CamelModel):
    mon: float = 0.0
    tue: float = 0.0
    wed: float = 0.0
    thu: float = 0.0
    fri: float = 0.0
    sat: float = 0.0
    sun: float = 0.0


class DailyTotals(TaskDayHours):
    total: float = 0.0


class GridDay(CamelModel):
    date: str
    day_of_week: str
    day_name: str


class TimesheetGridTask(CamelModel):
    id: int
    name: str
    hours_per_day: TaskDayHours
    total_hours: float
    entries: List[TimeEntry]


class TimesheetGridProject(CamelModel):
    id: int
    name: str
    code: str | None = None
    tasks: List[TimesheetGridTask]
    total_hours: float


class TimesheetGrid(CamelModel):
    projects: List[TimesheetGridProject]
    daily_totals: DailyTotals
    week_start: str
    week_end: str
    days: List[GridDay]


class LockedWeek(CamelModel):
    week_start: str
    week_end: str


def week_bounds(day: date) -> Tuple[date, date]:
    """Monday and Sunday of the week containing day."""
    start = day - timedelta(days=day.weekday())
    return start, start + timedelta(days=6)


def iso_week_key(day: date) -> Tuple[int, int]:
    """(ISO week-year, ISO week number)."""
    iso = day.isocalendar()
    return iso[0], iso[1]


def _group_by_user_and_week(items: Iterable) -> List[list]:
    groups: Dict[Tuple[int, int, int], list] = {}
    for item in items:
        year, week = iso_week_key(item.spent_date)
        groups.setdefault((item.user.id, year, week), []).append(item)
    return list(groups.values())


def _week_fields(first) -> dict:
    start, end = week_bounds(first.spent_date)
    year, week = iso_week_key(first.spent_date)
    return {
        "user_id": first.user.id,
        "user_name": first.user.name,
        "week_start": start.isoformat(),
        "week_end": end.isoformat(),
        "week_number": week,
        "year": year,
    }


def group_time_entries_by_user_and_week(entries: Iterable[TimeEntry]) -> List[WeeklyTimesheet]:
    """One WeeklyTimesheet per (user, ISO week) present in entries."""
    return [
        WeeklyTimesheet(
            **_week_fields(group[0]),
            entries=group,
            total_hours=sum(e.hours for e in group),
            entry_count=len(group),
        )
        for group in _group_by_user_and_week(entries)
    ]


def group_expenses_by_user_and_week(expenses: Iterable[Expense]) -> List[WeeklyExpenseSheet]:
    """One WeeklyExpenseSheet per (user, ISO week) present in expenses."""
    return [
        WeeklyExpenseSheet(
            **_week_fields(group[0]),
            expenses=group,
            total_cost=sum(e.total_cost for e in group),
            expense_count=len(group),
        )
        for group in _group_by_user_and_week(expenses)
    ]


def _day_name(day: date) -> str:
    return f"{day.strftime('%a')} {day.day}"


def create_timesheet_grid(entries: Iterable[TimeEntry], week_start: str | date) -> TimesheetGrid:
    """
    Build the day x project x task grid for one user's week.

    Entries dated outside [week_start, week_start + 6] still count toward
    their task, project and grand totals but not toward any day column.
    """
    start = week_start if isinstance(week_start, date) else date.fromisoformat(week_start)
    end = start + timedelta(days=6)
    day_keys = {start + timedelta(days=i): DAY_KEYS[(start + timedelta(days=i)).weekday()] for i in range(7)}
    days = [
        GridDay(date=d.isoformat(), day_of_week=key, day_name=_day_name(d))
        for d, key in day_keys.items()
    ]

    project_map: Dict[int, Dict[int, List[TimeEntry]]] = {}
    for entry in entries:
        project_map.setdefault(entry.project.id, {}).setdefault(entry.task.id, []).append(entry)

    daily = {key: 0.0 for key in DAY_KEYS}
    projects: List[TimesheetGridProject] = []

    for project_id, task_map in project_map.items():
        first = next(iter(task_map.values()))[0]
        tasks: List[TimesheetGridTask] = []
        project_total = 0.0

        for task_id, task_entries in task_map.items():
            per_day = {key: 0.0 for key in DAY_KEYS}
            for entry in task_entries:
                key = day_keys.get(entry.spent_date)
                if key is None:
                    continue
                per_day[key] += entry.hours
                daily[key] += entry.hours

            task_total = sum(e.hours for e in task_entries)
            project_total += task_total
            tasks.append(TimesheetGridTask(
                id=task_id,
                name=task_entries[0].task.name,
                hours_per_day=TaskDayHours(**per_day),
                total_hours=task_total,
                entries=task_entries,
            ))

        projects.append(TimesheetGridProject(
            id=project_id,
            name=first.project.name,
            code=first.project.code,
            tasks=tasks,
            total_hours=project_total,
        ))

    return TimesheetGrid(
        projects=projects,
        daily_totals=DailyTotals(**daily, total=sum(p.total_hours for p in projects)),
        week_start=start.isoformat(),
        week_end=end.isoformat(),
        days=days,
    )


def format_week_range(week_start: str | date) -> str:
    """'Jan 8 - Jan 14, 2024'."""
    start = week_start if isinstance(week_start, date) else date.fromisoformat(week_start)
    end = start + timedelta(days=6)
    return f"{start.strftime('%b')} {start.day} - {end.strftime('%b')} {end.day}, {end.year}"


def locked_weeks_from(*collections: Iterable) -> List[LockedWeek]:
    """Distinct Monday-Sunday weeks holding at least one locked item, oldest first."""
    weeks: Dict[date, date] = {}
    for items in collections:
        for item in items:
            if item.is_locked:
                start, end = week_bounds(item.spent_date)
                weeks.setdefault(start, end)
    return [
        LockedWeek(week_start=start.isoformat(), week_end=end.isoformat())
        for start, end in sorted(weeks.items())
    ]


def is_date_in_locked_week(day: date, locked_weeks: Iterable[LockedWeek]) -> bool:
    value = day.isoformat()
    return any(week.week_start <= value <= week.week_end for week in locked_weeks)
