"""
Tests for weekly grouping and the timesheet grid.
"""
from datetime import date

from factories import expense, time_entry
from portal.timesheets import (
    LockedWeek,
    create_timesheet_grid,
    format_week_range,
    group_expenses_by_user_and_week,
    group_time_entries_by_user_and_week,
    is_date_in_locked_week,
    locked_weeks_from,
    week_bounds,
)


def test_two_entries_same_week_form_one_group():
    entries = [time_entry("2024-01-08", 3), time_entry("2024-01-10", 5)]

    groups = group_time_entries_by_user_and_week(entries)

    assert len(groups) == 1
    group = groups[0]
    assert group.user_id == 7
    assert group.week_start == "2024-01-08"
    assert group.week_end == "2024-01-14"
    assert group.total_hours == 8
    assert group.entry_count == 2
    assert group.week_number == 2
    assert group.year == 2024


def test_grid_for_grouped_week():
    entries = [time_entry("2024-01-08", 3), time_entry("2024-01-10", 5)]
    group = group_time_entries_by_user_and_week(entries)[0]

    grid = create_timesheet_grid(group.entries, "2024-01-08")

    assert len(grid.projects) == 1
    project = grid.projects[0]
    assert project.id == 1
    assert len(project.tasks) == 1
    task = project.tasks[0]
    assert task.hours_per_day.mon == 3
    assert task.hours_per_day.wed == 5
    assert task.hours_per_day.tue == 0
    assert task.total_hours == 8
    assert grid.daily_totals.total == 8
    assert grid.daily_totals.mon == 3
    assert grid.week_end == "2024-01-14"


def test_monday_and_sunday_share_a_week_next_monday_does_not():
    entries = [
        time_entry("2024-01-08", 1),  # Monday
        time_entry("2024-01-14", 2),  # Sunday
        time_entry("2024-01-15", 4),  # next Monday
    ]

    groups = group_time_entries_by_user_and_week(entries)

    assert [g.week_start for g in groups] == ["2024-01-08", "2024-01-15"]
    assert [g.entry_count for g in groups] == [2, 1]


def test_groups_split_by_user_in_first_occurrence_order():
    entries = [
        time_entry("2024-01-09", 1, user_id=9),
        time_entry("2024-01-09", 2, user_id=7),
        time_entry("2024-01-10", 3, user_id=9),
    ]

    groups = group_time_entries_by_user_and_week(entries)

    assert [g.user_id for g in groups] == [9, 7]
    assert [e.hours for e in groups[0].entries] == [1, 3]


def test_iso_year_boundary():
    # 2024-12-30 is a Monday in ISO week 1 of 2025
    groups = group_time_entries_by_user_and_week([
        time_entry("2024-12-30", 2),
        time_entry("2025-01-03", 2),
    ])

    assert len(groups) == 1
    assert groups[0].year == 2025
    assert groups[0].week_number == 1
    assert groups[0].week_start == "2024-12-30"
    assert groups[0].week_end == "2025-01-05"


def test_grouping_keeps_every_entry_once():
    entries = [
        time_entry("2024-03-04", 1.5, user_id=1),
        time_entry("2024-03-12", 2.25, user_id=2),
        time_entry("2024-03-05", 0.75, user_id=1),
        time_entry("2024-03-18", 8, user_id=2),
    ]

    groups = group_time_entries_by_user_and_week(entries)
    grouped_ids = sorted(e.id for g in groups for e in g.entries)

    assert grouped_ids == sorted(e.id for e in entries)
    for group in groups:
        assert group.total_hours == sum(e.hours for e in group.entries)


def test_grouping_is_idempotent():
    entries = [time_entry("2024-01-08", 3), time_entry("2024-02-01", 2, user_id=8)]

    first = [g.model_dump() for g in group_time_entries_by_user_and_week(entries)]
    second = [g.model_dump() for g in group_time_entries_by_user_and_week(entries)]

    assert first == second


def test_empty_input():
    assert group_time_entries_by_user_and_week([]) == []
    assert group_expenses_by_user_and_week([]) == []


def test_expense_grouping_sums_cost():
    expenses = [expense("2024-01-08", 12.5), expense("2024-01-12", 7.5), expense("2024-01-16", 1)]

    groups = group_expenses_by_user_and_week(expenses)

    assert len(groups) == 2
    assert groups[0].total_cost == 20.0
    assert groups[0].expense_count == 2
    assert groups[1].week_start == "2024-01-15"


def test_grid_total_equals_project_totals():
    entries = [
        time_entry("2024-01-08", 2, project_id=1, task_id=10),
        time_entry("2024-01-09", 3, project_id=2, task_id=20),
        time_entry("2024-01-09", 1, project_id=1, task_id=11),
        time_entry("2024-01-13", 4, project_id=2, task_id=20),
    ]

    grid = create_timesheet_grid(entries, date(2024, 1, 8))

    assert [p.id for p in grid.projects] == [1, 2]
    assert [t.id for t in grid.projects[0].tasks] == [10, 11]
    assert grid.daily_totals.total == sum(p.total_hours for p in grid.projects) == 10
    assert grid.daily_totals.tue == 4
    assert grid.daily_totals.sat == 4


def test_grid_entry_outside_week_counts_in_totals_only():
    entries = [time_entry("2024-01-08", 2), time_entry("2024-01-20", 5)]

    grid = create_timesheet_grid(entries, "2024-01-08")
    task = grid.projects[0].tasks[0]

    assert task.total_hours == 7
    assert task.hours_per_day.sat == 0
    assert task.hours_per_day.sun == 0
    assert grid.daily_totals.total == 7
    assert grid.daily_totals.mon == 2


def test_grid_days_and_camel_case_output():
    grid = create_timesheet_grid([time_entry("2024-01-08", 1)], "2024-01-08")

    assert [d.day_of_week for d in grid.days] == ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
    assert grid.days[0].day_name == "Mon 8"
    assert grid.days[6].date == "2024-01-14"

    dumped = grid.model_dump(by_alias=True)
    assert "dailyTotals" in dumped
    assert "weekStart" in dumped
    assert "hoursPerDay" in dumped["projects"][0]["tasks"][0]
    assert dumped["days"][0]["dayOfWeek"] == "mon"


def test_format_week_range():
    assert format_week_range("2024-01-08") == "Jan 8 - Jan 14, 2024"
    assert format_week_range(date(2024, 12, 30)) == "Dec 30 - Jan 5, 2025"


def test_week_bounds():
    assert week_bounds(date(2024, 1, 10)) == (date(2024, 1, 8), date(2024, 1, 14))
    assert week_bounds(date(2024, 1, 14)) == (date(2024, 1, 8), date(2024, 1, 14))


def test_locked_weeks_deduplicated_and_sorted():
    entries = [
        time_entry("2024-02-07", 1, is_locked=True),
        time_entry("2024-02-06", 1, is_locked=True),
        time_entry("2024-01-03", 1, is_locked=False),
    ]
    expenses = [expense("2024-01-10", 5, is_locked=True)]

    weeks = locked_weeks_from(entries, expenses)

    assert [(w.week_start, w.week_end) for w in weeks] == [
        ("2024-01-08", "2024-01-14"),
        ("2024-02-05", "2024-02-11"),
    ]
    assert weeks[0].model_dump(by_alias=True) == {"weekStart": "2024-01-08", "weekEnd": "2024-01-14"}


def test_is_date_in_locked_week():
    weeks = [LockedWeek(week_start="2024-01-08", week_end="2024-01-14")]

    assert is_date_in_locked_week(date(2024, 1, 14), weeks)
    assert not is_date_in_locked_week(date(2024, 1, 15), weeks)
