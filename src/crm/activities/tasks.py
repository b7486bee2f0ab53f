"""Task bucketing relative to the current day."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from src.crm.activities.schemas import ActivityRead, TaskGroups


def categorize_tasks(tasks: list[ActivityRead], now: datetime | None = None) -> TaskGroups:
    """Split tasks into overdue / today / upcoming / completed.

    Completion wins over any due date. A task without a due date is
    upcoming. "Today" is the calendar day of ``now`` in its own timezone
    (naive datetimes are read as UTC); anything due before that day started is
    overdue. Input order is kept inside each bucket.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    end_of_day = start_of_day + timedelta(days=1)

    groups = TaskGroups()
    for task in tasks:
        if task.is_completed:
            groups.completed.append(task)
        elif task.due_date is None:
            groups.upcoming.append(task)
        else:
            due = task.due_date
            if due.tzinfo is None:
                due = due.replace(tzinfo=timezone.utc)
            if due < start_of_day:
                groups.overdue.append(task)
            elif due < end_of_day:
                groups.today.append(task)
            else:
                groups.upcoming.append(task)
    return groups
