# src/tasknest/tasks/stats.py

"""
Derived task metrics. Pure functions over an in-memory task list.

Date boundaries are local calendar boundaries of `now`:
- today:      local midnight
- this week:  local midnight of the most recent Sunday (Sunday counts as day 0)
- this month: local midnight of the 1st
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from .task_codec import as_aware
from .task_models import AnalyticsSummary, Task, TaskStats

MAX_STREAK_DAYS = 30


def _local_now(now: datetime | None) -> datetime:
    return datetime.now().astimezone() if now is None else as_aware(now).astimezone()


def _local_date(value: datetime) -> date:
    return as_aware(value).astimezone().date()


def _local_midnight(day: date) -> datetime:
    return datetime.combine(day, time.min).astimezone()


def day_start(now: datetime | None = None) -> datetime:
    return _local_midnight(_local_now(now).date())


def week_start(now: datetime | None = None) -> datetime:
    today = _local_now(now).date()
    # date.weekday(): Monday=0 .. Sunday=6
    days_since_sunday = (today.weekday() + 1) % 7
    return _local_midnight(today - timedelta(days=days_since_sunday))


def month_start(now: datetime | None = None) -> datetime:
    return _local_midnight(_local_now(now).date().replace(day=1))


def compute_stats(tasks: Iterable[Task], now: datetime | None = None) -> TaskStats:
    current = _local_now(now)
    today = day_start(current)
    week = week_start(current)

    items = list(tasks)
    completed = [t for t in items if t.completed]
    pending = [t for t in items if not t.completed]

    return TaskStats(
        total=len(items),
        completed=len(completed),
        pending=len(pending),
        overdue=sum(1 for t in pending if t.deadline is not None and as_aware(t.deadline) < current),
        completed_today=sum(1 for t in completed if as_aware(t.updated_at) >= today),
        completed_this_week=sum(1 for t in completed if as_aware(t.updated_at) >= week),
    )


def compute_streak(
    tasks: Iterable[Task],
    now: datetime | None = None,
    *,
    max_days: int = MAX_STREAK_DAYS,
) -> int:
    """
    Consecutive local calendar days, walking back from today, with at least one
    completed task (by updated_at) on each day. A day without completions ends
    the walk, so no completion today means a streak of 0.
    """
    days = {_local_date(t.updated_at) for t in tasks if t.completed}
    if not days:
        return 0

    day = _local_now(now).date()
    streak = 0
    while streak < max_days and day in days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def compute_analytics(tasks: Iterable[Task], now: datetime | None = None) -> AnalyticsSummary:
    current = _local_now(now)
    items = list(tasks)
    completed = [t for t in items if t.completed]
    stats = compute_stats(items, current)
    month = month_start(current)

    if completed:
        total_seconds = sum(
            (as_aware(t.updated_at) - as_aware(t.created_at)).total_seconds() for t in completed
        )
        average_days = round(total_seconds / len(completed) / 86400)
    else:
        average_days = 0

    rate = round(len(completed) / len(items) * 100) if items else 0

    return AnalyticsSummary(
        completed_today=stats.completed_today,
        completed_this_week=stats.completed_this_week,
        completed_this_month=sum(1 for t in completed if as_aware(t.updated_at) >= month),
        average_completion_days=int(average_days),
        completion_rate=int(rate),
        streak=compute_streak(completed, current),
    )
