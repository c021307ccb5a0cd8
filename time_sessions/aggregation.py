"""
Roll time sessions up into report buckets.

Buckets are derived on every call and never stored. Grouping by calendar
period uses the local date of each session's start time.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional

from django.utils import timezone

from tasktracker.results import Success
from tasktracker.timezone_utils import get_default_timezone
from time_sessions.durations import effective_duration_seconds, format_duration_human_readable

UNKNOWN_TASK = 'Unknown Task'
UNCATEGORIZED = 'Uncategorized'


class GroupBy(str, Enum):
    TASK = 'task'
    CATEGORY = 'category'
    DAY = 'day'
    WEEK = 'week'
    MONTH = 'month'

    @property
    def is_chronological(self):
        return self in (GroupBy.DAY, GroupBy.WEEK)


@dataclass
class Bucket:
    """Total tracked time for one grouping key."""

    key: str
    label: str
    total_seconds: int = 0
    count: int = 0

    @property
    def formatted_value(self):
        return format_duration_human_readable(self.total_seconds)

    def to_dict(self):
        return {
            'id': self.key,
            'label': self.label,
            'value': self.total_seconds,
            'formatted_value': self.formatted_value,
            'count': self.count,
        }


@dataclass
class ReportFilter:
    """Date range and optional narrowing for a time report."""

    start: object
    end: object
    group_by: GroupBy = GroupBy.TASK
    task_ids: Optional[List[str]] = None
    category_names: Optional[List[str]] = None


def _short_date(day):
    return f"{day.strftime('%b')} {day.day}"


def _period_key(local_day: date, group_by):
    """Return (period start, label) for the period containing local_day."""
    if group_by == GroupBy.DAY:
        return local_day, f"{local_day.strftime('%a')}, {_short_date(local_day)}"
    if group_by == GroupBy.WEEK:
        # Weeks start on Sunday
        week_start = local_day - timedelta(days=(local_day.weekday() + 1) % 7)
        week_end = week_start + timedelta(days=6)
        return week_start, f"{_short_date(week_start)} - {_short_date(week_end)}"
    month_start = local_day.replace(day=1)
    return month_start, month_start.strftime('%B %Y')


def _resolve_task(session, tasks):
    if tasks is not None:
        return tasks.get(session.task_id)
    return session.task


def aggregate(sessions: Iterable, group_by, now=None, tasks: Optional[Dict] = None, tz=None,
              task_ids=None, category_names=None) -> List[Bucket]:
    """
    Group sessions into buckets of summed effective duration.

    Args:
        sessions: TimeSession records
        group_by: GroupBy member or its value ('task', 'category', 'day', 'week', 'month')
        now: Instant used for running sessions (defaults to now)
        tasks: Optional {task_id: Task}; when omitted the task embedded in
               each session by the backend join is used
        tz: pytz timezone for calendar periods (defaults to settings.TIME_ZONE)
        task_ids: Only include sessions of these tasks
        category_names: Only include sessions whose task is in these categories

    Returns:
        Buckets sorted by total (descending), except day/week which are
        sorted chronologically
    """
    group_by = GroupBy(group_by)
    if now is None:
        now = timezone.now()
    if tz is None:
        tz = get_default_timezone()

    buckets: Dict[str, Bucket] = {}
    period_starts: Dict[str, date] = {}

    for session in sessions:
        if session.is_deleted:
            continue
        task = _resolve_task(session, tasks)
        if task is None or task.is_deleted:
            continue
        if task_ids and session.task_id not in task_ids:
            continue
        if category_names and task.category_name not in category_names:
            continue

        seconds = effective_duration_seconds(session, now)
        if seconds <= 0:
            continue

        if group_by == GroupBy.TASK:
            key, label = session.task_id, task.title or UNKNOWN_TASK
        elif group_by == GroupBy.CATEGORY:
            key = label = task.category_name or UNCATEGORIZED
        else:
            local_day = session.start_time.astimezone(tz).date()
            period_start, label = _period_key(local_day, group_by)
            key = period_start.isoformat()
            period_starts[key] = period_start

        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = Bucket(key=key, label=label)
        bucket.total_seconds += seconds
        bucket.count += 1

    result = list(buckets.values())
    if group_by.is_chronological:
        result.sort(key=lambda b: period_starts[b.key])
    else:
        result.sort(key=lambda b: b.total_seconds, reverse=True)
    return result


async def time_report(session_store, filters: ReportFilter, now=None, tz=None):
    """
    Fetch the sessions in a date range and aggregate them.

    Returns:
        Success(list of Bucket) or the session store's Failure
    """
    result = await session_store.get_sessions_by_date_range(filters.start, filters.end)
    if not result.ok:
        return result
    buckets = aggregate(
        result.value,
        filters.group_by,
        now=now,
        tz=tz,
        task_ids=filters.task_ids,
        category_names=filters.category_names,
    )
    return Success(buckets)
