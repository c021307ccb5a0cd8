"""Time session records as returned by the backend."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from tasktracker.timezone_utils import format_timestamp, parse_timestamp
from todos.records import Task


@dataclass(frozen=True)
class TimeSession:
    """
    A start/stop work session attached to a task.

    `end_time` is None while the session is running. `duration` is the
    textual interval stored by the backend once the session stops; it may be
    missing or stale, see durations.effective_duration_seconds.
    `task` is the task embedded by the backend join, when requested.
    """

    id: str
    task_id: str
    start_time: datetime
    user_id: Optional[str] = None
    end_time: Optional[datetime] = None
    duration: Optional[str] = None
    is_deleted: bool = False
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    task: Optional[Task] = None

    @property
    def is_active(self):
        return self.end_time is None

    @classmethod
    def from_record(cls, record):
        joined = record.get('tasks')
        task = None
        if joined:
            task = Task.from_record({'id': record.get('task_id'), **joined})
        return cls(
            id=str(record['id']),
            task_id=str(record.get('task_id')),
            user_id=record.get('user_id'),
            start_time=parse_timestamp(record.get('start_time')),
            end_time=parse_timestamp(record.get('end_time')),
            duration=record.get('duration'),
            is_deleted=bool(record.get('is_deleted') or False),
            notes=record.get('notes'),
            created_at=parse_timestamp(record.get('created_at')),
            task=task,
        )

    def to_record(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'user_id': self.user_id,
            'start_time': format_timestamp(self.start_time),
            'end_time': format_timestamp(self.end_time),
            'duration': self.duration,
            'is_deleted': self.is_deleted,
            'notes': self.notes,
            'created_at': format_timestamp(self.created_at),
        }
