"""Task records as exchanged with the backend and stored in the local cache."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional

from tasktracker.timezone_utils import format_timestamp, parse_timestamp

# Columns the backend accepts on insert/update
WRITABLE_FIELDS = ('title', 'description', 'status', 'priority', 'category_name', 'is_deleted')


@dataclass(frozen=True)
class Task:
    """A task, reduced to the fields the tracker needs."""

    id: str
    title: str = ''
    status: str = 'pending'
    is_deleted: bool = False
    category_name: Optional[str] = None
    description: str = ''
    priority: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_record(cls, record):
        known = {
            'id', 'title', 'status', 'is_deleted', 'category_name',
            'description', 'priority', 'created_at', 'updated_at',
        }
        return cls(
            id=str(record['id']),
            title=record.get('title') or '',
            status=record.get('status') or 'pending',
            is_deleted=bool(record.get('is_deleted', False)),
            category_name=record.get('category_name'),
            description=record.get('description') or '',
            priority=record.get('priority'),
            created_at=parse_timestamp(record.get('created_at')),
            updated_at=parse_timestamp(record.get('updated_at')),
            extra={k: v for k, v in record.items() if k not in known},
        )

    def to_record(self):
        record = dict(self.extra)
        record.update({
            'id': self.id,
            'title': self.title,
            'status': self.status,
            'is_deleted': self.is_deleted,
            'category_name': self.category_name,
            'description': self.description,
            'priority': self.priority,
            'created_at': format_timestamp(self.created_at),
            'updated_at': format_timestamp(self.updated_at),
        })
        return record

    def merged(self, data, updated_at=None):
        """Return a copy with the writable fields of `data` applied."""
        changes = {k: v for k, v in data.items() if k in WRITABLE_FIELDS}
        if updated_at is not None:
            changes['updated_at'] = updated_at
        return replace(self, **changes)


def writable_data(task):
    """The subset of a task the backend accepts on insert/update."""
    record = task.to_record()
    return {k: record[k] for k in WRITABLE_FIELDS}
