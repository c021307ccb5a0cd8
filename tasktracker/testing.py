"""
In-memory stand-ins for the Supabase backends, used by the test suites.

Both fakes count calls per method in `calls` and raise NetworkError from
every method while `online` is False.
"""
import itertools
from collections import Counter
from dataclasses import replace
from datetime import datetime, timedelta

import pytz

from tasktracker.errors import NetworkError
from time_sessions.records import TimeSession
from todos.records import Task, WRITABLE_FIELDS

FIXED_NOW = datetime(2026, 10, 14, 12, 0, tzinfo=pytz.UTC)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now=FIXED_NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class _FakeBackend:
    def __init__(self, clock=None):
        self.online = True
        self.calls = Counter()
        self.clock = clock or FixedClock()
        self._ids = itertools.count(1)

    def _call(self, name):
        self.calls[name] += 1
        if not self.online:
            raise NetworkError("Backend unreachable")


class FakeTaskBackend(_FakeBackend):
    """Task backend holding rows in a dict; deletes are soft."""

    def __init__(self, tasks=(), clock=None):
        super().__init__(clock)
        self.tasks = {t.id: t for t in tasks}

    def add(self, **fields):
        fields.setdefault('id', f'task-{next(self._ids)}')
        fields.setdefault('created_at', self.clock())
        fields.setdefault('updated_at', self.clock())
        task = Task(**fields)
        self.tasks[task.id] = task
        return task

    async def get_tasks(self):
        self._call('get_tasks')
        return [t for t in self.tasks.values() if not t.is_deleted]

    async def get_task_by_id(self, task_id):
        self._call('get_task_by_id')
        return self.tasks.get(task_id)

    async def create_task(self, data):
        self._call('create_task')
        fields = {k: v for k, v in data.items() if k in WRITABLE_FIELDS}
        return self.add(**fields)

    async def update_task(self, task_id, data):
        self._call('update_task')
        task = self.tasks.get(task_id)
        if task is None:
            return None
        task = task.merged(data, updated_at=self.clock())
        self.tasks[task_id] = task
        return task

    async def delete_task(self, task_id):
        self._call('delete_task')
        task = self.tasks.get(task_id)
        if task is None:
            return False
        self.tasks[task_id] = replace(task, is_deleted=True, updated_at=self.clock())
        return True


class FakeSessionBackend(_FakeBackend):
    """Session backend holding rows in a dict; tasks are embedded like the join."""

    def __init__(self, sessions=(), tasks=None, clock=None):
        super().__init__(clock)
        self.sessions = {s.id: s for s in sessions}
        self.tasks = tasks if tasks is not None else {}

    def add(self, **fields):
        fields.setdefault('id', f'session-{next(self._ids)}')
        fields.setdefault('start_time', self.clock())
        session = TimeSession(**fields)
        self.sessions[session.id] = self._joined(session)
        return self.sessions[session.id]

    def _joined(self, session):
        task = self.tasks.get(session.task_id)
        return replace(session, task=task) if task is not None else session

    def _listed(self, sessions):
        listed = [self._joined(s) for s in sessions if not s.is_deleted]
        return sorted(listed, key=lambda s: s.start_time, reverse=True)

    async def get_sessions_by_task_id(self, task_id):
        self._call('get_sessions_by_task_id')
        return self._listed(s for s in self.sessions.values() if s.task_id == task_id)

    async def get_user_sessions(self):
        self._call('get_user_sessions')
        return self._listed(self.sessions.values())

    async def get_sessions_by_date_range(self, start, end):
        self._call('get_sessions_by_date_range')
        return self._listed(s for s in self.sessions.values() if start <= s.start_time <= end)

    async def get_session_by_id(self, session_id):
        self._call('get_session_by_id')
        session = self.sessions.get(session_id)
        return self._joined(session) if session else None

    async def create_session(self, data):
        self._call('create_session')
        record = {'id': f'session-{next(self._ids)}', 'user_id': 'user-1', **data}
        session = self._joined(TimeSession.from_record(record))
        self.sessions[session.id] = session
        return session

    async def update_session(self, session_id, data):
        self._call('update_session')
        session = self.sessions.get(session_id)
        if session is None:
            return None
        record = {**session.to_record(), **data}
        session = self._joined(TimeSession.from_record(record))
        self.sessions[session_id] = session
        return session

    async def delete_session(self, session_id):
        self._call('delete_session')
        session = self.sessions.get(session_id)
        if session is None:
            return False
        self.sessions[session_id] = replace(session, is_deleted=True)
        return True
