"""
Session store: reads and writes time sessions through the backend.

Failures never raise out of the store. Each operation returns a
tasktracker.results.Success or Failure, and failures are also sent on the
`session_error` signal so passive observers (toasts, banners) can react.
Sessions are soft-deleted; deleted sessions and sessions of deleted tasks
are dropped from every read.
"""
import logging
from datetime import datetime

from django.utils import timezone

from tasktracker.errors import BackendError
from tasktracker.results import Failure, Success
from tasktracker.signals import emit
from tasktracker.timezone_utils import format_timestamp
from time_sessions import signals
from time_sessions.durations import seconds_to_interval, total_duration_seconds

logger = logging.getLogger(__name__)


def _visible(sessions):
    return [
        s for s in sessions
        if not s.is_deleted and not (s.task is not None and s.task.is_deleted)
    ]


def _serialize(data):
    return {
        key: format_timestamp(value) if isinstance(value, datetime) else value
        for key, value in data.items()
    }


class SessionStore:
    """Time session operations over a session backend."""

    def __init__(self, backend, clock=None):
        self.backend = backend
        self.clock = clock or timezone.now

    def _fail(self, operation, error):
        logger.error("Session %s failed: %s", operation, error)
        emit(signals.session_error, self, error=error, operation=operation)
        return Failure(f"Could not {operation}: {error}", error)

    async def _load(self, operation, fetch):
        try:
            sessions = await fetch()
        except BackendError as e:
            return self._fail(operation, e)
        sessions = _visible(sessions or [])
        emit(signals.sessions_loaded, self, sessions=sessions)
        return Success(sessions)

    async def get_sessions_by_task_id(self, task_id):
        return await self._load(
            'load task sessions',
            lambda: self.backend.get_sessions_by_task_id(task_id),
        )

    async def get_user_sessions(self):
        return await self._load('load sessions', self.backend.get_user_sessions)

    async def get_sessions_by_date_range(self, start, end):
        return await self._load(
            'load sessions for date range',
            lambda: self.backend.get_sessions_by_date_range(start, end),
        )

    async def get_active_sessions(self):
        result = await self.get_user_sessions()
        if not result.ok:
            return result
        return Success([s for s in result.value if s.is_active])

    async def get_session_by_id(self, session_id):
        try:
            session = await self.backend.get_session_by_id(session_id)
        except BackendError as e:
            return self._fail('load session', e)
        if session is not None and session.is_deleted:
            session = None
        return Success(session)

    async def create_session(self, task_id, notes=None):
        """Start a session for a task. Callers guard against a second active session."""
        data = {
            'task_id': task_id,
            'start_time': format_timestamp(self.clock()),
        }
        if notes:
            data['notes'] = notes
        try:
            session = await self.backend.create_session(data)
        except BackendError as e:
            return self._fail('create session', e)
        if session is None:
            return self._fail('create session', BackendError("Backend returned no session"))
        emit(signals.session_created, self, session=session)
        return Success(session)

    async def update_session(self, session_id, data):
        try:
            session = await self.backend.update_session(session_id, _serialize(data))
        except BackendError as e:
            return self._fail('update session', e)
        if session is not None:
            emit(signals.session_updated, self, session=session)
        return Success(session)

    async def stop_session(self, session_id, now=None):
        """
        Stop a running session: set end_time and persist the duration as
        "<N> seconds". Stopping a stopped session returns it unchanged.
        """
        found = await self.get_session_by_id(session_id)
        if not found.ok or found.value is None:
            return found
        session = found.value
        if not session.is_active:
            return Success(session)

        end_time = now or self.clock()
        elapsed = max(0, int((end_time - session.start_time).total_seconds()))
        try:
            stopped = await self.backend.update_session(session_id, {
                'end_time': format_timestamp(end_time),
                'duration': seconds_to_interval(elapsed),
            })
        except BackendError as e:
            return self._fail('stop session', e)
        if stopped is not None:
            emit(signals.session_stopped, self, session=stopped)
        return Success(stopped)

    async def delete_session(self, session_id):
        """Soft-delete a session. Returns Success(False) when nothing matched."""
        if not session_id:
            logger.warning("Invalid session ID for deletion")
            return Success(False)
        try:
            deleted = await self.backend.delete_session(session_id)
        except BackendError as e:
            return self._fail('delete session', e)
        if deleted:
            logger.info("Soft-deleted session %s", session_id)
            emit(signals.session_deleted, self, session_id=session_id)
        return Success(bool(deleted))

    async def calculate_time_spent(self, task_ids=None, start=None, end=None, now=None):
        """
        Total effective seconds tracked, optionally limited to tasks and a
        date range. Running sessions count up to `now`.
        """
        if start is not None and end is not None:
            result = await self.get_sessions_by_date_range(start, end)
        else:
            result = await self.get_user_sessions()
        if not result.ok:
            return result
        sessions = result.value
        if task_ids:
            sessions = [s for s in sessions if s.task_id in task_ids]
        return Success(total_duration_seconds(sessions, now or self.clock()))
