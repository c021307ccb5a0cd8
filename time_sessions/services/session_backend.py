"""
Session data collaborator backed by the Supabase `time_sessions` table.

Reads that feed reports join the owning task so deleted tasks can be
filtered out without a second round trip.
"""
from asgiref.sync import sync_to_async

from tasktracker.timezone_utils import format_timestamp
from time_sessions.records import TimeSession

TABLE = 'time_sessions'
TASK_JOIN = '*,tasks(title,status,priority,category_name,is_deleted)'


class SupabaseSessionBackend:
    """Async wrapper around SupabaseAPIClient for time session rows."""

    def __init__(self, client):
        self.client = client

    def _rows_to_sessions(self, rows):
        return [TimeSession.from_record(row) for row in rows]

    def _get_sessions_by_task_id(self, task_id):
        rows = self.client.select(TABLE, params={
            'select': TASK_JOIN,
            'task_id': f'eq.{task_id}',
            'is_deleted': 'eq.false',
            'order': 'start_time.desc',
        })
        return self._rows_to_sessions(rows)

    def _get_user_sessions(self):
        rows = self.client.select(TABLE, params={
            'select': TASK_JOIN,
            'user_id': f'eq.{self.client.get_current_user_id()}',
            'is_deleted': 'eq.false',
            'order': 'start_time.desc',
        })
        return self._rows_to_sessions(rows)

    def _get_sessions_by_date_range(self, start, end):
        # Same column filtered twice, so params go as a list of pairs
        rows = self.client.select(TABLE, params=[
            ('select', TASK_JOIN),
            ('user_id', f'eq.{self.client.get_current_user_id()}'),
            ('is_deleted', 'eq.false'),
            ('start_time', f'gte.{format_timestamp(start)}'),
            ('start_time', f'lte.{format_timestamp(end)}'),
            ('order', 'start_time.desc'),
        ])
        return self._rows_to_sessions(rows)

    def _get_session_by_id(self, session_id):
        row = self.client.select_one(TABLE, params={'select': TASK_JOIN, 'id': f'eq.{session_id}'})
        return TimeSession.from_record(row) if row else None

    def _create_session(self, data):
        payload = dict(data)
        payload.setdefault('user_id', self.client.get_current_user_id())
        row = self.client.insert(TABLE, payload)
        return TimeSession.from_record(row) if row else None

    def _update_session(self, session_id, data):
        row = self.client.update(TABLE, {'id': f'eq.{session_id}'}, dict(data))
        return TimeSession.from_record(row) if row else None

    def _delete_session(self, session_id):
        row = self.client.update(TABLE, {'id': f'eq.{session_id}'}, {'is_deleted': True})
        return row is not None

    async def get_sessions_by_task_id(self, task_id):
        return await sync_to_async(self._get_sessions_by_task_id, thread_sensitive=False)(task_id)

    async def get_user_sessions(self):
        return await sync_to_async(self._get_user_sessions, thread_sensitive=False)()

    async def get_sessions_by_date_range(self, start, end):
        return await sync_to_async(self._get_sessions_by_date_range, thread_sensitive=False)(start, end)

    async def get_session_by_id(self, session_id):
        return await sync_to_async(self._get_session_by_id, thread_sensitive=False)(session_id)

    async def create_session(self, data):
        return await sync_to_async(self._create_session, thread_sensitive=False)(data)

    async def update_session(self, session_id, data):
        return await sync_to_async(self._update_session, thread_sensitive=False)(session_id, data)

    async def delete_session(self, session_id):
        return await sync_to_async(self._delete_session, thread_sensitive=False)(session_id)
