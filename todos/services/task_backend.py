"""
Task data collaborator backed by the Supabase `tasks` table.

The cached task store only depends on the coroutine methods below; tests
substitute an in-memory fake with the same surface.
"""
from asgiref.sync import sync_to_async

from todos.records import Task

TABLE = 'tasks'


class SupabaseTaskBackend:
    """Async wrapper around SupabaseAPIClient for task rows."""

    def __init__(self, client):
        self.client = client

    def _get_tasks(self):
        rows = self.client.select(TABLE, params={
            'select': '*',
            'is_deleted': 'eq.false',
            'order': 'created_at.desc',
        })
        return [Task.from_record(row) for row in rows]

    def _get_task_by_id(self, task_id):
        row = self.client.select_one(TABLE, params={'select': '*', 'id': f'eq.{task_id}'})
        return Task.from_record(row) if row else None

    def _create_task(self, data):
        payload = dict(data)
        payload.setdefault('created_by', self.client.get_current_user_id())
        row = self.client.insert(TABLE, payload)
        return Task.from_record(row) if row else None

    def _update_task(self, task_id, data):
        row = self.client.update(TABLE, {'id': f'eq.{task_id}'}, dict(data))
        return Task.from_record(row) if row else None

    def _delete_task(self, task_id):
        # Soft delete; the row stays for reports and sync
        row = self.client.update(TABLE, {'id': f'eq.{task_id}'}, {'is_deleted': True})
        return row is not None

    async def get_tasks(self):
        return await sync_to_async(self._get_tasks, thread_sensitive=False)()

    async def get_task_by_id(self, task_id):
        return await sync_to_async(self._get_task_by_id, thread_sensitive=False)(task_id)

    async def create_task(self, data):
        return await sync_to_async(self._create_task, thread_sensitive=False)(data)

    async def update_task(self, task_id, data):
        return await sync_to_async(self._update_task, thread_sensitive=False)(task_id, data)

    async def delete_task(self, task_id):
        return await sync_to_async(self._delete_task, thread_sensitive=False)(task_id)

