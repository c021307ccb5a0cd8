"""
Tests for the sync_tasks management command.
"""
from io import StringIO
from unittest import mock

from asgiref.sync import async_to_sync
from django.core.management import call_command
from django.test import TestCase

from tasktracker.container import ServiceContainer
from tasktracker.testing import FakeSessionBackend, FakeTaskBackend, FixedClock
from todos.cache import MemoryCacheBackend


class TestSyncTasksCommand(TestCase):
    """Test sync_tasks management command"""

    def setUp(self):
        self.clock = FixedClock()
        self.backend = FakeTaskBackend(clock=self.clock)
        self.session_backend = FakeSessionBackend(clock=self.clock)
        self.services = ServiceContainer(
            task_backend=self.backend,
            session_backend=self.session_backend,
            cache=MemoryCacheBackend(),
            clock=self.clock,
        )

    def run_command(self, *args):
        out = StringIO()
        with mock.patch(
            'todos.management.commands.sync_tasks.ServiceContainer.from_settings',
            return_value=self.services,
        ):
            call_command('sync_tasks', *args, stdout=out)
        return out.getvalue()

    def test_replays_offline_create(self):
        """Should push a task created offline and print the summary"""
        # Mock: Task created while the backend was unreachable
        self.backend.online = False
        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            async_to_sync(self.services.tasks.create)({'title': 'Reading'})
        self.backend.online = True

        output = self.run_command()

        # Assert: Task now exists on the backend, summary printed
        self.assertEqual([t.title for t in self.backend.tasks.values()], ['Reading'])
        self.assertIn('SYNC SUMMARY', output)
        self.assertIn('✓ Created: 1', output)

    def test_nothing_queued(self):
        """Should report an empty queue"""
        output = self.run_command()

        self.assertIn('No queued changes to sync', output)
        self.assertIn('✓ Created: 0', output)

    def test_failures_reported(self):
        """Should print the failure when the backend is still offline"""
        self.backend.online = False
        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            async_to_sync(self.services.tasks.create)({'title': 'Reading'})
            output = self.run_command()

        self.assertIn('✗ Failed: 1 task(s) could not be synced', output)

    def test_reconcile_statuses(self):
        """Should set task status from sessions when asked"""
        task = self.backend.add(title='Writing')
        self.session_backend.tasks[task.id] = task
        self.session_backend.add(task_id=task.id)

        output = self.run_command('--reconcile-statuses')

        self.assertIn('Updated status of 1 task(s)', output)
        self.assertEqual(self.backend.tasks[task.id].status, 'active')

    def test_missing_credentials(self):
        """Should print and re-raise configuration errors"""
        out = StringIO()
        with mock.patch.dict('os.environ', {}, clear=True):
            with self.assertRaises(ValueError) as context:
                call_command('sync_tasks', stdout=out)

        self.assertIn('SUPABASE_URL', str(context.exception))
        self.assertIn('Configuration error', out.getvalue())
