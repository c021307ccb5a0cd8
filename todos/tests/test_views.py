"""Tests for todos app views."""
import json
from unittest import mock

from django.test import TestCase, Client
from django.urls import reverse

from tasktracker.container import ServiceContainer
from tasktracker.testing import FakeSessionBackend, FakeTaskBackend, FixedClock
from todos.cache import MemoryCacheBackend


class TodosViewTestBase(TestCase):
    """Base class wiring the views to fake backends."""

    def setUp(self):
        self.client = Client()
        self.clock = FixedClock()
        self.backend = FakeTaskBackend(clock=self.clock)
        self.task = self.backend.add(title='Writing')
        self.services = ServiceContainer(
            task_backend=self.backend,
            session_backend=FakeSessionBackend(clock=self.clock),
            cache=MemoryCacheBackend(),
            clock=self.clock,
        )
        patcher = mock.patch('todos.views.ServiceContainer.from_settings', return_value=self.services)
        patcher.start()
        self.addCleanup(patcher.stop)

    def post_json(self, url, data=None):
        return self.client.post(
            url,
            data=json.dumps(data or {}),
            content_type='application/json'
        )

    def patch_json(self, url, data=None):
        return self.client.patch(
            url,
            data=json.dumps(data or {}),
            content_type='application/json'
        )

    def delete_json(self, url):
        return self.client.delete(url, content_type='application/json')


class TaskListViewTests(TodosViewTestBase):

    def test_lists_tasks(self):
        resp = self.client.get(reverse('todos:task_list'))

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data['success'])
        self.assertFalse(data['from_cache'])
        self.assertEqual([t['title'] for t in data['tasks']], ['Writing'])

    def test_second_request_served_from_cache(self):
        self.client.get(reverse('todos:task_list'))
        resp = self.client.get(reverse('todos:task_list'))

        self.assertTrue(resp.json()['from_cache'])
        self.assertEqual(self.backend.calls['get_tasks'], 1)

    def test_offline_without_cache_is_retryable(self):
        self.backend.online = False

        with self.assertLogs('todos.services.cached_task_store', level='ERROR'):
            resp = self.client.get(reverse('todos:task_list'))

        self.assertEqual(resp.status_code, 503)
        self.assertFalse(resp.json()['success'])
        self.assertTrue(resp.json()['retryable'])

    def test_get_task(self):
        resp = self.client.get(reverse('todos:get_task', args=[self.task.id]))
        self.assertEqual(resp.json()['task']['title'], 'Writing')

    def test_get_missing_task(self):
        resp = self.client.get(reverse('todos:get_task', args=['nope']))
        self.assertEqual(resp.status_code, 404)


class CreateTaskViewTests(TodosViewTestBase):

    def test_create(self):
        resp = self.post_json(reverse('todos:create_task'), {'title': '  Reading  '})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['task']['title'], 'Reading')
        self.assertEqual(len(self.backend.tasks), 2)

    def test_create_requires_title(self):
        resp = self.post_json(reverse('todos:create_task'), {'title': '   '})

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'Title is required')

    def test_create_invalid_json(self):
        resp = self.client.post(reverse('todos:create_task'), data='not json', content_type='application/json')
        self.assertEqual(resp.status_code, 400)

    def test_create_offline_is_queued(self):
        self.backend.online = False

        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            resp = self.post_json(reverse('todos:create_task'), {'title': 'Reading'})

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['task']['id'].startswith('local-'))

    def test_get_not_allowed(self):
        resp = self.client.get(reverse('todos:create_task'))
        self.assertEqual(resp.status_code, 405)


class UpdateTaskViewTests(TodosViewTestBase):

    def test_update_title(self):
        resp = self.patch_json(reverse('todos:update_task', args=[self.task.id]), {'title': 'Editing'})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.backend.tasks[self.task.id].title, 'Editing')

    def test_update_status_and_title(self):
        resp = self.patch_json(
            reverse('todos:update_task', args=[self.task.id]),
            {'status': 'active', 'title': 'Editing'},
        )

        task = resp.json()['task']
        self.assertEqual(task['status'], 'active')
        self.assertEqual(task['title'], 'Editing')

    def test_unknown_status(self):
        resp = self.patch_json(reverse('todos:update_task', args=[self.task.id]), {'status': 'done'})
        self.assertEqual(resp.status_code, 400)

    def test_disallowed_transition(self):
        with self.assertLogs('todos.services.cached_task_store', level='ERROR'):
            resp = self.patch_json(reverse('todos:update_task', args=[self.task.id]), {'status': 'paused'})

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.backend.tasks[self.task.id].status, 'pending')

    def test_status_change_offline_without_cache_is_retryable(self):
        self.backend.online = False

        with self.assertLogs('todos.services.cached_task_store', level='ERROR'):
            resp = self.patch_json(reverse('todos:update_task', args=[self.task.id]), {'status': 'active'})

        self.assertEqual(resp.status_code, 503)
        self.assertTrue(resp.json()['retryable'])
        self.assertEqual(self.backend.tasks[self.task.id].status, 'pending')

    def test_update_missing_task(self):
        resp = self.patch_json(reverse('todos:update_task', args=['nope']), {'title': 'x'})
        self.assertEqual(resp.status_code, 404)


class DeleteTaskViewTests(TodosViewTestBase):

    def test_delete(self):
        resp = self.delete_json(reverse('todos:delete_task', args=[self.task.id]))

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(self.backend.tasks[self.task.id].is_deleted)

    def test_delete_missing_task(self):
        resp = self.delete_json(reverse('todos:delete_task', args=['nope']))
        self.assertEqual(resp.status_code, 404)


class SyncTasksViewTests(TodosViewTestBase):

    def test_sync_replays_offline_changes(self):
        self.backend.online = False
        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            self.post_json(reverse('todos:create_task'), {'title': 'Reading'})
        self.backend.online = True

        resp = self.client.post(reverse('todos:sync_tasks'))

        data = resp.json()
        self.assertTrue(data['success'])
        self.assertEqual(data['results'][0]['source'], 'Tasks')
        self.assertEqual(data['results'][0]['created'], 1)
        self.assertEqual(data['results'][0]['summary'], '1 created')
