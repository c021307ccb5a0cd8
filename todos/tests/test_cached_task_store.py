"""
Tests for the cache-augmented task store: stale-while-revalidate reads, the
offline write queue and sync.
"""
from dataclasses import replace
from datetime import timedelta

from django.test import TestCase

from tasktracker.errors import NetworkError
from tasktracker.testing import FIXED_NOW, FakeSessionBackend, FakeTaskBackend, FixedClock
from time_sessions.services.session_store import SessionStore
from todos import signals
from todos.cache import MemoryCacheBackend
from todos.services.cached_task_store import ALL_TASKS_KEY, CachedTaskStore, task_key


class CachedTaskStoreTestBase(TestCase):

    def setUp(self):
        self.clock = FixedClock()
        self.backend = FakeTaskBackend(clock=self.clock)
        self.writing = self.backend.add(title='Writing')
        self.cache = MemoryCacheBackend()
        self.store = CachedTaskStore(self.backend, self.cache, clock=self.clock)

    def listen(self, signal):
        """Collect the payloads `signal` sends for this store."""
        received = []

        def receiver(sender, **kwargs):
            received.append(kwargs)

        signal.connect(receiver, sender=self.store, weak=False)
        self.addCleanup(signal.disconnect, receiver, sender=self.store)
        return received

    async def go_offline_and_create(self, title):
        self.backend.online = False
        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            result = await self.store.create({'title': title})
        return result.value


class TestReads(CachedTaskStoreTestBase):
    """Read-through and stale-while-revalidate"""

    async def test_first_read_fetches_and_caches(self):
        result = await self.store.get_all()

        self.assertTrue(result.ok)
        self.assertFalse(result.from_cache)
        self.assertEqual([t.title for t in result.value], ['Writing'])
        self.assertIsNotNone(await self.cache.get(ALL_TASKS_KEY))

    async def test_fresh_cache_is_not_refetched(self):
        first = await self.store.get_all()
        self.clock.advance(minutes=4)
        second = await self.store.get_all()

        self.assertTrue(second.from_cache)
        self.assertEqual(second.value, first.value)
        self.assertEqual(self.backend.calls['get_tasks'], 1)

    async def test_stale_cache_served_then_refreshed_once(self):
        await self.store.get_all()
        self.backend.add(title='Reading')
        self.clock.advance(minutes=6)

        stale = await self.store.get_all()
        await self.store.get_all()
        await self.store.get_all()
        await self.store.wait_for_refresh()

        self.assertEqual([t.title for t in stale.value], ['Writing'])
        self.assertEqual(self.backend.calls['get_tasks'], 2)

        fresh = await self.store.get_all()
        self.assertEqual(len(fresh.value), 2)
        self.assertEqual(self.backend.calls['get_tasks'], 2)

    async def test_background_refresh_sends_loaded_again(self):
        await self.store.get_all()
        loaded = self.listen(signals.tasks_loaded)
        self.backend.add(title='Reading')
        self.clock.advance(minutes=6)

        await self.store.get_all()
        await self.store.wait_for_refresh()

        self.assertEqual(len(loaded), 2)
        self.assertEqual(len(loaded[-1]['tasks']), 2)

    async def test_background_refresh_failure_is_logged_not_raised(self):
        await self.store.get_all()
        errors = self.listen(signals.task_error)
        self.clock.advance(minutes=6)
        self.backend.online = False

        with self.assertLogs('todos.services.cached_task_store', level='ERROR'):
            result = await self.store.get_all()
            await self.store.wait_for_refresh()

        self.assertTrue(result.ok)
        self.assertEqual([t.title for t in result.value], ['Writing'])
        self.assertEqual(errors[0]['operation'], 'background refresh')

    async def test_offline_without_cache_fails(self):
        errors = self.listen(signals.task_error)
        self.backend.online = False

        with self.assertLogs('todos.services.cached_task_store', level='ERROR'):
            result = await self.store.get_all()

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, NetworkError)
        self.assertEqual(result.unwrap_or([]), [])
        self.assertEqual(len(errors), 1)

    async def test_get_by_id_caches_record(self):
        first = await self.store.get_by_id(self.writing.id)
        second = await self.store.get_by_id(self.writing.id)

        self.assertEqual(first.value, self.writing)
        self.assertTrue(second.from_cache)
        self.assertEqual(self.backend.calls['get_task_by_id'], 1)

    async def test_get_by_id_stale_record_refreshed_in_background(self):
        await self.store.get_by_id(self.writing.id)
        self.backend.tasks[self.writing.id] = replace(self.writing, title='Renamed')
        self.clock.advance(minutes=6)

        stale = await self.store.get_by_id(self.writing.id)
        await self.store.wait_for_refresh()
        fresh = await self.store.get_by_id(self.writing.id)

        self.assertEqual(stale.value.title, 'Writing')
        self.assertEqual(fresh.value.title, 'Renamed')

    async def test_get_by_id_offline_falls_back_to_cached_list(self):
        await self.store.get_all()
        self.backend.online = False

        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            result = await self.store.get_by_id(self.writing.id)

        self.assertTrue(result.ok)
        self.assertTrue(result.from_cache)
        self.assertEqual(result.value.title, 'Writing')

    async def test_get_by_id_offline_without_cache_fails(self):
        self.backend.online = False

        with self.assertLogs('todos.services.cached_task_store', level='ERROR'):
            result = await self.store.get_by_id(self.writing.id)

        self.assertFalse(result.ok)
        self.assertTrue(result.is_network_error)

    async def test_get_by_id_missing(self):
        result = await self.store.get_by_id('nope')

        self.assertTrue(result.ok)
        self.assertIsNone(result.value)

    async def test_refresh_and_force_refresh(self):
        await self.store.get_all()
        self.backend.add(title='Reading')

        refreshed = await self.store.refresh()
        self.assertEqual(len(refreshed.value), 2)
        self.assertEqual(await self.cache.keys('task_'), [])

        await self.store.force_refresh()
        self.assertEqual(len(await self.cache.keys('task_')), 2)


class TestOnlineWrites(CachedTaskStoreTestBase):
    """Write-through while the backend is reachable"""

    async def test_create_updates_cache_and_signals(self):
        await self.store.get_all()
        created = self.listen(signals.task_created)
        changed = self.listen(signals.tasks_changed)

        result = await self.store.create({'title': 'Reading', 'category_name': 'Personal'})

        self.assertTrue(result.ok)
        self.assertIn(result.value.id, self.backend.tasks)
        entry = await self.cache.get(task_key(result.value.id))
        self.assertFalse(entry.metadata.needs_sync)
        self.assertEqual(len((await self.store.get_all()).value), 2)
        self.assertFalse(created[0]['offline'])
        self.assertEqual(len(changed), 1)

    async def test_update(self):
        updated = self.listen(signals.task_updated)

        result = await self.store.update(self.writing.id, {'title': 'Editing'})

        self.assertEqual(result.value.title, 'Editing')
        self.assertEqual(self.backend.tasks[self.writing.id].title, 'Editing')
        self.assertEqual((await self.store.get_by_id(self.writing.id)).value.title, 'Editing')
        self.assertEqual(updated[0]['task'].title, 'Editing')

    async def test_update_missing_task(self):
        result = await self.store.update('nope', {'title': 'x'})

        self.assertTrue(result.ok)
        self.assertIsNone(result.value)

    async def test_delete(self):
        await self.store.get_all()
        deleted = self.listen(signals.task_deleted)

        result = await self.store.delete(self.writing.id)

        self.assertTrue(result.value)
        self.assertTrue(self.backend.tasks[self.writing.id].is_deleted)
        self.assertEqual((await self.store.get_all()).value, [])
        self.assertEqual(deleted[0]['task_id'], self.writing.id)

    async def test_delete_missing_task(self):
        self.assertFalse((await self.store.delete('nope')).value)

    async def test_update_status_checks_transition(self):
        errors = self.listen(signals.task_error)

        ok = await self.store.update_status(self.writing.id, 'active')
        self.assertEqual(ok.value.status, 'active')

        await self.store.update_status(self.writing.id, 'archived')
        with self.assertLogs('todos.services.cached_task_store', level='ERROR'):
            refused = await self.store.update_status(self.writing.id, 'active')

        self.assertFalse(refused.ok)
        self.assertIn('archived', refused.reason)
        self.assertEqual(errors[0]['operation'], 'update task status')
        self.assertEqual(self.backend.tasks[self.writing.id].status, 'archived')


class TestOfflineQueue(CachedTaskStoreTestBase):
    """Writes made while the backend is unreachable, and replaying them"""

    async def test_offline_create_queued_then_synced_once(self):
        created = self.listen(signals.task_created)
        local = await self.go_offline_and_create('Reading')

        self.assertTrue(local.id.startswith('local-'))
        entry = await self.cache.get(task_key(local.id))
        self.assertTrue(entry.metadata.needs_sync)
        self.assertTrue(entry.metadata.pending_create)
        self.assertTrue(created[0]['offline'])
        self.assertTrue(await self.store.has_unsynced_changes())

        self.backend.online = True
        creates_before = self.backend.calls['create_task']
        result = await self.store.sync()

        self.assertEqual(result.created, 1)
        self.assertEqual(self.backend.calls['create_task'] - creates_before, 1)
        self.assertFalse(await self.store.has_unsynced_changes())
        self.assertIsNone(await self.cache.get(task_key(local.id)))
        remote = [t for t in self.backend.tasks.values() if t.title == 'Reading']
        self.assertEqual(len(remote), 1)
        self.assertFalse((await self.cache.get(task_key(remote[0].id))).metadata.needs_sync)

        await self.store.sync()
        self.assertEqual(self.backend.calls['create_task'] - creates_before, 1)

    async def test_offline_create_shows_in_list_until_synced(self):
        await self.store.get_all()
        local = await self.go_offline_and_create('Reading')

        listed = await self.store.get_all()
        self.assertIn(local.id, [t.id for t in listed.value])

        self.backend.online = True
        await self.store.sync()
        listed = await self.store.get_all()
        self.assertEqual(sorted(t.title for t in listed.value), ['Reading', 'Writing'])
        self.assertFalse(any(t.id.startswith('local-') for t in listed.value))

    async def test_editing_queued_create_stays_local(self):
        local = await self.go_offline_and_create('Reading')

        await self.store.update(local.id, {'title': 'Reading list'})
        self.backend.online = True
        await self.store.sync()

        titles = [t.title for t in self.backend.tasks.values()]
        self.assertIn('Reading list', titles)
        self.assertNotIn('Reading', titles)

    async def test_offline_update_queued_then_synced(self):
        await self.store.get_by_id(self.writing.id)
        self.backend.online = False

        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            result = await self.store.update(self.writing.id, {'title': 'Editing'})

        self.assertTrue(result.ok)
        self.assertEqual(result.value.title, 'Editing')
        entry = await self.cache.get(task_key(self.writing.id))
        self.assertTrue(entry.metadata.needs_sync)
        self.assertEqual(entry.metadata.base_updated_at, self.writing.updated_at)

        self.backend.online = True
        updates_before = self.backend.calls['update_task']
        result = await self.store.sync()

        self.assertEqual(result.updated, 1)
        self.assertEqual(result.conflicts, 0)
        self.assertEqual(self.backend.calls['update_task'] - updates_before, 1)
        self.assertEqual(self.backend.tasks[self.writing.id].title, 'Editing')
        self.assertFalse(await self.store.has_unsynced_changes())

    async def test_online_update_carries_queued_offline_edit(self):
        await self.store.get_by_id(self.writing.id)
        self.backend.online = False
        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            await self.store.update(self.writing.id, {'title': 'Offline title'})
        self.backend.online = True

        result = await self.store.update(self.writing.id, {'priority': 'high'})
        await self.store.sync()

        self.assertTrue(result.ok)
        self.assertEqual(result.value.title, 'Offline title')
        remote = self.backend.tasks[self.writing.id]
        self.assertEqual(remote.title, 'Offline title')
        self.assertEqual(remote.priority, 'high')
        self.assertFalse(await self.store.has_unsynced_changes())

    async def test_online_update_of_task_deleted_offline(self):
        await self.store.get_all()
        self.backend.online = False
        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            await self.store.delete(self.writing.id)
        self.backend.online = True

        result = await self.store.update(self.writing.id, {'title': 'Editing'})

        self.assertTrue(result.ok)
        self.assertIsNone(result.value)
        self.assertTrue(await self.store.has_unsynced_changes())

    async def test_offline_update_without_cache_fails(self):
        self.backend.online = False

        with self.assertLogs('todos.services.cached_task_store', level='ERROR'):
            result = await self.store.update(self.writing.id, {'title': 'Editing'})

        self.assertFalse(result.ok)
        self.assertTrue(result.is_network_error)

    async def test_offline_delete_keeps_marked_entry(self):
        await self.store.get_all()
        self.backend.online = False

        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            result = await self.store.delete(self.writing.id)

        self.assertTrue(result.value)
        entry = await self.cache.get(task_key(self.writing.id))
        self.assertTrue(entry.value['is_deleted'])
        self.assertTrue(entry.metadata.needs_sync)
        self.assertEqual((await self.store.get_all()).value, [])
        self.assertIsNone((await self.store.get_by_id(self.writing.id)).value)

        self.backend.online = True
        result = await self.store.sync()

        self.assertEqual(result.deleted, 1)
        self.assertTrue(self.backend.tasks[self.writing.id].is_deleted)
        self.assertIsNone(await self.cache.get(task_key(self.writing.id)))

    async def test_deleting_queued_create_drops_it(self):
        local = await self.go_offline_and_create('Reading')

        await self.store.delete(local.id)
        self.backend.online = True
        result = await self.store.sync()

        self.assertEqual(result.total, 0)
        self.assertEqual(self.backend.calls['delete_task'], 0)
        self.assertFalse(await self.store.has_unsynced_changes())

    async def test_sync_while_still_offline_keeps_queue(self):
        await self.go_offline_and_create('Reading')

        with self.assertLogs('todos.services.cached_task_store', level='ERROR'):
            result = await self.store.sync()

        self.assertFalse(result.success)
        self.assertEqual(result.failed, 1)
        self.assertTrue(await self.store.has_unsynced_changes())

    async def test_sync_conflict_logged_and_local_wins(self):
        await self.store.get_by_id(self.writing.id)
        self.backend.online = False
        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            await self.store.update(self.writing.id, {'title': 'Local'})

        # Someone else edits the task meanwhile
        self.backend.tasks[self.writing.id] = replace(
            self.writing, title='Remote', updated_at=FIXED_NOW + timedelta(minutes=1),
        )
        self.backend.online = True

        with self.assertLogs('todos.services.cached_task_store', level='WARNING') as logs:
            result = await self.store.sync()

        self.assertEqual(result.conflicts, 1)
        self.assertEqual(result.updated, 1)
        self.assertIn('Sync conflict', logs.output[0])
        self.assertEqual(self.backend.tasks[self.writing.id].title, 'Local')

    async def test_task_removed_remotely_is_dropped(self):
        await self.store.get_by_id(self.writing.id)
        self.backend.online = False
        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            await self.store.update(self.writing.id, {'title': 'Local'})
        del self.backend.tasks[self.writing.id]
        self.backend.online = True

        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            result = await self.store.sync()

        self.assertEqual(result.failed, 1)
        self.assertFalse(await self.store.has_unsynced_changes())

    async def test_refresh_keeps_unsynced_changes_visible(self):
        await self.store.get_all()
        self.backend.online = False
        with self.assertLogs('todos.services.cached_task_store', level='WARNING'):
            await self.store.update(self.writing.id, {'title': 'Local'})
        self.backend.online = True

        refreshed = await self.store.refresh()

        self.assertEqual([t.title for t in refreshed.value], ['Local'])


class TestReconcileStatuses(CachedTaskStoreTestBase):
    """Deriving task status from time sessions"""

    async def test_statuses_follow_sessions(self):
        timed = self.writing
        idle = self.backend.add(title='Idle', status='active')
        paused = self.backend.add(title='Paused', status='active')
        done = self.backend.add(title='Done', status='completed')
        tasks = {t.id: t for t in [timed, idle, paused, done]}
        session_backend = FakeSessionBackend(tasks=tasks, clock=self.clock)
        session_backend.add(task_id=timed.id, start_time=FIXED_NOW - timedelta(minutes=5))
        session_backend.add(task_id=paused.id, start_time=FIXED_NOW - timedelta(hours=2),
                            end_time=FIXED_NOW - timedelta(hours=1))
        session_backend.add(task_id=done.id, start_time=FIXED_NOW - timedelta(minutes=5))

        result = await self.store.reconcile_statuses(SessionStore(session_backend, clock=self.clock))

        self.assertEqual(len(result.value), 3)
        statuses = {t.title: t.status for t in self.backend.tasks.values()}
        self.assertEqual(statuses, {
            'Writing': 'active',
            'Idle': 'pending',
            'Paused': 'paused',
            'Done': 'completed',
        })
