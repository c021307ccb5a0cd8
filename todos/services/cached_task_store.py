"""
Cache-augmented task store.

Wraps a task backend with a local cache:

- Reads are read-through and stale-while-revalidate. A cached list or record
  is returned at once; when it is older than `stale_after` one background
  refresh is started (single flight) and `tasks_loaded` is sent again when it
  lands. Background failures are logged and signalled, never raised.
- Writes are write-through. When the backend is unreachable (NetworkError)
  the change is merged into the cache and the entry is flagged
  `needs_sync`; `sync()` replays the queue once the backend is back.
  Offline creates get a `local-` id, offline deletes keep the entry with
  `is_deleted=True` until it is synced.

Cache layout: `all_tasks` holds the list, `task_<id>` one record each.
Every entry carries a version and the backend `updated_at` it was based on,
which `sync()` uses to log conflicts before overwriting (last write wins).
"""
import asyncio
import logging
import uuid
from datetime import timedelta

from django.utils import timezone

from tasktracker.errors import BackendError, NetworkError
from tasktracker.results import Failure, Success
from tasktracker.signals import emit
from tasktracker.sync_utils import SyncResult
from todos import signals
from todos.records import Task, writable_data
from todos.status import TaskStatus, determine_status_from_sessions, is_valid_status_transition

logger = logging.getLogger(__name__)

ALL_TASKS_KEY = 'all_tasks'
TASK_KEY_PREFIX = 'task_'
LOCAL_ID_PREFIX = 'local-'
DEFAULT_STALE_AFTER = timedelta(minutes=5)


def task_key(task_id):
    return f'{TASK_KEY_PREFIX}{task_id}'


def _upsert(records, record):
    for index, existing in enumerate(records):
        if existing['id'] == record['id']:
            records[index] = record
            return records
    records.append(record)
    return records


def _without(records, task_id):
    return [r for r in records if r['id'] != task_id]


class CachedTaskStore:
    """Task reads and writes with a local cache and an offline write queue."""

    source_name = 'Tasks'

    def __init__(self, backend, cache, clock=None, stale_after=DEFAULT_STALE_AFTER):
        self.backend = backend
        self.cache = cache
        self.clock = clock or timezone.now
        self.stale_after = stale_after
        self._refresh_task = None
        self._record_refreshes = {}

    # Helpers

    def _is_stale(self, entry):
        return self.clock() - entry.metadata.last_accessed_at > self.stale_after

    def _fail(self, operation, error):
        logger.error("Task %s failed: %s", operation, error)
        emit(signals.task_error, self, error=error, operation=operation)
        return Failure(f"Could not {operation}: {error}", error)

    async def _update_list(self, transform):
        """Apply a local edit to the cached list without touching its freshness."""
        entry = await self.cache.get(ALL_TASKS_KEY)
        if entry is None:
            return
        await self.cache.set(
            ALL_TASKS_KEY,
            transform(list(entry.value)),
            accessed_at=entry.metadata.last_accessed_at,
        )

    async def _cache_task(self, task):
        """Store a task as confirmed by the backend."""
        record = task.to_record()
        await self.cache.set(
            task_key(task.id),
            record,
            accessed_at=self.clock(),
            base_updated_at=task.updated_at,
        )
        await self._update_list(lambda records: _upsert(records, record))

    async def _uncache_task(self, task_id):
        await self.cache.remove(task_key(task_id))
        await self._update_list(lambda records: _without(records, task_id))

    async def _find_cached(self, task_id):
        """Cached record for a task, from its own entry or the list. Returns (task, entry)."""
        entry = await self.cache.get(task_key(task_id))
        if entry is not None:
            return Task.from_record(entry.value), entry
        listed = await self.cache.get(ALL_TASKS_KEY)
        if listed is not None:
            for record in listed.value:
                if record['id'] == task_id:
                    return Task.from_record(record), None
        return None, None

    async def _dirty_entries(self):
        dirty = []
        for key in await self.cache.keys(TASK_KEY_PREFIX):
            entry = await self.cache.get(key)
            if entry is not None and entry.metadata.needs_sync:
                dirty.append((key, entry))
        return dirty

    # Reads

    async def _fetch_all(self):
        tasks = await self.backend.get_tasks()
        records = [t.to_record() for t in tasks if not t.is_deleted]

        # Unsynced local changes stay visible until sync() replays them
        for _, entry in await self._dirty_entries():
            if entry.value.get('is_deleted'):
                records = _without(records, entry.value['id'])
            else:
                records = _upsert(records, entry.value)

        await self.cache.set(ALL_TASKS_KEY, records, accessed_at=self.clock())
        tasks = [Task.from_record(r) for r in records]
        emit(signals.tasks_loaded, self, tasks=tasks)
        return tasks

    async def _background_refresh(self):
        try:
            await self._fetch_all()
        except BackendError as e:
            logger.error("Background task refresh failed: %s", e)
            emit(signals.task_error, self, error=e, operation='background refresh')
        except Exception:
            logger.exception("Background task refresh failed")

    def _refresh_in_background(self):
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(self._background_refresh())
        return self._refresh_task

    async def _background_refresh_record(self, task_id):
        try:
            task = await self.backend.get_task_by_id(task_id)
            if task is not None:
                await self._cache_task(task)
        except BackendError as e:
            logger.error("Background task refresh failed for task %s: %s", task_id, e)
        except Exception:
            logger.exception("Background task refresh failed for task %s", task_id)
        finally:
            self._record_refreshes.pop(task_id, None)

    def _refresh_record_in_background(self, task_id):
        pending = self._record_refreshes.get(task_id)
        if pending is None or pending.done():
            pending = asyncio.get_running_loop().create_task(self._background_refresh_record(task_id))
            self._record_refreshes[task_id] = pending
        return pending

    async def wait_for_refresh(self):
        """Wait for any in-flight background refresh to finish."""
        pending = [t for t in [self._refresh_task, *self._record_refreshes.values()] if t is not None]
        if pending:
            await asyncio.gather(*pending)

    async def get_all(self):
        """
        All tasks that aren't deleted.

        Returns the cached list immediately when there is one, starting a
        background refresh if it is stale. Without a cache the backend is
        queried; a network failure then yields a Failure.
        """
        entry = await self.cache.get(ALL_TASKS_KEY)
        if entry is not None:
            if self._is_stale(entry):
                self._refresh_in_background()
            tasks = [Task.from_record(r) for r in entry.value]
            emit(signals.tasks_loaded, self, tasks=tasks)
            return Success(tasks, from_cache=True)

        try:
            return Success(await self._fetch_all())
        except BackendError as e:
            return self._fail('load tasks', e)

    async def get_by_id(self, task_id):
        """A single task, or Success(None) if it doesn't exist (or was deleted offline)."""
        entry = await self.cache.get(task_key(task_id))
        if entry is not None:
            task = Task.from_record(entry.value)
            if entry.metadata.needs_sync:
                return Success(None if task.is_deleted else task, from_cache=True)
            if self._is_stale(entry):
                self._refresh_record_in_background(task_id)
            return Success(task, from_cache=True)

        try:
            task = await self.backend.get_task_by_id(task_id)
        except NetworkError as e:
            listed, _ = await self._find_cached(task_id)
            if listed is not None:
                logger.warning("Serving cached task %s (offline): %s", task_id, e)
                return Success(listed, from_cache=True)
            return self._fail('load task', e)
        except BackendError as e:
            return self._fail('load task', e)
        if task is not None:
            await self._cache_task(task)
        return Success(task)

    async def refresh(self):
        """Reload the task list from the backend now."""
        try:
            return Success(await self._fetch_all())
        except BackendError as e:
            return self._fail('refresh tasks', e)

    async def force_refresh(self):
        """Reload the list and rewrite every clean per-task entry."""
        try:
            tasks = await self._fetch_all()
        except BackendError as e:
            return self._fail('refresh tasks', e)
        dirty_keys = {key for key, _ in await self._dirty_entries()}
        for task in tasks:
            if task_key(task.id) not in dirty_keys:
                await self.cache.set(
                    task_key(task.id), task.to_record(),
                    accessed_at=self.clock(), base_updated_at=task.updated_at,
                )
        return Success(tasks)

    # Writes

    async def create(self, data):
        try:
            task = await self.backend.create_task(dict(data))
        except NetworkError as e:
            return await self._create_offline(data, e)
        except BackendError as e:
            return self._fail('create task', e)
        if task is None:
            return self._fail('create task', BackendError("Backend returned no task"))

        await self._cache_task(task)
        emit(signals.task_created, self, task=task, offline=False)
        emit(signals.tasks_changed, self)
        return Success(task)

    async def _create_offline(self, data, error):
        now = self.clock()
        task = Task(id=f'{LOCAL_ID_PREFIX}{uuid.uuid4()}', created_at=now).merged(data, updated_at=now)
        record = task.to_record()
        await self.cache.set(
            task_key(task.id), record, accessed_at=now, needs_sync=True, pending_create=True,
        )
        await self._update_list(lambda records: _upsert(records, record))
        logger.warning("Task creation queued for later sync (offline): %s", error)
        emit(signals.task_created, self, task=task, offline=True)
        emit(signals.tasks_changed, self)
        return Success(task)

    async def _merge_locally(self, task_id, data, error, operation):
        """Apply `data` to the cached task and queue it for sync."""
        task, entry = await self._find_cached(task_id)
        if task is None:
            return self._fail(operation, error)
        now = self.clock()
        merged = task.merged(data, updated_at=now)
        record = merged.to_record()
        await self.cache.set(
            task_key(task_id),
            record,
            accessed_at=now,
            needs_sync=True,
            pending_create=entry.metadata.pending_create if entry else False,
            base_updated_at=entry.metadata.base_updated_at if entry else task.updated_at,
        )
        if merged.is_deleted:
            await self._update_list(lambda records: _without(records, task_id))
        else:
            await self._update_list(lambda records: _upsert(records, record))
        return Success(merged)

    async def update(self, task_id, data):
        """Update a task; Success(None) if the backend has no such task."""
        entry = await self.cache.get(task_key(task_id))
        if entry is not None and entry.metadata.pending_create:
            # Not on the backend yet, keep it in the queue
            result = await self._merge_locally(task_id, data, None, 'update task')
            emit(signals.task_updated, self, task=result.value, offline=True)
            return result

        payload = dict(data)
        if entry is not None and entry.metadata.needs_sync:
            # Queued offline edits go out with this write
            queued = Task.from_record(entry.value)
            if queued.is_deleted:
                return Success(None)
            payload = writable_data(queued.merged(data))

        try:
            task = await self.backend.update_task(task_id, payload)
        except NetworkError as e:
            result = await self._merge_locally(task_id, data, e, 'update task')
            if result.ok:
                logger.warning("Task %s update queued for later sync (offline)", task_id)
                emit(signals.task_updated, self, task=result.value, offline=True)
            return result
        except BackendError as e:
            return self._fail('update task', e)
        if task is None:
            return Success(None)

        await self._cache_task(task)
        emit(signals.task_updated, self, task=task, offline=False)
        emit(signals.tasks_changed, self)
        return Success(task)

    async def update_status(self, task_id, status):
        """Change a task's status after checking the transition is allowed."""
        current = await self.get_by_id(task_id)
        if not current.ok or current.value is None:
            return current
        if not is_valid_status_transition(current.value.status, status):
            return self._fail(
                'update task status',
                ValueError(f"Cannot transition from {current.value.status} to {status}"),
            )
        return await self.update(task_id, {'status': TaskStatus(status).value})

    async def delete(self, task_id):
        """Delete a task; Success(False) if the backend has no such task."""
        entry = await self.cache.get(task_key(task_id))
        if entry is not None and entry.metadata.pending_create:
            # Never reached the backend, nothing to replay
            await self._uncache_task(task_id)
            emit(signals.task_deleted, self, task_id=task_id, offline=True)
            return Success(True)

        try:
            deleted = await self.backend.delete_task(task_id)
        except NetworkError as e:
            result = await self._merge_locally(task_id, {'is_deleted': True}, e, 'delete task')
            if not result.ok:
                return result
            logger.warning("Task %s deletion queued for later sync (offline)", task_id)
            emit(signals.task_deleted, self, task_id=task_id, offline=True)
            return Success(True)
        except BackendError as e:
            return self._fail('delete task', e)

        if deleted:
            await self._uncache_task(task_id)
            emit(signals.task_deleted, self, task_id=task_id, offline=False)
            emit(signals.tasks_changed, self)
        return Success(bool(deleted))

    # Offline queue

    async def has_unsynced_changes(self):
        return bool(await self._dirty_entries())

    async def _has_conflict(self, task, entry):
        base = entry.metadata.base_updated_at
        if base is None:
            return False
        remote = await self.backend.get_task_by_id(task.id)
        if remote is None or remote.updated_at is None or remote.updated_at <= base:
            return False
        logger.warning(
            "Sync conflict on task %s: backend changed at %s after local base %s; keeping local version",
            task.id, remote.updated_at.isoformat(), base.isoformat(),
        )
        return True

    async def _replace_local_id(self, local_id, created):
        await self.cache.remove(task_key(local_id))
        await self.cache.set(
            task_key(created.id), created.to_record(),
            accessed_at=self.clock(), base_updated_at=created.updated_at,
        )
        record = created.to_record()
        await self._update_list(lambda records: _upsert(_without(records, local_id), record))

    async def _sync_entry(self, key, entry, result):
        task = Task.from_record(entry.value)
        if entry.metadata.pending_create:
            created = await self.backend.create_task(writable_data(task))
            if created is None:
                raise BackendError("Backend returned no task")
            await self._replace_local_id(task.id, created)
            result.created += 1
        elif task.is_deleted:
            await self.backend.delete_task(task.id)
            await self.cache.remove(key)
            result.deleted += 1
        else:
            if await self._has_conflict(task, entry):
                result.conflicts += 1
            updated = await self.backend.update_task(task.id, writable_data(task))
            if updated is None:
                logger.warning("Task %s no longer exists on the backend, dropping local changes", task.id)
                await self._uncache_task(task.id)
                result.failed += 1
                return
            await self._cache_task(updated)
            result.updated += 1

    async def sync(self):
        """
        Replay queued offline changes to the backend.

        A record that fails is logged and left queued; the rest carry on.
        Running sync again only retries what is still queued.
        """
        result = SyncResult(source=self.source_name)
        for key, entry in await self._dirty_entries():
            try:
                await self._sync_entry(key, entry, result)
            except BackendError as e:
                logger.error("Failed to sync task %s: %s", entry.value.get('id'), e)
                result.failed += 1

        if result.failed:
            result.success = False
            result.error_message = f"{result.failed} task(s) could not be synced"
        if result.created or result.updated or result.deleted:
            emit(signals.tasks_changed, self)
        return result

    async def reconcile_statuses(self, session_store):
        """
        Move open tasks between pending/active/paused to match their sessions.

        Returns:
            Success(list of updated Task) or the Failure of loading tasks
        """
        loaded = await self.get_all()
        if not loaded.ok:
            return loaded
        updated = []
        for task in loaded.value:
            if task.status not in {s.value for s in TaskStatus}:
                continue
            sessions = await session_store.get_sessions_by_task_id(task.id)
            if not sessions.ok:
                continue
            status = determine_status_from_sessions(
                task.status,
                bool(sessions.value),
                any(s.is_active for s in sessions.value),
            )
            if status.value != task.status:
                result = await self.update(task.id, {'status': status.value})
                if result.ok and result.value is not None:
                    updated.append(result.value)
        if updated:
            logger.info("Updated status for %d tasks based on sessions", len(updated))
            emit(signals.tasks_changed, self)
        return Success(updated)
