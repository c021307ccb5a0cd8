"""
Local key-value cache for task records.

Two backends share one async interface: MemoryCacheBackend keeps entries in
the process, DatabaseCacheBackend persists them in the CachedRecord table so
queued offline writes survive a restart. Values must be JSON-serializable.

The cache is shared by every store built on the same backend and has no
cross-process locking: two processes writing the same key overwrite each
other (last write wins).
"""
import json
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional

from asgiref.sync import sync_to_async
from django.utils import timezone

from todos.models import CachedRecord


@dataclass(frozen=True)
class CacheMetadata:
    created_at: datetime
    last_accessed_at: datetime
    needs_sync: bool = False
    pending_create: bool = False
    version: int = 1
    base_updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    metadata: CacheMetadata


class CacheBackend:
    """Async key-value storage with per-entry metadata."""

    async def get(self, key) -> Optional[CacheEntry]:
        raise NotImplementedError

    async def set(self, key, value, accessed_at=None, needs_sync=False,
                  pending_create=False, base_updated_at=None) -> CacheEntry:
        raise NotImplementedError

    async def remove(self, key) -> bool:
        raise NotImplementedError

    async def keys(self, prefix=''):
        raise NotImplementedError

    async def clear(self):
        raise NotImplementedError


class MemoryCacheBackend(CacheBackend):
    """In-process cache. Values go through JSON like the persistent backend."""

    def __init__(self):
        self._entries = {}

    async def get(self, key):
        entry = self._entries.get(key)
        if entry is None:
            return None
        return replace(entry, value=json.loads(entry.value))

    async def set(self, key, value, accessed_at=None, needs_sync=False,
                  pending_create=False, base_updated_at=None):
        accessed_at = accessed_at or timezone.now()
        previous = self._entries.get(key)
        metadata = CacheMetadata(
            created_at=previous.metadata.created_at if previous else accessed_at,
            last_accessed_at=accessed_at,
            needs_sync=needs_sync,
            pending_create=pending_create,
            version=previous.metadata.version + 1 if previous else 1,
            base_updated_at=base_updated_at,
        )
        self._entries[key] = CacheEntry(value=json.dumps(value), metadata=metadata)
        return CacheEntry(value=value, metadata=metadata)

    async def remove(self, key):
        return self._entries.pop(key, None) is not None

    async def keys(self, prefix=''):
        return sorted(k for k in self._entries if k.startswith(prefix))

    async def clear(self):
        self._entries.clear()


def _entry_from_record(record):
    return CacheEntry(
        value=record.value,
        metadata=CacheMetadata(
            created_at=record.created_at,
            last_accessed_at=record.last_accessed_at,
            needs_sync=record.needs_sync,
            pending_create=record.pending_create,
            version=record.version,
            base_updated_at=record.base_updated_at,
        ),
    )


class DatabaseCacheBackend(CacheBackend):
    """Cache persisted in the CachedRecord table, one namespace per cache."""

    def __init__(self, namespace='tasks'):
        self.namespace = namespace

    def _get(self, key):
        record = CachedRecord.objects.filter(namespace=self.namespace, key=key).first()
        return _entry_from_record(record) if record else None

    def _set(self, key, value, accessed_at, needs_sync, pending_create, base_updated_at):
        record = CachedRecord.objects.filter(namespace=self.namespace, key=key).first()
        if record is None:
            record = CachedRecord(namespace=self.namespace, key=key, version=1)
        else:
            record.version += 1
        record.value = value
        record.last_accessed_at = accessed_at or timezone.now()
        record.needs_sync = needs_sync
        record.pending_create = pending_create
        record.base_updated_at = base_updated_at
        record.save()
        return _entry_from_record(record)

    def _remove(self, key):
        deleted, _ = CachedRecord.objects.filter(namespace=self.namespace, key=key).delete()
        return deleted > 0

    def _keys(self, prefix):
        return list(
            CachedRecord.objects
            .filter(namespace=self.namespace, key__startswith=prefix)
            .order_by('key')
            .values_list('key', flat=True)
        )

    def _clear(self):
        CachedRecord.objects.filter(namespace=self.namespace).delete()

    async def get(self, key):
        return await sync_to_async(self._get)(key)

    async def set(self, key, value, accessed_at=None, needs_sync=False,
                  pending_create=False, base_updated_at=None):
        return await sync_to_async(self._set)(
            key, value, accessed_at, needs_sync, pending_create, base_updated_at,
        )

    async def remove(self, key):
        return await sync_to_async(self._remove)(key)

    async def keys(self, prefix=''):
        return await sync_to_async(self._keys)(prefix)

    async def clear(self):
        await sync_to_async(self._clear)()
