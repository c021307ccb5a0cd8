"""
Wiring for the task and session services.

Views and management commands build their collaborators through
`ServiceContainer.from_settings()`; tests construct a container directly with
fake backends, an in-memory cache and a fixed clock.
"""
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from tasktracker.network import NetworkStatus, SyncManager
from tasktracker.supabase_client import SupabaseAPIClient
from time_sessions.services.session_backend import SupabaseSessionBackend
from time_sessions.services.session_store import SessionStore
from todos.cache import DatabaseCacheBackend, MemoryCacheBackend
from todos.services.cached_task_store import DEFAULT_STALE_AFTER, CachedTaskStore
from todos.services.task_backend import SupabaseTaskBackend

CACHE_BACKENDS = {
    'database': DatabaseCacheBackend,
    'memory': MemoryCacheBackend,
}


def cache_from_settings():
    config = getattr(settings, 'TASK_CACHE', {})
    name = config.get('BACKEND', 'database')
    try:
        return CACHE_BACKENDS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown TASK_CACHE backend {name!r}. Choose one of: {', '.join(CACHE_BACKENDS)}"
        ) from None


def stale_after_from_settings():
    seconds = getattr(settings, 'TASK_CACHE', {}).get('STALE_AFTER_SECONDS')
    return timedelta(seconds=seconds) if seconds is not None else DEFAULT_STALE_AFTER


class ServiceContainer:
    """Owns one task store, one session store and the sync manager over them."""

    def __init__(self, task_backend, session_backend, cache, clock=None,
                 stale_after=DEFAULT_STALE_AFTER, network_status=None):
        self.clock = clock or timezone.now
        self.network_status = network_status or NetworkStatus()
        self.tasks = CachedTaskStore(task_backend, cache, clock=self.clock, stale_after=stale_after)
        self.sessions = SessionStore(session_backend, clock=self.clock)
        self.sync_manager = SyncManager(self.network_status)
        self.sync_manager.register(self.tasks)

    @classmethod
    def from_settings(cls, client=None):
        """
        Build the production container.

        Raises:
            ValueError: Supabase credentials or TASK_CACHE are misconfigured
        """
        client = client or SupabaseAPIClient()
        return cls(
            task_backend=SupabaseTaskBackend(client),
            session_backend=SupabaseSessionBackend(client),
            cache=cache_from_settings(),
            stale_after=stale_after_from_settings(),
        )
