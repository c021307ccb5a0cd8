"""
Connectivity state and the offline sync manager.

NetworkStatus only records what the caller tells it (a failed request, a
health check, a browser event relayed by the front end). SyncManager listens
for the transition back online and flushes every registered store's offline
queue.
"""
import asyncio
import logging

from tasktracker.signals import connectivity_changed, emit

logger = logging.getLogger(__name__)


class NetworkStatus:
    """Online/offline flag that sends `connectivity_changed` on transitions."""

    def __init__(self, online=True):
        self._online = online

    @property
    def online(self):
        return self._online

    def set_online(self, online):
        online = bool(online)
        if online == self._online:
            return
        self._online = online
        logger.info("Network status changed: %s", 'online' if online else 'offline')
        emit(connectivity_changed, self, online=online)


class SyncManager:
    """Flushes the offline queues of registered stores when the network returns."""

    def __init__(self, network_status):
        self.network_status = network_status
        self.stores = []
        self._sync_task = None
        connectivity_changed.connect(self._on_connectivity_changed, sender=network_status)

    def register(self, store):
        """Add a store exposing `source_name` and `async sync() -> SyncResult`."""
        if store not in self.stores:
            self.stores.append(store)
        return store

    def _on_connectivity_changed(self, sender, online, **kwargs):
        if not online:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.info("Back online with no event loop running; changes sync on the next sync_all()")
            return
        if self._sync_task is None or self._sync_task.done():
            self._sync_task = loop.create_task(self._sync_in_background())

    async def _sync_in_background(self):
        try:
            await self.sync_all()
        except Exception:
            logger.exception("Sync after reconnect failed")

    async def wait_for_sync(self):
        if self._sync_task is not None:
            await self._sync_task

    async def sync_all(self):
        """
        Replay every registered store's queued changes.

        Returns:
            List of SyncResult, one per store (empty when offline)
        """
        if not self.network_status.online:
            logger.info("Offline, skipping sync")
            return []
        results = []
        for store in self.stores:
            result = await store.sync()
            logger.info("Synced %s: %s", store.source_name, result.summary)
            results.append(result)
        return results
