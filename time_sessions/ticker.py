"""
Live counter for running sessions.

The duration calculator holds no timers. ActiveSessionTicker owns the one
periodic task that re-evaluates it: once per interval it sums the effective
duration of the watched sessions and hands the total to `on_tick`. The task
ends by itself when no watched session is running, and `stop()` cancels it on
teardown.
"""
import asyncio
import logging

from django.utils import timezone

from time_sessions.durations import total_duration_seconds

logger = logging.getLogger(__name__)


class ActiveSessionTicker:
    """Calls on_tick(total_seconds) every `interval` seconds while sessions run."""

    def __init__(self, on_tick, interval=1.0, clock=None):
        self.on_tick = on_tick
        self.interval = interval
        self.clock = clock or timezone.now
        self._sessions = []
        self._task = None

    @property
    def running(self):
        return self._task is not None and not self._task.done()

    def _has_active(self):
        return any(s.is_active and not s.is_deleted for s in self._sessions)

    def watch(self, sessions):
        """Replace the watched sessions; starts ticking if one of them runs."""
        self._sessions = list(sessions)
        if self._has_active() and not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self.running

    async def _run(self):
        while self._has_active():
            total = total_duration_seconds(self._sessions, self.clock())
            try:
                self.on_tick(total)
            except Exception:
                logger.exception("Session tick callback failed")
            await asyncio.sleep(self.interval)
        logger.debug("No active sessions left, ticker stopped")

    async def stop(self):
        """Cancel the periodic task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
