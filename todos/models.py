from django.db import models


class CachedRecord(models.Model):
    """
    One entry of the local task cache (see todos.cache.DatabaseCacheBackend).

    `value` holds the JSON form of a task or of the task list. The metadata
    columns drive stale-while-revalidate and the offline write queue.
    """

    namespace = models.CharField(max_length=100, default='tasks')
    key = models.CharField(max_length=255)
    value = models.JSONField(null=True, blank=True)
    last_accessed_at = models.DateTimeField(
        help_text="When the entry was last written; cache freshness is measured from here"
    )
    needs_sync = models.BooleanField(default=False)  # Changed offline, not yet on the backend
    pending_create = models.BooleanField(default=False)  # Created offline under a local id
    version = models.PositiveIntegerField(default=1)  # Bumped on every write
    base_updated_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Backend updated_at the cached value was derived from"
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['namespace', 'key']
        unique_together = ['namespace', 'key']
        indexes = [
            models.Index(fields=['namespace', 'needs_sync'], name='todos_cache_needs_sync_idx'),
        ]
        verbose_name = 'Cached Record'
        verbose_name_plural = 'Cached Records'

    def __str__(self):
        flag = ' (needs sync)' if self.needs_sync else ''
        return f"{self.namespace}:{self.key} v{self.version}{flag}"
