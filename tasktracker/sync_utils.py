"""
Shared sync infrastructure for the offline write queue.

SyncResult: structured return type for store syncs and sync commands.
BaseSyncCommand: base class for management commands that flush a queue.
"""

from dataclasses import dataclass
from django.core.management.base import BaseCommand


@dataclass
class SyncResult:
    """Structured result from a sync operation."""

    source: str
    success: bool = True
    created: int = 0
    updated: int = 0
    deleted: int = 0
    failed: int = 0
    conflicts: int = 0
    error_message: str = ""

    @property
    def total(self):
        return self.created + self.updated + self.deleted + self.failed

    @property
    def summary(self):
        if not self.success:
            return f"Failed: {self.error_message}"
        parts = []
        if self.created:
            parts.append(f"{self.created} created")
        if self.updated:
            parts.append(f"{self.updated} updated")
        if self.deleted:
            parts.append(f"{self.deleted} deleted")
        if self.failed:
            parts.append(f"{self.failed} failed")
        if self.conflicts:
            parts.append(f"{self.conflicts} conflicts")
        return ", ".join(parts) if parts else "No records processed"


class BaseSyncCommand(BaseCommand):
    """
    Base class for sync management commands.

    Provides:
    - self.sync_result for structured result access after handle()
    - a summary block in the project's usual stdout format

    Subclasses should override `sync(**options)` and return a SyncResult.
    """

    # Subclasses set this to their source name (e.g., 'Tasks')
    source_name = ""

    def handle(self, *_args, **options):
        self.sync_result = self.sync(**options)
        self.write_summary(self.sync_result)

    def sync(self, **options):
        """Override in subclasses. Must return a SyncResult."""
        raise NotImplementedError

    def make_result(self, **kwargs):
        """Convenience: create a SyncResult pre-filled with self.source_name."""
        return SyncResult(source=self.source_name, **kwargs)

    def make_error_result(self, message):
        """Create a failed SyncResult."""
        return SyncResult(
            source=self.source_name,
            success=False,
            error_message=message,
        )

    def write_summary(self, result):
        self.stdout.write('\n' + '=' * 60)
        self.stdout.write(self.style.SUCCESS('  SYNC SUMMARY'))
        self.stdout.write('=' * 60)
        if not result.success:
            self.stdout.write(self.style.ERROR(f'✗ {result.summary}'))
        else:
            self.stdout.write(self.style.SUCCESS(f'✓ Created: {result.created}'))
            self.stdout.write(self.style.WARNING(f'↻ Updated: {result.updated}'))
            self.stdout.write(f'⊘ Deleted: {result.deleted}')
            if result.failed:
                self.stdout.write(self.style.ERROR(f'✗ Failed: {result.failed}'))
            if result.conflicts:
                self.stdout.write(self.style.WARNING(f'! Conflicts: {result.conflicts}'))
        self.stdout.write('=' * 60)
