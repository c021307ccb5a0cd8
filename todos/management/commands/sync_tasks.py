"""
Django management command to push offline task changes to Supabase.

Tasks created, edited or deleted while the backend was unreachable are kept
in the local cache with a needs-sync flag. This command replays them once.

Usage:
    python manage.py sync_tasks
    python manage.py sync_tasks --reconcile-statuses
"""
from asgiref.sync import async_to_sync

from tasktracker.container import ServiceContainer
from tasktracker.sync_utils import BaseSyncCommand


class Command(BaseSyncCommand):
    help = 'Push task changes queued while offline to Supabase'
    source_name = 'Tasks'

    def add_arguments(self, parser):
        parser.add_argument(
            '--reconcile-statuses',
            action='store_true',
            help='Afterwards, set pending/active/paused from each task\'s time sessions'
        )

    def sync(self, **options):
        self.stdout.write(self.style.SUCCESS('=' * 60))
        self.stdout.write(self.style.SUCCESS('  TASK OFFLINE QUEUE SYNC'))
        self.stdout.write(self.style.SUCCESS('=' * 60))

        try:
            services = ServiceContainer.from_settings()
        except ValueError as e:
            self.stdout.write(self.style.ERROR(f'Configuration error: {e}'))
            raise

        return async_to_sync(self._sync)(services, options.get('reconcile_statuses', False))

    async def _sync(self, services, reconcile):
        if await services.tasks.has_unsynced_changes():
            self.stdout.write('Replaying queued changes...')
        else:
            self.stdout.write('No queued changes to sync')
        result = await services.tasks.sync()

        if reconcile:
            self.stdout.write('\nReconciling task statuses with time sessions...')
            reconciled = await services.tasks.reconcile_statuses(services.sessions)
            if reconciled.ok:
                self.stdout.write(f'Updated status of {len(reconciled.value)} task(s)')
            else:
                self.stdout.write(self.style.WARNING(f'Skipped: {reconciled.reason}'))
        return result
