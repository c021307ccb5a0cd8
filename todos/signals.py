"""
Events sent by CachedTaskStore. The store instance is always the sender, so
receivers connect with `sender=store` to follow one store.

Payload keyword arguments:
    tasks_loaded   tasks (list of Task)
    task_created   task (Task), offline (bool)
    task_updated   task (Task), offline (bool)
    task_deleted   task_id (str), offline (bool)
    tasks_changed  (none)
    task_error     error (Exception), operation (str)
"""
from django.dispatch import Signal

tasks_loaded = Signal()
task_created = Signal()
task_updated = Signal()
task_deleted = Signal()
tasks_changed = Signal()
task_error = Signal()
