"""Task status values and the rules for moving between them."""
from enum import Enum


class TaskStatus(str, Enum):
    PENDING = 'pending'
    ACTIVE = 'active'
    IN_PROGRESS = 'in_progress'
    PAUSED = 'paused'
    COMPLETED = 'completed'
    ARCHIVED = 'archived'


TERMINAL_STATUSES = (TaskStatus.COMPLETED, TaskStatus.ARCHIVED)

VALID_STATUS_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.ACTIVE, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.ARCHIVED},
    TaskStatus.ACTIVE: {TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.PAUSED,
                        TaskStatus.COMPLETED, TaskStatus.ARCHIVED},
    TaskStatus.IN_PROGRESS: {TaskStatus.PENDING, TaskStatus.ACTIVE, TaskStatus.PAUSED,
                             TaskStatus.COMPLETED, TaskStatus.ARCHIVED},
    TaskStatus.PAUSED: {TaskStatus.PENDING, TaskStatus.ACTIVE, TaskStatus.IN_PROGRESS,
                        TaskStatus.COMPLETED, TaskStatus.ARCHIVED},
    TaskStatus.COMPLETED: {TaskStatus.PENDING, TaskStatus.ACTIVE, TaskStatus.ARCHIVED},
    TaskStatus.ARCHIVED: {TaskStatus.PENDING, TaskStatus.COMPLETED},
}


def is_valid_status_transition(current, target):
    """True if a task may move from `current` to `target` (same status is always allowed)."""
    try:
        current, target = TaskStatus(current), TaskStatus(target)
    except ValueError:
        return False
    return current == target or target in VALID_STATUS_TRANSITIONS[current]


def determine_status_from_sessions(current, has_sessions, is_currently_timed):
    """
    Status a task should have given its sessions.

    Completed and archived tasks keep their status. A running session makes
    the task active; sessions without a running one mean paused; no sessions
    at all means pending.
    """
    current = TaskStatus(current)
    if current in TERMINAL_STATUSES:
        return current
    if is_currently_timed:
        return TaskStatus.ACTIVE
    if has_sessions:
        return TaskStatus.PAUSED
    return TaskStatus.PENDING
