"""Tests for task status rules."""
from django.test import SimpleTestCase

from todos.status import TaskStatus, determine_status_from_sessions, is_valid_status_transition


class TestStatusTransitions(SimpleTestCase):

    def test_allowed_transitions(self):
        self.assertTrue(is_valid_status_transition('pending', 'active'))
        self.assertTrue(is_valid_status_transition('active', 'paused'))
        self.assertTrue(is_valid_status_transition('paused', 'completed'))
        self.assertTrue(is_valid_status_transition('completed', 'pending'))

    def test_same_status_allowed(self):
        self.assertTrue(is_valid_status_transition('archived', 'archived'))

    def test_disallowed_transitions(self):
        self.assertFalse(is_valid_status_transition('archived', 'active'))
        self.assertFalse(is_valid_status_transition('completed', 'paused'))
        self.assertFalse(is_valid_status_transition('pending', 'paused'))

    def test_unknown_values(self):
        self.assertFalse(is_valid_status_transition('pending', 'done'))
        self.assertFalse(is_valid_status_transition('someday', 'pending'))

    def test_accepts_enum_members(self):
        self.assertTrue(is_valid_status_transition(TaskStatus.PENDING, TaskStatus.ARCHIVED))


class TestStatusFromSessions(SimpleTestCase):

    def test_running_session_makes_task_active(self):
        self.assertEqual(determine_status_from_sessions('pending', True, True), TaskStatus.ACTIVE)
        self.assertEqual(determine_status_from_sessions('paused', True, True), TaskStatus.ACTIVE)

    def test_sessions_without_running_one_pause_task(self):
        self.assertEqual(determine_status_from_sessions('active', True, False), TaskStatus.PAUSED)

    def test_no_sessions_means_pending(self):
        self.assertEqual(determine_status_from_sessions('active', False, False), TaskStatus.PENDING)

    def test_terminal_statuses_kept(self):
        self.assertEqual(determine_status_from_sessions('completed', True, True), TaskStatus.COMPLETED)
        self.assertEqual(determine_status_from_sessions('archived', False, False), TaskStatus.ARCHIVED)
