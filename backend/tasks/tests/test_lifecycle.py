"""
Tests for the task status state machine.
"""

from django.test import SimpleTestCase

from tasks.errors import ErrorCode, InvalidTransitionError, TransitionGuardError
from tasks.lifecycle import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    TaskStatus,
    Transition,
    can_transition,
    is_terminal,
    validate_transition,
)


class TaskStatusTests(SimpleTestCase):

    def test_parse_accepts_value_name_and_member(self):
        self.assertEqual(TaskStatus.parse('In Progress'), TaskStatus.IN_PROGRESS)
        self.assertEqual(TaskStatus.parse('IN_PROGRESS'), TaskStatus.IN_PROGRESS)
        self.assertEqual(TaskStatus.parse('under review'), TaskStatus.UNDER_REVIEW)
        self.assertEqual(TaskStatus.parse(TaskStatus.DONE), TaskStatus.DONE)

    def test_parse_rejects_unknown_status(self):
        with self.assertRaises(ValueError):
            TaskStatus.parse('Archived')

    def test_every_status_has_a_row(self):
        self.assertEqual(set(TRANSITIONS), set(TaskStatus))

    def test_terminal_statuses_have_no_exits(self):
        for status in TERMINAL_STATUSES:
            self.assertEqual(TRANSITIONS[status], frozenset())
            self.assertTrue(is_terminal(status))
        self.assertFalse(is_terminal('Blocked'))


class TransitionTableTests(SimpleTestCase):

    def test_happy_path(self):
        path = ['To Do', 'In Progress', 'Under Review', 'Done']
        for current, target in zip(path, path[1:]):
            self.assertTrue(can_transition(current, target), f"{current} -> {target}")

    def test_cannot_skip_to_done(self):
        self.assertFalse(can_transition('To Do', 'Done'))
        with self.assertRaises(InvalidTransitionError) as ctx:
            validate_transition('To Do', 'Done', task_id=7)

        error = ctx.exception
        self.assertEqual(error.code, ErrorCode.ERR_INVALID_TRANSITION)
        self.assertEqual(error.status_code, 409)
        self.assertEqual(error.task_id, 7)

    def test_done_is_final(self):
        for target in TaskStatus:
            with self.assertRaises(InvalidTransitionError):
                validate_transition(TaskStatus.DONE, target)

    def test_cancelled_is_final(self):
        with self.assertRaises(InvalidTransitionError):
            validate_transition('Cancelled', 'To Do')

    def test_same_status_is_not_a_transition(self):
        with self.assertRaises(InvalidTransitionError):
            validate_transition('In Progress', 'In Progress')

    def test_any_open_status_can_be_cancelled(self):
        for status in TaskStatus:
            if status not in TERMINAL_STATUSES:
                self.assertTrue(can_transition(status, TaskStatus.CANCELLED))


class TransitionGuardTests(SimpleTestCase):

    def test_review_required_blocks_direct_completion(self):
        with self.assertRaises(TransitionGuardError) as ctx:
            validate_transition('In Progress', 'Done', review_required=True)
        self.assertEqual(ctx.exception.code, ErrorCode.ERR_REVIEW_REQUIRED)

    def test_review_required_allows_completion_after_review(self):
        transition = validate_transition('Under Review', 'Done', review_required=True)
        self.assertTrue(transition.is_completion)

    def test_direct_completion_without_review(self):
        transition = validate_transition('In Progress', 'Done')
        self.assertEqual(transition.action, "Task Completed")

    def test_blocked_task_waits_for_dependencies(self):
        for target in ('To Do', 'In Progress'):
            with self.assertRaises(TransitionGuardError) as ctx:
                validate_transition('Blocked', target, dependencies_met=False)
            self.assertEqual(ctx.exception.code, ErrorCode.ERR_DEPENDENCIES_PENDING)

    def test_blocked_task_can_still_be_cancelled(self):
        transition = validate_transition('Blocked', 'Cancelled', dependencies_met=False)
        self.assertEqual(transition.target, TaskStatus.CANCELLED)

    def test_unblock_action(self):
        transition = validate_transition('Blocked', 'To Do', dependencies_met=True)
        self.assertEqual(transition.action, "Task Unblocked")

    def test_rework_needs_reason(self):
        for reason in (None, '', '   '):
            with self.assertRaises(TransitionGuardError) as ctx:
                validate_transition('Under Review', 'In Progress', reason=reason)
            self.assertEqual(ctx.exception.code, ErrorCode.ERR_REWORK_REASON_REQUIRED)

    def test_rework_with_reason(self):
        transition = validate_transition('Under Review', 'In Progress', reason='Missing tests')

        self.assertTrue(transition.is_rework)
        self.assertFalse(transition.is_start)
        self.assertEqual(transition.action, "Sent Back for Rework")


class TransitionTests(SimpleTestCase):

    def test_start(self):
        transition = Transition(TaskStatus.TO_DO, TaskStatus.IN_PROGRESS)
        self.assertTrue(transition.is_start)
        self.assertFalse(transition.is_rework)
        self.assertEqual(transition.action, "Status changed from To Do to In Progress")

    def test_resume_from_hold_is_a_start(self):
        self.assertTrue(Transition(TaskStatus.ON_HOLD, TaskStatus.IN_PROGRESS).is_start)
