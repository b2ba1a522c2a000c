"""
Task status state machine.

Status changes used to be decided ad hoc by whichever screen triggered
them. Here they are a single table of allowed transitions plus the guards
that must hold, independent of storage and of the HTTP layer.

States:
    To Do -> In Progress -> Under Review -> Done
    side states: On Hold, Blocked, Cancelled
    rework loop: Under Review -> In Progress -> ... -> Done
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from .errors import ErrorCode, InvalidTransitionError, TransitionGuardError


class TaskStatus(str, Enum):
    TO_DO = 'To Do'
    IN_PROGRESS = 'In Progress'
    ON_HOLD = 'On Hold'
    UNDER_REVIEW = 'Under Review'
    DONE = 'Done'
    CANCELLED = 'Cancelled'
    BLOCKED = 'Blocked'

    @classmethod
    def choices(cls):
        return [(status.value, status.value) for status in cls]

    @classmethod
    def parse(cls, value) -> 'TaskStatus':
        """Accept a TaskStatus, its value ('In Progress') or its name ('IN_PROGRESS')."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for status in cls:
            if text == status.value or text.upper().replace(' ', '_') == status.name:
                return status
        raise ValueError(f"Unknown task status: {value!r}")


TERMINAL_STATUSES: FrozenSet[TaskStatus] = frozenset({TaskStatus.DONE, TaskStatus.CANCELLED})

TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.TO_DO: frozenset({
        TaskStatus.IN_PROGRESS, TaskStatus.ON_HOLD, TaskStatus.BLOCKED, TaskStatus.CANCELLED,
    }),
    TaskStatus.IN_PROGRESS: frozenset({
        TaskStatus.UNDER_REVIEW, TaskStatus.DONE, TaskStatus.ON_HOLD,
        TaskStatus.BLOCKED, TaskStatus.TO_DO, TaskStatus.CANCELLED,
    }),
    TaskStatus.ON_HOLD: frozenset({
        TaskStatus.TO_DO, TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED,
    }),
    TaskStatus.BLOCKED: frozenset({
        TaskStatus.TO_DO, TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED,
    }),
    TaskStatus.UNDER_REVIEW: frozenset({
        TaskStatus.DONE, TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED,
    }),
    TaskStatus.DONE: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class Transition:
    """An accepted status change and what it implies for the task."""
    source: TaskStatus
    target: TaskStatus

    @property
    def is_rework(self) -> bool:
        return self.source == TaskStatus.UNDER_REVIEW and self.target == TaskStatus.IN_PROGRESS

    @property
    def is_completion(self) -> bool:
        return self.target == TaskStatus.DONE

    @property
    def is_start(self) -> bool:
        return self.target == TaskStatus.IN_PROGRESS and not self.is_rework

    @property
    def action(self) -> str:
        """Timeline label for this transition."""
        if self.is_rework:
            return "Sent Back for Rework"
        if self.is_completion:
            return "Task Completed"
        if self.source == TaskStatus.BLOCKED and self.target == TaskStatus.TO_DO:
            return "Task Unblocked"
        return f"Status changed from {self.source.value} to {self.target.value}"


def is_terminal(status) -> bool:
    return TaskStatus.parse(status) in TERMINAL_STATUSES


def can_transition(current, target) -> bool:
    """Whether the table allows current -> target (guards not evaluated)."""
    return TaskStatus.parse(target) in TRANSITIONS[TaskStatus.parse(current)]


def validate_transition(
    current,
    target,
    review_required: bool = False,
    dependencies_met: bool = True,
    reason: Optional[str] = None,
    task_id: Optional[int] = None
) -> Transition:
    """
    Check a status change against the table and its guards.

    Guards:
    - In Progress -> Done only for tasks that do not require review
    - leaving Blocked for active work only once every dependency is Done
    - Under Review -> In Progress (rework) needs a non-empty reason

    Raises:
        InvalidTransitionError: the table does not allow the change
        TransitionGuardError: the change is allowed but a guard fails
    """
    source = TaskStatus.parse(current)
    destination = TaskStatus.parse(target)

    if destination not in TRANSITIONS[source]:
        raise InvalidTransitionError(source.value, destination.value, task_id=task_id)

    transition = Transition(source, destination)

    if source == TaskStatus.IN_PROGRESS and destination == TaskStatus.DONE and review_required:
        raise TransitionGuardError(
            ErrorCode.ERR_REVIEW_REQUIRED,
            "This task requires review; move it to 'Under Review' first",
            field='status',
            task_id=task_id
        )

    if (
        source == TaskStatus.BLOCKED
        and destination in (TaskStatus.TO_DO, TaskStatus.IN_PROGRESS)
        and not dependencies_met
    ):
        raise TransitionGuardError(
            ErrorCode.ERR_DEPENDENCIES_PENDING,
            "Task is blocked until all of its dependencies are Done",
            field='status',
            task_id=task_id
        )

    if transition.is_rework and not (reason and reason.strip()):
        raise TransitionGuardError(
            ErrorCode.ERR_REWORK_REASON_REQUIRED,
            "A reason is required when sending a task back for rework",
            field='details',
            task_id=task_id
        )

    return transition
