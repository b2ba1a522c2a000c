"""
Error codes and exceptions for the task lifecycle.

The scoring engine never raises; everything that mutates tasks reports
failures through TaskTrackerError subclasses, which the API layer turns
into structured JSON responses.
"""

from enum import Enum
from typing import Dict, Optional


class ErrorCode(Enum):
    """Error codes for API responses."""
    SUCCESS = "SUCCESS"
    ERR_MISSING_FIELD = "ERR_MISSING_FIELD"
    ERR_INVALID_DATE = "ERR_INVALID_DATE"
    ERR_INVALID_TITLE = "ERR_INVALID_TITLE"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_INVALID_TRANSITION = "ERR_INVALID_TRANSITION"
    ERR_REVIEW_REQUIRED = "ERR_REVIEW_REQUIRED"
    ERR_DEPENDENCIES_PENDING = "ERR_DEPENDENCIES_PENDING"
    ERR_REWORK_REASON_REQUIRED = "ERR_REWORK_REASON_REQUIRED"
    ERR_CIRCULAR_DEPENDENCY = "ERR_CIRCULAR_DEPENDENCY"
    ERR_SELF_DEPENDENCY = "ERR_SELF_DEPENDENCY"
    ERR_EXTENSION_PENDING = "ERR_EXTENSION_PENDING"
    ERR_NO_PENDING_EXTENSION = "ERR_NO_PENDING_EXTENSION"
    ERR_INVALID_EXTENSION = "ERR_INVALID_EXTENSION"
    ERR_EMPTY_COMMENT = "ERR_EMPTY_COMMENT"


class TaskTrackerError(Exception):
    """Base error with a code and optional field/task context."""

    status_code = 400

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        field: Optional[str] = None,
        task_id: Optional[int] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.field = field
        self.task_id = task_id

    def to_dict(self) -> Dict:
        result = {
            'success': False,
            'error_code': self.code.value,
            'message': self.message
        }
        if self.field:
            result['field'] = self.field
        if self.task_id is not None:
            result['task_id'] = self.task_id
        return result


class TaskValidationError(TaskTrackerError):
    pass


class TaskNotFoundError(TaskTrackerError):
    status_code = 404

    def __init__(self, message: str, task_id: Optional[int] = None):
        super().__init__(ErrorCode.ERR_NOT_FOUND, message, task_id=task_id)


class InvalidTransitionError(TaskTrackerError):
    """The target status is not reachable from the current one."""
    status_code = 409

    def __init__(self, current: str, target: str, task_id: Optional[int] = None):
        super().__init__(
            ErrorCode.ERR_INVALID_TRANSITION,
            f"Cannot move a task from '{current}' to '{target}'",
            field='status',
            task_id=task_id
        )
        self.current = current
        self.target = target


class TransitionGuardError(TaskTrackerError):
    """The transition exists but its precondition does not hold."""
    pass


class DependencyError(TaskTrackerError):
    pass


class ExtensionError(TaskTrackerError):
    status_code = 409
