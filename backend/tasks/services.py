"""
Task service: every mutation of a task goes through here.

The service validates each change against the lifecycle state machine,
writes the matching timeline entry, and emits ``task_completed`` when a
task enters Done so the scorer can record its score. Storage is reached
only through the injected repositories.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set

from django.db import transaction
from django.utils import timezone

from .errors import (
    DependencyError,
    ErrorCode,
    ExtensionError,
    TaskNotFoundError,
    TaskValidationError,
)
from .lifecycle import TaskStatus, validate_transition
from .models import Collection, Comment, ExtensionRequest, Notification, Subtask, Task, TimelineEntry
from .repositories import CollectionRepository, NotificationRepository, TaskRepository
from .signals import task_completed


logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3
OVERDUE_SUFFIX = 'is overdue.'

# Fields a caller may set when creating a task or editing its details.
# Lifecycle fields (status, completed_at, rework_count, score,
# original_due_date) are owned by the service.
CREATE_FIELDS = (
    'title', 'task_type', 'description', 'priority', 'due_date',
    'planned_start_date', 'duration', 'is_critical', 'review_required',
    'requester', 'assignee', 'reporter', 'reviewer', 'labels',
    'story_points', 'sprint', 'recurrence_interval', 'recurrence_end_date',
)
EDITABLE_FIELDS = tuple(name for name in CREATE_FIELDS if name != 'due_date')


def detect_circular_dependencies(graph: Dict[int, Set[int]]) -> Set[int]:
    """
    Return the ids of tasks that sit on a dependency cycle.

    Uses DFS with a recursion stack; a back edge marks every node on the
    current path from the revisited node onwards.
    """
    circular_tasks: Set[int] = set()
    visited: Set[int] = set()
    rec_stack: Set[int] = set()

    def dfs(node: int, path: List[int]) -> None:
        if node in rec_stack:
            circular_tasks.update(path[path.index(node):])
            return
        if node in visited:
            return

        visited.add(node)
        rec_stack.add(node)
        path.append(node)

        for neighbor in graph.get(node, set()):
            dfs(neighbor, path)

        path.pop()
        rec_stack.remove(node)

    for task_id in list(graph):
        if task_id not in visited:
            dfs(task_id, [])

    return circular_tasks


class TaskService:
    """
    Lifecycle operations over tasks.

    Args:
        tasks: Task repository (defaults to the ORM-backed one)
        collections: Collection repository
        notifications: Notification repository
        clock: Callable returning the current aware datetime
    """

    def __init__(
        self,
        tasks: Optional[TaskRepository] = None,
        collections: Optional[CollectionRepository] = None,
        notifications: Optional[NotificationRepository] = None,
        clock: Callable[[], datetime] = timezone.now
    ):
        self.tasks = tasks or TaskRepository()
        self.collections = collections or CollectionRepository()
        self.notifications = notifications or NotificationRepository()
        self.clock = clock

    # ---------------------------------------------------------------
    # helpers
    # ---------------------------------------------------------------

    def _log(self, task: Task, action: str, user: str, details: str = '') -> TimelineEntry:
        return TimelineEntry.objects.create(
            task=task,
            timestamp=self.clock(),
            action=action,
            details=details or '',
            user=user or 'System'
        )

    @staticmethod
    def _validate_title(title: Optional[str]) -> str:
        title = (title or '').strip()
        if len(title) < MIN_TITLE_LENGTH:
            raise TaskValidationError(
                ErrorCode.ERR_INVALID_TITLE,
                f"Title must be at least {MIN_TITLE_LENGTH} characters",
                field='title'
            )
        return title

    # ---------------------------------------------------------------
    # creation and editing
    # ---------------------------------------------------------------

    @transaction.atomic
    def create_task(self, data: Dict, user: str = 'System') -> Task:
        """
        Create a task.

        The due date given at creation becomes the original due date. A task
        with any unfinished dependency starts Blocked instead of To Do.
        """
        fields = {name: data[name] for name in CREATE_FIELDS if data.get(name) is not None}
        fields['title'] = self._validate_title(data.get('title'))

        dependencies = self.tasks.get_many(data.get('depends_on') or [])
        parent = None
        if data.get('parent') is not None:
            parent = self.collections.get(data['parent'])

        is_blocked = any(dep.status != TaskStatus.DONE.value for dep in dependencies)

        task = Task(
            **fields,
            parent=parent,
            original_due_date=fields.get('due_date'),
            status=(TaskStatus.BLOCKED if is_blocked else TaskStatus.TO_DO).value,
            created_at=self.clock(),
        )
        if not task.reporter:
            task.reporter = user
        self.tasks.add(task, depends_on=dependencies)
        self._log(task, "Task Created", task.reporter or user)

        logger.info("Created task %s (%s)%s", task.pk, task.title, " [blocked]" if is_blocked else "")
        return task

    @transaction.atomic
    def update_details(self, task_id: int, data: Dict, user: str = 'System') -> Task:
        """
        Edit descriptive fields; status is not editable here.

        A task created without a due date may be given one once, which also
        fixes its original due date. After that the deadline only moves
        through an approved extension.
        """
        task = self.tasks.get(task_id, for_update=True)
        changed = []

        new_due_date = data.get('due_date')
        if new_due_date is not None and new_due_date != task.due_date:
            if task.due_date is not None or task.original_due_date is not None:
                raise TaskValidationError(
                    ErrorCode.ERR_INVALID_DATE,
                    "Due date can only be moved through an extension request",
                    field='due_date',
                    task_id=task.pk
                )
            if not task.is_open:
                raise TaskValidationError(
                    ErrorCode.ERR_INVALID_DATE,
                    f"Cannot set a due date on a task that is {task.status}",
                    field='due_date',
                    task_id=task.pk
                )
            task.due_date = new_due_date
            task.original_due_date = new_due_date
            changed.extend(['due_date', 'original_due_date'])

        for name in EDITABLE_FIELDS:
            if name in data:
                value = self._validate_title(data[name]) if name == 'title' else data[name]
                if getattr(task, name) != value:
                    setattr(task, name, value)
                    changed.append(name)
        if 'parent' in data:
            parent = self.collections.get(data['parent']) if data['parent'] is not None else None
            if task.parent_id != (parent.pk if parent else None):
                task.parent = parent
                changed.append('parent')

        if changed:
            self.tasks.update(task, changed)
            self._log(task, "Task Updated", user, ", ".join(changed))
        return task

    # ---------------------------------------------------------------
    # status transitions
    # ---------------------------------------------------------------

    @transaction.atomic
    def change_status(
        self,
        task_id: int,
        new_status,
        user: str = 'System',
        details: Optional[str] = None
    ) -> Task:
        """
        Move a task to a new status through the state machine.

        - first entry into In Progress stamps actual_start_date
        - Under Review -> In Progress is a rework cycle and bumps rework_count
        - entry into Done stamps completed_at, emits task_completed, and
          unblocks dependents whose dependencies are now all Done
        """
        task = self.tasks.get(task_id, for_update=True)
        transition = validate_transition(
            task.status,
            new_status,
            review_required=task.review_required,
            dependencies_met=task.dependencies_met(),
            reason=details,
            task_id=task.pk
        )

        now = self.clock()
        task.status = transition.target.value
        changed = ['status']

        if transition.is_start and task.actual_start_date is None:
            task.actual_start_date = now
            changed.append('actual_start_date')

        if transition.is_rework:
            task.rework_count += 1
            changed.append('rework_count')

        if transition.is_completion and task.completed_at is None:
            task.completed_at = now
            changed.append('completed_at')

        self.tasks.update(task, changed)
        self._log(task, transition.action, user, details or '')

        if transition.is_rework:
            logger.info("Task %s sent back for rework (cycle %d)", task.pk, task.rework_count)
        else:
            logger.info("Task %s: %s -> %s", task.pk, transition.source.value, transition.target.value)

        if transition.is_completion:
            task_completed.send(sender=Task, task=task)
            self._unblock_dependents(task, user)

        return task

    def send_back_for_rework(self, task_id: int, reason: str, user: str = 'System') -> Task:
        """Return a task under review to In Progress with the reviewer's reason."""
        return self.change_status(task_id, TaskStatus.IN_PROGRESS, user=user, details=reason)

    def _unblock_dependents(self, task: Task, user: str) -> List[Task]:
        unblocked = []
        for dependent in task.dependents.filter(status=TaskStatus.BLOCKED.value):
            if dependent.dependencies_met():
                dependent.status = TaskStatus.TO_DO.value
                self.tasks.update(dependent, ['status'])
                self._log(dependent, "Task Unblocked", user, f"Dependency '{task.title}' completed")
                unblocked.append(dependent)
                logger.info("Task %s unblocked by completion of %s", dependent.pk, task.pk)
        return unblocked

    # ---------------------------------------------------------------
    # dependencies
    # ---------------------------------------------------------------

    @transaction.atomic
    def add_dependency(self, task_id: int, depends_on_id: int, user: str = 'System') -> Task:
        """
        Make ``task_id`` depend on ``depends_on_id``.

        Rejects self-dependencies and edges that would close a cycle. A To Do
        task gaining an unfinished dependency becomes Blocked.
        """
        if task_id == depends_on_id:
            raise DependencyError(
                ErrorCode.ERR_SELF_DEPENDENCY,
                "A task cannot depend on itself",
                field='depends_on',
                task_id=task_id
            )

        task = self.tasks.get(task_id, for_update=True)
        dependency = self.tasks.get(depends_on_id)

        if not task.is_open:
            raise DependencyError(
                ErrorCode.ERR_INVALID_TRANSITION,
                f"Cannot add dependencies to a task that is {task.status}",
                field='depends_on',
                task_id=task_id
            )

        graph = self.tasks.dependency_graph()
        graph.setdefault(task_id, set()).add(depends_on_id)
        if task_id in detect_circular_dependencies(graph):
            raise DependencyError(
                ErrorCode.ERR_CIRCULAR_DEPENDENCY,
                f"Depending on task {depends_on_id} would create a circular dependency",
                field='depends_on',
                task_id=task_id
            )

        task.depends_on.add(dependency)
        self._log(task, "Dependency Added", user, f"Depends on '{dependency.title}'")

        if task.status == TaskStatus.TO_DO.value and dependency.status != TaskStatus.DONE.value:
            task.status = TaskStatus.BLOCKED.value
            self.tasks.update(task, ['status'])
            self._log(task, "Task Blocked", user, f"Waiting on '{dependency.title}'")

        return task

    # ---------------------------------------------------------------
    # extensions
    # ---------------------------------------------------------------

    @transaction.atomic
    def request_extension(
        self,
        task_id: int,
        new_due_date: datetime,
        user: str = 'System',
        reason: str = ''
    ) -> ExtensionRequest:
        """Ask for a later due date. Only one request may be pending at a time."""
        task = self.tasks.get(task_id, for_update=True)

        if not task.is_open:
            raise ExtensionError(
                ErrorCode.ERR_INVALID_EXTENSION,
                f"Cannot extend a task that is {task.status}",
                task_id=task.pk
            )
        if task.due_date is None:
            raise ExtensionError(
                ErrorCode.ERR_INVALID_EXTENSION,
                "Task has no due date to extend",
                field='new_due_date',
                task_id=task.pk
            )
        if new_due_date <= task.due_date:
            raise TaskValidationError(
                ErrorCode.ERR_INVALID_EXTENSION,
                "New due date must be later than the current due date",
                field='new_due_date',
                task_id=task.pk
            )
        if task.extension_requests.filter(status=ExtensionRequest.Status.PENDING).exists():
            raise ExtensionError(
                ErrorCode.ERR_EXTENSION_PENDING,
                "An extension request is already pending for this task",
                task_id=task.pk
            )

        request = task.extension_requests.create(
            requested_at=self.clock(),
            requested_by=user,
            new_due_date=new_due_date,
            reason=reason or ''
        )
        self._log(task, "Extension Requested", user, f"New due date {new_due_date.isoformat()}")
        logger.info("Extension requested for task %s until %s", task.pk, new_due_date.isoformat())
        return request

    def _pending_extension(self, task: Task) -> ExtensionRequest:
        request = task.extension_requests.filter(status=ExtensionRequest.Status.PENDING).first()
        if request is None:
            raise ExtensionError(
                ErrorCode.ERR_NO_PENDING_EXTENSION,
                "No pending extension request for this task",
                task_id=task.pk
            )
        return request

    @transaction.atomic
    def approve_extension(self, task_id: int, user: str = 'System') -> Task:
        """Apply the pending extension: due_date moves, original_due_date stays."""
        task = self.tasks.get(task_id, for_update=True)
        request = self._pending_extension(task)

        request.status = ExtensionRequest.Status.APPROVED
        request.decided_at = self.clock()
        request.decided_by = user
        request.save(update_fields=['status', 'decided_at', 'decided_by'])

        previous = task.due_date
        task.due_date = request.new_due_date
        self.tasks.update(task, ['due_date'])
        self._log(
            task,
            "Extension Approved",
            user,
            f"Due date moved from {previous.isoformat() if previous else 'none'} "
            f"to {task.due_date.isoformat()}"
        )
        logger.info("Extension approved for task %s", task.pk)
        return task

    @transaction.atomic
    def reject_extension(self, task_id: int, user: str = 'System') -> Task:
        task = self.tasks.get(task_id, for_update=True)
        request = self._pending_extension(task)

        request.status = ExtensionRequest.Status.REJECTED
        request.decided_at = self.clock()
        request.decided_by = user
        request.save(update_fields=['status', 'decided_at', 'decided_by'])

        self._log(task, "Extension Rejected", user)
        logger.info("Extension rejected for task %s", task.pk)
        return task

    # ---------------------------------------------------------------
    # comments and subtasks
    # ---------------------------------------------------------------

    @transaction.atomic
    def add_comment(self, task_id: int, text: str, user: str = 'System') -> Comment:
        if not text or not text.strip():
            raise TaskValidationError(
                ErrorCode.ERR_EMPTY_COMMENT,
                "Comment text cannot be empty",
                field='text',
                task_id=task_id
            )
        task = self.tasks.get(task_id)
        comment = task.comments.create(text=text.strip(), user=user, timestamp=self.clock())
        self._log(task, "Comment Added", user)
        return comment

    @transaction.atomic
    def add_subtask(self, task_id: int, title: str, user: str = 'System') -> Subtask:
        title = self._validate_title(title)
        task = self.tasks.get(task_id)
        subtask = task.subtasks.create(title=title)
        self._log(task, "Subtask Added", user, title)
        return subtask

    @transaction.atomic
    def toggle_subtask(self, subtask_id: int, user: str = 'System') -> Subtask:
        try:
            subtask = Subtask.objects.select_related('task').get(pk=subtask_id)
        except Subtask.DoesNotExist:
            raise TaskNotFoundError(f"Subtask {subtask_id} does not exist")
        subtask.status = (
            Subtask.Status.TO_DO if subtask.status == Subtask.Status.DONE else Subtask.Status.DONE
        )
        subtask.save(update_fields=['status'])
        self._log(subtask.task, "Subtask Updated", user, f"{subtask.title}: {subtask.status}")
        return subtask

    # ---------------------------------------------------------------
    # collections and notifications
    # ---------------------------------------------------------------

    def create_collection(self, data: Dict) -> Collection:
        collection = Collection(
            title=self._validate_title(data.get('title')),
            project=data.get('project') or '',
            description=data.get('description') or '',
            created_at=self.clock(),
        )
        return self.collections.add(collection)

    @transaction.atomic
    def check_overdue(self, now: Optional[datetime] = None) -> List[Notification]:
        """Create one overdue notification per open task past its due date."""
        now = now or self.clock()
        created = []
        overdue = self.tasks.list(due_date__lt=now).exclude(
            status__in=[TaskStatus.DONE.value, TaskStatus.CANCELLED.value]
        )
        for task in overdue:
            if self.notifications.exists_for_task(task, OVERDUE_SUFFIX):
                continue
            created.append(self.notifications.add(f'Task "{task.title}" {OVERDUE_SUFFIX}', task=task))
            logger.info("Task %s is overdue; notification created", task.pk)
        return created

    def mark_notifications_read(self, notification_ids: Iterable[int]) -> int:
        return self.notifications.mark_read(notification_ids)
