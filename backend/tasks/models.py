"""
Models for the Task Tracker.

This module defines work items (tasks), the collections that group them,
and the records that accumulate around a task during its lifecycle:
timeline entries, comments, subtasks, extension requests and
notifications.
"""

from django.db import models
from django.core.validators import MinValueValidator
from django.utils import timezone

from .lifecycle import TaskStatus, TERMINAL_STATUSES
from .scoring import TaskSnapshot


class Collection(models.Model):
    """A named group of tasks belonging to a project (formerly "epic")."""

    title = models.CharField(max_length=255)
    project = models.CharField(max_length=50, blank=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.title


class Task(models.Model):
    """
    A work item moving through the status state machine.

    Attributes:
        due_date: The deadline currently in force; moves when an
                  extension is approved
        original_due_date: The first committed deadline; set at creation
                           and never changed afterwards
        completed_at: Set once, when the task enters Done
        rework_count: Incremented once per Under Review -> In Progress cycle
        score / score_breakdown: Written by the completion scorer
    """

    class TaskType(models.TextChoices):
        STORY = 'Story', 'Story'
        TASK = 'Task', 'Task'
        BUG = 'Bug', 'Bug'

    class Priority(models.TextChoices):
        LOW = 'low', 'Low'
        MEDIUM = 'medium', 'Medium'
        HIGH = 'high', 'High'
        NONE = 'none', 'None'

    class Recurrence(models.TextChoices):
        DAILY = 'daily', 'Daily'
        WEEKLY = 'weekly', 'Weekly'
        MONTHLY = 'monthly', 'Monthly'
        YEARLY = 'yearly', 'Yearly'

    title = models.CharField(max_length=255, help_text="Task title")
    task_type = models.CharField(max_length=10, choices=TaskType.choices, default=TaskType.TASK)
    description = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=TaskStatus.choices(),
        default=TaskStatus.TO_DO.value
    )
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.NONE)

    due_date = models.DateTimeField(null=True, blank=True, help_text="Current deadline")
    original_due_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Deadline committed at creation"
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    planned_start_date = models.DateTimeField(null=True, blank=True)
    actual_start_date = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    duration = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text="Planned duration in hours"
    )

    is_critical = models.BooleanField(default=False)
    review_required = models.BooleanField(default=False)
    requester = models.CharField(max_length=100, blank=True)
    assignee = models.CharField(max_length=100, blank=True)
    reporter = models.CharField(max_length=100, blank=True)
    reviewer = models.CharField(max_length=100, blank=True)

    labels = models.JSONField(default=list, blank=True)
    depends_on = models.ManyToManyField(
        'self',
        symmetrical=False,
        related_name='dependents',
        blank=True
    )
    story_points = models.PositiveIntegerField(null=True, blank=True)
    sprint = models.CharField(max_length=50, blank=True)
    parent = models.ForeignKey(
        Collection,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='tasks'
    )

    recurrence_interval = models.CharField(max_length=10, choices=Recurrence.choices, blank=True)
    recurrence_end_date = models.DateTimeField(null=True, blank=True)

    rework_count = models.PositiveIntegerField(default=0)
    score = models.IntegerField(null=True, blank=True)
    score_breakdown = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.status})"

    @property
    def is_open(self) -> bool:
        return TaskStatus.parse(self.status) not in TERMINAL_STATUSES

    def is_overdue(self, now=None) -> bool:
        now = now or timezone.now()
        return bool(self.due_date and self.due_date < now and self.is_open)

    def dependencies_met(self) -> bool:
        """True when every task this one depends on is Done."""
        return not self.depends_on.exclude(status=TaskStatus.DONE.value).exists()

    def to_snapshot(self) -> TaskSnapshot:
        return TaskSnapshot(
            original_due_date=self.original_due_date,
            due_date=self.due_date,
            completed_at=self.completed_at,
            rework_count=self.rework_count,
        )


class TimelineEntry(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='timeline')
    timestamp = models.DateTimeField(default=timezone.now)
    action = models.CharField(max_length=255)
    details = models.TextField(blank=True)
    user = models.CharField(max_length=100, default='System')

    class Meta:
        ordering = ['-timestamp', '-id']

    def __str__(self):
        return f"{self.action} by {self.user}"


class Comment(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='comments')
    timestamp = models.DateTimeField(default=timezone.now)
    text = models.TextField()
    user = models.CharField(max_length=100)

    class Meta:
        ordering = ['timestamp', 'id']


class Subtask(models.Model):

    class Status(models.TextChoices):
        TO_DO = 'To Do', 'To Do'
        DONE = 'Done', 'Done'

    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='subtasks')
    title = models.CharField(max_length=255)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.TO_DO)

    class Meta:
        ordering = ['id']


class ExtensionRequest(models.Model):
    """A request to move a task's due date; approval overwrites Task.due_date."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'

    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='extension_requests')
    requested_at = models.DateTimeField(default=timezone.now)
    requested_by = models.CharField(max_length=100, blank=True)
    new_due_date = models.DateTimeField()
    reason = models.TextField(blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    decided_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.CharField(max_length=100, blank=True)

    class Meta:
        ordering = ['-requested_at', '-id']


class Notification(models.Model):
    message = models.CharField(max_length=500)
    task = models.ForeignKey(
        Task,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    created_at = models.DateTimeField(default=timezone.now)
    is_read = models.BooleanField(default=False)

    class Meta:
        ordering = ['-created_at', '-id']
