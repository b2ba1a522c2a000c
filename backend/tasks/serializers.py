"""
Serializers for the Task Tracker API.

Input serializers validate request bodies before they reach the task
service; output serializers shape tasks and their related records for
JSON responses.
"""

from rest_framework import serializers

from .lifecycle import TaskStatus
from .models import (
    Collection,
    Comment,
    ExtensionRequest,
    Notification,
    Subtask,
    Task,
    TimelineEntry,
)


# ==================== Input ====================

class TaskInputSerializer(serializers.Serializer):
    """
    Validates the body of a task creation request.

    ``depends_on`` and ``parent`` are ids; the service resolves them.
    """

    title = serializers.CharField(max_length=255, required=True)
    task_type = serializers.ChoiceField(choices=Task.TaskType.choices, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    priority = serializers.ChoiceField(choices=Task.Priority.choices, required=False)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    planned_start_date = serializers.DateTimeField(required=False, allow_null=True)
    duration = serializers.DecimalField(
        max_digits=6,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True
    )
    is_critical = serializers.BooleanField(required=False)
    review_required = serializers.BooleanField(required=False)
    requester = serializers.CharField(max_length=100, required=False, allow_blank=True)
    assignee = serializers.CharField(max_length=100, required=False, allow_blank=True)
    reporter = serializers.CharField(max_length=100, required=False, allow_blank=True)
    reviewer = serializers.CharField(max_length=100, required=False, allow_blank=True)
    labels = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    depends_on = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        default=list
    )
    story_points = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    sprint = serializers.CharField(max_length=50, required=False, allow_blank=True)
    parent = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    recurrence_interval = serializers.ChoiceField(
        choices=Task.Recurrence.choices,
        required=False,
        allow_blank=True
    )
    recurrence_end_date = serializers.DateTimeField(required=False, allow_null=True)

    def validate_title(self, value):
        """Ensure title is not empty or just whitespace."""
        if not value or not value.strip():
            raise serializers.ValidationError("Title cannot be empty")
        return value.strip()

    def validate_depends_on(self, value):
        if value is None:
            return []
        return list(dict.fromkeys(value))

    def validate(self, attrs):
        interval = attrs.get('recurrence_interval')
        end = attrs.get('recurrence_end_date')
        if end and not interval:
            raise serializers.ValidationError(
                {'recurrence_interval': 'Recurrence interval is required for recurring tasks.'}
            )
        if interval and not attrs.get('due_date'):
            raise serializers.ValidationError(
                {'due_date': 'Recurring tasks need a due date to recur from.'}
            )
        if end and attrs.get('due_date') and end < attrs['due_date']:
            raise serializers.ValidationError(
                {'recurrence_end_date': 'Recurrence must end after the first due date.'}
            )
        return attrs


class TaskUpdateSerializer(TaskInputSerializer):
    """
    Partial edits of descriptive fields.

    ``due_date`` is accepted only to give an undated task its first
    deadline; dependencies have their own endpoint.
    """

    title = serializers.CharField(max_length=255, required=False)

    def get_fields(self):
        fields = super().get_fields()
        fields.pop('depends_on', None)
        return fields

    def validate(self, attrs):
        return attrs


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TaskStatus.choices())
    details = serializers.CharField(required=False, allow_blank=True, default='')
    user = serializers.CharField(max_length=100, required=False, default='System')


class ReworkSerializer(serializers.Serializer):
    reason = serializers.CharField()
    user = serializers.CharField(max_length=100, required=False, default='System')


class CommentInputSerializer(serializers.Serializer):
    text = serializers.CharField()
    user = serializers.CharField(max_length=100, required=False, default='System')


class SubtaskInputSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    user = serializers.CharField(max_length=100, required=False, default='System')


class DependencyInputSerializer(serializers.Serializer):
    depends_on = serializers.IntegerField(min_value=1)
    user = serializers.CharField(max_length=100, required=False, default='System')


class ExtensionInputSerializer(serializers.Serializer):
    new_due_date = serializers.DateTimeField()
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    user = serializers.CharField(max_length=100, required=False, default='System')


class DecisionSerializer(serializers.Serializer):
    user = serializers.CharField(max_length=100, required=False, default='System')


class NotificationReadSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), min_length=1)


class ReportDateSerializer(serializers.Serializer):
    date = serializers.DateField(required=False)


class ReportRangeSerializer(serializers.Serializer):
    start = serializers.DateField(required=False)
    end = serializers.DateField(required=False)

    def validate(self, attrs):
        if attrs.get('start') and attrs.get('end') and attrs['end'] < attrs['start']:
            raise serializers.ValidationError({'end': 'End date must not be before start date.'})
        return attrs


# ==================== Output ====================

class TimelineEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = TimelineEntry
        fields = ['id', 'timestamp', 'action', 'details', 'user']


class CommentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Comment
        fields = ['id', 'timestamp', 'text', 'user']


class SubtaskSerializer(serializers.ModelSerializer):
    class Meta:
        model = Subtask
        fields = ['id', 'title', 'status']


class ExtensionRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExtensionRequest
        fields = [
            'id', 'requested_at', 'requested_by', 'new_due_date', 'reason',
            'status', 'decided_at', 'decided_by'
        ]


class CollectionSerializer(serializers.ModelSerializer):
    task_count = serializers.SerializerMethodField()

    class Meta:
        model = Collection
        fields = ['id', 'title', 'project', 'description', 'created_at', 'task_count']
        read_only_fields = ['id', 'created_at', 'task_count']

    def get_task_count(self, obj) -> int:
        return obj.tasks.count()


class TaskSummarySerializer(serializers.ModelSerializer):
    """Compact task representation for lists and reports."""

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'task_type', 'status', 'priority', 'assignee',
            'due_date', 'original_due_date', 'completed_at', 'story_points',
            'rework_count', 'score', 'score_breakdown'
        ]


class TaskSerializer(serializers.ModelSerializer):
    """Full task detail including its lifecycle records."""

    depends_on = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    dependents = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    timeline = TimelineEntrySerializer(many=True, read_only=True)
    comments = CommentSerializer(many=True, read_only=True)
    subtasks = SubtaskSerializer(many=True, read_only=True)
    extension_requests = ExtensionRequestSerializer(many=True, read_only=True)
    is_overdue = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'task_type', 'description', 'status', 'priority',
            'due_date', 'original_due_date', 'created_at', 'updated_at',
            'planned_start_date', 'actual_start_date', 'completed_at', 'duration',
            'is_critical', 'review_required', 'requester', 'assignee', 'reporter',
            'reviewer', 'labels', 'depends_on', 'dependents', 'story_points',
            'sprint', 'parent', 'recurrence_interval', 'recurrence_end_date',
            'rework_count', 'score', 'score_breakdown', 'is_overdue',
            'timeline', 'comments', 'subtasks', 'extension_requests'
        ]
        read_only_fields = fields

    def get_is_overdue(self, obj) -> bool:
        return obj.is_overdue()


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'message', 'task', 'created_at', 'is_read']
