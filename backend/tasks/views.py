"""
API Views for the Task Tracker.

This module provides the REST API endpoints for managing tasks through
their lifecycle, scoring snapshots, and reporting. Lifecycle failures are
raised by the task service as TaskTrackerError and turned into JSON by
``api_exception_handler``.
"""

import calendar
import logging
from datetime import date, datetime, timedelta, timezone as dt_timezone

from django.conf import settings
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, throttle_classes
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import exception_handler
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema

from . import reports
from .errors import ErrorCode, TaskTrackerError, TaskValidationError
from .lifecycle import TRANSITIONS, TaskStatus
from .scoring import TaskPenaltyScorer, TaskSnapshot, calculate_task_score
from .serializers import (
    CollectionSerializer,
    CommentInputSerializer,
    CommentSerializer,
    DecisionSerializer,
    DependencyInputSerializer,
    ExtensionInputSerializer,
    ExtensionRequestSerializer,
    NotificationReadSerializer,
    NotificationSerializer,
    ReportDateSerializer,
    ReportRangeSerializer,
    ReworkSerializer,
    StatusChangeSerializer,
    SubtaskInputSerializer,
    SubtaskSerializer,
    TaskInputSerializer,
    TaskSerializer,
    TaskSummarySerializer,
    TaskUpdateSerializer,
)
from .services import TaskService


logger = logging.getLogger(__name__)

PRIORITY_ORDER = {'high': 0, 'medium': 1, 'low': 2, 'none': 3}


def tracker_setting(name, default):
    return getattr(settings, 'TASK_TRACKER', {}).get(name, default)


# ============================================
# RATE LIMITING CLASSES
# ============================================

class ScoreRateThrottle(AnonRateThrottle):
    """Rate limit for the ad-hoc scoring endpoint - 60 requests per minute."""
    rate = '60/min'


class ReportRateThrottle(AnonRateThrottle):
    """Rate limit for report endpoints - 30 requests per minute."""
    rate = '30/min'


# ============================================
# ERROR HANDLING
# ============================================

def api_exception_handler(exc, context):
    """Render TaskTrackerError as a structured response; defer everything else to DRF."""
    if isinstance(exc, TaskTrackerError):
        logger.warning("%s: %s", exc.code.value, exc.message)
        return Response(exc.to_dict(), status=exc.status_code)
    return exception_handler(exc, context)


def invalid_input(serializer, message='Invalid input data.') -> Response:
    return Response(
        {
            'success': False,
            'error_code': ErrorCode.ERR_MISSING_FIELD.value,
            'errors': serializer.errors,
            'message': message
        },
        status=status.HTTP_400_BAD_REQUEST
    )


def get_service() -> TaskService:
    return TaskService()


# ============================================
# INFO AND SCORING
# ============================================

@extend_schema(
    summary="API information",
    description="Get API information and available endpoints.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Info']
)
@api_view(['GET'])
def api_info(request: Request) -> Response:
    """
    Return API information and available endpoints.

    GET /api/
    """
    return Response({
        'name': 'Task Tracker API',
        'version': '1.0.0',
        'documentation': '/api/docs/',
        'endpoints': {
            'POST /api/score/': 'Score a task snapshot without storing it',
            'GET|POST /api/tasks/': 'List or create tasks',
            'GET|PATCH /api/tasks/<id>/': 'Task detail / edit descriptive fields',
            'POST /api/tasks/<id>/status/': 'Change task status',
            'POST /api/tasks/<id>/rework/': 'Send a task under review back for rework',
            'POST /api/tasks/<id>/comments/': 'Add a comment',
            'POST /api/tasks/<id>/subtasks/': 'Add a subtask',
            'POST /api/subtasks/<id>/toggle/': 'Toggle a subtask',
            'POST /api/tasks/<id>/dependencies/': 'Add a dependency',
            'POST /api/tasks/<id>/extension/': 'Request a due date extension',
            'POST /api/tasks/<id>/extension/approve/': 'Approve the pending extension',
            'POST /api/tasks/<id>/extension/reject/': 'Reject the pending extension',
            'GET|POST /api/collections/': 'List or create collections',
            'GET /api/notifications/': 'List notifications',
            'POST /api/notifications/check-overdue/': 'Create overdue notifications',
            'POST /api/notifications/read/': 'Mark notifications as read',
            'GET /api/reports/<name>/': 'daily, weekly, burndown, dashboard, leaderboard, calendar',
            'GET /api/docs/': 'Interactive API documentation',
        },
        'statuses': {
            source.value: sorted(target.value for target in targets)
            for source, targets in TRANSITIONS.items()
        },
        'scoring': {
            'max_penalty_per_category': TaskPenaltyScorer.MAX_PENALTY_PER_CATEGORY,
            'score_floor': TaskPenaltyScorer.SCORE_FLOOR,
            'penalty_per_minute': TaskPenaltyScorer.PENALTY_PER_MINUTE,
        },
        'error_codes': {
            code.value: code.name for code in ErrorCode
        }
    })


@extend_schema(
    summary="Score a task snapshot",
    description="""
    Compute the penalty score of a task snapshot without storing anything.

    Accepts camelCase (originalDueDate, dueDate, completedAt, reworkCount)
    or snake_case keys with ISO-8601 timestamps. Missing fields degrade the
    score rather than failing.
    """,
    request=OpenApiTypes.OBJECT,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Scoring']
)
@api_view(['POST'])
@throttle_classes([ScoreRateThrottle])
def score_snapshot(request: Request) -> Response:
    """
    POST /api/score/

    Request Body:
    {
        "originalDueDate": "2024-08-01T17:00:00Z",
        "dueDate": "2024-08-02T17:00:00Z",
        "completedAt": "2024-08-02T12:00:00Z",
        "reworkCount": 1
    }
    """
    if not isinstance(request.data, dict):
        return Response(
            {
                'success': False,
                'error_code': ErrorCode.ERR_MISSING_FIELD.value,
                'message': 'Request body must be a JSON object'
            },
            status=status.HTTP_400_BAD_REQUEST
        )

    result = calculate_task_score(TaskSnapshot.from_mapping(request.data))
    return Response({
        'success': True,
        **result.to_dict(),
        'details': {
            'scoreable': result.scoreable,
            'extensionMinutes': round(result.extension_minutes, 2),
            'extensionUsageRatio': round(result.extension_usage_ratio, 4),
            'delayMinutes': round(result.delay_minutes, 2),
        }
    })


# ============================================
# TASKS
# ============================================

def _sort_tasks(tasks, sort_by):
    far_future = datetime.max.replace(tzinfo=dt_timezone.utc)

    def due_key(task):
        return task.due_date or far_future

    if sort_by == 'priority':
        return sorted(tasks, key=lambda task: (PRIORITY_ORDER.get(task.priority, 4), due_key(task)))
    return sorted(tasks, key=due_key)


@extend_schema(
    summary="List or create tasks",
    parameters=[
        OpenApiParameter('status', str, description='Filter by status'),
        OpenApiParameter('priority', str, description='Filter by priority'),
        OpenApiParameter('assignee', str, description='Filter by assignee'),
        OpenApiParameter('sort', str, enum=['due_date', 'priority'], description='Sort order'),
    ],
    request=TaskInputSerializer,
    responses={200: OpenApiTypes.OBJECT, 201: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET', 'POST'])
def task_list(request: Request) -> Response:
    """
    GET /api/tasks/   - list tasks
    POST /api/tasks/  - create a task
    """
    service = get_service()

    if request.method == 'POST':
        serializer = TaskInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer, 'Invalid input data. Please check your task format.')
        user = request.data.get('user') or 'System'
        task = service.create_task(serializer.validated_data, user=user)
        return Response(
            {'success': True, 'task': TaskSerializer(task).data},
            status=status.HTTP_201_CREATED
        )

    filters = {}
    for name in ('status', 'priority', 'assignee'):
        value = request.query_params.get(name)
        if value and value != 'all':
            filters[name] = value

    tasks = _sort_tasks(service.tasks.list(**filters), request.query_params.get('sort', 'due_date'))
    return Response({
        'success': True,
        'count': len(tasks),
        'tasks': TaskSummarySerializer(tasks, many=True).data
    })


@extend_schema(
    summary="Task detail",
    request=TaskUpdateSerializer,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET', 'PATCH'])
def task_detail(request: Request, task_id: int) -> Response:
    """
    GET /api/tasks/<id>/    - full task with timeline, comments, subtasks
    PATCH /api/tasks/<id>/  - edit descriptive fields
    """
    service = get_service()

    if request.method == 'PATCH':
        serializer = TaskUpdateSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return invalid_input(serializer)
        user = request.data.get('user') or 'System'
        task = service.update_details(task_id, serializer.validated_data, user=user)
    else:
        task = service.tasks.get(task_id)

    return Response({'success': True, 'task': TaskSerializer(task).data})


@extend_schema(
    summary="Change task status",
    description="Move a task through the status state machine. Entering Done records its score.",
    request=StatusChangeSerializer,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Lifecycle']
)
@api_view(['POST'])
def change_task_status(request: Request, task_id: int) -> Response:
    serializer = StatusChangeSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input(serializer)

    data = serializer.validated_data
    task = get_service().change_status(
        task_id,
        TaskStatus.parse(data['status']),
        user=data['user'],
        details=data['details']
    )
    return Response({'success': True, 'task': TaskSerializer(task).data})


@extend_schema(
    summary="Send back for rework",
    request=ReworkSerializer,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Lifecycle']
)
@api_view(['POST'])
def rework_task(request: Request, task_id: int) -> Response:
    serializer = ReworkSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input(serializer, 'A reason is required when sending a task back for rework.')

    data = serializer.validated_data
    task = get_service().send_back_for_rework(task_id, data['reason'], user=data['user'])
    return Response({'success': True, 'task': TaskSerializer(task).data})


@extend_schema(summary="Add a comment", request=CommentInputSerializer,
               responses={201: OpenApiTypes.OBJECT}, tags=['Tasks'])
@api_view(['POST'])
def add_comment(request: Request, task_id: int) -> Response:
    serializer = CommentInputSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input(serializer)

    data = serializer.validated_data
    comment = get_service().add_comment(task_id, data['text'], user=data['user'])
    return Response(
        {'success': True, 'comment': CommentSerializer(comment).data},
        status=status.HTTP_201_CREATED
    )


@extend_schema(summary="Add a subtask", request=SubtaskInputSerializer,
               responses={201: OpenApiTypes.OBJECT}, tags=['Tasks'])
@api_view(['POST'])
def add_subtask(request: Request, task_id: int) -> Response:
    serializer = SubtaskInputSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input(serializer)

    data = serializer.validated_data
    subtask = get_service().add_subtask(task_id, data['title'], user=data['user'])
    return Response(
        {'success': True, 'subtask': SubtaskSerializer(subtask).data},
        status=status.HTTP_201_CREATED
    )


@extend_schema(summary="Toggle a subtask", request=DecisionSerializer,
               responses={200: OpenApiTypes.OBJECT}, tags=['Tasks'])
@api_view(['POST'])
def toggle_subtask(request: Request, subtask_id: int) -> Response:
    serializer = DecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    subtask = get_service().toggle_subtask(subtask_id, user=serializer.validated_data['user'])
    return Response({'success': True, 'subtask': SubtaskSerializer(subtask).data})


@extend_schema(summary="Add a dependency", request=DependencyInputSerializer,
               responses={200: OpenApiTypes.OBJECT}, tags=['Tasks'])
@api_view(['POST'])
def add_dependency(request: Request, task_id: int) -> Response:
    serializer = DependencyInputSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input(serializer)

    data = serializer.validated_data
    task = get_service().add_dependency(task_id, data['depends_on'], user=data['user'])
    return Response({'success': True, 'task': TaskSerializer(task).data})


# ============================================
# EXTENSIONS
# ============================================

@extend_schema(
    summary="Request a due date extension",
    request=ExtensionInputSerializer,
    responses={201: OpenApiTypes.OBJECT},
    tags=['Extensions']
)
@api_view(['POST'])
def request_extension(request: Request, task_id: int) -> Response:
    serializer = ExtensionInputSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input(serializer)

    data = serializer.validated_data
    extension = get_service().request_extension(
        task_id,
        data['new_due_date'],
        user=data['user'],
        reason=data['reason']
    )
    return Response(
        {'success': True, 'extension_request': ExtensionRequestSerializer(extension).data},
        status=status.HTTP_201_CREATED
    )


@extend_schema(summary="Approve the pending extension", request=DecisionSerializer,
               responses={200: OpenApiTypes.OBJECT}, tags=['Extensions'])
@api_view(['POST'])
def approve_extension(request: Request, task_id: int) -> Response:
    serializer = DecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    task = get_service().approve_extension(task_id, user=serializer.validated_data['user'])
    return Response({'success': True, 'task': TaskSerializer(task).data})


@extend_schema(summary="Reject the pending extension", request=DecisionSerializer,
               responses={200: OpenApiTypes.OBJECT}, tags=['Extensions'])
@api_view(['POST'])
def reject_extension(request: Request, task_id: int) -> Response:
    serializer = DecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    task = get_service().reject_extension(task_id, user=serializer.validated_data['user'])
    return Response({'success': True, 'task': TaskSerializer(task).data})


# ============================================
# COLLECTIONS AND NOTIFICATIONS
# ============================================

@extend_schema(summary="List or create collections", request=CollectionSerializer,
               responses={200: OpenApiTypes.OBJECT, 201: OpenApiTypes.OBJECT}, tags=['Collections'])
@api_view(['GET', 'POST'])
def collection_list(request: Request) -> Response:
    service = get_service()

    if request.method == 'POST':
        serializer = CollectionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer)
        collection = service.create_collection(serializer.validated_data)
        return Response(
            {'success': True, 'collection': CollectionSerializer(collection).data},
            status=status.HTTP_201_CREATED
        )

    collections = service.collections.list()
    return Response({
        'success': True,
        'collections': CollectionSerializer(collections, many=True).data
    })


@extend_schema(
    summary="List notifications",
    parameters=[OpenApiParameter('unread', bool, description='Only unread notifications')],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Notifications']
)
@api_view(['GET'])
def notification_list(request: Request) -> Response:
    unread_only = request.query_params.get('unread', '').lower() in ('1', 'true', 'yes')
    notifications = get_service().notifications.list(unread_only=unread_only)
    return Response({
        'success': True,
        'notifications': NotificationSerializer(notifications, many=True).data
    })


@extend_schema(summary="Create overdue notifications",
               responses={200: OpenApiTypes.OBJECT}, tags=['Notifications'])
@api_view(['POST'])
def check_overdue(request: Request) -> Response:
    created = get_service().check_overdue()
    return Response({
        'success': True,
        'created': len(created),
        'notifications': NotificationSerializer(created, many=True).data
    })


@extend_schema(summary="Mark notifications as read", request=NotificationReadSerializer,
               responses={200: OpenApiTypes.OBJECT}, tags=['Notifications'])
@api_view(['POST'])
def mark_notifications_read(request: Request) -> Response:
    serializer = NotificationReadSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input(serializer)
    updated = get_service().mark_notifications_read(serializer.validated_data['ids'])
    return Response({'success': True, 'updated': updated})


# ============================================
# REPORTS
# ============================================

def _report_day(request: Request) -> date:
    serializer = ReportDateSerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data.get('date') or timezone.localdate()


def _report_range(request: Request, default_start: date, default_end: date):
    """Resolve start/end query params, bounded by CALENDAR_MAX_DAYS."""
    serializer = ReportRangeSerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    start = serializer.validated_data.get('start') or default_start
    end = serializer.validated_data.get('end') or default_end

    max_days = tracker_setting('CALENDAR_MAX_DAYS', 366)
    if (end - start).days + 1 > max_days:
        raise TaskValidationError(
            ErrorCode.ERR_INVALID_DATE,
            f"Report range cannot exceed {max_days} days",
            field='end'
        )
    return start, end


@extend_schema(
    summary="Daily report",
    parameters=[OpenApiParameter('date', OpenApiTypes.DATE, description='Day (defaults to today)')],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Reports']
)
@api_view(['GET'])
@throttle_classes([ReportRateThrottle])
def report_daily(request: Request) -> Response:
    day = _report_day(request)
    completed = reports.daily_report(get_service().tasks.list(completed_at__isnull=False), day)
    return Response({
        'success': True,
        'date': day.isoformat(),
        'count': len(completed),
        'tasks': TaskSummarySerializer(completed, many=True).data
    })


@extend_schema(
    summary="Weekly report",
    parameters=[OpenApiParameter('date', OpenApiTypes.DATE, description='Any day in the week')],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Reports']
)
@api_view(['GET'])
@throttle_classes([ReportRateThrottle])
def report_weekly(request: Request) -> Response:
    day = _report_day(request)
    week = reports.weekly_report(get_service().tasks.list(completed_at__isnull=False), day)
    return Response({
        'success': True,
        'week_start': week['week_start'].isoformat(),
        'week_end': week['week_end'].isoformat(),
        'count': len(week['tasks']),
        'tasks': TaskSummarySerializer(week['tasks'], many=True).data
    })


@extend_schema(
    summary="Burn-down report",
    description="Ideal vs actual remaining story points. Defaults to the previous and current month.",
    parameters=[
        OpenApiParameter('start', OpenApiTypes.DATE),
        OpenApiParameter('end', OpenApiTypes.DATE),
    ],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Reports']
)
@api_view(['GET'])
@throttle_classes([ReportRateThrottle])
def report_burndown(request: Request) -> Response:
    today = timezone.localdate()
    month_end = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    previous_month_start = (today.replace(day=1) - timedelta(days=1)).replace(day=1)
    start, end = _report_range(request, previous_month_start, month_end)

    rows = reports.burndown_report(get_service().tasks.list(), start, end)
    return Response({
        'success': True,
        'start': start.isoformat(),
        'end': end.isoformat(),
        'days': [
            {'date': row['date'].isoformat(), 'ideal': row['ideal'], 'actual': row['actual']}
            for row in rows
        ]
    })


@extend_schema(summary="Dashboard summary", responses={200: OpenApiTypes.OBJECT}, tags=['Reports'])
@api_view(['GET'])
@throttle_classes([ReportRateThrottle])
def report_dashboard(request: Request) -> Response:
    summary = reports.dashboard_summary(
        get_service().tasks.list(),
        upcoming_limit=tracker_setting('UPCOMING_DEADLINES_LIMIT', 5)
    )
    return Response({
        'success': True,
        'status_counts': summary['status_counts'],
        'priority_counts': summary['priority_counts'],
        'upcoming_deadlines': TaskSummarySerializer(summary['upcoming_deadlines'], many=True).data,
        'overdue': TaskSummarySerializer(summary['overdue'], many=True).data,
    })


@extend_schema(summary="Score leaderboard", responses={200: OpenApiTypes.OBJECT}, tags=['Reports'])
@api_view(['GET'])
@throttle_classes([ReportRateThrottle])
def report_leaderboard(request: Request) -> Response:
    ranking = reports.leaderboard(get_service().tasks.list(status=TaskStatus.DONE.value))
    return Response({'success': True, 'leaderboard': ranking})


@extend_schema(
    summary="Calendar",
    description="Tasks per day with recurring tasks expanded. Defaults to the current month.",
    parameters=[
        OpenApiParameter('start', OpenApiTypes.DATE),
        OpenApiParameter('end', OpenApiTypes.DATE),
    ],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Reports']
)
@api_view(['GET'])
@throttle_classes([ReportRateThrottle])
def report_calendar(request: Request) -> Response:
    today = timezone.localdate()
    month_start = today.replace(day=1)
    month_end = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    start, end = _report_range(request, month_start, month_end)

    days = reports.calendar_report(get_service().tasks.list(due_date__isnull=False), start, end)
    return Response({
        'success': True,
        'start': start.isoformat(),
        'end': end.isoformat(),
        'days': {
            day.isoformat(): TaskSummarySerializer(tasks, many=True).data
            for day, tasks in days.items()
        }
    })
