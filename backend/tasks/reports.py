"""
Reporting over task collections.

All functions take an iterable of tasks (model instances or any object
with the same attributes) and return plain Python structures; the views
decide how to serialize them.
"""

from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from django.utils import timezone

from .lifecycle import TaskStatus, TERMINAL_STATUSES


PRIORITIES = ('low', 'medium', 'high', 'none')


def local_date(value) -> Optional[date]:
    """Calendar date of a timestamp in the active time zone."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    return value


def _is_open(task) -> bool:
    return TaskStatus.parse(task.status) not in TERMINAL_STATUSES


def daily_report(tasks: Iterable, day: date) -> List:
    """Tasks completed on ``day``, earliest first."""
    completed = [task for task in tasks if local_date(task.completed_at) == day]
    return sorted(completed, key=lambda task: task.completed_at)


def week_bounds(day: date):
    """Monday and Sunday of the week containing ``day``."""
    week_start = day - timedelta(days=day.weekday())
    return week_start, week_start + timedelta(days=6)


def weekly_report(tasks: Iterable, day: date) -> Dict:
    """Tasks completed in the Monday-Sunday week containing ``day``."""
    week_start, week_end = week_bounds(day)
    completed = [
        task for task in tasks
        if task.completed_at and week_start <= local_date(task.completed_at) <= week_end
    ]
    return {
        'week_start': week_start,
        'week_end': week_end,
        'tasks': sorted(completed, key=lambda task: task.completed_at),
    }


def burndown_report(tasks: Iterable, start: date, end: date) -> List[Dict]:
    """
    Ideal vs actual remaining story points per day.

    Scope is the story points of tasks created within [start, end]. The
    ideal line burns that scope evenly across the period; the actual line
    subtracts the points of tasks completed on each day.
    """
    tasks = list(tasks)
    if end < start:
        return []

    days = [start + timedelta(days=offset) for offset in range((end - start).days + 1)]
    in_period = [task for task in tasks if start <= local_date(task.created_at) <= end]
    total_points = sum(task.story_points or 0 for task in in_period)
    ideal_per_day = total_points / len(days)

    points_by_day: Dict[date, int] = {}
    for task in tasks:
        completed_on = local_date(task.completed_at)
        if completed_on is not None:
            points_by_day[completed_on] = points_by_day.get(completed_on, 0) + (task.story_points or 0)

    remaining = total_points
    rows = []
    for index, day in enumerate(days):
        remaining -= points_by_day.get(day, 0)
        rows.append({
            'date': day,
            'ideal': round(max(0.0, total_points - (index + 1) * ideal_per_day), 2),
            'actual': remaining,
        })
    return rows


def dashboard_summary(tasks: Iterable, now: Optional[datetime] = None, upcoming_limit: int = 5) -> Dict:
    """Status and priority counts, upcoming deadlines and overdue tasks."""
    now = now or timezone.now()
    tasks = list(tasks)

    status_counts = OrderedDict((status.value, 0) for status in TaskStatus)
    priority_counts = OrderedDict((priority, 0) for priority in PRIORITIES)
    for task in tasks:
        status_counts[TaskStatus.parse(task.status).value] += 1
        if task.priority in priority_counts:
            priority_counts[task.priority] += 1

    open_with_due = [task for task in tasks if task.due_date and _is_open(task)]
    upcoming = sorted(
        (task for task in open_with_due if task.due_date > now),
        key=lambda task: task.due_date
    )[:upcoming_limit]
    overdue = sorted(
        (task for task in open_with_due if task.due_date < now),
        key=lambda task: task.due_date
    )

    return {
        'status_counts': dict(status_counts),
        'priority_counts': {name: count for name, count in priority_counts.items() if count > 0},
        'upcoming_deadlines': upcoming,
        'overdue': overdue,
    }


def leaderboard(tasks: Iterable) -> List[Dict]:
    """
    Per-assignee totals over Done tasks, highest total first.

    Unscored Done tasks count as zero. Ties keep alphabetical order.
    """
    scores: Dict[str, Dict] = {}
    for task in tasks:
        if not task.assignee or task.status != TaskStatus.DONE.value:
            continue
        entry = scores.setdefault(task.assignee, {
            'assignee': task.assignee,
            'total_score': 0,
            'completed_tasks': 0,
        })
        entry['total_score'] += task.score or 0
        entry['completed_tasks'] += 1

    ranked = sorted(scores.values(), key=lambda entry: entry['assignee'])
    ranked.sort(key=lambda entry: entry['total_score'], reverse=True)
    for rank, entry in enumerate(ranked, start=1):
        entry['rank'] = rank
    return ranked


def occurs_on(task, day: date) -> bool:
    """Whether a task appears on ``day``, expanding its recurrence."""
    due = local_date(task.due_date)
    if due is None:
        return False

    interval = getattr(task, 'recurrence_interval', '') or ''
    if not interval:
        return due == day

    end = local_date(getattr(task, 'recurrence_end_date', None))
    if day < due or (end is not None and day > end):
        return False

    if interval == 'daily':
        return True
    if interval == 'weekly':
        return due.weekday() == day.weekday()
    if interval == 'monthly':
        return due.day == day.day
    if interval == 'yearly':
        return (due.month, due.day) == (day.month, day.day)
    return False


def calendar_report(tasks: Iterable, start: date, end: date) -> Dict[date, List]:
    """Tasks shown on each day of [start, end]."""
    tasks = list(tasks)
    calendar: Dict[date, List] = OrderedDict()
    day = start
    while day <= end:
        calendar[day] = [task for task in tasks if occurs_on(task, day)]
        day += timedelta(days=1)
    return calendar
