"""
URL configuration for the tasks app.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.api_info, name='api-info'),
    path('score/', views.score_snapshot, name='score-snapshot'),
    path('tasks/', views.task_list, name='task-list'),
    path('tasks/<int:task_id>/', views.task_detail, name='task-detail'),
    # Lifecycle
    path('tasks/<int:task_id>/status/', views.change_task_status, name='task-status'),
    path('tasks/<int:task_id>/rework/', views.rework_task, name='task-rework'),
    path('tasks/<int:task_id>/comments/', views.add_comment, name='task-comments'),
    path('tasks/<int:task_id>/subtasks/', views.add_subtask, name='task-subtasks'),
    path('tasks/<int:task_id>/dependencies/', views.add_dependency, name='task-dependencies'),
    path('subtasks/<int:subtask_id>/toggle/', views.toggle_subtask, name='subtask-toggle'),
    # Extensions
    path('tasks/<int:task_id>/extension/', views.request_extension, name='extension-request'),
    path('tasks/<int:task_id>/extension/approve/', views.approve_extension, name='extension-approve'),
    path('tasks/<int:task_id>/extension/reject/', views.reject_extension, name='extension-reject'),
    # Collections and notifications
    path('collections/', views.collection_list, name='collection-list'),
    path('notifications/', views.notification_list, name='notification-list'),
    path('notifications/check-overdue/', views.check_overdue, name='notification-check-overdue'),
    path('notifications/read/', views.mark_notifications_read, name='notification-read'),
    # Reports
    path('reports/daily/', views.report_daily, name='report-daily'),
    path('reports/weekly/', views.report_weekly, name='report-weekly'),
    path('reports/burndown/', views.report_burndown, name='report-burndown'),
    path('reports/dashboard/', views.report_dashboard, name='report-dashboard'),
    path('reports/leaderboard/', views.report_leaderboard, name='report-leaderboard'),
    path('reports/calendar/', views.report_calendar, name='report-calendar'),
]
