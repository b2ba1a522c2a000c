from django.contrib import admin

from .models import Collection, Comment, ExtensionRequest, Notification, Subtask, Task, TimelineEntry


class CommentInline(admin.TabularInline):
    model = Comment
    extra = 0


class SubtaskInline(admin.TabularInline):
    model = Subtask
    extra = 0


class ExtensionRequestInline(admin.TabularInline):
    model = ExtensionRequest
    extra = 0


class TimelineEntryInline(admin.TabularInline):
    model = TimelineEntry
    extra = 0
    readonly_fields = ['timestamp', 'action', 'details', 'user']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'status', 'priority', 'assignee', 'due_date', 'rework_count', 'score']
    list_filter = ['status', 'priority', 'task_type']
    search_fields = ['title', 'description', 'assignee']
    # Lifecycle fields change only through the task service
    readonly_fields = ['original_due_date', 'completed_at', 'rework_count', 'score', 'score_breakdown']
    inlines = [SubtaskInline, CommentInline, ExtensionRequestInline, TimelineEntryInline]


@admin.register(Collection)
class CollectionAdmin(admin.ModelAdmin):
    list_display = ['title', 'project', 'created_at']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['message', 'task', 'created_at', 'is_read']
    list_filter = ['is_read']
