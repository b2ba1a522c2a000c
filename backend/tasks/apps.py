from django.apps import AppConfig


class TasksConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tasks'
    verbose_name = 'Tasks'

    def ready(self):
        # Connects the completion scorer to task_completed
        from . import signals  # noqa: F401
