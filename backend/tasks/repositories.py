"""
Repositories over the task store.

Services receive a repository instead of reaching for a global task list,
which keeps the lifecycle rules testable and the storage swappable.
"""

from typing import Dict, Iterable, List, Optional

from django.db.models import QuerySet

from .errors import TaskNotFoundError
from .models import Collection, Notification, Task


class TaskRepository:
    """get / add / update / list over persisted tasks."""

    def queryset(self) -> QuerySet:
        return Task.objects.all()

    def get(self, task_id: int, for_update: bool = False) -> Task:
        queryset = self.queryset()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=task_id)
        except Task.DoesNotExist:
            raise TaskNotFoundError(f"Task {task_id} does not exist", task_id=task_id)

    def get_many(self, task_ids: Iterable[int]) -> List[Task]:
        """Fetch several tasks, failing on the first unknown id."""
        task_ids = list(task_ids)
        found = {task.pk: task for task in self.queryset().filter(pk__in=task_ids)}
        for task_id in task_ids:
            if task_id not in found:
                raise TaskNotFoundError(f"Task {task_id} does not exist", task_id=task_id)
        return [found[task_id] for task_id in task_ids]

    def add(self, task: Task, depends_on: Optional[Iterable[Task]] = None) -> Task:
        task.save()
        if depends_on:
            task.depends_on.set(depends_on)
        return task

    def update(self, task: Task, fields: Optional[Iterable[str]] = None) -> Task:
        if fields is None:
            task.save()
        else:
            task.save(update_fields=sorted(set(fields) | {'updated_at'}))
        return task

    def list(self, **filters) -> QuerySet:
        return self.queryset().filter(**filters)

    def dependency_graph(self) -> Dict[int, set]:
        """Adjacency map of task id -> ids it depends on."""
        graph: Dict[int, set] = {}
        through = Task.depends_on.through.objects.values_list('from_task_id', 'to_task_id')
        for task_id, dependency_id in through:
            graph.setdefault(task_id, set()).add(dependency_id)
        return graph


class CollectionRepository:

    def get(self, collection_id: int) -> Collection:
        try:
            return Collection.objects.get(pk=collection_id)
        except Collection.DoesNotExist:
            raise TaskNotFoundError(f"Collection {collection_id} does not exist")

    def add(self, collection: Collection) -> Collection:
        collection.save()
        return collection

    def list(self) -> QuerySet:
        return Collection.objects.all()


class NotificationRepository:

    def add(self, message: str, task: Optional[Task] = None) -> Notification:
        return Notification.objects.create(message=message, task=task)

    def exists_for_task(self, task: Task, message_suffix: str) -> bool:
        return Notification.objects.filter(task=task, message__endswith=message_suffix).exists()

    def list(self, unread_only: bool = False) -> QuerySet:
        queryset = Notification.objects.select_related('task')
        if unread_only:
            queryset = queryset.filter(is_read=False)
        return queryset

    def mark_read(self, notification_ids: Iterable[int]) -> int:
        return Notification.objects.filter(pk__in=list(notification_ids), is_read=False).update(is_read=True)
