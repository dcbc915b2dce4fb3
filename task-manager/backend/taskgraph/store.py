"""Django ORM adapter for the dependency engine.

Every database read and write the engine performs goes through
``DependencyStore`` so the graph, blocking and move logic stay free of
query details.
"""
import logging
from typing import Iterable, List, Optional, Tuple

from django.db import IntegrityError, transaction

from .audit import AuditEvent
from .exceptions import DependencyNotFoundError, DuplicateDependencyError
from .models import ActivityLog, Person, Project, Task, TaskDependency

logger = logging.getLogger(__name__)


class DependencyStore:

    # -- edges --

    def get_dependency_edges(self, task_id: int) -> List[TaskDependency]:
        """Outgoing edges: what ``task_id`` depends on."""
        return list(TaskDependency.objects.filter(task_id=task_id).select_related('depends_on'))

    def get_dependent_edges(self, task_id: int) -> List[TaskDependency]:
        """Incoming edges: tasks that depend on ``task_id``."""
        return list(TaskDependency.objects.filter(depends_on_id=task_id).select_related('task'))

    def get_graph_edges(self, project_id: Optional[int] = None) -> List[Tuple[int, int]]:
        """``(task_id, depends_on_id)`` pairs of a project, or of every project when None."""
        qs = TaskDependency.objects.all()
        if project_id is not None:
            qs = qs.filter(task__project_id=project_id)
        return list(qs.order_by().values_list('task_id', 'depends_on_id'))

    def get_project_edge_rows(self, project_id: int) -> List[Tuple[int, int, int]]:
        """``(edge_id, task_id, depends_on_id)`` for edges touching the project."""
        qs = TaskDependency.objects.filter(task__project_id=project_id) | \
            TaskDependency.objects.filter(depends_on__project_id=project_id)
        return list(qs.distinct().order_by('id').values_list('id', 'task_id', 'depends_on_id'))

    def edge_exists(self, task_id: int, depends_on_id: int) -> bool:
        return TaskDependency.objects.filter(task_id=task_id, depends_on_id=depends_on_id).exists()

    def count_dependencies(self, task_id: int) -> int:
        return TaskDependency.objects.filter(task_id=task_id).count()

    def create_edge(self, task_id: int, depends_on_id: int) -> TaskDependency:
        try:
            with transaction.atomic():
                return TaskDependency.objects.create(task_id=task_id, depends_on_id=depends_on_id)
        except IntegrityError as exc:
            # the unique constraint catches a concurrent insert of the same pair
            logger.info("Rejected duplicate edge %s -> %s: %s", task_id, depends_on_id, exc)
            raise DuplicateDependencyError() from exc

    def delete_edge(self, edge_id: int) -> TaskDependency:
        """Delete an edge and return the removed row (its pk is cleared by Django)."""
        edge = TaskDependency.objects.filter(pk=edge_id).select_related('task').first()
        if edge is None:
            raise DependencyNotFoundError()
        edge.delete()
        return edge

    # -- tasks, people, projects --

    def get_task(self, task_id: int) -> Task:
        return Task.objects.get(pk=task_id)

    def get_tasks_by_ids(self, ids: Iterable[int]) -> List[Task]:
        ids = list(ids)
        by_id = Task.objects.in_bulk(ids)
        # keep the caller's order
        return [by_id[i] for i in ids if i in by_id]

    def get_project_tasks(self, project_id: int) -> List[Task]:
        return list(Task.objects.filter(project_id=project_id).prefetch_related('assignees'))

    def get_project_members(self, project_id: int) -> List[Person]:
        return list(Person.objects.filter(projects__id=project_id).order_by('id'))

    def is_project_member(self, project_id: int, person_id: int) -> bool:
        return Project.members.through.objects.filter(project_id=project_id, person_id=person_id).exists()

    def get_person(self, person_id: int) -> Optional[Person]:
        return Person.objects.filter(pk=person_id).first()

    def get_assigned_tasks(self, person_id: int) -> List[Task]:
        return list(Task.objects.filter(assignees__id=person_id))

    def count_active_tasks(self, person_id: int) -> int:
        return Task.objects.filter(assignees__id=person_id, status__in=Task.ACTIVE_STATUSES).count()

    def reassign(self, task: Task, from_person_id: Optional[int], to_person_id: int) -> None:
        if from_person_id is not None:
            task.assignees.remove(from_person_id)
        task.assignees.add(to_person_id)

    def lock_projects(self, project_ids: Optional[Iterable[int]] = None) -> None:
        """Serialize graph mutations; must run inside a transaction.

        ``None`` locks every project row, for when a dependency chain may
        cross projects. Rows are locked in pk order so concurrent callers
        cannot deadlock.
        """
        qs = Project.objects.select_for_update().order_by('pk')
        if project_ids is not None:
            qs = qs.filter(pk__in=list(project_ids))
        list(qs.values_list('pk', flat=True))

    # -- audit --

    def record_activity(self, event: AuditEvent) -> ActivityLog:
        return ActivityLog.objects.create(
            action=event.action,
            task_id=event.task_id,
            project_id=event.project_id,
            actor_id=event.actor_id,
            details=event.details,
        )
