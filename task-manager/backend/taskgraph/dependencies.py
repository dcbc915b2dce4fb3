"""Dependency graph operations: creation rules, blocking state and cascades."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from django.db import transaction

from . import audit
from .audit import AuditEvent
from .conf import get_setting
from .exceptions import (
    CrossProjectDependencyError,
    CyclicDependencyError,
    DependencyLimitError,
    DuplicateDependencyError,
    InvalidStatusTransition,
    SelfDependencyError,
)
from .graph import build_graph, dependency_depth, find_dependency_path
from .models import Task, TaskDependency
from .store import DependencyStore

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    Task.NOT_STARTED: (Task.IN_PROGRESS,),
    Task.IN_PROGRESS: (Task.PAUSED, Task.COMPLETED),
    Task.PAUSED: (Task.IN_PROGRESS,),
    Task.COMPLETED: (),
}


@dataclass
class BlockingStatus:
    blocked: bool
    blocking_tasks: List[Task] = field(default_factory=list)
    total_dependencies: int = 0


@dataclass
class StatusChange:
    task: Task
    previous_status: str
    unblocked_tasks: List[Task]
    audit_event: AuditEvent


def _graph_scope(project_id: int) -> Optional[int]:
    # cross-project edges can chain through any project, so load everything
    if get_setting('ALLOW_CROSS_PROJECT_DEPENDENCIES'):
        return None
    return project_id


def _cycle_message(store: DependencyStore, cycle: List[int]) -> str:
    names = {t.id: t.name for t in store.get_tasks_by_ids(set(cycle))}
    chain = ' → '.join(names.get(tid, str(tid)) for tid in cycle)
    return f"Cannot add dependency: it would create a cycle: {chain}"


def would_create_cycle(task_id: int, depends_on_task_id: int,
                       store: Optional[DependencyStore] = None) -> bool:
    """True if ``task_id`` depending on ``depends_on_task_id`` would close a cycle.

    Self-dependency is always rejected. Otherwise the project's edge set is
    loaded once and searched in memory from ``depends_on_task_id`` for a
    depends-on path back to ``task_id``.

    Raises ``Task.DoesNotExist`` when ``task_id`` is unknown, since its
    project decides which edges are searched.
    """
    if task_id == depends_on_task_id:
        return True
    store = store or DependencyStore()
    task = store.get_task(task_id)
    graph = build_graph(store.get_graph_edges(_graph_scope(task.project_id)))
    return bool(find_dependency_path(graph, depends_on_task_id, task_id))


def create_dependency(task_id: int, depends_on_task_id: int, actor_id: Optional[int] = None,
                      store: Optional[DependencyStore] = None) -> Tuple[TaskDependency, AuditEvent]:
    """Add the edge ``task_id -> depends_on_task_id`` after validating it.

    All rules are checked before the write. The project row is locked for
    the duration of the transaction and the graph is re-checked after the
    insert; a cycle found at that point rolls the insert back.
    """
    if task_id == depends_on_task_id:
        raise SelfDependencyError()

    store = store or DependencyStore()
    task = store.get_task(task_id)
    depends_on = store.get_task(depends_on_task_id)

    if task.project_id != depends_on.project_id and not get_setting('ALLOW_CROSS_PROJECT_DEPENDENCIES'):
        raise CrossProjectDependencyError()

    scope = _graph_scope(task.project_id)
    max_dependencies = get_setting('MAX_DEPENDENCIES_PER_TASK')
    max_depth = get_setting('MAX_DEPENDENCY_DEPTH')

    with transaction.atomic():
        store.lock_projects(None if scope is None else [scope])

        if store.edge_exists(task_id, depends_on_task_id):
            raise DuplicateDependencyError()

        graph = build_graph(store.get_graph_edges(scope))
        path = find_dependency_path(graph, depends_on_task_id, task_id)
        if path:
            cycle = [task_id] + path
            logger.info("Rejected dependency %s -> %s: cycle %s", task_id, depends_on_task_id, cycle)
            raise CyclicDependencyError(_cycle_message(store, cycle), path=cycle)

        if store.count_dependencies(task_id) >= max_dependencies:
            raise DependencyLimitError(f"A task can have at most {max_dependencies} dependencies.")

        depth, _ = dependency_depth(graph, depends_on_task_id)
        if depth >= max_depth:
            raise DependencyLimitError(f"Maximum dependency depth of {max_depth} levels exceeded.")

        edge = store.create_edge(task_id, depends_on_task_id)

        graph = build_graph(store.get_graph_edges(scope))
        path = find_dependency_path(graph, depends_on_task_id, task_id)
        if path:
            cycle = [task_id] + path
            logger.warning("Cycle %s appeared after inserting edge %s; rolling back", cycle, edge.pk)
            raise CyclicDependencyError(_cycle_message(store, cycle), path=cycle)

    logger.info("Task %s now depends on task %s (edge %s)", task_id, depends_on_task_id, edge.pk)
    event = AuditEvent(
        action=audit.DEPENDENCY_ADDED,
        task_id=task_id,
        project_id=task.project_id,
        actor_id=actor_id,
        details={'depends_on_task_id': depends_on_task_id, 'dependency_id': edge.pk},
    )
    return edge, event


def remove_dependency(edge_id: int, actor_id: Optional[int] = None,
                      store: Optional[DependencyStore] = None) -> AuditEvent:
    store = store or DependencyStore()
    edge = store.delete_edge(edge_id)
    logger.info("Removed dependency %s (%s -> %s)", edge_id, edge.task_id, edge.depends_on_id)
    return AuditEvent(
        action=audit.DEPENDENCY_REMOVED,
        task_id=edge.task_id,
        project_id=edge.task.project_id,
        actor_id=actor_id,
        details={'depends_on_task_id': edge.depends_on_id, 'dependency_id': edge_id},
    )


def is_blocked(task: Task, store: Optional[DependencyStore] = None) -> BlockingStatus:
    """A task is blocked iff at least one direct dependency is not completed."""
    store = store or DependencyStore()
    edges = store.get_dependency_edges(task.pk)
    blocking = [e.depends_on for e in edges if e.depends_on.status != Task.COMPLETED]
    return BlockingStatus(
        blocked=bool(blocking),
        blocking_tasks=blocking,
        total_dependencies=len(edges),
    )


def resolve_on_completion(completed_task_id: int,
                          store: Optional[DependencyStore] = None) -> List[Task]:
    """Return the direct dependents of a completed task that are no longer blocked.

    Only one level is evaluated: dependents keep their own status, so their
    dependents stay blocked until they complete in turn.
    """
    store = store or DependencyStore()
    dependents = store.get_tasks_by_ids([e.task_id for e in store.get_dependent_edges(completed_task_id)])

    unblocked = [t for t in dependents if not is_blocked(t, store).blocked]
    logger.debug(
        "Completion of task %s unblocked %d of %d dependent(s)",
        completed_task_id, len(unblocked), len(dependents)
    )
    return unblocked


def change_status(task_id: int, new_status: str, actor_id: Optional[int] = None,
                  store: Optional[DependencyStore] = None) -> StatusChange:
    """Move a task to ``new_status`` and cascade when it becomes completed."""
    store = store or DependencyStore()
    task = store.get_task(task_id)
    previous = task.status

    if new_status not in STATUS_TRANSITIONS.get(previous, ()):
        raise InvalidStatusTransition(f"Cannot change status from '{previous}' to '{new_status}'.")

    task.status = new_status
    task.save(update_fields=['status', 'updated_at'])

    unblocked: List[Task] = []
    if new_status == Task.COMPLETED:
        unblocked = resolve_on_completion(task.pk, store)

    event = AuditEvent(
        action=audit.STATUS_CHANGED,
        task_id=task.pk,
        project_id=task.project_id,
        actor_id=actor_id,
        details={
            'from': previous,
            'to': new_status,
            'unblocked_task_ids': [t.pk for t in unblocked],
        },
    )
    return StatusChange(task=task, previous_status=previous, unblocked_tasks=unblocked, audit_event=event)
