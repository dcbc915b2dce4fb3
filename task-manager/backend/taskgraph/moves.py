"""Drag-and-drop task reassignment.

``validate_move`` runs its checks in a fixed order and the first failure
wins: payload shape and identity, then permission, then task state
(completion, dependencies), then the target's capacity and membership.
A rejected move is a normal result, not an exception.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from django.db import transaction

from . import audit
from .audit import AuditEvent
from .conf import get_setting
from .dependencies import is_blocked
from .models import Task
from .store import DependencyStore

logger = logging.getLogger(__name__)

INVALID_DATA = 'invalid_data'
SAME_PERSON = 'same_person'
MISSING_PERMISSIONS = 'missing_permissions'
TASK_COMPLETED = 'task_completed'
UNRESOLVED_DEPENDENCIES = 'unresolved_dependencies'
OVERLOADED = 'overloaded'
NOT_PROJECT_MEMBER = 'not_project_member'


@dataclass
class Permissions:
    can_assign_tasks: bool = False


@dataclass
class MoveContext:
    permissions: Permissions
    actor_id: Optional[int] = None
    max_active_tasks: Optional[int] = None
    store: Optional[DependencyStore] = None


@dataclass
class MoveResult:
    is_valid: bool
    message: str
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


def _reject(reason: str, message: str, **details) -> MoveResult:
    logger.debug("Move rejected (%s): %s", reason, message)
    return MoveResult(is_valid=False, message=message, reason=reason, details=details)


def validate_move(payload: Optional[Mapping], target_person_id: Any,
                  context: MoveContext) -> MoveResult:
    """Decide whether the dragged task may be handed to ``target_person_id``.

    ``payload`` is what the UI attaches to the drag: ``task_id`` and, when
    the task is dragged off someone's column, ``source_person_id``.
    """
    if not isinstance(payload, Mapping) or payload.get('task_id') is None or target_person_id is None:
        return _reject(INVALID_DATA, 'Invalid data for move.')

    source_person_id = payload.get('source_person_id')
    if source_person_id is not None and str(source_person_id) == str(target_person_id):
        return _reject(SAME_PERSON, 'Task is already assigned to this person.')

    if not context.permissions.can_assign_tasks:
        return _reject(MISSING_PERMISSIONS, 'You do not have permission to assign tasks.')

    store = context.store or DependencyStore()
    try:
        task = store.get_task(payload['task_id'])
    except (Task.DoesNotExist, ValueError, TypeError):
        return _reject(INVALID_DATA, 'Task not found.')

    if task.is_completed:
        return _reject(TASK_COMPLETED, 'Completed tasks cannot be moved.')

    blocking = is_blocked(task, store)
    if blocking.blocked:
        return _reject(
            UNRESOLVED_DEPENDENCIES,
            'Task has unresolved dependencies.',
            blocking_task_ids=[t.pk for t in blocking.blocking_tasks],
        )

    try:
        person = store.get_person(target_person_id)
    except (ValueError, TypeError):
        person = None
    if person is None:
        return _reject(INVALID_DATA, 'Target person not found.')

    max_active_tasks = context.max_active_tasks
    if max_active_tasks is None:
        max_active_tasks = get_setting('MAX_ACTIVE_TASKS')
    active = store.count_active_tasks(person.pk)
    if active >= max_active_tasks:
        return _reject(
            OVERLOADED,
            f"{person.name} already has too many tasks ({active}/{max_active_tasks}).",
            current_tasks=active,
            max_tasks=max_active_tasks,
        )

    if not store.is_project_member(task.project_id, person.pk):
        return _reject(NOT_PROJECT_MEMBER, f"{person.name} is not a member of the project.")

    return MoveResult(
        is_valid=True,
        message=f"Move to {person.name}",
        details={'task_id': task.pk, 'target_person_id': person.pk, 'current_tasks': active},
    )


def commit_move(payload: Optional[Mapping], target_person_id: Any,
                context: MoveContext) -> Tuple[MoveResult, Optional[AuditEvent]]:
    """Validate the move and, if allowed, transfer the task in one transaction."""
    store = context.store or DependencyStore()
    context = replace(context, store=store)

    with transaction.atomic():
        result = validate_move(payload, target_person_id, context)
        if not result.is_valid:
            return result, None

        task = store.get_task(payload['task_id'])
        source_person_id = payload.get('source_person_id')
        store.reassign(task, source_person_id, result.details['target_person_id'])

    logger.info(
        "Task %s moved from person %s to person %s",
        task.pk, source_person_id, result.details['target_person_id']
    )
    event = AuditEvent(
        action=audit.TASK_TRANSFERRED,
        task_id=task.pk,
        project_id=task.project_id,
        actor_id=context.actor_id,
        details={
            'from_person_id': source_person_id,
            'to_person_id': result.details['target_person_id'],
        },
    )
    return result, event
