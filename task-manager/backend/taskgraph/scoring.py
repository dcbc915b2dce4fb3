from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List

from .conf import get_setting
from .models import Task

ACTIVE_STATUSES = frozenset(Task.ACTIVE_STATUSES)

LIGHT = 'light'
MODERATE = 'moderate'
HEAVY = 'heavy'

BASE_SCORE = 100
ACTIVE_TASK_PENALTY = 5
SIMILAR_TASK_BONUS = 10


@dataclass
class Workload:
    total_tasks: int
    active_tasks: int
    in_progress_tasks: int
    not_started_tasks: int
    paused_tasks: int
    average_completion: int
    level: str
    can_receive_more: bool


@dataclass
class AssignmentSuggestion:
    person: Dict
    score: int
    current_active_task_count: int
    can_receive: bool
    reason: str
    workload_level: str
    similar_tasks_count: int


def count_active_tasks(tasks: Iterable[Dict]) -> int:
    return sum(1 for t in tasks if t.get('status') in ACTIVE_STATUSES)


def classify_workload(active_tasks: int) -> str:
    if active_tasks >= get_setting('HEAVY_WORKLOAD_THRESHOLD'):
        return HEAVY
    if active_tasks >= get_setting('MODERATE_WORKLOAD_THRESHOLD'):
        return MODERATE
    return LIGHT


def calculate_workload(tasks: List[Dict], max_active_tasks: int | None = None) -> Workload:
    """Workload breakdown of one person's assigned tasks."""
    if max_active_tasks is None:
        max_active_tasks = get_setting('MAX_ACTIVE_TASKS')

    active = count_active_tasks(tasks)
    by_status: Dict[str, int] = {}
    for t in tasks:
        by_status[t.get('status')] = by_status.get(t.get('status'), 0) + 1

    total_completion = sum(t.get('completion_percentage') or 0 for t in tasks)
    average = round(total_completion / len(tasks)) if tasks else 0

    return Workload(
        total_tasks=len(tasks),
        active_tasks=active,
        in_progress_tasks=by_status.get(Task.IN_PROGRESS, 0),
        not_started_tasks=by_status.get(Task.NOT_STARTED, 0),
        paused_tasks=by_status.get(Task.PAUSED, 0),
        average_completion=average,
        level=classify_workload(active),
        can_receive_more=active < max_active_tasks,
    )


def _is_similar(other: Dict, task: Dict) -> bool:
    """Same non-empty category, or at least one shared tag."""
    category = task.get('category')
    if category and other.get('category') == category:
        return True
    tags = set(task.get('tags') or [])
    return bool(tags.intersection(other.get('tags') or []))


def suggest_assignees(task: Dict, candidates: List[Dict], all_tasks: List[Dict],
                      limit: int | None = None,
                      max_active_tasks: int | None = None) -> List[AssignmentSuggestion]:
    """Rank candidate people for a task.

    Each candidate starts at 100, loses 5 points per active task and gains 10
    per assigned task sharing the target's category or a tag. Anyone at or
    over the active-task cap scores 0 and cannot receive the task, whatever
    their topical fit. Ties keep the candidates' original order.

    Args:
        task: target task dict with optional 'id', 'category' and 'tags'
        candidates: person dicts, each with an 'id'
        all_tasks: task dicts of the project with 'status' and 'assignees' (person ids)
    """
    if limit is None:
        limit = get_setting('SUGGESTION_LIMIT')
    if max_active_tasks is None:
        max_active_tasks = get_setting('MAX_ACTIVE_TASKS')

    suggestions: List[AssignmentSuggestion] = []
    for person in candidates:
        person_tasks = [t for t in all_tasks if person.get('id') in (t.get('assignees') or [])]
        workload = calculate_workload(person_tasks, max_active_tasks)
        active = workload.active_tasks

        similar = [
            t for t in person_tasks
            if not (task.get('id') is not None and t.get('id') == task.get('id')) and _is_similar(t, task)
        ]

        score = BASE_SCORE - ACTIVE_TASK_PENALTY * active + SIMILAR_TASK_BONUS * len(similar)
        can_receive = active < max_active_tasks
        if can_receive:
            reason = f"Workload: {workload.level}, {active} active task(s)"
        else:
            # hard cap, the topical bonus cannot offset it
            score = 0
            reason = f"Already has {active} active tasks (maximum: {max_active_tasks})"

        suggestions.append(AssignmentSuggestion(
            person=person,
            score=max(0, score),
            current_active_task_count=active,
            can_receive=can_receive,
            reason=reason,
            workload_level=workload.level,
            similar_tasks_count=len(similar),
        ))

    suggestions.sort(key=lambda s: s.score, reverse=True)
    return suggestions[:limit]
