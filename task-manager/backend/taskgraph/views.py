from typing import Optional

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from .dependencies import change_status, create_dependency, is_blocked, remove_dependency
from .graph import integrity_report
from .models import Person, Project, Task
from .moves import MoveContext, Permissions, commit_move, validate_move
from .scoring import calculate_workload, suggest_assignees
from .serializers import (
    AssignmentSuggestionSerializer,
    BlockingStatusSerializer,
    DependencyInputSerializer,
    DependencySerializer,
    DependentSerializer,
    MoveInputSerializer,
    MoveResultSerializer,
    PersonSerializer,
    StatusChangeSerializer,
    TaskSerializer,
    TaskSummarySerializer,
    WorkloadSerializer,
)
from .store import DependencyStore

def _actor_id(request) -> Optional[int]:
    user = request.user
    return user.pk if user is not None and user.is_authenticated else None

def _move_context(request, store: DependencyStore) -> MoveContext:
    user = request.user
    can_assign = bool(user is not None and user.has_perm('taskgraph.assign_task'))
    return MoveContext(
        permissions=Permissions(can_assign_tasks=can_assign),
        actor_id=_actor_id(request),
        store=store,
    )

@api_view(['GET', 'POST'])
def task_dependencies(request, task_id: int):
    task = get_object_or_404(Task, pk=task_id)
    store = DependencyStore()

    if request.method == 'GET':
        edges = store.get_dependency_edges(task.pk)
        return Response(DependencySerializer(edges, many=True).data)

    serializer = DependencyInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    depends_on_id = serializer.validated_data['depends_on_task_id']
    if depends_on_id != task.pk:
        get_object_or_404(Task, pk=depends_on_id)

    with transaction.atomic():
        edge, event = create_dependency(task.pk, depends_on_id, actor_id=_actor_id(request), store=store)
        store.record_activity(event)
    return Response(DependencySerializer(edge).data, status=status.HTTP_201_CREATED)

@api_view(['GET'])
def task_dependents(request, task_id: int):
    task = get_object_or_404(Task, pk=task_id)
    edges = DependencyStore().get_dependent_edges(task.pk)
    return Response(DependentSerializer(edges, many=True).data)

@api_view(['DELETE'])
def dependency_detail(request, dependency_id: int):
    store = DependencyStore()
    with transaction.atomic():
        event = remove_dependency(dependency_id, actor_id=_actor_id(request), store=store)
        store.record_activity(event)
    return Response(status=status.HTTP_204_NO_CONTENT)

@api_view(['GET'])
def task_blocking(request, task_id: int):
    task = get_object_or_404(Task, pk=task_id)
    return Response(BlockingStatusSerializer(is_blocked(task)).data)

@api_view(['POST'])
def task_status(request, task_id: int):
    task = get_object_or_404(Task, pk=task_id)
    serializer = StatusChangeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    store = DependencyStore()
    with transaction.atomic():
        change = change_status(
            task.pk,
            serializer.validated_data['status'],
            actor_id=_actor_id(request),
            store=store
        )
        store.record_activity(change.audit_event)
    return Response({
        'task': TaskSerializer(change.task).data,
        'previous_status': change.previous_status,
        'unblocked_tasks': TaskSummarySerializer(change.unblocked_tasks, many=True).data,
    })

@api_view(['GET'])
def task_suggestions(request, task_id: int):
    task = get_object_or_404(Task, pk=task_id)
    store = DependencyStore()

    candidates = PersonSerializer(store.get_project_members(task.project_id), many=True).data
    project_tasks = TaskSerializer(store.get_project_tasks(task.project_id), many=True).data
    suggestions = suggest_assignees(TaskSerializer(task).data, candidates, project_tasks)

    return Response({
        'task': task.pk,
        'suggestions': AssignmentSuggestionSerializer(suggestions, many=True).data,
    })

@api_view(['GET'])
def person_workload(request, person_id: int):
    person = get_object_or_404(Person, pk=person_id)
    tasks = TaskSerializer(DependencyStore().get_assigned_tasks(person.pk), many=True).data
    return Response({
        'person': PersonSerializer(person).data,
        'workload': WorkloadSerializer(calculate_workload(tasks)).data,
    })

@api_view(['POST'])
def move_validate(request):
    serializer = MoveInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payload = {'task_id': data.get('task_id'), 'source_person_id': data.get('source_person_id')}
    result = validate_move(payload, data.get('target_person_id'), _move_context(request, DependencyStore()))
    return Response(MoveResultSerializer(result).data)

@api_view(['POST'])
def move_commit(request):
    serializer = MoveInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    store = DependencyStore()
    payload = {'task_id': data.get('task_id'), 'source_person_id': data.get('source_person_id')}
    with transaction.atomic():
        result, event = commit_move(payload, data.get('target_person_id'), _move_context(request, store))
        if event is not None:
            store.record_activity(event)
    if event is None:
        return Response(MoveResultSerializer(result).data, status=status.HTTP_400_BAD_REQUEST)

    body = MoveResultSerializer(result).data
    body['task'] = TaskSerializer(store.get_task(event.task_id)).data
    return Response(body)

@api_view(['GET'])
def project_dependency_graph(request, project_id: int):
    """Nodes and edges of a project's dependency graph plus its integrity report."""
    project = get_object_or_404(Project, pk=project_id)
    store = DependencyStore()

    tasks = store.get_project_tasks(project.pk)
    rows = store.get_project_edge_rows(project.pk)

    edges = [
        {'id': edge_id, 'source': depends_on_id, 'target': task_id}
        for edge_id, task_id, depends_on_id in rows
    ]
    return Response({
        'project': project.pk,
        'nodes': TaskSerializer(tasks, many=True).data,
        'edges': edges,
        'integrity': integrity_report([t.pk for t in tasks], rows),
    })
