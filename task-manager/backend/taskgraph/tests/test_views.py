from unittest import mock

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Permission
from django.db import DatabaseError
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from taskgraph.models import ActivityLog, Task, TaskDependency
from taskgraph.store import DependencyStore

from .utils import depend, make_person, make_project, make_task

class DependencyApiTests(APITestCase):
    def setUp(self):
        self.project = make_project()
        self.a = make_task(self.project, 'A', Task.IN_PROGRESS)
        self.b = make_task(self.project, 'B')
        self.c = make_task(self.project, 'C')

    def test_create_and_list(self):
        url = reverse('task-dependencies', args=[self.b.pk])
        response = self.client.post(url, {'depends_on_task_id': self.a.pk})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['depends_on'], self.a.pk)
        self.assertEqual(response.data['depends_on_task']['name'], 'A')
        self.assertTrue(ActivityLog.objects.filter(action='dependency_added', task=self.b).exists())

        response = self.client.get(url)
        self.assertEqual([d['depends_on'] for d in response.data], [self.a.pk])

    def test_failed_activity_write_discards_the_edge(self):
        url = reverse('task-dependencies', args=[self.b.pk])
        with mock.patch.object(DependencyStore, 'record_activity', side_effect=DatabaseError('log unavailable')):
            with self.assertRaises(DatabaseError):
                self.client.post(url, {'depends_on_task_id': self.a.pk})
        self.assertFalse(TaskDependency.objects.exists())

    def test_failed_activity_write_discards_the_status_change(self):
        url = reverse('task-status', args=[self.a.pk])
        with mock.patch.object(DependencyStore, 'record_activity', side_effect=DatabaseError('log unavailable')):
            with self.assertRaises(DatabaseError):
                self.client.post(url, {'status': 'completed'})
        self.a.refresh_from_db()
        self.assertEqual(self.a.status, Task.IN_PROGRESS)

    def test_dependents(self):
        depend(self.b, self.a)
        depend(self.c, self.a)
        response = self.client.get(reverse('task-dependents', args=[self.a.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(sorted(d['task'] for d in response.data), [self.b.pk, self.c.pk])
        names = sorted(d['dependent_task']['name'] for d in response.data)
        self.assertEqual(names, ['B', 'C'])

    def test_cycle_is_a_bad_request(self):
        depend(self.b, self.a)
        url = reverse('task-dependencies', args=[self.a.pk])
        response = self.client.post(url, {'depends_on_task_id': self.b.pk})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'].code, 'circular_dependency')

    def test_self_dependency(self):
        url = reverse('task-dependencies', args=[self.a.pk])
        response = self.client.post(url, {'depends_on_task_id': self.a.pk})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'].code, 'self_dependency')

    def test_duplicate_is_a_conflict(self):
        depend(self.b, self.a)
        url = reverse('task-dependencies', args=[self.b.pk])
        response = self.client.post(url, {'depends_on_task_id': self.a.pk})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_unknown_prerequisite(self):
        url = reverse('task-dependencies', args=[self.b.pk])
        response = self.client.post(url, {'depends_on_task_id': 9999})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete(self):
        edge = depend(self.b, self.a)
        response = self.client.delete(reverse('dependency-detail', args=[edge.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(TaskDependency.objects.exists())

        response = self.client.delete(reverse('dependency-detail', args=[edge.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_blocking(self):
        depend(self.b, self.a)
        response = self.client.get(reverse('task-blocking', args=[self.b.pk]))
        self.assertTrue(response.data['blocked'])
        self.assertEqual([t['id'] for t in response.data['blocking_tasks']], [self.a.pk])

    def test_completing_returns_unblocked_tasks(self):
        depend(self.b, self.a)
        depend(self.c, self.b)
        response = self.client.post(reverse('task-status', args=[self.a.pk]), {'status': 'completed'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['previous_status'], 'in_progress')
        self.assertEqual([t['id'] for t in response.data['unblocked_tasks']], [self.b.pk])

    def test_invalid_transition(self):
        response = self.client.post(reverse('task-status', args=[self.b.pk]), {'status': 'completed'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dependency_graph(self):
        edge = depend(self.b, self.a)
        response = self.client.get(reverse('project-dependency-graph', args=[self.project.pk]))
        self.assertEqual(len(response.data['nodes']), 3)
        self.assertEqual(response.data['edges'], [{'id': edge.pk, 'source': self.a.pk, 'target': self.b.pk}])
        self.assertTrue(response.data['integrity']['is_valid'])

class AssignmentApiTests(APITestCase):
    def setUp(self):
        self.alice = make_person('Alice')
        self.bob = make_person('Bob')
        self.project = make_project(members=[self.alice, self.bob])
        self.task = make_task(self.project, 'Landing page', Task.IN_PROGRESS, assignees=[self.alice], category='design')
        make_task(self.project, 'Logo', Task.COMPLETED, assignees=[self.bob], category='design')
        make_task(self.project, 'API', Task.IN_PROGRESS, assignees=[self.alice])

        self.user = get_user_model().objects.create_user('manager', password='secret')
        permission = Permission.objects.get(codename='assign_task', content_type__app_label='taskgraph')
        self.user.user_permissions.add(permission)
        self.user = get_user_model().objects.get(pk=self.user.pk)

    def test_suggestions(self):
        response = self.client.get(reverse('task-suggestions', args=[self.task.pk]))
        suggestions = response.data['suggestions']
        self.assertEqual([s['person']['name'] for s in suggestions], ['Bob', 'Alice'])
        self.assertEqual(suggestions[0]['score'], 110)
        self.assertEqual(suggestions[1]['score'], 90)

    def test_workload(self):
        response = self.client.get(reverse('person-workload', args=[self.alice.pk]))
        self.assertEqual(response.data['workload']['active_tasks'], 2)
        self.assertEqual(response.data['workload']['level'], 'light')

    def test_validate_requires_permission(self):
        body = {'task_id': self.task.pk, 'source_person_id': self.alice.pk, 'target_person_id': self.bob.pk}
        response = self.client.post(reverse('move-validate'), body)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_valid'])
        self.assertEqual(response.data['reason'], 'missing_permissions')

    def test_validate_malformed(self):
        self.client.force_authenticate(self.user)
        response = self.client.post(reverse('move-validate'), {'target_person_id': self.bob.pk})
        self.assertEqual(response.data['reason'], 'invalid_data')

    def test_commit_move(self):
        self.client.force_authenticate(self.user)
        body = {'task_id': self.task.pk, 'source_person_id': self.alice.pk, 'target_person_id': self.bob.pk}
        response = self.client.post(reverse('move-commit'), body)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_valid'])
        self.assertEqual(response.data['task']['assignees'], [self.bob.pk])
        log = ActivityLog.objects.get(action='task_transferred')
        self.assertEqual(log.actor, self.user)

    def test_rejected_commit(self):
        self.client.force_authenticate(self.user)
        body = {'task_id': self.task.pk, 'source_person_id': self.alice.pk, 'target_person_id': self.alice.pk}
        response = self.client.post(reverse('move-commit'), body)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['reason'], 'same_person')
