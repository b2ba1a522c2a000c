"""
Tests for the REST API endpoints.
"""

import json
from datetime import timedelta

from django.core.cache import cache
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from tasks.models import Notification, Task


class APITestBase(APITestCase):

    def setUp(self):
        # Throttle history lives in the cache
        cache.clear()

    def post(self, url, data=None):
        return self.client.post(
            url,
            data=json.dumps(data or {}),
            content_type='application/json'
        )

    def create_task(self, **data):
        data.setdefault('title', 'Prepare release notes')
        data.setdefault('due_date', (timezone.now() + timedelta(days=2)).isoformat())
        response = self.post('/api/tasks/', data)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data['task']

    def set_status(self, task_id, new_status, **extra):
        return self.post(f'/api/tasks/{task_id}/status/', dict(extra, status=new_status))


class InfoAndScoringTests(APITestBase):

    def test_api_info_endpoint(self):
        """GET /api/ should return API information."""
        response = self.client.get('/api/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('endpoints', response.data)
        self.assertEqual(response.data['statuses']['Done'], [])
        self.assertEqual(response.data['scoring']['score_floor'], -75)

    def test_score_snapshot(self):
        """POST /api/score/ scores without storing anything."""
        data = {
            'originalDueDate': '2024-08-01T17:00:00Z',
            'dueDate': '2024-08-02T17:00:00Z',
            'completedAt': '2024-08-02T17:00:00Z',
            'reworkCount': 0,
        }

        response = self.post('/api/score/', data)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['finalScore'], -25)
        self.assertEqual(response.data['breakdown'], {
            'extensionPenalty': 25, 'delayPenalty': 0, 'reworkPenalty': 0
        })
        self.assertEqual(response.data['details']['extensionMinutes'], 1440)
        self.assertEqual(Task.objects.count(), 0)

    def test_score_snapshot_of_open_task(self):
        response = self.post('/api/score/', {'dueDate': '2024-08-02T17:00:00Z', 'reworkCount': 4})

        self.assertEqual(response.data['finalScore'], 0)
        self.assertFalse(response.data['details']['scoreable'])

    def test_score_snapshot_with_oversized_timestamp(self):
        response = self.post('/api/score/', {'completedAt': 10 ** 400, 'reworkCount': 1})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['finalScore'], 0)
        self.assertFalse(response.data['details']['scoreable'])

    def test_score_snapshot_rejects_non_object(self):
        response = self.post('/api/score/', [1, 2])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class TaskEndpointTests(APITestBase):

    def test_create_task(self):
        task = self.create_task(assignee='alice', labels=['docs'])

        self.assertEqual(task['status'], 'To Do')
        self.assertEqual(task['due_date'], task['original_due_date'])
        self.assertEqual(task['labels'], ['docs'])
        self.assertEqual(task['timeline'][0]['action'], 'Task Created')

    def test_create_task_invalid_title(self):
        response = self.post('/api/tasks/', {'title': '  '})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_create_task_short_title(self):
        response = self.post('/api/tasks/', {'title': 'ab'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_TITLE')

    def test_recurring_task_needs_due_date(self):
        response = self.post('/api/tasks/', {'title': 'Standup notes', 'recurrence_interval': 'daily'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters_and_sorts(self):
        self.create_task(title='Later task', priority='low',
                         due_date=(timezone.now() + timedelta(days=9)).isoformat())
        self.create_task(title='Sooner task', priority='high')
        self.create_task(title='Other person', assignee='bob')

        response = self.client.get('/api/tasks/', {'sort': 'priority'})
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['tasks'][0]['title'], 'Sooner task')

        response = self.client.get('/api/tasks/', {'assignee': 'bob'})
        self.assertEqual([task['title'] for task in response.data['tasks']], ['Other person'])

    def test_task_detail_and_patch(self):
        task = self.create_task()

        response = self.client.patch(
            f"/api/tasks/{task['id']}/",
            data=json.dumps({'description': 'Include migration notes', 'user': 'bob'}),
            content_type='application/json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['task']['description'], 'Include migration notes')

    def test_patch_sets_first_due_date(self):
        response = self.post('/api/tasks/', {'title': 'Undated task'})
        task_id = response.data['task']['id']

        response = self.client.patch(
            f'/api/tasks/{task_id}/',
            data=json.dumps({'due_date': '2030-01-15T17:00:00Z'}),
            content_type='application/json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['task']['due_date'], response.data['task']['original_due_date'])
        self.assertIsNotNone(response.data['task']['due_date'])

        response = self.client.patch(
            f'/api/tasks/{task_id}/',
            data=json.dumps({'due_date': '2030-02-15T17:00:00Z'}),
            content_type='application/json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_DATE')

    def test_unknown_task(self):
        response = self.client.get('/api/tasks/9999/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error_code'], 'ERR_NOT_FOUND')


class LifecycleEndpointTests(APITestBase):

    def test_complete_task_records_score(self):
        task = self.create_task()

        self.assertEqual(self.set_status(task['id'], 'In Progress').status_code, status.HTTP_200_OK)
        response = self.set_status(task['id'], 'Done')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['task']['status'], 'Done')
        self.assertEqual(response.data['task']['score'], 0)
        self.assertIsNotNone(response.data['task']['completed_at'])

    def test_invalid_transition(self):
        task = self.create_task()

        response = self.set_status(task['id'], 'Done')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_TRANSITION')

    def test_unknown_status(self):
        task = self.create_task()
        response = self.set_status(task['id'], 'Archived')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_review_and_rework(self):
        task = self.create_task(review_required=True)
        self.set_status(task['id'], 'In Progress')

        response = self.set_status(task['id'], 'Done')
        self.assertEqual(response.data['error_code'], 'ERR_REVIEW_REQUIRED')

        self.set_status(task['id'], 'Under Review')
        response = self.post(f"/api/tasks/{task['id']}/rework/", {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.post(f"/api/tasks/{task['id']}/rework/", {'reason': 'Add changelog', 'user': 'carol'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['task']['rework_count'], 1)

        self.set_status(task['id'], 'Under Review')
        response = self.set_status(task['id'], 'Done')
        self.assertEqual(response.data['task']['score'], -3)
        self.assertEqual(response.data['task']['score_breakdown']['reworkPenalty'], 3)

    def test_rework_through_status_endpoint_needs_details(self):
        task = self.create_task(review_required=True)
        self.set_status(task['id'], 'In Progress')
        self.set_status(task['id'], 'Under Review')

        response = self.set_status(task['id'], 'In Progress')

        self.assertEqual(response.data['error_code'], 'ERR_REWORK_REASON_REQUIRED')

    def test_dependencies(self):
        first = self.create_task(title='Design schema')
        second = self.create_task(title='Build API')

        response = self.post(f"/api/tasks/{second['id']}/dependencies/", {'depends_on': first['id']})
        self.assertEqual(response.data['task']['status'], 'Blocked')
        self.assertEqual(response.data['task']['depends_on'], [first['id']])

        response = self.post(f"/api/tasks/{first['id']}/dependencies/", {'depends_on': second['id']})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_CIRCULAR_DEPENDENCY')

        self.set_status(first['id'], 'In Progress')
        self.set_status(first['id'], 'Done')
        response = self.client.get(f"/api/tasks/{second['id']}/")
        self.assertEqual(response.data['task']['status'], 'To Do')

    def test_comments_and_subtasks(self):
        task = self.create_task()

        response = self.post(f"/api/tasks/{task['id']}/comments/", {'text': 'On it', 'user': 'alice'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.post(f"/api/tasks/{task['id']}/comments/", {'text': ''})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.post(f"/api/tasks/{task['id']}/subtasks/", {'title': 'Collect PR list'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.post(f"/api/subtasks/{response.data['subtask']['id']}/toggle/")
        self.assertEqual(response.data['subtask']['status'], 'Done')


class CollectionEndpointTests(APITestBase):

    def test_create_and_list(self):
        response = self.post('/api/collections/', {'title': 'Q3 launch', 'project': 'WEB'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        collection_id = response.data['collection']['id']

        self.create_task(parent=collection_id)

        response = self.client.get('/api/collections/')
        self.assertEqual(response.data['collections'][0]['task_count'], 1)

    def test_short_title(self):
        response = self.post('/api/collections/', {'title': 'Q3'})
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_TITLE')


class ExtensionEndpointTests(APITestBase):

    def test_request_and_approve(self):
        task = self.create_task()
        new_due = (timezone.now() + timedelta(days=5)).isoformat()

        response = self.post(f"/api/tasks/{task['id']}/extension/", {'new_due_date': new_due, 'reason': 'Waiting on QA'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['extension_request']['status'], 'pending')

        response = self.post(f"/api/tasks/{task['id']}/extension/", {'new_due_date': new_due})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error_code'], 'ERR_EXTENSION_PENDING')

        response = self.post(f"/api/tasks/{task['id']}/extension/approve/", {'user': 'manager'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['task']['original_due_date'], task['original_due_date'])
        self.assertNotEqual(response.data['task']['due_date'], task['due_date'])

    def test_reject_without_pending(self):
        task = self.create_task()
        response = self.post(f"/api/tasks/{task['id']}/extension/reject/")
        self.assertEqual(response.data['error_code'], 'ERR_NO_PENDING_EXTENSION')


class NotificationEndpointTests(APITestBase):

    def test_check_overdue_and_mark_read(self):
        self.create_task(title='Already late', due_date=(timezone.now() - timedelta(days=1)).isoformat())
        self.create_task(title='Not yet due')

        response = self.post('/api/notifications/check-overdue/')
        self.assertEqual(response.data['created'], 1)
        self.assertEqual(self.post('/api/notifications/check-overdue/').data['created'], 0)

        response = self.client.get('/api/notifications/', {'unread': 'true'})
        ids = [notification['id'] for notification in response.data['notifications']]
        self.assertEqual(len(ids), 1)

        response = self.post('/api/notifications/read/', {'ids': ids})
        self.assertEqual(response.data['updated'], 1)
        self.assertFalse(Notification.objects.filter(is_read=False).exists())


class ReportEndpointTests(APITestBase):

    def test_leaderboard(self):
        task = self.create_task(assignee='alice')
        self.set_status(task['id'], 'In Progress')
        self.set_status(task['id'], 'Done')
        self.create_task(assignee='bob')

        response = self.client.get('/api/reports/leaderboard/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['leaderboard'], [
            {'assignee': 'alice', 'total_score': 0, 'completed_tasks': 1, 'rank': 1}
        ])

    def test_dashboard(self):
        self.create_task(priority='high')

        response = self.client.get('/api/reports/dashboard/')

        self.assertEqual(response.data['status_counts']['To Do'], 1)
        self.assertEqual(response.data['priority_counts'], {'high': 1})
        self.assertEqual(len(response.data['upcoming_deadlines']), 1)

    def test_daily_and_weekly(self):
        response = self.client.get('/api/reports/daily/', {'date': '2024-08-07'})
        self.assertEqual(response.data['count'], 0)

        response = self.client.get('/api/reports/weekly/', {'date': '2024-08-07'})
        self.assertEqual(response.data['week_start'], '2024-08-05')
        self.assertEqual(response.data['week_end'], '2024-08-11')

    def test_burndown_range(self):
        response = self.client.get('/api/reports/burndown/', {'start': '2024-08-01', 'end': '2024-08-10'})
        self.assertEqual(len(response.data['days']), 10)

        response = self.client.get('/api/reports/burndown/', {'start': '2024-08-10', 'end': '2024-08-01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_burndown_range_limit(self):
        response = self.client.get('/api/reports/burndown/', {'start': '0001-01-01', 'end': '9999-12-31'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_DATE')

    def test_burndown_full_year_allowed(self):
        response = self.client.get('/api/reports/burndown/', {'start': '2024-01-01', 'end': '2024-12-31'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['days']), 366)

    def test_calendar_range_limit(self):
        response = self.client.get('/api/reports/calendar/', {'start': '2024-01-01', 'end': '2026-01-01'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_DATE')

    def test_calendar(self):
        self.create_task(title='Weekly sync', due_date='2024-08-01T10:00:00Z',
                         recurrence_interval='weekly')

        response = self.client.get('/api/reports/calendar/', {'start': '2024-08-01', 'end': '2024-08-14'})

        days = response.data['days']
        self.assertEqual(len(days), 14)
        self.assertEqual(len(days['2024-08-08']), 1)
        self.assertEqual(days['2024-08-09'], [])
