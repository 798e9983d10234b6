from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from production.models import ProductionStage
from production.store import DjangoStageStore, InMemoryStageStore
from production.tests.helpers import make_stage, RecordingIssuer
from production.workflow_service import StageWorkflowService
from utils.enums import StageNameChoices, WorkflowNotificationTypeChoices as NotificationType, PriorityChoices
from .models import WorkflowNotification

User = get_user_model()


class StageNotificationTest(TestCase):
    """Notifications raised after stage transitions commit"""

    def setUp(self):
        self.owner = User.objects.create_user(username='merchandiser', password='testpass123')
        self.operator = User.objects.create_user(username='operator', password='testpass123')
        self.service = StageWorkflowService(store=DjangoStageStore(), issuer=RecordingIssuer())
        self.order = self.service.create_production_order(
            'JOGGER-NAVY-S', 120, include_printing_or_embroidery=False, created_by=self.owner
        )

    def stage_id(self, name):
        return ProductionStage.objects.get(order=self.order, stage_name=name).pk

    def test_owner_notified_on_hold(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.service.hold_stage(self.stage_id(StageNameChoices.CUTTING), 'marker not approved', user=self.operator)

        notification = WorkflowNotification.objects.get()
        self.assertEqual(notification.recipient, self.owner)
        self.assertEqual(notification.created_by, self.operator)
        self.assertEqual(notification.notification_type, NotificationType.STAGE_HELD)
        self.assertEqual(notification.related_order, self.order)
        self.assertIn('marker not approved', notification.message)

    def test_nothing_before_commit(self):
        with self.captureOnCommitCallbacks(execute=False):
            self.service.start_stage(self.stage_id(StageNameChoices.CUTTING))

        self.assertFalse(WorkflowNotification.objects.exists())

    def test_order_without_owner(self):
        order = self.service.create_production_order('JOGGER-NAVY-M', 80)
        stage_id = ProductionStage.objects.get(order=order, stage_name=StageNameChoices.CUTTING).pk

        with self.captureOnCommitCallbacks(execute=True):
            self.service.start_stage(stage_id)

        self.assertFalse(WorkflowNotification.objects.exists())

    def test_manual_review_and_order_completion(self):
        with self.captureOnCommitCallbacks(execute=True):
            for name in (StageNameChoices.MATERIAL_REVIEW, StageNameChoices.CUTTING,
                         StageNameChoices.STITCHING, StageNameChoices.FINISHING):
                self.service.skip_stage(self.stage_id(name))
            qc = self.stage_id(StageNameChoices.QUALITY_CHECK)
            self.service.start_stage(qc)
            self.service.complete_stage(qc, 120, 0, 120)

        review = WorkflowNotification.objects.get(notification_type=NotificationType.MANUAL_REVIEW)
        self.assertEqual(review.priority, PriorityChoices.HIGH)
        self.assertTrue(review.action_required)
        self.assertEqual(review.related_stage_id, qc)

        completed = WorkflowNotification.objects.get(notification_type=NotificationType.ORDER_COMPLETED)
        self.assertIn('rejected 120 of 120', completed.message)

    def test_late_completion_raises_high_priority_notification(self):
        cutting = self.stage_id(StageNameChoices.CUTTING)
        planned_end = timezone.now() - timedelta(hours=3)
        with self.captureOnCommitCallbacks(execute=True):
            self.service.plan_stage(cutting, planned_end_time=planned_end, assigned_to=self.operator)
            self.service.start_stage(cutting)
            self.service.complete_stage(cutting, 120, 118, 2, user=self.operator)

        late = WorkflowNotification.objects.get(notification_type=NotificationType.STAGE_LATE)
        self.assertEqual(late.priority, PriorityChoices.HIGH)
        self.assertTrue(late.action_required)
        self.assertEqual(late.recipient, self.owner)
        self.assertIn('exceeded its deadline', late.title)
        self.assertIn('planned was', late.message)

        stage = ProductionStage.objects.get(pk=cutting)
        self.assertTrue(stage.is_late)
        self.assertEqual(stage.assigned_to, self.operator)

    def test_on_time_completion_is_not_late(self):
        cutting = self.stage_id(StageNameChoices.CUTTING)
        with self.captureOnCommitCallbacks(execute=True):
            self.service.plan_stage(cutting, planned_end_time=timezone.now() + timedelta(days=1))
            self.service.start_stage(cutting)
            self.service.complete_stage(cutting, 120, 120, 0)

        self.assertFalse(WorkflowNotification.objects.filter(notification_type=NotificationType.STAGE_LATE).exists())
        self.assertFalse(ProductionStage.objects.get(pk=cutting).is_late)

    def test_in_memory_stages_are_ignored(self):
        store = InMemoryStageStore()
        service = StageWorkflowService(store=store, issuer=RecordingIssuer())
        stage = make_stage(store)

        service.start_stage(stage.pk)

        self.assertFalse(WorkflowNotification.objects.exists())


class WorkflowNotificationAPITest(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='merchandiser', password='testpass123')
        self.other = User.objects.create_user(username='someone', password='testpass123')
        self.mine = WorkflowNotification.objects.create(
            notification_type=NotificationType.STAGE_STARTED, title='Cutting started', message='...',
            recipient=self.user,
        )
        WorkflowNotification.objects.create(
            notification_type=NotificationType.MANUAL_REVIEW, title='Review', message='...',
            recipient=self.user, action_required=True,
        )
        WorkflowNotification.objects.create(
            notification_type=NotificationType.STAGE_STARTED, title='Not mine', message='...',
            recipient=self.other,
        )
        self.client.force_authenticate(user=self.user)

    def test_list_only_own_notifications(self):
        response = self.client.get('/api/notifications/workflow-notifications/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/notifications/workflow-notifications/', {'action_required': 'true'})
        self.assertEqual([n['title'] for n in response.data['results']], ['Review'])

    def test_mark_as_read(self):
        response = self.client.post(f'/api/notifications/workflow-notifications/{self.mine.pk}/mark_as_read/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])
        self.mine.refresh_from_db()
        self.assertIsNotNone(self.mine.read_at)

    def test_mark_all_as_read(self):
        response = self.client.post('/api/notifications/workflow-notifications/mark_all_as_read/')

        self.assertEqual(response.data['updated_count'], 2)
        self.assertTrue(WorkflowNotification.objects.filter(recipient=self.other, is_read=False).exists())

    def test_stage_fields_in_payload(self):
        owner_service = StageWorkflowService(store=DjangoStageStore(), issuer=RecordingIssuer())
        order = owner_service.create_production_order('TEE-WHITE-L', 40, created_by=self.user)
        stage = ProductionStage.objects.get(order=order, stage_name=StageNameChoices.STITCHING)
        notification = WorkflowNotification.objects.create(
            notification_type=NotificationType.STAGE_LATE, title='Stitching late', message='...',
            recipient=self.user, related_order=order, related_stage=stage, priority=PriorityChoices.HIGH,
        )

        response = self.client.get(f'/api/notifications/workflow-notifications/{notification.pk}/')

        self.assertEqual(response.data['stage_name'], StageNameChoices.STITCHING)
        self.assertEqual(response.data['stage_status'], 'pending')
        self.assertEqual(response.data['order_number'], order.order_number)
        self.assertNotIn('time_ago', response.data)

    def test_unread_summary(self):
        WorkflowNotification.objects.create(
            notification_type=NotificationType.STAGE_LATE, title='Late', message='...',
            recipient=self.user, priority=PriorityChoices.HIGH, action_required=True,
        )

        response = self.client.get('/api/notifications/workflow-notifications/unread_summary/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['by_priority'], {'medium': 2, 'high': 1})
        self.assertEqual(response.data['action_required'], 2)
