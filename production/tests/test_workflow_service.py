from unittest import mock

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.test import TestCase

from challans.issuers import ChallanDocumentIssuer
from challans.models import Challan
from notifications.models import WorkflowNotification
from production.exceptions import (
    StageWorkflowError, NotNonNegative, OrderNotFound, StageNotFound, InvalidTransition, ExternalHandoffFailed
)
from production.models import ProductionOrder, ProductionStage, StageActivity
from production.signals import stage_transitioned
from production.store import DjangoStageStore
from production.workflow_service import StageWorkflowService, build_pipeline
from utils.enums import (
    StageNameChoices, StageStatusChoices as Status, StageActionChoices as Action,
    ProductionOrderStatusChoices, ChallanTypeChoices, ChallanStatusChoices,
    WorkflowNotificationTypeChoices as NotificationType, STAGE_PIPELINE
)
from .helpers import slow_clock

User = get_user_model()


class BuildPipelineTest(TestCase):

    def test_full_pipeline(self):
        stages = build_pipeline()
        self.assertEqual([stage.stage_name for stage in stages], STAGE_PIPELINE)
        self.assertEqual([stage.sequence_index for stage in stages], [1, 2, 3, 4, 5, 6])

    def test_without_printing_is_contiguous(self):
        stages = build_pipeline(include_printing_or_embroidery=False)
        self.assertNotIn(StageNameChoices.PRINTING_OR_EMBROIDERY, [stage.stage_name for stage in stages])
        self.assertEqual([stage.sequence_index for stage in stages], [1, 2, 3, 4, 5])

    def test_outsourcing_an_excluded_stage(self):
        with self.assertRaises(StageWorkflowError) as ctx:
            build_pipeline(False, outsourced_stages=[StageNameChoices.PRINTING_OR_EMBROIDERY])
        self.assertEqual(ctx.exception.code, 'unknown_stage')


class StageWorkflowServiceTest(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='planner', password='testpass123')
        self.service = StageWorkflowService(store=DjangoStageStore(), issuer=ChallanDocumentIssuer(), timeout=5)
        self.order = self.service.create_production_order(
            'TSHIRT-CREW-M', 500,
            outsourced_stages=[StageNameChoices.PRINTING_OR_EMBROIDERY],
            vendor_refs={StageNameChoices.PRINTING_OR_EMBROIDERY: 'VND-EMB-01'},
            created_by=self.user,
        )

    def stage(self, name):
        return ProductionStage.objects.get(order=self.order, stage_name=name)

    def run_internal(self, name, processed, approved, rejected):
        stage = self.stage(name)
        self.service.start_stage(stage.pk, user=self.user)
        return self.service.complete_stage(stage.pk, processed, approved, rejected, user=self.user)

    def test_create_order(self):
        self.assertTrue(self.order.order_number.startswith('PRD-'))
        stages = list(self.order.stages.order_by('sequence_index'))

        self.assertEqual(len(stages), 6)
        self.assertTrue(all(stage.status == Status.PENDING for stage in stages))
        self.assertTrue(stages[2].outsourced)
        self.assertEqual(stages[2].vendor_ref, 'VND-EMB-01')
        self.assertEqual(self.order.status, ProductionOrderStatusChoices.PENDING)

    def test_create_order_validation(self):
        with self.assertRaises(StageWorkflowError) as ctx:
            self.service.create_production_order('  ', 10)
        self.assertEqual(ctx.exception.code, 'product_ref_required')

        for bad in (0, -5, '10'):
            with self.subTest(target_quantity=bad):
                with self.assertRaises(NotNonNegative):
                    self.service.create_production_order('POLO-01', bad)

        self.assertEqual(ProductionOrder.objects.count(), 1)

    def test_transition_is_logged_and_order_starts(self):
        stage = self.service.start_stage(self.stage(StageNameChoices.MATERIAL_REVIEW).pk, user=self.user)

        activity = StageActivity.objects.get(stage=stage)
        self.assertEqual((activity.action, activity.from_status, activity.to_status),
                         (Action.START, Status.PENDING, Status.IN_PROGRESS))
        self.assertEqual(activity.performed_by, self.user)
        self.assertEqual(stage.version, 1)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, ProductionOrderStatusChoices.IN_PRODUCTION)
        self.assertIsNotNone(self.order.actual_start_date)

    def test_refused_transition_writes_nothing(self):
        stage_id = self.stage(StageNameChoices.CUTTING).pk
        self.service.start_stage(stage_id)

        with self.assertRaises(InvalidTransition):
            self.service.start_stage(stage_id)

        self.assertEqual(StageActivity.objects.filter(stage_id=stage_id).count(), 1)
        self.assertEqual(ProductionStage.objects.get(pk=stage_id).version, 1)

    def test_unknown_ids(self):
        with self.assertRaises(StageNotFound):
            self.service.start_stage(99999)
        with self.assertRaises(OrderNotFound):
            self.service.get_order_progress(99999)

    def test_progress_after_skip_and_completions(self):
        self.run_internal(StageNameChoices.MATERIAL_REVIEW, 500, 500, 0)
        self.run_internal(StageNameChoices.CUTTING, 500, 495, 5)
        self.service.skip_stage(self.stage(StageNameChoices.PRINTING_OR_EMBROIDERY).pk)
        self.run_internal(StageNameChoices.STITCHING, 495, 480, 10)

        self.assertEqual(self.service.get_order_progress(self.order.pk), {
            'percent': 50, 'current_stage_name': StageNameChoices.FINISHING,
        })

    def test_full_run_completes_order_and_notifies_owner(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.run_internal(StageNameChoices.MATERIAL_REVIEW, 500, 500, 0)
            self.run_internal(StageNameChoices.CUTTING, 500, 495, 5)
            self.service.skip_stage(self.stage(StageNameChoices.PRINTING_OR_EMBROIDERY).pk, user=self.user)
            self.run_internal(StageNameChoices.STITCHING, 495, 480, 10)
            self.run_internal(StageNameChoices.FINISHING, 480, 478, 2)
            self.run_internal(StageNameChoices.QUALITY_CHECK, 478, 470, 8)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, ProductionOrderStatusChoices.COMPLETED)
        self.assertEqual(self.order.progress_percentage, 100)
        self.assertEqual(self.order.approved_quantity, 470)
        self.assertEqual(self.order.rejected_quantity, 25)
        self.assertIsNotNone(self.order.actual_end_date)

        notifications = WorkflowNotification.objects.filter(recipient=self.user)
        self.assertEqual(notifications.filter(notification_type=NotificationType.ORDER_COMPLETED).count(), 1)
        self.assertEqual(notifications.filter(notification_type=NotificationType.STAGE_COMPLETED).count(), 5)

    def test_outsourced_stage_with_challans(self):
        stage_id = self.stage(StageNameChoices.PRINTING_OR_EMBROIDERY).pk

        stage = self.service.dispatch_to_vendor(stage_id, user=self.user)
        outward = Challan.objects.get(stage_ref=stage_id, challan_type=ChallanTypeChoices.OUTWARD)
        self.assertEqual(stage.status, Status.OUTSOURCED_PENDING)
        self.assertEqual(stage.outward_document_number, outward.challan_number)
        self.assertEqual(outward.vendor_ref, 'VND-EMB-01')

        stage = self.service.receive_from_vendor(stage_id, user=self.user)
        inward = Challan.objects.get(stage_ref=stage_id, challan_type=ChallanTypeChoices.INWARD)
        outward.refresh_from_db()
        self.assertEqual(stage.status, Status.OUTSOURCED_IN_PROGRESS)
        self.assertEqual(stage.inward_document_number, inward.challan_number)
        self.assertEqual(outward.status, ChallanStatusChoices.COMPLETED)

        stage = self.service.complete_stage(stage_id, 495, 490, 5, user=self.user)
        self.assertEqual(stage.status, Status.COMPLETED)
        self.assertEqual(
            list(StageActivity.objects.filter(stage_id=stage_id).order_by('id').values_list('action', flat=True)),
            [Action.SEND_TO_VENDOR, Action.RECEIVE_FROM_VENDOR, Action.COMPLETE]
        )

    def test_vendor_completion_goes_through_handoff(self):
        stage_id = self.stage(StageNameChoices.PRINTING_OR_EMBROIDERY).pk
        self.service.dispatch_to_vendor(stage_id)

        with mock.patch.object(self.service.handoff, 'complete', wraps=self.service.handoff.complete) as complete:
            with self.assertRaises(InvalidTransition):
                self.service.complete_stage(stage_id, 500, 500, 0)
            self.service.receive_from_vendor(stage_id)
            self.service.complete_stage(stage_id, 500, 500, 0, user=self.user)
            self.run_internal(StageNameChoices.CUTTING, 500, 500, 0)

        self.assertEqual([c.args[0] for c in complete.call_args_list], [stage_id, stage_id])
        self.assertEqual(self.stage(StageNameChoices.PRINTING_OR_EMBROIDERY).status, Status.COMPLETED)

    def test_plan_is_logged_without_status_change(self):
        stage = self.stage(StageNameChoices.CUTTING)

        planned = self.service.plan_stage(stage.pk, assigned_to=self.user, user=self.user)

        self.assertEqual(planned.status, Status.PENDING)
        self.assertEqual(planned.assigned_to, self.user)
        activity = StageActivity.objects.get(stage_id=stage.pk)
        self.assertEqual(activity.action, Action.PLAN)
        self.assertEqual(activity.metadata['assigned_to'], self.user.pk)

    def test_timed_out_dispatch_rolls_back_challan(self):
        stage_id = self.stage(StageNameChoices.PRINTING_OR_EMBROIDERY).pk
        self.service.handoff.clock = slow_clock(30)

        with self.assertLogs('production.outsourcing', level='ERROR'):
            with self.assertRaises(ExternalHandoffFailed):
                self.service.dispatch_to_vendor(stage_id)

        stage = ProductionStage.objects.get(pk=stage_id)
        self.assertEqual(stage.status, Status.PENDING)
        self.assertEqual(stage.outward_document_number, '')
        self.assertFalse(Challan.objects.exists())
        self.assertFalse(StageActivity.objects.filter(stage_id=stage_id).exists())

    def test_receive_without_outward_challan_fails(self):
        stage_id = self.stage(StageNameChoices.PRINTING_OR_EMBROIDERY).pk
        self.service.dispatch_to_vendor(stage_id)
        Challan.objects.update(status=ChallanStatusChoices.COMPLETED)

        with self.assertRaises(ExternalHandoffFailed):
            self.service.receive_from_vendor(stage_id)
        self.assertEqual(ProductionStage.objects.get(pk=stage_id).status, Status.OUTSOURCED_PENDING)

    def test_summary_lists_unaccounted_rejections(self):
        stage = self.run_internal(StageNameChoices.CUTTING, 500, 490, 10)
        self.service.add_rejection_line(stage.pk, 'cutting_error', 4, user=self.user)

        summary = self.service.get_order_summary(self.order.pk)

        self.assertEqual(summary['unaccounted_stages'], [{
            'stage_id': stage.pk, 'stage_name': StageNameChoices.CUTTING, 'declared': 10, 'logged': 4,
        }])
        self.assertEqual(summary['rejected_quantity'], 10)

        self.service.add_rejection_line(stage.pk, 'material_defect', 6)
        self.assertEqual(self.service.get_order_summary(self.order.pk)['unaccounted_stages'], [])

    def test_rejection_line_records_reporter(self):
        stage = self.run_internal(StageNameChoices.CUTTING, 500, 490, 10)

        line = self.service.add_rejection_line(stage.pk, 'cutting_error', 4, user=self.user)

        self.assertEqual(line.reported_by, self.user)
        self.assertEqual(list(self.service.rejection_lines(stage.pk)), [line])

    def test_failing_subscriber_does_not_undo_transition(self):
        calls = []

        def broken(sender, **kwargs):
            calls.append(kwargs['transition'])
            raise RuntimeError('mail server down')

        stage_transitioned.connect(broken, dispatch_uid='test.broken')
        self.addCleanup(stage_transitioned.disconnect, dispatch_uid='test.broken')
        stage_id = self.stage(StageNameChoices.MATERIAL_REVIEW).pk

        with self.assertLogs('production.workflow_service', level='ERROR') as logs:
            with self.captureOnCommitCallbacks(execute=True):
                stage = self.service.start_stage(stage_id)

        self.assertEqual(stage.status, Status.IN_PROGRESS)
        self.assertEqual(ProductionStage.objects.get(pk=stage_id).status, Status.IN_PROGRESS)
        self.assertIn('mail server down', logs.output[0])
        self.assertEqual([transition.action for transition in calls], [Action.START])

    def test_subscribers_wait_for_commit(self):
        received = []

        def listener(sender, **kwargs):
            received.append(kwargs['stage'].pk)

        stage_transitioned.connect(listener, dispatch_uid='test.received')
        self.addCleanup(stage_transitioned.disconnect, dispatch_uid='test.received')
        stage_id = self.stage(StageNameChoices.MATERIAL_REVIEW).pk

        with self.captureOnCommitCallbacks() as callbacks:
            self.service.start_stage(stage_id)

        self.assertEqual(received, [])
        self.assertEqual(len(callbacks), 1)
        callbacks[0]()
        self.assertEqual(received, [stage_id])

    def test_database_enforces_quantity_conservation(self):
        stage_id = self.stage(StageNameChoices.CUTTING).pk
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                ProductionStage.objects.filter(pk=stage_id).update(
                    quantity_processed=5, quantity_approved=5, quantity_rejected=1
                )
