"""
Stage Workflow Service
Command surface for the production stage workflow: order creation, stage
transitions, outsourcing and rejection logging
"""
import logging

from utils.enums import STAGE_PIPELINE, OPTIONAL_STAGES, PriorityChoices
from . import reconciler, progress
from .exceptions import StageWorkflowError, OrderNotFound
from .ledger import RejectionLedger
from .models import ProductionOrder, ProductionStage
from .outsourcing import OutsourcingHandoff
from .signals import stage_transitioned
from .state_machine import StageStateMachine
from .store import get_stage_store

logger = logging.getLogger(__name__)


def build_pipeline(include_printing_or_embroidery=True, outsourced_stages=(), vendor_refs=None):
    """Unsaved pending stages in pipeline order, 1-based and contiguous"""
    vendor_refs = vendor_refs or {}
    names = [
        name for name in STAGE_PIPELINE
        if include_printing_or_embroidery or name not in OPTIONAL_STAGES
    ]
    unknown = (set(outsourced_stages) | set(vendor_refs)) - set(names)
    if unknown:
        raise StageWorkflowError(
            f"Unknown or excluded stage(s): {', '.join(sorted(unknown))}", code='unknown_stage'
        )

    return [
        ProductionStage(
            stage_name=name,
            sequence_index=index,
            outsourced=name in outsourced_stages,
            vendor_ref=vendor_refs.get(name, ''),
        )
        for index, name in enumerate(names, start=1)
    ]


class StageWorkflowService:
    """
    Every command runs under the stage's lock: the action is applied, the
    stage saved, the transition logged and the order rolled up together.
    Subscribers to ``stage_transitioned`` hear about it only after commit.
    """

    def __init__(self, store=None, issuer=None, machine=None, timeout=None):
        self.store = store or get_stage_store()
        self.machine = machine or StageStateMachine()
        self.ledger = RejectionLedger(self.store)
        self.handoff = OutsourcingHandoff(
            self.store, issuer=issuer, machine=self.machine, timeout=timeout,
            on_transition=self._after_transition
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_production_order(self, product_ref, target_quantity, include_printing_or_embroidery=True,
                                outsourced_stages=(), vendor_refs=None, priority=PriorityChoices.MEDIUM,
                                planned_start_date=None, planned_end_date=None, notes='', created_by=None):
        """
        Create an order with its pipeline of pending stages
        """
        if not isinstance(product_ref, str) or not product_ref.strip():
            raise StageWorkflowError('Product reference is required', code='product_ref_required')
        reconciler.validate_positive(target_quantity, 'Target quantity')

        stages = build_pipeline(include_printing_or_embroidery, outsourced_stages, vendor_refs)
        order = ProductionOrder(
            product_ref=product_ref.strip(),
            target_quantity=target_quantity,
            priority=priority,
            planned_start_date=planned_start_date,
            planned_end_date=planned_end_date,
            notes=notes or '',
            created_by=created_by if created_by is not None and created_by.is_authenticated else None,
        )
        self.store.create_order(order, stages)

        logger.info(
            f'Created production order {order.order_number} for {product_ref} '
            f'x{target_quantity} with {len(stages)} stages'
        )
        return order

    def get_order_progress(self, order_id):
        summary = self._summary(order_id)
        return {'percent': summary['percent'], 'current_stage_name': summary['current_stage_name']}

    def get_order_summary(self, order_id):
        """Progress roll-up plus the stages whose rejections are not fully explained yet"""
        summary = self._summary(order_id)
        summary['unaccounted_stages'] = [
            {
                'stage_id': stage.pk,
                'stage_name': stage.stage_name,
                'declared': stage.quantity_rejected,
                'logged': self.ledger.logged_quantity(stage.pk),
            }
            for stage in self.store.stages_for_order(order_id)
            if stage.quantity_rejected and not self.ledger.is_accounted(stage)
        ]
        return summary

    def _summary(self, order_id):
        stages = self.store.stages_for_order(order_id)
        if not stages and not self.store.has_order(order_id):
            raise OrderNotFound(f'Production order {order_id} not found')
        return progress.summarize(stages)

    # ------------------------------------------------------------------
    # Stage transitions
    # ------------------------------------------------------------------

    def start_stage(self, stage_id, notes=None, user=None):
        return self._execute(stage_id, lambda stage: self.machine.start(stage, notes), user)

    def hold_stage(self, stage_id, delay_reason='', notes=None, user=None):
        return self._execute(stage_id, lambda stage: self.machine.hold(stage, delay_reason, notes), user)

    def pause_stage(self, stage_id, delay_reason='', notes=None, user=None):
        return self._execute(stage_id, lambda stage: self.machine.pause(stage, delay_reason, notes), user)

    def resume_stage(self, stage_id, notes=None, user=None):
        return self._execute(stage_id, lambda stage: self.machine.resume(stage, notes), user)

    def skip_stage(self, stage_id, notes=None, user=None):
        return self._execute(stage_id, lambda stage: self.machine.skip(stage, notes), user)

    def complete_stage(self, stage_id, processed, approved, rejected, material_used=None, notes=None,
                       end_time=None, user=None):
        # outsourced only changes while pending, and pending never completes
        if self.store.load(stage_id).outsourced:
            stage, _ = self.handoff.complete(
                stage_id, processed, approved, rejected, material_used, notes, end_time, user=user
            )
            return stage
        return self._execute(
            stage_id,
            lambda stage: self.machine.complete(
                stage, processed, approved, rejected, material_used, notes, end_time
            ),
            user
        )

    def plan_stage(self, stage_id, planned_start_time=None, planned_end_time=None, assigned_to=None, user=None):
        return self._execute(
            stage_id,
            lambda stage: self.machine.plan(stage, planned_start_time, planned_end_time, assigned_to),
            user
        )

    def set_stage_outsourcing(self, stage_id, outsourced, vendor_ref=None, user=None):
        return self._execute(
            stage_id, lambda stage: self.machine.set_outsourced(stage, outsourced, vendor_ref), user
        )

    def dispatch_to_vendor(self, stage_id, timeout=None, user=None):
        stage, _ = self.handoff.dispatch(stage_id, timeout=timeout, user=user)
        return stage

    def receive_from_vendor(self, stage_id, timeout=None, user=None):
        stage, _ = self.handoff.receive(stage_id, timeout=timeout, user=user)
        return stage

    # ------------------------------------------------------------------
    # Rejections
    # ------------------------------------------------------------------

    def add_rejection_line(self, stage_id, reason, quantity, notes='', user=None, **attribution):
        return self.ledger.add_line(stage_id, reason, quantity, notes, reported_by=user, **attribution)

    def add_rejection_lines(self, stage_id, items, user=None):
        return self.ledger.add_lines(stage_id, [dict(item, reported_by=user) for item in items])

    def rejection_lines(self, stage_id):
        self.store.load(stage_id)
        return self.ledger.lines_for(stage_id)

    # ------------------------------------------------------------------

    def _execute(self, stage_id, apply, user=None):
        with self.store.locked(stage_id) as stage:
            transition = apply(stage)
            self.store.save(stage)
            self._after_transition(stage, transition, user)
        return stage

    def _after_transition(self, stage, transition, user):
        summary = self.store.record_transition(stage, transition, user)
        if summary.get('order_completed'):
            logger.info(f'Production order {stage.order_id} completed')
        self.store.on_commit(lambda: self._publish(stage, transition, summary, user))
        return summary

    def _publish(self, stage, transition, summary, user):
        responses = stage_transitioned.send_robust(
            sender=self.__class__, stage=stage, transition=transition, summary=summary, user=user
        )
        for receiver, response in responses:
            if isinstance(response, Exception):
                logger.error(
                    f'Receiver {receiver!r} failed for stage {stage.pk} {transition.action}: {response}',
                    exc_info=response
                )
