"""
Stage State Machine
The only code that changes ProductionStage.status and its timestamps
"""
import logging
from typing import NamedTuple

from django.utils import timezone

from utils.enums import StageStatusChoices as Status, StageActionChoices as Action
from . import reconciler
from .exceptions import StageWorkflowError, InvalidTransition, StageTerminal

logger = logging.getLogger(__name__)


# (from status, action) -> to status. Anything missing is illegal.
TRANSITIONS = {
    (Status.PENDING, Action.START): Status.IN_PROGRESS,
    (Status.PENDING, Action.SEND_TO_VENDOR): Status.OUTSOURCED_PENDING,
    (Status.PENDING, Action.HOLD): Status.ON_HOLD,
    (Status.PENDING, Action.SKIP): Status.SKIPPED,
    (Status.IN_PROGRESS, Action.PAUSE): Status.ON_HOLD,
    (Status.IN_PROGRESS, Action.COMPLETE): Status.COMPLETED,
    (Status.ON_HOLD, Action.RESUME): Status.IN_PROGRESS,
    (Status.ON_HOLD, Action.SKIP): Status.SKIPPED,
    (Status.OUTSOURCED_PENDING, Action.RECEIVE_FROM_VENDOR): Status.OUTSOURCED_IN_PROGRESS,
    (Status.OUTSOURCED_IN_PROGRESS, Action.PAUSE): Status.ON_HOLD,
    (Status.OUTSOURCED_IN_PROGRESS, Action.COMPLETE): Status.COMPLETED,
}


class Transition(NamedTuple):
    """Result of an applied action, used for activity logging and notifications"""
    stage_id: int
    order_id: int
    action: str
    from_status: str
    to_status: str
    metadata: dict


def allowed_actions(status):
    """Actions legal from ``status``, in table order"""
    return [action for (from_status, action) in TRANSITIONS if from_status == status]


class StageStateMachine:
    """
    Applies actions to a stage object in memory. Persistence and locking are
    the caller's job; every check runs before the first attribute is touched.
    """

    def __init__(self, clock=timezone.now):
        self.clock = clock

    def target_status(self, stage, action):
        if stage.is_terminal:
            raise StageTerminal(stage.status, action)
        try:
            return TRANSITIONS[(stage.status, action)]
        except KeyError:
            raise InvalidTransition(stage.status, action)

    def can(self, stage, action):
        """Whether ``action`` would be accepted, outsourcing preconditions included"""
        if stage.is_terminal or (stage.status, action) not in TRANSITIONS:
            return False
        if action == Action.START:
            return not stage.outsourced
        if action == Action.SEND_TO_VENDOR:
            return bool(stage.outsourced)
        return True

    def _apply(self, stage, action, to_status, **metadata):
        from_status = stage.status
        stage.status = to_status
        logger.info(
            f'Stage {stage.pk} ({stage.stage_name}) of order {stage.order_id}: '
            f'{from_status} -> {to_status} via {action}'
        )
        return Transition(stage.pk, stage.order_id, action, from_status, to_status, metadata)

    # ------------------------------------------------------------------
    # Internal path
    # ------------------------------------------------------------------

    def start(self, stage, notes=None):
        to_status = self.target_status(stage, Action.START)
        if stage.outsourced:
            raise InvalidTransition(
                stage.status, Action.START,
                'Outsourced stages must be dispatched to the vendor instead of started'
            )
        if not stage.actual_start_time:
            stage.actual_start_time = self.clock()
        if notes:
            stage.notes = notes
        return self._apply(stage, Action.START, to_status)

    def hold(self, stage, delay_reason='', notes=None):
        to_status = self.target_status(stage, Action.HOLD)
        return self._hold(stage, Action.HOLD, to_status, delay_reason, notes)

    def pause(self, stage, delay_reason='', notes=None):
        to_status = self.target_status(stage, Action.PAUSE)
        return self._hold(stage, Action.PAUSE, to_status, delay_reason, notes)

    def _hold(self, stage, action, to_status, delay_reason, notes):
        if delay_reason:
            stage.delay_reason = delay_reason
        if notes:
            stage.notes = notes
        return self._apply(stage, action, to_status, delay_reason=delay_reason or '')

    def resume(self, stage, notes=None):
        to_status = self.target_status(stage, Action.RESUME)
        if not stage.actual_start_time:
            stage.actual_start_time = self.clock()
        if notes:
            stage.notes = notes
        return self._apply(stage, Action.RESUME, to_status)

    def skip(self, stage, notes=None):
        to_status = self.target_status(stage, Action.SKIP)
        stage.actual_end_time = self.clock()
        if notes:
            stage.notes = notes
        return self._apply(stage, Action.SKIP, to_status)

    def complete(self, stage, processed, approved, rejected, material_used=None, notes=None, end_time=None):
        if stage.status == Status.OUTSOURCED_PENDING:
            raise InvalidTransition(
                stage.status, Action.COMPLETE,
                'Stage must be received from the vendor before it can be completed'
            )
        to_status = self.target_status(stage, Action.COMPLETE)
        result = reconciler.validate(processed, approved, rejected, final_stage=stage.is_final_stage)
        material = reconciler.validate_material(material_used)

        end_time = end_time or self.clock()
        stage.quantity_processed = result.processed
        stage.quantity_approved = result.approved
        stage.quantity_rejected = result.rejected
        stage.material_used = material
        stage.actual_end_time = end_time
        if not stage.actual_start_time:
            stage.actual_start_time = end_time
        if notes:
            stage.notes = notes
        if result.needs_manual_review:
            stage.needs_manual_review = True
            logger.warning(f'Stage {stage.pk} of order {stage.order_id}: {result.warning}')
        if stage.planned_end_time and end_time > stage.planned_end_time:
            stage.is_late = True
            stage.late_reason = (
                f'Stage completed at {end_time.isoformat()}, planned was {stage.planned_end_time.isoformat()}'
            )
            logger.warning(f'Stage {stage.pk} of order {stage.order_id} finished late: {stage.late_reason}')

        return self._apply(
            stage, Action.COMPLETE, to_status,
            processed=result.processed,
            approved=result.approved,
            rejected=result.rejected,
            material_used=str(material),
            needs_manual_review=result.needs_manual_review,
            is_late=stage.is_late,
            late_reason=stage.late_reason,
        )

    def plan(self, stage, planned_start_time=None, planned_end_time=None, assigned_to=None):
        """Set the planned window and the assignee; status is unchanged"""
        if stage.is_terminal:
            raise StageTerminal(stage.status, Action.PLAN)
        start = planned_start_time or stage.planned_start_time
        end = planned_end_time or stage.planned_end_time
        if start and end and end < start:
            raise StageWorkflowError('Planned end time cannot be before planned start time', code='invalid_plan')

        stage.planned_start_time = start
        stage.planned_end_time = end
        if assigned_to is not None:
            stage.assigned_to = assigned_to
        return Transition(
            stage.pk, stage.order_id, Action.PLAN, stage.status, stage.status,
            {
                'planned_start_time': start.isoformat() if start else None,
                'planned_end_time': end.isoformat() if end else None,
                'assigned_to': stage.assigned_to_id,
            }
        )

    # ------------------------------------------------------------------
    # Outsourcing path (driven by OutsourcingHandoff)
    # ------------------------------------------------------------------

    def set_outsourced(self, stage, outsourced, vendor_ref=None):
        """Flag or unflag a stage for a vendor; only while it is still pending"""
        if stage.is_terminal:
            raise StageTerminal(stage.status, Action.SET_OUTSOURCING)
        if stage.status != Status.PENDING:
            raise InvalidTransition(
                stage.status, Action.SET_OUTSOURCING,
                'Outsourcing can only be changed while the stage is pending'
            )
        stage.outsourced = bool(outsourced)
        if vendor_ref is not None:
            stage.vendor_ref = vendor_ref
        return Transition(
            stage.pk, stage.order_id, Action.SET_OUTSOURCING, stage.status, stage.status,
            {'outsourced': stage.outsourced, 'vendor_ref': stage.vendor_ref}
        )

    def check_send_to_vendor(self, stage):
        to_status = self.target_status(stage, Action.SEND_TO_VENDOR)
        if not stage.outsourced:
            raise InvalidTransition(
                stage.status, Action.SEND_TO_VENDOR,
                'Stage is not marked for outsourcing'
            )
        return to_status

    def send_to_vendor(self, stage, document_number=''):
        to_status = self.check_send_to_vendor(stage)
        if not stage.actual_start_time:
            stage.actual_start_time = self.clock()
        stage.outward_document_number = document_number
        return self._apply(stage, Action.SEND_TO_VENDOR, to_status, document_number=document_number)

    def check_receive_from_vendor(self, stage):
        return self.target_status(stage, Action.RECEIVE_FROM_VENDOR)

    def receive_from_vendor(self, stage, document_number=''):
        to_status = self.check_receive_from_vendor(stage)
        stage.inward_document_number = document_number
        return self._apply(stage, Action.RECEIVE_FROM_VENDOR, to_status, document_number=document_number)
