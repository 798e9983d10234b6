"""
Order Progress Aggregator
Read-only derivations over an order's stages; holds no state of its own
"""
from decimal import Decimal, ROUND_HALF_UP

from utils.enums import StageStatusChoices as Status

ACTIVE_STATUSES = (Status.IN_PROGRESS, Status.OUTSOURCED_IN_PROGRESS)
WAITING_STATUSES = (Status.PENDING, Status.ON_HOLD, Status.OUTSOURCED_PENDING)
TERMINAL_STATUSES = (Status.COMPLETED, Status.SKIPPED)


def overall_progress(stages):
    """
    Percent of stages completed, rounded half-up. Skipped stages count in the
    denominator only.
    """
    stages = list(stages)
    if not stages:
        return 0
    completed = sum(1 for stage in stages if stage.status == Status.COMPLETED)
    percent = Decimal(100 * completed) / Decimal(len(stages))
    return int(percent.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def current_stage(stages):
    """First active stage by sequence, else first waiting stage, else None"""
    ordered = sorted(stages, key=lambda stage: stage.sequence_index)
    for statuses in (ACTIVE_STATUSES, WAITING_STATUSES):
        for stage in ordered:
            if stage.status in statuses:
                return stage
    return None


def summarize(stages):
    stages = list(stages)
    current = current_stage(stages)
    completed = sorted(
        (stage for stage in stages if stage.status == Status.COMPLETED),
        key=lambda stage: stage.sequence_index
    )
    # Good units are what the furthest completed stage approved; rejects accumulate
    approved = completed[-1].quantity_approved if completed else 0
    rejected = sum(stage.quantity_rejected for stage in completed)

    return {
        'percent': overall_progress(stages),
        'current_stage_name': current.stage_name if current else None,
        'current_stage_id': current.pk if current else None,
        'completed': len(completed),
        'skipped': sum(1 for stage in stages if stage.status == Status.SKIPPED),
        'total': len(stages),
        'approved_quantity': approved,
        'rejected_quantity': rejected,
        'produced_quantity': approved + rejected,
        'started': any(stage.status != Status.PENDING for stage in stages),
        'is_finished': bool(stages) and all(stage.status in TERMINAL_STATUSES for stage in stages),
    }
