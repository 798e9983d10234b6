import threading

from challans.issuers import DocumentIssuer, DocumentResult
from production.models import ProductionStage
from utils.enums import StageNameChoices, StageStatusChoices


def make_stage(store=None, stage_name=StageNameChoices.CUTTING, sequence_index=2, order_id=1,
               status=StageStatusChoices.PENDING, **fields):
    """Unsaved stage, registered with an in-memory store when one is given"""
    stage = ProductionStage(
        order_id=order_id, stage_name=stage_name, sequence_index=sequence_index, status=status, **fields
    )
    if store is not None:
        store.add_stage(stage)
    return stage


def snapshot(stage):
    return {field.attname: getattr(stage, field.attname) for field in ProductionStage._meta.concrete_fields}


class RecordingIssuer(DocumentIssuer):
    """Succeeds and remembers every call"""

    def __init__(self):
        self.calls = []

    def issue_outward_document(self, stage_id, order_id, timeout=None, vendor_ref=''):
        self.calls.append(('outward', stage_id, order_id))
        return DocumentResult(True, f'OUT-{stage_id}-{len(self.calls)}')

    def issue_inward_document(self, stage_id, order_id, timeout=None, vendor_ref=''):
        self.calls.append(('inward', stage_id, order_id))
        return DocumentResult(True, f'IN-{stage_id}-{len(self.calls)}')


class FailingIssuer(DocumentIssuer):
    """Challan service reports failure"""

    def issue_outward_document(self, stage_id, order_id, timeout=None, vendor_ref=''):
        return DocumentResult(False, error='Challan service unavailable')

    def issue_inward_document(self, stage_id, order_id, timeout=None, vendor_ref=''):
        return DocumentResult(False, error='Challan service unavailable')


class ExplodingIssuer(DocumentIssuer):
    """Challan client raises instead of returning a result"""

    def issue_outward_document(self, stage_id, order_id, timeout=None, vendor_ref=''):
        raise ConnectionError('Connection refused')

    def issue_inward_document(self, stage_id, order_id, timeout=None, vendor_ref=''):
        raise ConnectionError('Connection refused')


class HangingIssuer(RecordingIssuer):
    """Blocks until released, or ``hold`` seconds pass, before answering"""

    def __init__(self, hold=3):
        super().__init__()
        self.hold = hold
        self.release = threading.Event()

    def issue_outward_document(self, stage_id, order_id, timeout=None, vendor_ref=''):
        self.release.wait(self.hold)
        return super().issue_outward_document(stage_id, order_id, timeout, vendor_ref)


def slow_clock(step):
    """Clock that advances ``step`` seconds on every reading"""
    readings = iter(range(0, 1_000_000 * step, step))
    return lambda: next(readings)
