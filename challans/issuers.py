"""
Document issuance for outsourced stages

The workflow engine only sees the DocumentIssuer interface. The default
implementation records challans in this database; deployments that talk to
an external challan service plug in their own issuer through
APPAREL_ERP_SETTINGS['DOCUMENT_ISSUER'].
"""
import logging
from typing import NamedTuple

from django.db import DatabaseError, transaction

from utils.enums import ChallanTypeChoices, ChallanStatusChoices
from .models import Challan

logger = logging.getLogger(__name__)


class DocumentResult(NamedTuple):
    ok: bool
    document_number: str = ''
    error: str = ''


class DocumentIssuer:
    # True when the issuer bounds its own calls by ``timeout``. Others are run
    # on a worker thread and abandoned at the deadline.
    enforces_timeout = False

    def issue_outward_document(self, stage_id, order_id, timeout=None, vendor_ref='') -> DocumentResult:
        raise NotImplementedError

    def issue_inward_document(self, stage_id, order_id, timeout=None, vendor_ref='') -> DocumentResult:
        raise NotImplementedError


class ChallanDocumentIssuer(DocumentIssuer):
    """Issues outward/inward challans as local records"""
    # Writes join the caller's stage transaction, so the call must stay on
    # the caller's thread; it waits on nothing outside this database.
    enforces_timeout = True

    def issue_outward_document(self, stage_id, order_id, timeout=None, vendor_ref=''):
        try:
            with transaction.atomic():
                challan = Challan.objects.create(
                    challan_type=ChallanTypeChoices.OUTWARD,
                    stage_ref=stage_id,
                    order_ref=order_id,
                    vendor_ref=vendor_ref,
                    notes=f'Stage {stage_id} of order {order_id} sent to vendor',
                )
        except DatabaseError as e:
            logger.error(f'Outward challan for stage {stage_id} failed: {e}', exc_info=True)
            return DocumentResult(False, error=str(e))

        logger.info(f'Issued outward challan {challan.challan_number} for stage {stage_id}')
        return DocumentResult(True, challan.challan_number)

    def issue_inward_document(self, stage_id, order_id, timeout=None, vendor_ref=''):
        try:
            with transaction.atomic():
                outward = Challan.objects.filter(
                    stage_ref=stage_id,
                    challan_type=ChallanTypeChoices.OUTWARD,
                    status=ChallanStatusChoices.PENDING,
                ).first()
                if outward is None:
                    return DocumentResult(False, error=f'No open outward challan for stage {stage_id}')

                challan = Challan.objects.create(
                    challan_type=ChallanTypeChoices.INWARD,
                    stage_ref=stage_id,
                    order_ref=order_id,
                    vendor_ref=vendor_ref or outward.vendor_ref,
                    status=ChallanStatusChoices.COMPLETED,
                    notes=f'Return against {outward.challan_number}',
                )
                outward.status = ChallanStatusChoices.COMPLETED
                outward.save(update_fields=['status', 'updated_at'])
        except DatabaseError as e:
            logger.error(f'Inward challan for stage {stage_id} failed: {e}', exc_info=True)
            return DocumentResult(False, error=str(e))

        logger.info(f'Issued inward challan {challan.challan_number} for stage {stage_id}')
        return DocumentResult(True, challan.challan_number)
