from unittest import mock

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from utils.enums import ChallanTypeChoices, ChallanStatusChoices
from .issuers import ChallanDocumentIssuer
from .models import Challan


class ChallanModelTest(TestCase):
    """Test cases for Challan numbering"""

    def test_challan_number_auto_generation(self):
        first = Challan.objects.create(challan_type=ChallanTypeChoices.OUTWARD, stage_ref=1, order_ref=1)
        second = Challan.objects.create(challan_type=ChallanTypeChoices.INWARD, stage_ref=1, order_ref=1)

        date_str = timezone.now().strftime('%Y%m%d')
        self.assertEqual(first.challan_number, f'CHN-{date_str}-0001')
        self.assertEqual(second.challan_number, f'CHN-{date_str}-0002')
        self.assertEqual(first.status, ChallanStatusChoices.PENDING)


class ChallanDocumentIssuerTest(TestCase):

    def setUp(self):
        self.issuer = ChallanDocumentIssuer()

    def test_outward_document(self):
        result = self.issuer.issue_outward_document(7, 3, vendor_ref='VND-EMB-01')

        self.assertTrue(result.ok)
        challan = Challan.objects.get(challan_number=result.document_number)
        self.assertEqual(challan.challan_type, ChallanTypeChoices.OUTWARD)
        self.assertEqual((challan.stage_ref, challan.order_ref), (7, 3))
        self.assertEqual(challan.vendor_ref, 'VND-EMB-01')

    def test_inward_closes_outward(self):
        outward = self.issuer.issue_outward_document(7, 3, vendor_ref='VND-EMB-01')

        result = self.issuer.issue_inward_document(7, 3)

        self.assertTrue(result.ok)
        inward = Challan.objects.get(challan_number=result.document_number)
        self.assertEqual(inward.vendor_ref, 'VND-EMB-01')
        self.assertIn(outward.document_number, inward.notes)
        self.assertEqual(
            Challan.objects.get(challan_number=outward.document_number).status, ChallanStatusChoices.COMPLETED
        )

    def test_inward_without_outward(self):
        result = self.issuer.issue_inward_document(7, 3)

        self.assertFalse(result.ok)
        self.assertIn('No open outward challan', result.error)
        self.assertFalse(Challan.objects.exists())

    def test_database_error_is_reported(self):
        with mock.patch.object(Challan.objects, 'create', side_effect=DatabaseError('disk full')):
            with self.assertLogs('challans.issuers', level='ERROR'):
                result = self.issuer.issue_outward_document(7, 3)

        self.assertFalse(result.ok)
        self.assertEqual(result.error, 'disk full')

    def test_runs_on_callers_thread(self):
        """Challan writes must roll back with the stage transaction that issued them"""
        self.assertTrue(self.issuer.enforces_timeout)
