from decimal import Decimal

from django.test import SimpleTestCase

from production import reconciler
from production.exceptions import QuantityError, NotNonNegative, OverAllocated


class ValidateTest(SimpleTestCase):
    """Quantity triples at completion"""

    def test_valid_triple(self):
        result = reconciler.validate(100, 90, 5)

        self.assertEqual((result.processed, result.approved, result.rejected), (100, 90, 5))
        self.assertFalse(result.needs_manual_review)
        self.assertIsNone(result.warning)
        self.assertEqual(result.unaccounted, 5)
        self.assertEqual(result.yield_percentage, Decimal('90.00'))

    def test_exact_allocation_and_zeroes_pass(self):
        self.assertEqual(reconciler.validate(10, 7, 3).unaccounted, 0)
        self.assertEqual(reconciler.validate(0, 0, 0).yield_percentage, Decimal('0'))

    def test_over_allocation(self):
        with self.assertRaises(QuantityError.OverAllocated) as ctx:
            reconciler.validate(100, 90, 11)
        self.assertEqual(ctx.exception.code, 'quantity_over_allocated')
        self.assertIn('cannot exceed', str(ctx.exception))

    def test_non_counts_rejected(self):
        for bad in (-1, 1.5, '10', None, True, Decimal('3')):
            with self.subTest(value=bad):
                with self.assertRaises(NotNonNegative):
                    reconciler.validate(bad, 0, 0)
                with self.assertRaises(NotNonNegative):
                    reconciler.validate(10, bad, 0)
                with self.assertRaises(NotNonNegative):
                    reconciler.validate(10, 0, bad)

    def test_errors_share_a_base(self):
        self.assertTrue(issubclass(NotNonNegative, QuantityError))
        self.assertTrue(issubclass(OverAllocated, QuantityError))
        self.assertIs(QuantityError.NotNonNegative, NotNonNegative)

    def test_final_stage_without_approvals_is_flagged_not_refused(self):
        result = reconciler.validate(50, 0, 50, final_stage=True)

        self.assertTrue(result.needs_manual_review)
        self.assertEqual(result.warning, reconciler.MANUAL_REVIEW_WARNING)

    def test_final_stage_with_approvals_is_clean(self):
        self.assertFalse(reconciler.validate(50, 1, 0, final_stage=True).needs_manual_review)
        self.assertFalse(reconciler.validate(50, 0, 0, final_stage=False).needs_manual_review)

    def test_deterministic(self):
        self.assertEqual(reconciler.validate(30, 20, 5), reconciler.validate(30, 20, 5))


class ValidateMaterialTest(SimpleTestCase):

    def test_missing_material_is_zero(self):
        self.assertEqual(reconciler.validate_material(None), Decimal('0'))

    def test_numbers_and_strings_coerced(self):
        self.assertEqual(reconciler.validate_material('12.5'), Decimal('12.5'))
        self.assertEqual(reconciler.validate_material(3), Decimal('3'))
        self.assertEqual(reconciler.validate_material(Decimal('0.250')), Decimal('0.250'))

    def test_negative_or_garbage_rejected(self):
        for bad in (-0.1, '-3', 'abc', True, float('nan'), float('inf')):
            with self.subTest(value=bad):
                with self.assertRaises(NotNonNegative):
                    reconciler.validate_material(bad)


class ValidatePositiveTest(SimpleTestCase):

    def test_positive(self):
        self.assertEqual(reconciler.validate_positive(4), 4)

    def test_zero_and_negative(self):
        for bad in (0, -2, 2.0, False):
            with self.subTest(value=bad):
                with self.assertRaises(NotNonNegative):
                    reconciler.validate_rejection_quantity(bad)
