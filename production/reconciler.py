"""
Quantity Reconciler
Pure validation of stage quantities; no side effects, no persistence
"""
from decimal import Decimal, InvalidOperation
from typing import NamedTuple, Optional

from .exceptions import QuantityError

MANUAL_REVIEW_WARNING = 'No approved units at final quality check - order flagged for manual review'


class Reconciliation(NamedTuple):
    processed: int
    approved: int
    rejected: int
    needs_manual_review: bool = False
    warning: Optional[str] = None

    @property
    def unaccounted(self) -> int:
        """Units processed but neither approved nor rejected"""
        return self.processed - self.approved - self.rejected

    @property
    def yield_percentage(self) -> Decimal:
        if not self.processed:
            return Decimal('0')
        return (Decimal(self.approved) * 100 / Decimal(self.processed)).quantize(Decimal('0.01'))


def _is_count(value) -> bool:
    # bool is an int subclass but never a valid count
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate(processed, approved, rejected, *, final_stage: bool = False) -> Reconciliation:
    """
    Validate a (processed, approved, rejected) triple.

    Raises QuantityError.NotNonNegative for anything that is not a
    non-negative integer and QuantityError.OverAllocated when approved +
    rejected exceeds processed. A final quality-check stage with nothing
    approved passes, flagged for manual review.
    """
    if not all(_is_count(value) for value in (processed, approved, rejected)):
        raise QuantityError.NotNonNegative(
            f'Quantities must be non-negative integers '
            f'(processed={processed!r}, approved={approved!r}, rejected={rejected!r})'
        )

    if approved + rejected > processed:
        raise QuantityError.OverAllocated(
            f'Approved ({approved}) + Rejected ({rejected}) cannot exceed Processed ({processed})'
        )

    if final_stage and approved == 0:
        return Reconciliation(processed, approved, rejected, True, MANUAL_REVIEW_WARNING)

    return Reconciliation(processed, approved, rejected)


def validate_material(material_used) -> Decimal:
    """Coerce material usage to Decimal, rejecting negatives and garbage"""
    if material_used is None:
        return Decimal('0')
    if isinstance(material_used, bool):
        raise QuantityError.NotNonNegative('material_used must be a non-negative number')
    try:
        value = Decimal(str(material_used))
    except (InvalidOperation, ValueError):
        raise QuantityError.NotNonNegative('material_used must be a non-negative number')
    if not value.is_finite() or value < 0:
        raise QuantityError.NotNonNegative('material_used must be a non-negative number')
    return value


def validate_positive(quantity, label: str = 'Quantity') -> int:
    if not _is_count(quantity) or quantity == 0:
        raise QuantityError.NotNonNegative(f'{label} must be a positive integer')
    return quantity


def validate_rejection_quantity(quantity) -> int:
    return validate_positive(quantity, 'Rejection quantity')
