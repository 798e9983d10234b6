"""
Stage workflow errors

Every failure the engine reports is one of these. They are raised before any
persisted mutation, so catching one always means the stage is unchanged.
"""
from django.core.exceptions import ValidationError


class StageWorkflowError(ValidationError):
    """Base class; carries a stable ``code`` and a readable ``message``"""
    default_code = 'workflow_error'
    default_message = 'Stage workflow error'

    def __init__(self, message=None, code=None, params=None):
        super().__init__(message or self.default_message, code=code or self.default_code, params=params)

    def __str__(self):
        return self.message


class StageNotFound(StageWorkflowError):
    default_code = 'stage_not_found'
    default_message = 'Stage not found'


class OrderNotFound(StageWorkflowError):
    default_code = 'order_not_found'
    default_message = 'Production order not found'


class InvalidTransition(StageWorkflowError):
    default_code = 'invalid_transition'

    def __init__(self, status, action, message=None):
        self.status = status
        self.action = action
        super().__init__(message or f"Cannot {action} stage from status '{status}'")


class StageTerminal(StageWorkflowError):
    default_code = 'stage_terminal'

    def __init__(self, status, action=None):
        self.status = status
        self.action = action
        super().__init__(f"Stage is already {status} and can no longer be changed")


class QuantityError(StageWorkflowError):
    default_code = 'quantity_error'
    default_message = 'Invalid quantities'


class NotNonNegative(QuantityError):
    default_code = 'quantity_not_non_negative'
    default_message = 'Quantities must be non-negative integers'


class OverAllocated(QuantityError):
    default_code = 'quantity_over_allocated'
    default_message = 'Approved + Rejected cannot exceed Processed quantity'


QuantityError.NotNonNegative = NotNonNegative
QuantityError.OverAllocated = OverAllocated


class RejectionOverflow(StageWorkflowError):
    default_code = 'rejection_overflow'
    default_message = 'Sum of rejection lines cannot exceed stage rejected quantity'


class EmptyReason(StageWorkflowError):
    default_code = 'empty_reason'
    default_message = 'Rejection reason is required'


class AlreadyDispatched(StageWorkflowError):
    default_code = 'already_dispatched'
    default_message = 'Stage has already been dispatched to the vendor'


class ExternalHandoffFailed(StageWorkflowError):
    default_code = 'external_handoff_failed'
    default_message = 'Document issuance failed'
