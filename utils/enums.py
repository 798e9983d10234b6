from django.db import models
from django.utils.translation import gettext_lazy as _


# ============================================================================
# PRODUCTION ORDER CHOICES
# ============================================================================

class ProductionOrderStatusChoices(models.TextChoices):
    PENDING = 'pending', _('Pending')
    IN_PRODUCTION = 'in_production', _('In Production')
    COMPLETED = 'completed', _('Completed')


class PriorityChoices(models.TextChoices):
    LOW = 'low', _('Low')
    MEDIUM = 'medium', _('Medium')
    HIGH = 'high', _('High')
    URGENT = 'urgent', _('Urgent')


# ============================================================================
# PRODUCTION STAGE CHOICES
# ============================================================================

class StageNameChoices(models.TextChoices):
    MATERIAL_REVIEW = 'material_review', _('Material Review')
    CUTTING = 'cutting', _('Cutting')
    PRINTING_OR_EMBROIDERY = 'printing_or_embroidery', _('Printing / Embroidery')
    STITCHING = 'stitching', _('Stitching')
    FINISHING = 'finishing', _('Finishing')
    QUALITY_CHECK = 'quality_check', _('Quality Check')


# Fixed pipeline order; printing/embroidery is optional per order
STAGE_PIPELINE = [
    StageNameChoices.MATERIAL_REVIEW,
    StageNameChoices.CUTTING,
    StageNameChoices.PRINTING_OR_EMBROIDERY,
    StageNameChoices.STITCHING,
    StageNameChoices.FINISHING,
    StageNameChoices.QUALITY_CHECK,
]

OPTIONAL_STAGES = {StageNameChoices.PRINTING_OR_EMBROIDERY}


class StageStatusChoices(models.TextChoices):
    PENDING = 'pending', _('Pending')
    IN_PROGRESS = 'in_progress', _('In Progress')
    ON_HOLD = 'on_hold', _('On Hold')
    OUTSOURCED_PENDING = 'outsourced_pending', _('Sent to Vendor')
    OUTSOURCED_IN_PROGRESS = 'outsourced_in_progress', _('With Vendor')
    COMPLETED = 'completed', _('Completed')
    SKIPPED = 'skipped', _('Skipped')


TERMINAL_STAGE_STATUSES = {StageStatusChoices.COMPLETED, StageStatusChoices.SKIPPED}


class StageActionChoices(models.TextChoices):
    START = 'start', _('Start')
    SEND_TO_VENDOR = 'send_to_vendor', _('Send to Vendor')
    HOLD = 'hold', _('Hold')
    SKIP = 'skip', _('Skip')
    PAUSE = 'pause', _('Pause')
    RESUME = 'resume', _('Resume')
    COMPLETE = 'complete', _('Complete')
    RECEIVE_FROM_VENDOR = 'receive_from_vendor', _('Receive from Vendor')
    SET_OUTSOURCING = 'set_outsourcing', _('Set Outsourcing')
    PLAN = 'plan', _('Plan')


# ============================================================================
# REJECTION CHOICES
# ============================================================================

class RejectionReasonChoices(models.TextChoices):
    MATERIAL_DEFECT = 'material_defect', _('Material Defect')
    CUTTING_ERROR = 'cutting_error', _('Cutting Error')
    STITCHING_DEFECT = 'stitching_defect', _('Stitching Defect')
    SIZE_MISMATCH = 'size_mismatch', _('Size Mismatch')
    COLOR_VARIATION = 'color_variation', _('Color Variation')
    EMBROIDERY_DEFECT = 'embroidery_defect', _('Embroidery Defect')
    PRINTING_DEFECT = 'printing_defect', _('Printing Defect')
    FINISHING_ISSUE = 'finishing_issue', _('Finishing Issue')
    MEASUREMENT_ERROR = 'measurement_error', _('Measurement Error')
    QUALITY_STANDARD_NOT_MET = 'quality_standard_not_met', _('Quality Standard Not Met')
    DAMAGE = 'damage', _('Damage')
    OTHER = 'other', _('Other')


class SeverityChoices(models.TextChoices):
    MINOR = 'minor', _('Minor')
    MAJOR = 'major', _('Major')
    CRITICAL = 'critical', _('Critical')


class RejectionActionChoices(models.TextChoices):
    REWORK = 'rework', _('Rework')
    SCRAP = 'scrap', _('Scrap')
    DOWNGRADE = 'downgrade', _('Downgrade')
    RETURN_TO_VENDOR = 'return_to_vendor', _('Return to Vendor')
    PENDING = 'pending', _('Pending')


class ResponsiblePartyChoices(models.TextChoices):
    INTERNAL = 'internal', _('Internal')
    VENDOR = 'vendor', _('Vendor')
    MATERIAL_SUPPLIER = 'material_supplier', _('Material Supplier')
    CUSTOMER = 'customer', _('Customer')


# ============================================================================
# CHALLAN CHOICES
# ============================================================================

class ChallanTypeChoices(models.TextChoices):
    OUTWARD = 'outward', _('Outward')
    INWARD = 'inward', _('Inward')


class ChallanStatusChoices(models.TextChoices):
    PENDING = 'pending', _('Pending')
    COMPLETED = 'completed', _('Completed')


# ============================================================================
# NOTIFICATION CHOICES
# ============================================================================

class WorkflowNotificationTypeChoices(models.TextChoices):
    STAGE_STARTED = 'stage_started', _('Stage Started')
    STAGE_HELD = 'stage_held', _('Stage On Hold')
    STAGE_RESUMED = 'stage_resumed', _('Stage Resumed')
    STAGE_SKIPPED = 'stage_skipped', _('Stage Skipped')
    STAGE_COMPLETED = 'stage_completed', _('Stage Completed')
    STAGE_OUTSOURCED = 'stage_outsourced', _('Stage Sent to Vendor')
    STAGE_RECEIVED = 'stage_received', _('Stage Received from Vendor')
    ORDER_COMPLETED = 'order_completed', _('Production Order Completed')
    MANUAL_REVIEW = 'manual_review', _('Manual Review Required')
    STAGE_LATE = 'stage_late', _('Stage Exceeded Deadline')
