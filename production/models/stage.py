"""
Production Stage Models
One pipeline step of one production order
"""
from decimal import Decimal

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator

from utils.enums import StageNameChoices, StageStatusChoices, TERMINAL_STAGE_STATUSES


class ProductionStage(models.Model):
    """
    Stage record - mutated only through the stage state machine
    """
    order = models.ForeignKey(
        'production.ProductionOrder', on_delete=models.CASCADE, related_name='stages'
    )
    stage_name = models.CharField(max_length=30, choices=StageNameChoices.choices)
    sequence_index = models.PositiveSmallIntegerField(help_text="1-based position in the pipeline")

    status = models.CharField(
        max_length=30, choices=StageStatusChoices.choices, default=StageStatusChoices.PENDING
    )

    # Timing
    planned_start_time = models.DateTimeField(null=True, blank=True)
    planned_end_time = models.DateTimeField(null=True, blank=True)
    actual_start_time = models.DateTimeField(null=True, blank=True)
    actual_end_time = models.DateTimeField(null=True, blank=True)

    # Quantities
    quantity_processed = models.PositiveIntegerField(default=0)
    quantity_approved = models.PositiveIntegerField(default=0)
    quantity_rejected = models.PositiveIntegerField(default=0)
    material_used = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))]
    )

    # Outsourcing
    outsourced = models.BooleanField(default=False, help_text="Fixed once the stage leaves pending")
    vendor_ref = models.CharField(max_length=100, blank=True)
    outward_document_number = models.CharField(max_length=30, blank=True)
    inward_document_number = models.CharField(max_length=30, blank=True)

    # Notes
    notes = models.TextField(blank=True)
    delay_reason = models.TextField(blank=True)
    needs_manual_review = models.BooleanField(default=False)
    is_late = models.BooleanField(default=False, help_text="Completed after planned_end_time")
    late_reason = models.TextField(blank=True)

    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='assigned_production_stages'
    )

    # Audit
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Production Stage'
        verbose_name_plural = 'Production Stages'
        ordering = ['order', 'sequence_index']
        constraints = [
            models.UniqueConstraint(fields=['order', 'sequence_index'], name='unique_stage_position'),
            models.UniqueConstraint(fields=['order', 'stage_name'], name='unique_stage_name_per_order'),
            models.CheckConstraint(
                condition=models.Q(
                    quantity_processed__gte=models.F('quantity_approved') + models.F('quantity_rejected')
                ),
                name='stage_quantity_conservation',
            ),
        ]
        indexes = [
            models.Index(fields=['status'], name='prod_stage_status_idx'),
            models.Index(fields=['outsourced'], name='prod_stage_outsourced_idx'),
        ]

    def __str__(self):
        return f"{self.order_id} #{self.sequence_index} {self.stage_name} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STAGE_STATUSES

    @property
    def is_final_stage(self):
        return self.stage_name == StageNameChoices.QUALITY_CHECK

    @property
    def duration_hours(self):
        """Elapsed hours between actual start and end"""
        if self.actual_start_time and self.actual_end_time:
            delta = self.actual_end_time - self.actual_start_time
            return round(delta.total_seconds() / 3600, 2)
        return None
