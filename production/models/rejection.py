"""
Rejection Ledger Models
Cause breakdown for units rejected at a stage
"""
from django.db import models
from django.contrib.auth import get_user_model
from django.core.validators import MinValueValidator

from utils.enums import SeverityChoices, RejectionActionChoices, ResponsiblePartyChoices

User = get_user_model()


class RejectionLine(models.Model):
    """
    Append-only rejection line item; sum per stage never exceeds the stage's rejected quantity
    """
    stage = models.ForeignKey(
        'production.ProductionStage', on_delete=models.CASCADE, related_name='rejection_lines'
    )
    reason = models.CharField(max_length=50, help_text="Rejection reason code")
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    notes = models.TextField(blank=True)

    # Attribution
    severity = models.CharField(max_length=10, choices=SeverityChoices.choices, default=SeverityChoices.MINOR)
    action_taken = models.CharField(
        max_length=20, choices=RejectionActionChoices.choices, default=RejectionActionChoices.PENDING
    )
    responsible_party = models.CharField(
        max_length=20, choices=ResponsiblePartyChoices.choices, default=ResponsiblePartyChoices.INTERNAL
    )
    reported_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='reported_rejection_lines'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Rejection Line'
        verbose_name_plural = 'Rejection Lines'
        ordering = ['stage', 'id']
        indexes = [
            models.Index(fields=['reason'], name='rejection_reason_idx'),
        ]

    def __str__(self):
        return f"Stage {self.stage_id} - {self.reason} x{self.quantity}"
