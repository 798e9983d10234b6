"""
Stage Activity Logging Models
Audit trail of every successful stage transition
"""
from django.db import models
from django.contrib.auth import get_user_model

from utils.enums import StageActionChoices, StageStatusChoices

User = get_user_model()


class StageActivity(models.Model):
    """
    One row per committed transition, written in the same transaction
    """
    stage = models.ForeignKey(
        'production.ProductionStage', on_delete=models.CASCADE, related_name='activities'
    )
    order = models.ForeignKey(
        'production.ProductionOrder', on_delete=models.CASCADE, related_name='stage_activities'
    )
    action = models.CharField(max_length=30, choices=StageActionChoices.choices)
    from_status = models.CharField(max_length=30, choices=StageStatusChoices.choices)
    to_status = models.CharField(max_length=30, choices=StageStatusChoices.choices)
    performed_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='stage_activities'
    )
    metadata = models.JSONField(default=dict, blank=True)
    performed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Stage Activity'
        verbose_name_plural = 'Stage Activities'
        ordering = ['-performed_at', '-id']
        indexes = [
            models.Index(fields=['stage', '-performed_at'], name='activity_stage_time_idx'),
            models.Index(fields=['order', '-performed_at'], name='activity_order_time_idx'),
        ]

    def __str__(self):
        return f"Stage {self.stage_id}: {self.from_status} -> {self.to_status} ({self.action})"
