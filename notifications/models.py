from django.db import models
from django.contrib.auth import get_user_model
from utils.enums import WorkflowNotificationTypeChoices, PriorityChoices

User = get_user_model()


class WorkflowNotification(models.Model):
    """
    In-app notification raised after a production stage transition commits
    """
    # Notification details
    notification_type = models.CharField(max_length=30, choices=WorkflowNotificationTypeChoices.choices)
    title = models.CharField(max_length=200)
    message = models.TextField()
    priority = models.CharField(max_length=10, choices=PriorityChoices.choices, default='medium')

    # Recipients
    recipient = models.ForeignKey(
        User, on_delete=models.CASCADE,
        related_name='workflow_notifications'
    )

    # Related objects
    related_order = models.ForeignKey(
        'production.ProductionOrder',
        on_delete=models.CASCADE,
        null=True, blank=True,
        related_name='notifications'
    )
    related_stage = models.ForeignKey(
        'production.ProductionStage',
        on_delete=models.CASCADE,
        null=True, blank=True,
        related_name='notifications'
    )

    # Status tracking
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    action_required = models.BooleanField(default=False)

    # Audit
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='created_workflow_notifications'
    )

    class Meta:
        verbose_name = 'Workflow Notification'
        verbose_name_plural = 'Workflow Notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='notif_recipient_read_idx'),
            models.Index(fields=['notification_type'], name='notif_type_idx'),
            models.Index(fields=['created_at'], name='notif_created_idx'),
        ]

    def __str__(self):
        return f"{self.get_notification_type_display()} - {self.recipient}"
