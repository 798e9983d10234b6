"""
Stage transition subscribers

Runs after the transition's transaction commits. Failures here are logged by
the sender and never reach the caller of the transition.
"""
import logging

from django.dispatch import receiver

from production.models import ProductionOrder
from production.signals import stage_transitioned
from utils.enums import (
    StageActionChoices as Action, WorkflowNotificationTypeChoices as NotificationType, PriorityChoices
)
from .models import WorkflowNotification

logger = logging.getLogger(__name__)

ACTION_NOTIFICATIONS = {
    Action.START: (NotificationType.STAGE_STARTED, PriorityChoices.LOW),
    Action.HOLD: (NotificationType.STAGE_HELD, PriorityChoices.MEDIUM),
    Action.PAUSE: (NotificationType.STAGE_HELD, PriorityChoices.MEDIUM),
    Action.RESUME: (NotificationType.STAGE_RESUMED, PriorityChoices.LOW),
    Action.SKIP: (NotificationType.STAGE_SKIPPED, PriorityChoices.MEDIUM),
    Action.COMPLETE: (NotificationType.STAGE_COMPLETED, PriorityChoices.LOW),
    Action.SEND_TO_VENDOR: (NotificationType.STAGE_OUTSOURCED, PriorityChoices.MEDIUM),
    Action.RECEIVE_FROM_VENDOR: (NotificationType.STAGE_RECEIVED, PriorityChoices.MEDIUM),
}


@receiver(stage_transitioned, dispatch_uid='notifications.notify_order_owner')
def notify_order_owner(sender, stage, transition, summary, user=None, **kwargs):
    """Notify the user who raised the order"""
    if stage._state.adding:
        # Never persisted (in-memory store); there is no order row to notify about
        return []

    order = ProductionOrder.objects.select_related('created_by').filter(pk=stage.order_id).first()
    if order is None or order.created_by is None:
        return []

    actor = user if user is not None and user.is_authenticated else None
    stage_label = stage.get_stage_name_display()
    notifications = []

    if transition.action in ACTION_NOTIFICATIONS:
        notification_type, priority = ACTION_NOTIFICATIONS[transition.action]
        message = f'{stage_label} moved from {transition.from_status} to {transition.to_status}.'
        if transition.metadata.get('delay_reason'):
            message += f" Reason: {transition.metadata['delay_reason']}"
        if transition.metadata.get('document_number'):
            message += f" Challan: {transition.metadata['document_number']}"
        notifications.append(WorkflowNotification(
            notification_type=notification_type,
            title=f'{order.order_number}: {stage_label} {transition.to_status.replace("_", " ")}',
            message=message,
            priority=priority,
        ))

    if transition.metadata.get('needs_manual_review'):
        notifications.append(WorkflowNotification(
            notification_type=NotificationType.MANUAL_REVIEW,
            title=f'{order.order_number}: manual review required',
            message=f'{stage_label} completed with no approved units.',
            priority=PriorityChoices.HIGH,
            action_required=True,
        ))

    if transition.metadata.get('is_late'):
        notifications.append(WorkflowNotification(
            notification_type=NotificationType.STAGE_LATE,
            title=f'{order.order_number}: {stage_label} exceeded its deadline',
            message=transition.metadata.get('late_reason') or f'{stage_label} completed after its planned end time.',
            priority=PriorityChoices.HIGH,
            action_required=True,
        ))

    if summary.get('order_completed'):
        notifications.append(WorkflowNotification(
            notification_type=NotificationType.ORDER_COMPLETED,
            title=f'{order.order_number} completed',
            message=(
                f"All stages finished. Approved {summary['approved_quantity']}, "
                f"rejected {summary['rejected_quantity']} of {order.target_quantity}."
            ),
            priority=PriorityChoices.MEDIUM,
        ))

    for notification in notifications:
        notification.recipient = order.created_by
        notification.related_order = order
        notification.related_stage_id = stage.pk
        notification.created_by = actor

    created = WorkflowNotification.objects.bulk_create(notifications)
    if created:
        logger.info(f'Sent {len(created)} notification(s) to {order.created_by} for stage {stage.pk}')
    return created
