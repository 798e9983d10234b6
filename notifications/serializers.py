from rest_framework import serializers

from .models import WorkflowNotification


class WorkflowNotificationSerializer(serializers.ModelSerializer):
    notification_type_display = serializers.CharField(source='get_notification_type_display', read_only=True)
    priority_display = serializers.CharField(source='get_priority_display', read_only=True)
    created_by_name = serializers.CharField(source='created_by.get_full_name', read_only=True, default=None)
    order_number = serializers.CharField(source='related_order.order_number', read_only=True, default=None)
    stage_name = serializers.CharField(source='related_stage.stage_name', read_only=True, default=None)
    stage_status = serializers.CharField(source='related_stage.status', read_only=True, default=None)

    class Meta:
        model = WorkflowNotification
        fields = [
            'id', 'notification_type', 'notification_type_display', 'title', 'message',
            'priority', 'priority_display', 'recipient', 'related_order', 'order_number',
            'related_stage', 'stage_name', 'stage_status', 'is_read', 'read_at', 'action_required',
            'created_at', 'created_by', 'created_by_name'
        ]
        read_only_fields = fields
