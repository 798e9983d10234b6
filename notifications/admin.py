from django.contrib import admin
from .models import WorkflowNotification


@admin.register(WorkflowNotification)
class WorkflowNotificationAdmin(admin.ModelAdmin):
    list_display = ('title', 'notification_type', 'priority', 'recipient', 'is_read', 'created_at')
    list_filter = ('notification_type', 'priority', 'is_read', 'action_required', 'created_at')
    search_fields = ('title', 'message', 'related_order__order_number', 'recipient__username')
    ordering = ('-created_at',)
