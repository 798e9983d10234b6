from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import WorkflowNotificationViewSet

# Create router and register viewsets
router = DefaultRouter()
router.register(r'workflow-notifications', WorkflowNotificationViewSet, basename='workflownotification')

app_name = 'notifications'

urlpatterns = [
    path('', include(router.urls)),
]

# Available API endpoints:
"""
Workflow Notifications API (mounted at /api/notifications/):

- GET    /workflow-notifications/                      - List user's workflow notifications
- GET    /workflow-notifications/{id}/                 - Get specific workflow notification
- POST   /workflow-notifications/{id}/mark_as_read/    - Mark notification as read
- POST   /workflow-notifications/mark_all_as_read/     - Mark every unread notification as read
- GET    /workflow-notifications/unread_summary/       - Unread counts per priority

Query Parameters:
- notification_type: Filter by type (e.g., stage_completed, stage_late)
- is_read: Filter by read status (true/false)
- action_required: Filter by action required status (true/false)
- related_order: Filter by production order id
"""
