from rest_framework import viewsets, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django_filters.rest_framework import DjangoFilterBackend
from django.db.models import Count
from django.utils import timezone

from .models import WorkflowNotification
from .serializers import WorkflowNotificationSerializer


class WorkflowNotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for the current user's workflow notifications
    """
    permission_classes = [IsAuthenticated]
    serializer_class = WorkflowNotificationSerializer
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['notification_type', 'is_read', 'action_required', 'priority', 'related_order']
    ordering_fields = ['created_at', 'priority']
    ordering = ['-created_at']

    def get_queryset(self):
        """Get workflow notifications for current user"""
        return WorkflowNotification.objects.filter(
            recipient=self.request.user
        ).select_related('related_order', 'related_stage', 'created_by')

    @action(detail=True, methods=['post'])
    def mark_as_read(self, request, pk=None):
        """Mark notification as read"""
        notification = self.get_object()
        notification.is_read = True
        notification.read_at = timezone.now()
        notification.save(update_fields=['is_read', 'read_at'])

        serializer = self.get_serializer(notification)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def unread_summary(self, request):
        """Unread counts per priority, and how many still need action"""
        unread = self.get_queryset().filter(is_read=False)
        by_priority = dict(unread.values_list('priority').annotate(count=Count('id')).order_by())
        return Response({
            'total': sum(by_priority.values()),
            'by_priority': by_priority,
            'action_required': unread.filter(action_required=True).count(),
        })

    @action(detail=False, methods=['post'])
    def mark_all_as_read(self, request):
        updated = self.get_queryset().filter(is_read=False).update(is_read=True, read_at=timezone.now())
        return Response({'updated_count': updated})
