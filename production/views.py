import logging

from rest_framework import viewsets, mixins, status, filters
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django_filters.rest_framework import DjangoFilterBackend
from django.db.models import Count, F, Sum, Value
from django.db.models.functions import Coalesce

from utils.enums import ProductionOrderStatusChoices, StageStatusChoices
from .exceptions import (
    StageWorkflowError, StageNotFound, OrderNotFound, InvalidTransition, StageTerminal,
    AlreadyDispatched, ExternalHandoffFailed
)
from .models import ProductionOrder, ProductionStage, StageActivity
from .permissions import IsProductionStaff
from .serializers import (
    ProductionOrderListSerializer, ProductionOrderDetailSerializer, ProductionOrderCreateSerializer,
    ProductionStageSerializer, StageNotesSerializer, StageHoldSerializer, StageCompleteSerializer,
    StageOutsourcingSerializer, StagePlanSerializer, HandoffSerializer, RejectionLineSerializer,
    RejectionLineInputSerializer, RejectionBatchSerializer, StageActivitySerializer
)
from .workflow_service import StageWorkflowService

logger = logging.getLogger(__name__)

ERROR_STATUS = [
    ((StageNotFound, OrderNotFound), status.HTTP_404_NOT_FOUND),
    ((InvalidTransition, StageTerminal, AlreadyDispatched), status.HTTP_409_CONFLICT),
    ((ExternalHandoffFailed,), status.HTTP_502_BAD_GATEWAY),
]


def workflow_error_response(error):
    """Translate a workflow error to {'error', 'code'} with its HTTP status"""
    http_status = status.HTTP_400_BAD_REQUEST
    for error_classes, mapped_status in ERROR_STATUS:
        if isinstance(error, error_classes):
            http_status = mapped_status
            break
    return Response({'error': str(error), 'code': error.code}, status=http_status)


class WorkflowServiceMixin:

    def get_service(self):
        return StageWorkflowService()


class ProductionOrderViewSet(WorkflowServiceMixin,
                             mixins.ListModelMixin,
                             mixins.RetrieveModelMixin,
                             mixins.CreateModelMixin,
                             viewsets.GenericViewSet):
    """
    Production orders. Orders are created with their full stage pipeline and
    are never deleted.
    """
    permission_classes = [IsProductionStaff]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'priority', 'product_ref']
    search_fields = ['order_number', 'product_ref']
    ordering_fields = ['created_at', 'planned_start_date', 'planned_end_date', 'progress_percentage']
    ordering = ['-created_at']
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        queryset = ProductionOrder.objects.select_related('created_by')
        if self.action == 'retrieve':
            queryset = queryset.prefetch_related('stages')
        return queryset

    def get_serializer_class(self):
        if self.action == 'list':
            return ProductionOrderListSerializer
        if self.action == 'create':
            return ProductionOrderCreateSerializer
        return ProductionOrderDetailSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self.get_service().create_production_order(created_by=request.user, **serializer.validated_data)
        except StageWorkflowError as e:
            return workflow_error_response(e)

        order = self.get_queryset().prefetch_related('stages').get(pk=order.pk)
        return Response(ProductionOrderDetailSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def progress(self, request, pk=None):
        """Completion percentage, current stage and quantity roll-up"""
        try:
            summary = self.get_service().get_order_summary(int(pk))
        except StageWorkflowError as e:
            return workflow_error_response(e)
        return Response(summary)

    @action(detail=True, methods=['get'])
    def stages(self, request, pk=None):
        order = self.get_object()
        stages = order.stages.select_related('order', 'assigned_to').order_by('sequence_index')
        return Response(ProductionStageSerializer(stages, many=True).data)


class ProductionStageViewSet(WorkflowServiceMixin, viewsets.ReadOnlyModelViewSet):
    """
    Stages are read through the ORM and changed only through the command
    actions below, each of which goes through the workflow service.
    """
    permission_classes = [IsProductionStaff]
    serializer_class = ProductionStageSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['order', 'stage_name', 'status', 'outsourced', 'needs_manual_review', 'is_late', 'assigned_to']
    search_fields = ['order__order_number', 'order__product_ref', 'vendor_ref']
    ordering_fields = ['order', 'sequence_index', 'updated_at']
    ordering = ['order', 'sequence_index']
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        return ProductionStage.objects.select_related('order', 'assigned_to')

    def _command(self, request, serializer_class, run):
        serializer = serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            stage = run(self.get_service(), serializer.validated_data)
        except StageWorkflowError as e:
            logger.warning(f'Stage command rejected for {request.user}: {e.code} - {e}')
            return workflow_error_response(e)
        return Response(ProductionStageSerializer(stage).data)

    @action(detail=True, methods=['post'])
    def start(self, request, pk=None):
        return self._command(
            request, StageNotesSerializer,
            lambda service, data: service.start_stage(int(pk), user=request.user, **data)
        )

    @action(detail=True, methods=['post'])
    def hold(self, request, pk=None):
        return self._command(
            request, StageHoldSerializer,
            lambda service, data: service.hold_stage(int(pk), user=request.user, **data)
        )

    @action(detail=True, methods=['post'])
    def pause(self, request, pk=None):
        return self._command(
            request, StageHoldSerializer,
            lambda service, data: service.pause_stage(int(pk), user=request.user, **data)
        )

    @action(detail=True, methods=['post'])
    def resume(self, request, pk=None):
        return self._command(
            request, StageNotesSerializer,
            lambda service, data: service.resume_stage(int(pk), user=request.user, **data)
        )

    @action(detail=True, methods=['post'])
    def skip(self, request, pk=None):
        return self._command(
            request, StageNotesSerializer,
            lambda service, data: service.skip_stage(int(pk), user=request.user, **data)
        )

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        return self._command(
            request, StageCompleteSerializer,
            lambda service, data: service.complete_stage(int(pk), user=request.user, **data)
        )

    @action(detail=True, methods=['post'])
    def plan(self, request, pk=None):
        """Planned window and assignee; completion after the planned end flags the stage late"""
        return self._command(
            request, StagePlanSerializer,
            lambda service, data: service.plan_stage(int(pk), user=request.user, **data)
        )

    @action(detail=True, methods=['post'])
    def outsourcing(self, request, pk=None):
        """Flag or unflag a pending stage for a vendor"""
        return self._command(
            request, StageOutsourcingSerializer,
            lambda service, data: service.set_stage_outsourcing(int(pk), user=request.user, **data)
        )

    # Named apart from APIView.dispatch, which an action must not shadow
    @action(detail=True, methods=['post'], url_path='dispatch', url_name='dispatch')
    def dispatch_to_vendor(self, request, pk=None):
        """Send to vendor; issues the outward challan"""
        return self._command(
            request, HandoffSerializer,
            lambda service, data: service.dispatch_to_vendor(int(pk), user=request.user, **data)
        )

    @action(detail=True, methods=['post'])
    def receive(self, request, pk=None):
        """Record vendor receipt; issues the inward challan"""
        return self._command(
            request, HandoffSerializer,
            lambda service, data: service.receive_from_vendor(int(pk), user=request.user, **data)
        )

    @action(detail=True, methods=['get', 'post'])
    def rejections(self, request, pk=None):
        """
        GET lists the stage's rejection lines in entry order.
        POST adds one line, or several at once with {"items": [...]}.
        """
        service = self.get_service()
        stage_id = int(pk)

        try:
            if request.method == 'GET':
                lines = service.rejection_lines(stage_id)
                return Response(RejectionLineSerializer(lines, many=True).data)

            if 'items' in request.data:
                serializer = RejectionBatchSerializer(data=request.data)
                serializer.is_valid(raise_exception=True)
                lines = service.add_rejection_lines(stage_id, serializer.validated_data['items'], user=request.user)
            else:
                serializer = RejectionLineInputSerializer(data=request.data)
                serializer.is_valid(raise_exception=True)
                lines = [service.add_rejection_line(stage_id, user=request.user, **serializer.validated_data)]

            stage = service.store.load(stage_id)
        except StageWorkflowError as e:
            logger.warning(f'Rejection entry refused on stage {stage_id}: {e.code} - {e}')
            return workflow_error_response(e)

        return Response({
            'lines': RejectionLineSerializer(lines, many=True).data,
            'declared_rejected': stage.quantity_rejected,
            'logged_quantity': service.ledger.logged_quantity(stage_id),
            'unaccounted_quantity': service.ledger.unaccounted_quantity(stage),
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def activity(self, request, pk=None):
        stage = self.get_object()
        activities = StageActivity.objects.filter(stage=stage).select_related('performed_by')
        return Response(StageActivitySerializer(activities, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_stats(request):
    """Counts of stages and orders per status, plus stages needing attention"""
    stage_counts = {choice: 0 for choice in StageStatusChoices.values}
    for row in ProductionStage.objects.values('status').annotate(count=Count('id')):
        stage_counts[row['status']] = row['count']

    order_counts = {choice: 0 for choice in ProductionOrderStatusChoices.values}
    for row in ProductionOrder.objects.values('status').annotate(count=Count('id')):
        order_counts[row['status']] = row['count']

    unaccounted = ProductionStage.objects.filter(
        quantity_rejected__gt=0
    ).annotate(
        logged=Coalesce(Sum('rejection_lines__quantity'), Value(0))
    ).filter(logged__lt=F('quantity_rejected')).count()

    return Response({
        'stages': stage_counts,
        'orders': order_counts,
        'with_vendor': stage_counts[StageStatusChoices.OUTSOURCED_PENDING]
        + stage_counts[StageStatusChoices.OUTSOURCED_IN_PROGRESS],
        'needs_manual_review': ProductionStage.objects.filter(needs_manual_review=True).count(),
        'late_stages': ProductionStage.objects.filter(is_late=True).count(),
        'unaccounted_rejections': unaccounted,
    })
