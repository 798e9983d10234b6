from rest_framework import serializers
from django.contrib.auth import get_user_model

from utils.enums import (
    StageNameChoices, PriorityChoices, SeverityChoices, RejectionActionChoices, ResponsiblePartyChoices
)
from .models import ProductionOrder, ProductionStage, RejectionLine, StageActivity
from .state_machine import StageStateMachine, allowed_actions

User = get_user_model()


class UserBasicSerializer(serializers.ModelSerializer):
    """Basic user serializer for nested relationships"""
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name']
        read_only_fields = fields


class ProductionStageSerializer(serializers.ModelSerializer):
    stage_name_display = serializers.CharField(source='get_stage_name_display', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    order_number = serializers.CharField(source='order.order_number', read_only=True)
    duration_hours = serializers.FloatField(read_only=True)
    is_terminal = serializers.BooleanField(read_only=True)
    allowed_actions = serializers.SerializerMethodField()
    assigned_to_name = serializers.CharField(source='assigned_to.get_full_name', read_only=True, default=None)

    class Meta:
        model = ProductionStage
        fields = [
            'id', 'order', 'order_number', 'stage_name', 'stage_name_display', 'sequence_index',
            'status', 'status_display', 'is_terminal', 'allowed_actions',
            'planned_start_time', 'planned_end_time', 'actual_start_time', 'actual_end_time', 'duration_hours',
            'is_late', 'late_reason', 'assigned_to', 'assigned_to_name',
            'quantity_processed', 'quantity_approved', 'quantity_rejected', 'material_used',
            'outsourced', 'vendor_ref', 'outward_document_number', 'inward_document_number',
            'notes', 'delay_reason', 'needs_manual_review', 'version', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_allowed_actions(self, obj):
        machine = StageStateMachine()
        return [str(action) for action in allowed_actions(obj.status) if machine.can(obj, action)]


class ProductionOrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list views"""
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    priority_display = serializers.CharField(source='get_priority_display', read_only=True)
    created_by_name = serializers.CharField(source='created_by.get_full_name', read_only=True, default=None)

    class Meta:
        model = ProductionOrder
        fields = [
            'id', 'order_number', 'product_ref', 'target_quantity', 'status', 'status_display',
            'priority', 'priority_display', 'progress_percentage', 'approved_quantity',
            'rejected_quantity', 'produced_quantity', 'planned_start_date', 'planned_end_date',
            'created_by_name', 'created_at'
        ]
        read_only_fields = fields


class ProductionOrderDetailSerializer(ProductionOrderListSerializer):
    stages = ProductionStageSerializer(many=True, read_only=True)
    created_by = UserBasicSerializer(read_only=True)

    class Meta(ProductionOrderListSerializer.Meta):
        fields = ProductionOrderListSerializer.Meta.fields + [
            'actual_start_date', 'actual_end_date', 'notes', 'created_by', 'updated_at', 'stages'
        ]
        read_only_fields = fields


class ProductionOrderCreateSerializer(serializers.Serializer):
    product_ref = serializers.CharField(max_length=120)
    target_quantity = serializers.IntegerField(min_value=1)
    include_printing_or_embroidery = serializers.BooleanField(default=True)
    outsourced_stages = serializers.ListField(
        child=serializers.ChoiceField(choices=StageNameChoices.choices), required=False, default=list
    )
    vendor_refs = serializers.DictField(child=serializers.CharField(max_length=100), required=False, default=dict)
    priority = serializers.ChoiceField(choices=PriorityChoices.choices, default=PriorityChoices.MEDIUM)
    planned_start_date = serializers.DateField(required=False, allow_null=True)
    planned_end_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, data):
        start, end = data.get('planned_start_date'), data.get('planned_end_date')
        if start and end and end < start:
            raise serializers.ValidationError({'planned_end_date': 'Planned end date cannot be before start date'})
        return data


# Stage command payloads. Quantities are not range-checked here; the
# reconciler owns those rules and reports them with its own error codes.

class StageNotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class StageHoldSerializer(StageNotesSerializer):
    delay_reason = serializers.CharField(required=False, allow_blank=True, default='')


class StageCompleteSerializer(StageNotesSerializer):
    processed = serializers.IntegerField()
    approved = serializers.IntegerField()
    rejected = serializers.IntegerField(default=0)
    material_used = serializers.DecimalField(max_digits=12, decimal_places=3, required=False, allow_null=True)
    end_time = serializers.DateTimeField(required=False, allow_null=True)


class StageOutsourcingSerializer(serializers.Serializer):
    outsourced = serializers.BooleanField()
    vendor_ref = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)


class StagePlanSerializer(serializers.Serializer):
    planned_start_time = serializers.DateTimeField(required=False, allow_null=True)
    planned_end_time = serializers.DateTimeField(required=False, allow_null=True)
    assigned_to = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), required=False, allow_null=True)


class HandoffSerializer(serializers.Serializer):
    timeout = serializers.FloatField(required=False, allow_null=True, min_value=0.1)


class RejectionLineSerializer(serializers.ModelSerializer):
    severity_display = serializers.CharField(source='get_severity_display', read_only=True)
    action_taken_display = serializers.CharField(source='get_action_taken_display', read_only=True)
    responsible_party_display = serializers.CharField(source='get_responsible_party_display', read_only=True)
    reported_by_name = serializers.CharField(source='reported_by.get_full_name', read_only=True, default=None)

    class Meta:
        model = RejectionLine
        fields = [
            'id', 'stage', 'reason', 'quantity', 'notes', 'severity', 'severity_display',
            'action_taken', 'action_taken_display', 'responsible_party', 'responsible_party_display',
            'reported_by', 'reported_by_name', 'created_at'
        ]
        read_only_fields = fields


class RejectionLineInputSerializer(serializers.Serializer):
    # Blank reasons pass through so the ledger can report them as empty_reason
    reason = serializers.CharField(max_length=50, allow_blank=True, trim_whitespace=False)
    quantity = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    severity = serializers.ChoiceField(choices=SeverityChoices.choices, required=False)
    action_taken = serializers.ChoiceField(choices=RejectionActionChoices.choices, required=False)
    responsible_party = serializers.ChoiceField(choices=ResponsiblePartyChoices.choices, required=False)


class RejectionBatchSerializer(serializers.Serializer):
    items = RejectionLineInputSerializer(many=True, allow_empty=False)


class StageActivitySerializer(serializers.ModelSerializer):
    performed_by_name = serializers.CharField(source='performed_by.get_full_name', read_only=True, default=None)

    class Meta:
        model = StageActivity
        fields = [
            'id', 'stage', 'order', 'action', 'from_status', 'to_status',
            'performed_by', 'performed_by_name', 'metadata', 'performed_at'
        ]
        read_only_fields = fields
