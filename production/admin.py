from django.contrib import admin
from .models import ProductionOrder, ProductionStage, RejectionLine, StageActivity


# Stages and rejection lines change only through the workflow service, so the
# admin shows them read-only
class ProductionStageInline(admin.TabularInline):
    model = ProductionStage
    extra = 0
    can_delete = False
    fields = ('sequence_index', 'stage_name', 'status', 'outsourced', 'quantity_processed',
              'quantity_approved', 'quantity_rejected', 'duration_display')
    readonly_fields = fields
    ordering = ('sequence_index',)

    def duration_display(self, obj):
        if obj.pk and obj.duration_hours is not None:
            return f"{obj.duration_hours:.2f} h"
        return "-"
    duration_display.short_description = 'Duration'

    def has_add_permission(self, request, obj=None):
        return False


class RejectionLineInline(admin.TabularInline):
    model = RejectionLine
    extra = 0
    can_delete = False
    fields = ('reason', 'quantity', 'severity', 'action_taken', 'responsible_party', 'reported_by', 'created_at')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(ProductionOrder)
class ProductionOrderAdmin(admin.ModelAdmin):
    list_display = ('order_number', 'product_ref', 'target_quantity', 'status', 'priority',
                    'progress_percentage', 'created_at')
    list_filter = ('status', 'priority', 'created_at')
    search_fields = ('order_number', 'product_ref')
    readonly_fields = ('order_number', 'status', 'progress_percentage', 'approved_quantity',
                       'rejected_quantity', 'produced_quantity', 'actual_start_date', 'actual_end_date',
                       'created_at', 'updated_at')
    ordering = ('-created_at',)
    inlines = [ProductionStageInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('order_number', 'product_ref', 'target_quantity', 'priority', 'notes')
        }),
        ('Planning', {
            'fields': ('planned_start_date', 'planned_end_date', 'actual_start_date', 'actual_end_date')
        }),
        ('Progress', {
            'fields': ('status', 'progress_percentage', 'approved_quantity', 'rejected_quantity',
                       'produced_quantity')
        }),
        ('Audit', {
            'fields': ('created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_delete_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('created_by')


@admin.register(ProductionStage)
class ProductionStageAdmin(admin.ModelAdmin):
    list_display = ('order', 'sequence_index', 'stage_name', 'status', 'outsourced', 'vendor_ref',
                    'quantity_processed', 'quantity_approved', 'quantity_rejected', 'needs_manual_review', 'is_late')
    list_filter = ('stage_name', 'status', 'outsourced', 'needs_manual_review', 'is_late')
    search_fields = ('order__order_number', 'order__product_ref', 'vendor_ref')
    ordering = ('order', 'sequence_index')
    inlines = [RejectionLineInline]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('order', 'assigned_to')


@admin.register(StageActivity)
class StageActivityAdmin(admin.ModelAdmin):
    list_display = ('stage', 'action', 'from_status', 'to_status', 'performed_by', 'performed_at')
    list_filter = ('action', 'to_status', 'performed_at')
    search_fields = ('order__order_number',)
    ordering = ('-performed_at',)
    readonly_fields = ('stage', 'order', 'action', 'from_status', 'to_status', 'performed_by',
                       'metadata', 'performed_at')

    def has_add_permission(self, request):
        return False
