from django.contrib import admin
from .models import Challan


@admin.register(Challan)
class ChallanAdmin(admin.ModelAdmin):
    list_display = ('challan_number', 'challan_type', 'sub_type', 'stage_ref', 'order_ref',
                    'vendor_ref', 'status', 'created_at')
    list_filter = ('challan_type', 'status', 'created_at')
    search_fields = ('challan_number', 'vendor_ref', 'stage_ref', 'order_ref')
    readonly_fields = ('challan_number', 'created_at', 'updated_at')
    ordering = ('-created_at',)
