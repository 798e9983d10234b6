"""
Production Order Models
"""
from django.db import models
from django.contrib.auth import get_user_model
from django.core.validators import MinValueValidator
from django.utils import timezone

from utils.enums import ProductionOrderStatusChoices, PriorityChoices

User = get_user_model()


class ProductionOrder(models.Model):
    """
    Production Order - one garment run driven through the stage pipeline
    """
    order_number = models.CharField(max_length=20, unique=True, editable=False)
    product_ref = models.CharField(max_length=120, help_text="Product code / style reference")
    target_quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    status = models.CharField(
        max_length=20, choices=ProductionOrderStatusChoices.choices,
        default=ProductionOrderStatusChoices.PENDING
    )
    priority = models.CharField(max_length=10, choices=PriorityChoices.choices, default=PriorityChoices.MEDIUM)

    # Dates
    planned_start_date = models.DateField(null=True, blank=True)
    planned_end_date = models.DateField(null=True, blank=True)
    actual_start_date = models.DateTimeField(null=True, blank=True)
    actual_end_date = models.DateTimeField(null=True, blank=True)

    # Roll-ups recomputed from stages
    approved_quantity = models.PositiveIntegerField(default=0)
    rejected_quantity = models.PositiveIntegerField(default=0)
    produced_quantity = models.PositiveIntegerField(default=0)
    progress_percentage = models.PositiveSmallIntegerField(default=0)

    notes = models.TextField(blank=True)

    # Audit
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='created_production_orders'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Production Order'
        verbose_name_plural = 'Production Orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='prod_order_status_idx'),
            models.Index(fields=['product_ref'], name='prod_order_product_idx'),
        ]

    def save(self, *args, **kwargs):
        if not self.order_number:
            date_str = timezone.now().strftime('%Y%m%d')
            existing_orders = ProductionOrder.objects.filter(
                order_number__startswith=f'PRD-{date_str}'
            ).count()
            self.order_number = f'PRD-{date_str}-{existing_orders + 1:04d}'

        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.order_number} - {self.product_ref} ({self.target_quantity})"

    @property
    def is_finished(self):
        return self.status == ProductionOrderStatusChoices.COMPLETED
