from django.db import models
from django.utils import timezone

from utils.enums import ChallanTypeChoices, ChallanStatusChoices


class Challan(models.Model):
    """
    Inter-department / vendor movement document issued for outsourced stages
    """
    challan_number = models.CharField(max_length=20, unique=True, editable=False)
    challan_type = models.CharField(max_length=10, choices=ChallanTypeChoices.choices)
    sub_type = models.CharField(max_length=20, default='outsourcing')

    # Weak references into production; challans outlive stage edits
    stage_ref = models.PositiveBigIntegerField(db_index=True)
    order_ref = models.PositiveBigIntegerField(db_index=True)
    vendor_ref = models.CharField(max_length=100, blank=True)

    status = models.CharField(
        max_length=10, choices=ChallanStatusChoices.choices, default=ChallanStatusChoices.PENDING
    )
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Challan'
        verbose_name_plural = 'Challans'
        ordering = ['-created_at', '-id']

    def save(self, *args, **kwargs):
        if not self.challan_number:
            date_str = timezone.now().strftime('%Y%m%d')
            existing_challans = Challan.objects.filter(
                challan_number__startswith=f'CHN-{date_str}'
            ).count()
            self.challan_number = f'CHN-{date_str}-{existing_challans + 1:04d}'

        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.challan_number} ({self.get_challan_type_display()}) - stage {self.stage_ref}"
