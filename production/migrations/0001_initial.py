from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


STAGE_STATUS_CHOICES = [
    ('pending', 'Pending'),
    ('in_progress', 'In Progress'),
    ('on_hold', 'On Hold'),
    ('outsourced_pending', 'Sent to Vendor'),
    ('outsourced_in_progress', 'With Vendor'),
    ('completed', 'Completed'),
    ('skipped', 'Skipped'),
]

STAGE_ACTION_CHOICES = [
    ('start', 'Start'),
    ('send_to_vendor', 'Send to Vendor'),
    ('hold', 'Hold'),
    ('skip', 'Skip'),
    ('pause', 'Pause'),
    ('resume', 'Resume'),
    ('complete', 'Complete'),
    ('receive_from_vendor', 'Receive from Vendor'),
    ('set_outsourcing', 'Set Outsourcing'),
    ('plan', 'Plan'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ProductionOrder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_number', models.CharField(editable=False, max_length=20, unique=True)),
                ('product_ref', models.CharField(help_text='Product code / style reference', max_length=120)),
                ('target_quantity', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_production', 'In Production'), ('completed', 'Completed')], default='pending', max_length=20)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('urgent', 'Urgent')], default='medium', max_length=10)),
                ('planned_start_date', models.DateField(blank=True, null=True)),
                ('planned_end_date', models.DateField(blank=True, null=True)),
                ('actual_start_date', models.DateTimeField(blank=True, null=True)),
                ('actual_end_date', models.DateTimeField(blank=True, null=True)),
                ('approved_quantity', models.PositiveIntegerField(default=0)),
                ('rejected_quantity', models.PositiveIntegerField(default=0)),
                ('produced_quantity', models.PositiveIntegerField(default=0)),
                ('progress_percentage', models.PositiveSmallIntegerField(default=0)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_production_orders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Production Order',
                'verbose_name_plural': 'Production Orders',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='prod_order_status_idx'),
                    models.Index(fields=['product_ref'], name='prod_order_product_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ProductionStage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('stage_name', models.CharField(choices=[('material_review', 'Material Review'), ('cutting', 'Cutting'), ('printing_or_embroidery', 'Printing / Embroidery'), ('stitching', 'Stitching'), ('finishing', 'Finishing'), ('quality_check', 'Quality Check')], max_length=30)),
                ('sequence_index', models.PositiveSmallIntegerField(help_text='1-based position in the pipeline')),
                ('status', models.CharField(choices=STAGE_STATUS_CHOICES, default='pending', max_length=30)),
                ('planned_start_time', models.DateTimeField(blank=True, null=True)),
                ('planned_end_time', models.DateTimeField(blank=True, null=True)),
                ('actual_start_time', models.DateTimeField(blank=True, null=True)),
                ('actual_end_time', models.DateTimeField(blank=True, null=True)),
                ('quantity_processed', models.PositiveIntegerField(default=0)),
                ('quantity_approved', models.PositiveIntegerField(default=0)),
                ('quantity_rejected', models.PositiveIntegerField(default=0)),
                ('material_used', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('outsourced', models.BooleanField(default=False, help_text='Fixed once the stage leaves pending')),
                ('vendor_ref', models.CharField(blank=True, max_length=100)),
                ('outward_document_number', models.CharField(blank=True, max_length=30)),
                ('inward_document_number', models.CharField(blank=True, max_length=30)),
                ('notes', models.TextField(blank=True)),
                ('delay_reason', models.TextField(blank=True)),
                ('needs_manual_review', models.BooleanField(default=False)),
                ('is_late', models.BooleanField(default=False, help_text='Completed after planned_end_time')),
                ('late_reason', models.TextField(blank=True)),
                ('version', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='stages', to='production.productionorder')),
                ('assigned_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_production_stages', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Production Stage',
                'verbose_name_plural': 'Production Stages',
                'ordering': ['order', 'sequence_index'],
                'indexes': [
                    models.Index(fields=['status'], name='prod_stage_status_idx'),
                    models.Index(fields=['outsourced'], name='prod_stage_outsourced_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('order', 'sequence_index'), name='unique_stage_position'),
                    models.UniqueConstraint(fields=('order', 'stage_name'), name='unique_stage_name_per_order'),
                    models.CheckConstraint(condition=models.Q(('quantity_processed__gte', models.F('quantity_approved') + models.F('quantity_rejected'))), name='stage_quantity_conservation'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RejectionLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reason', models.CharField(help_text='Rejection reason code', max_length=50)),
                ('quantity', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('notes', models.TextField(blank=True)),
                ('severity', models.CharField(choices=[('minor', 'Minor'), ('major', 'Major'), ('critical', 'Critical')], default='minor', max_length=10)),
                ('action_taken', models.CharField(choices=[('rework', 'Rework'), ('scrap', 'Scrap'), ('downgrade', 'Downgrade'), ('return_to_vendor', 'Return to Vendor'), ('pending', 'Pending')], default='pending', max_length=20)),
                ('responsible_party', models.CharField(choices=[('internal', 'Internal'), ('vendor', 'Vendor'), ('material_supplier', 'Material Supplier'), ('customer', 'Customer')], default='internal', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('reported_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reported_rejection_lines', to=settings.AUTH_USER_MODEL)),
                ('stage', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rejection_lines', to='production.productionstage')),
            ],
            options={
                'verbose_name': 'Rejection Line',
                'verbose_name_plural': 'Rejection Lines',
                'ordering': ['stage', 'id'],
                'indexes': [
                    models.Index(fields=['reason'], name='rejection_reason_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StageActivity',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=STAGE_ACTION_CHOICES, max_length=30)),
                ('from_status', models.CharField(choices=STAGE_STATUS_CHOICES, max_length=30)),
                ('to_status', models.CharField(choices=STAGE_STATUS_CHOICES, max_length=30)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('performed_at', models.DateTimeField(auto_now_add=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='stage_activities', to='production.productionorder')),
                ('performed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='stage_activities', to=settings.AUTH_USER_MODEL)),
                ('stage', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='activities', to='production.productionstage')),
            ],
            options={
                'verbose_name': 'Stage Activity',
                'verbose_name_plural': 'Stage Activities',
                'ordering': ['-performed_at', '-id'],
                'indexes': [
                    models.Index(fields=['stage', '-performed_at'], name='activity_stage_time_idx'),
                    models.Index(fields=['order', '-performed_at'], name='activity_order_time_idx'),
                ],
            },
        ),
    ]
