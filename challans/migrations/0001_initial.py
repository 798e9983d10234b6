from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Challan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('challan_number', models.CharField(editable=False, max_length=20, unique=True)),
                ('challan_type', models.CharField(choices=[('outward', 'Outward'), ('inward', 'Inward')], max_length=10)),
                ('sub_type', models.CharField(default='outsourcing', max_length=20)),
                ('stage_ref', models.PositiveBigIntegerField(db_index=True)),
                ('order_ref', models.PositiveBigIntegerField(db_index=True)),
                ('vendor_ref', models.CharField(blank=True, max_length=100)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed')], default='pending', max_length=10)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Challan',
                'verbose_name_plural': 'Challans',
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]
