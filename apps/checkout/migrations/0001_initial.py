# Generated manually for the bPay checkout app

import uuid
from decimal import Decimal
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CheckoutAttempt',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('card_name', models.CharField(max_length=100)),
                ('cart_total', models.DecimalField(decimal_places=2, max_digits=10, validators=[MinValueValidator(Decimal('0.01'))])),
                ('service_fee_percent', models.DecimalField(decimal_places=2, max_digits=5)),
                ('currency', models.CharField(default='usd', max_length=3)),
                ('status', models.CharField(choices=[('collecting', 'Collecting'), ('valid', 'Valid'), ('submitting', 'Submitting'), ('succeeded', 'Succeeded'), ('failed', 'Failed')], default='collecting', max_length=20)),
                ('last_error', models.CharField(blank=True, max_length=30)),
                ('last_error_message', models.CharField(blank=True, max_length=255)),
                ('sources', models.JSONField(blank=True, default=list, encoder=DjangoJSONEncoder)),
                ('charge_request', models.JSONField(blank=True, encoder=DjangoJSONEncoder, null=True)),
                ('processor_reference', models.CharField(blank=True, max_length=100)),
                ('amount_collected', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('processor_results', models.JSONField(blank=True, default=list, encoder=DjangoJSONEncoder)),
                ('failure_reason', models.CharField(blank=True, max_length=255)),
                ('issued_card', models.JSONField(blank=True, encoder=DjangoJSONEncoder, null=True)),
                ('validated_at', models.DateTimeField(blank=True, null=True)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='checkout_attempts', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'checkout_attempts',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'status'], name='checkout_user_status_idx'),
                    models.Index(fields=['status', 'created_at'], name='checkout_status_created_idx'),
                ],
            },
        ),
    ]
