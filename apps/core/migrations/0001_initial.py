from decimal import Decimal
import uuid

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='FinancialSettings',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('updated_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Updated From IP')),
                ('school_currency', models.CharField(default='PHP', help_text='Primary currency for this school (ISO 4217 code)', max_length=3, verbose_name='School Currency')),
                ('currency_symbol', models.CharField(blank=True, default='₱', help_text='Symbol shown before amounts (falls back to the currency code)', max_length=5, verbose_name='Currency Symbol')),
                ('requires_payment_approval', models.BooleanField(default=True, help_text='Student payments wait for accountant approval before being marked paid', verbose_name='Require Payment Approval')),
                ('strict_payment_plans', models.BooleanField(default=False, help_text='Reject unknown payment plans instead of billing them as a single full payment', verbose_name='Strict Payment Plans')),
                ('send_payment_notifications', models.BooleanField(default=True, help_text='Notify students when schedules are generated and payments change state', verbose_name='Send Payment Notifications')),
                ('transaction_prefix', models.CharField(default='TXN', help_text='Prefix for payment transaction references', max_length=10, verbose_name='Transaction Reference Prefix')),
                ('overpayment_prefix', models.CharField(default='OVP', help_text='Prefix for references of bills settled from overpayment credit', max_length=10, verbose_name='Overpayment Reference Prefix')),
                ('late_fee_enabled', models.BooleanField(default=True, help_text='Show late fees on overdue bills', verbose_name='Enable Late Fees')),
                ('late_fee_percentage', models.DecimalField(decimal_places=2, default=Decimal('2.00'), help_text='Percentage of the bill amount charged per started month overdue', max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('100'))], verbose_name='Late Fee Percentage')),
                ('grace_period_days', models.PositiveIntegerField(default=0, help_text='Days after due date before late fees apply', validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(90)], verbose_name='Grace Period (Days)')),
            ],
            options={
                'verbose_name': 'Financial Settings',
                'verbose_name_plural': 'Financial Settings',
            },
        ),
    ]
