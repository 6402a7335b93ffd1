import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import batch_payments.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('expenses', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BatchOTP',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('purpose', models.CharField(choices=[('batch_payment', 'Batch Payment'), ('batch_approval', 'Batch Approval')], default='batch_payment', max_length=20)),
                ('otp_hash', models.CharField(editable=False, max_length=64)),
                ('otp_salt', models.CharField(editable=False, max_length=32)),
                ('is_used', models.BooleanField(default=False)),
                ('used_at', models.DateTimeField(blank=True, null=True)),
                ('invalidated_reason', models.CharField(blank=True, choices=[('verified', 'Verified'), ('locked', 'Locked after too many attempts'), ('cancelled', 'Cancelled by operator')], max_length=20)),
                ('expires_at', models.DateTimeField(default=batch_payments.models.default_expiry)),
                ('attempts', models.PositiveSmallIntegerField(default=0)),
                ('max_attempts', models.PositiveSmallIntegerField(default=batch_payments.models.default_max_attempts)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('expense_count', models.PositiveIntegerField(default=0)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.CharField(blank=True, max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('expenses', models.ManyToManyField(related_name='batch_otps', to='expenses.expense')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='batch_otps', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'batch OTP',
                'verbose_name_plural': 'batch OTPs',
                'db_table': 'batch_otps',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['expires_at'], name='batch_otps_expires_idx'), models.Index(fields=['user', 'is_used', 'expires_at'], name='batch_otps_user_active_idx')],
            },
        ),
        migrations.CreateModel(
            name='BatchPayment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('utr_number', models.CharField(help_text='Operator supplied bank reference', max_length=100)),
                ('expense_ids', models.JSONField(default=list, help_text='Expenses settled in this batch')),
                ('total_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('expense_count', models.PositiveIntegerField()),
                ('payment_remarks', models.TextField(blank=True, null=True)),
                ('payment_method', models.CharField(default='manual_bank_transfer', max_length=50)),
                ('otp_id', models.UUIDField(blank=True, help_text='Batch OTP that authorised this payment', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='batch_payments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'batch_payments',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', '-created_at'], name='batch_payments_user_idx')],
            },
        ),
    ]
