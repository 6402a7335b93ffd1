import logging
import random
import uuid
from collections import namedtuple
from datetime import timedelta
from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.crypto import constant_time_compare, get_random_string, salted_hmac
from django.contrib.auth import get_user_model

from expenses.models import Expense
from .conf import get_setting

User = get_user_model()
logger = logging.getLogger(__name__)

_random = random.SystemRandom()

OtpVerification = namedtuple('OtpVerification', ['success', 'message', 'state', 'remaining_attempts'])


def default_expiry():
    return timezone.now() + timedelta(minutes=get_setting('OTP_VALIDITY_MINUTES'))


def default_max_attempts():
    return get_setting('OTP_MAX_ATTEMPTS')


# ========================================
# BATCH OTP MODEL
# ========================================

class BatchOTPQuerySet(models.QuerySet):

    def expired(self):
        return self.filter(expires_at__lt=timezone.now())

    def active(self):
        return self.filter(is_used=False, expires_at__gt=timezone.now())


class BatchOTPManager(models.Manager.from_queryset(BatchOTPQuerySet)):

    def clean_expired(self):
        """
        Delete every credential past its expiry. Expired credentials can
        never verify again, so this is safe next to live requests.
        """
        deleted, _ = self.get_queryset().expired().delete()
        logger.info(f"Cleaned {deleted} expired batch OTP records")
        return deleted

    def active_for(self, user):
        """Newest unused, unexpired credential of ``user``."""
        return self.get_queryset().active().filter(user=user).order_by('-created_at').first()


class BatchOTP(models.Model):
    """
    One-time code gating a batch payment.

    Bound to one operator and one set of expenses. Only a salted hash of
    the code is stored. States: active, expired, used, locked.
    """

    PURPOSE_CHOICES = [
        ('batch_payment', 'Batch Payment'),
        ('batch_approval', 'Batch Approval'),
    ]

    # States
    ACTIVE = 'active'
    EXPIRED = 'expired'
    USED = 'used'
    LOCKED = 'locked'

    # Why a credential stopped being usable
    VERIFIED = 'verified'
    CANCELLED = 'cancelled'
    INVALIDATED_CHOICES = [
        (VERIFIED, 'Verified'),
        (LOCKED, 'Locked after too many attempts'),
        (CANCELLED, 'Cancelled by operator'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='batch_otps')
    expenses = models.ManyToManyField(Expense, related_name='batch_otps')
    purpose = models.CharField(max_length=20, choices=PURPOSE_CHOICES, default='batch_payment')

    otp_hash = models.CharField(max_length=64, editable=False)
    otp_salt = models.CharField(max_length=32, editable=False)

    is_used = models.BooleanField(default=False)
    used_at = models.DateTimeField(null=True, blank=True)
    invalidated_reason = models.CharField(max_length=20, choices=INVALIDATED_CHOICES, blank=True)
    expires_at = models.DateTimeField(default=default_expiry)
    attempts = models.PositiveSmallIntegerField(default=0)
    max_attempts = models.PositiveSmallIntegerField(default=default_max_attempts)

    # Snapshot of the batch at issue time
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    expense_count = models.PositiveIntegerField(default=0)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BatchOTPManager()

    class Meta:
        db_table = 'batch_otps'
        ordering = ['-created_at']
        verbose_name = 'batch OTP'
        verbose_name_plural = 'batch OTPs'
        indexes = [
            models.Index(fields=['expires_at'], name='batch_otps_expires_idx'),
            models.Index(fields=['user', 'is_used', 'expires_at'], name='batch_otps_user_active_idx'),
        ]

    def __str__(self):
        return f"Batch OTP {self.id} for {self.user} ({self.state})"

    # -------------------------------
    # Code handling
    # -------------------------------
    @staticmethod
    def generate_code():
        """6-digit numeric code, uniform over 100000-999999."""
        return str(_random.randint(100000, 999999))

    @staticmethod
    def hash_code(code, salt):
        return salted_hmac(salt, str(code), algorithm='sha256').hexdigest()

    def set_code(self, code):
        self.otp_salt = get_random_string(16)
        self.otp_hash = self.hash_code(code, self.otp_salt)

    def check_code(self, code):
        return constant_time_compare(self.hash_code(code, self.otp_salt), self.otp_hash)

    # -------------------------------
    # State
    # -------------------------------
    def is_expired(self, now=None):
        return (now or timezone.now()) > self.expires_at

    @property
    def state(self):
        if self.is_used:
            return self.LOCKED if self.invalidated_reason == self.LOCKED else self.USED
        if self.is_expired():
            return self.EXPIRED
        return self.ACTIVE

    @property
    def remaining_attempts(self):
        return max(self.max_attempts - self.attempts, 0)

    def mark_as_used(self, reason):
        self.is_used = True
        self.used_at = timezone.now()
        self.invalidated_reason = reason
        self.save(update_fields=['is_used', 'used_at', 'invalidated_reason', 'updated_at'])

    def verify(self, code):
        """
        Check ``code`` against the stored hash.

        Every evaluated attempt is persisted before comparing. The attempt
        that uses up the budget is still compared; if it is wrong the
        credential is locked right away.
        """
        if self.is_expired():
            return OtpVerification(False, 'OTP has expired. Please generate a new OTP.', self.EXPIRED, self.remaining_attempts)

        if self.is_used:
            return OtpVerification(False, 'OTP has already been used.', self.state, 0)

        if self.attempts >= self.max_attempts:
            self.mark_as_used(self.LOCKED)
            return OtpVerification(False, 'Maximum attempts exceeded. Please generate a new OTP.', self.LOCKED, 0)

        self.attempts += 1
        self.save(update_fields=['attempts', 'updated_at'])

        if self.check_code(code):
            self.mark_as_used(self.VERIFIED)
            return OtpVerification(True, 'OTP verified successfully', self.USED, self.remaining_attempts)

        if self.remaining_attempts == 0:
            self.mark_as_used(self.LOCKED)
            return OtpVerification(False, 'Maximum OTP attempts exceeded. Please generate a new OTP.', self.LOCKED, 0)

        return OtpVerification(
            False,
            f"Invalid OTP. {self.remaining_attempts} attempts remaining.",
            self.ACTIVE,
            self.remaining_attempts,
        )


# ========================================
# BATCH PAYMENT LEDGER
# ========================================

class BatchPayment(models.Model):
    """
    Immutable record of a settled batch, kept for audit and history.
    """

    utr_number = models.CharField(max_length=100, help_text="Operator supplied bank reference")
    user = models.ForeignKey(User, on_delete=models.PROTECT, related_name='batch_payments')
    expense_ids = models.JSONField(default=list, help_text="Expenses settled in this batch")
    total_amount = models.DecimalField(max_digits=14, decimal_places=2)
    expense_count = models.PositiveIntegerField()
    payment_remarks = models.TextField(blank=True, null=True)
    payment_method = models.CharField(max_length=50, default='manual_bank_transfer')
    otp_id = models.UUIDField(null=True, blank=True, help_text="Batch OTP that authorised this payment")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'batch_payments'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='batch_payments_user_idx'),
        ]

    def __str__(self):
        return f"Batch {self.utr_number}: {self.expense_count} expenses, {self.total_amount}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Batch payment records are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Batch payment records cannot be deleted.")
