from decimal import Decimal

from django.db import models
from django.db.models import F
from django.utils import timezone
from django.contrib.auth import get_user_model

User = get_user_model()


# ========================================
# SITE MODEL
# ========================================

class Site(models.Model):
    """
    Work site that expenses are booked against.
    Keeps running totals of submitted and paid expenses.
    """
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, unique=True)
    is_active = models.BooleanField(default=True)

    # Statistics
    total_expenses = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    expense_count = models.PositiveIntegerField(default=0)
    total_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    paid_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'sites'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.code})"

    def update_statistics(self, amount, is_payment=False):
        """
        Add an amount to the site totals.
        Payments move the paid counters, everything else the submission counters.
        """
        if is_payment:
            Site.objects.filter(pk=self.pk).update(
                total_paid=F('total_paid') + amount,
                paid_count=F('paid_count') + 1,
            )
        else:
            Site.objects.filter(pk=self.pk).update(
                total_expenses=F('total_expenses') + amount,
                expense_count=F('expense_count') + 1,
            )
        self.refresh_from_db(fields=['total_expenses', 'expense_count', 'total_paid', 'paid_count'])


# ========================================
# EXPENSE MODEL
# ========================================

class Expense(models.Model):
    """
    Expense claim raised by an employee and reviewed along the approval chain.
    """

    SUBMITTED = 'submitted'
    APPROVED_L1 = 'approved_l1'
    APPROVED_L2 = 'approved_l2'
    APPROVED_L3 = 'approved_l3'
    APPROVED = 'approved'
    APPROVED_FINANCE = 'approved_finance'
    REJECTED = 'rejected'
    PAYMENT_PROCESSED = 'payment_processed'

    STATUS_CHOICES = [
        (SUBMITTED, 'Submitted'),
        (APPROVED_L1, 'Approved (L1)'),
        (APPROVED_L2, 'Approved (L2)'),
        (APPROVED_L3, 'Approved (L3)'),
        (APPROVED, 'Approved'),
        (APPROVED_FINANCE, 'Approved (Finance)'),
        (REJECTED, 'Rejected'),
        (PAYMENT_PROCESSED, 'Payment Processed'),
    ]

    NUMBER_PREFIX = 'EXP'

    expense_number = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        editable=False,
        help_text="Human readable number, assigned on creation"
    )
    title = models.CharField(max_length=200, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=SUBMITTED)

    submitted_by = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='expenses'
    )
    site = models.ForeignKey(
        Site,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='expenses'
    )

    # Payment
    payment_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    payment_date = models.DateTimeField(null=True, blank=True)
    payment_processed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='processed_payments'
    )
    payment_details = models.JSONField(
        null=True,
        blank=True,
        help_text="Settlement reference, method and batch flag"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'expenses'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='expenses_status_idx'),
            models.Index(fields=['submitted_by', '-created_at'], name='expenses_submitter_idx'),
        ]

    def __str__(self):
        return f"{self.expense_number} - {self.amount}"

    def save(self, *args, **kwargs):
        creating = self._state.adding
        super().save(*args, **kwargs)
        if creating and not self.expense_number:
            self.expense_number = f"{self.NUMBER_PREFIX}-{self.pk:06d}"
            Expense.objects.filter(pk=self.pk).update(expense_number=self.expense_number)

    def mark_payment_processed(self, processed_by, reference, payment_method, remarks=None, extra_details=None):
        """
        Settle the full expense amount and append an internal comment
        when remarks are given. Partial payments are not supported.
        """
        now = timezone.now()
        self.status = self.PAYMENT_PROCESSED
        self.payment_amount = self.amount
        self.payment_date = now
        self.payment_processed_by = processed_by
        self.payment_details = {
            'utr_number': reference,
            'payment_method': payment_method,
            'processed_at': now.isoformat(),
            'batch_payment': True,
            **(extra_details or {}),
        }
        self.save()

        if remarks:
            ExpenseComment.objects.create(
                expense=self,
                user=processed_by,
                text=f"Batch Payment (UTR: {reference}): {remarks}",
                is_internal=True,
            )
        return self


class ExpenseComment(models.Model):
    """
    Append-only comment log of an expense.
    """
    expense = models.ForeignKey(Expense, on_delete=models.CASCADE, related_name='comments')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='expense_comments')
    text = models.TextField()
    is_internal = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'expense_comments'
        ordering = ['created_at']

    def __str__(self):
        return f"Comment on {self.expense.expense_number} by {self.user}"


# ========================================
# APPROVAL HISTORY MODEL
# ========================================

class ApprovalHistory(models.Model):
    """
    Audit trail of every action taken on an expense, consumed by reporting.
    """

    SUBMITTED = 'submitted'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    PAYMENT_PROCESSED = 'payment_processed'

    ACTION_CHOICES = [
        (SUBMITTED, 'Submitted'),
        (APPROVED, 'Approved'),
        (REJECTED, 'Rejected'),
        (PAYMENT_PROCESSED, 'Payment Processed'),
    ]

    FINANCE_LEVEL = 4

    expense = models.ForeignKey(Expense, on_delete=models.CASCADE, related_name='approval_history')
    approver = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='approval_actions')
    action = models.CharField(max_length=30, choices=ACTION_CHOICES)
    level = models.PositiveSmallIntegerField(help_text="1-3 approvers, 4 finance")
    comments = models.TextField(blank=True)
    payment_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    payment_date = models.DateTimeField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'approval_history'
        ordering = ['-created_at']
        verbose_name_plural = 'approval history'
        indexes = [
            models.Index(fields=['expense', '-created_at'], name='approval_hist_expense_idx'),
            models.Index(fields=['action'], name='approval_hist_action_idx'),
        ]

    def __str__(self):
        return f"{self.action} on {self.expense.expense_number} by {self.approver}"
