"""
Batch settlement of approved expenses.

The engine loads the requested expenses, settles every eligible one on its
own (a failing record never aborts the batch), writes the ledger entry for
the successful subset and queues notification and realtime work as Celery
tasks once the transaction commits.
"""
import ipaddress
import logging
from collections import namedtuple
from decimal import Decimal
from functools import partial

from django.db import transaction
from django.utils import timezone

from expenses.models import Expense, ApprovalHistory
from .conf import get_setting
from .exceptions import NotFoundError, PerRecordError, ValidationError
from .models import BatchPayment
from .tasks import broadcast_settlement, deliver_payment_notifications, enqueue_on_commit

logger = logging.getLogger(__name__)

DIRECT_TRANSFER = 'manual_bank_transfer'
OTP_VERIFIED_TRANSFER = 'otp_verified_transfer'


def clean_ip(value):
    """Normalised IP address, or None when ``value`` is not one."""
    try:
        return str(ipaddress.ip_address((value or '').strip()))
    except ValueError:
        return None


class RequestMeta(namedtuple('RequestMeta', ['ip_address', 'user_agent'])):
    """Provenance of the request that triggered a settlement."""

    @classmethod
    def from_request(cls, request):
        forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
        ip_address = clean_ip(forwarded.split(',')[0]) or clean_ip(request.META.get('REMOTE_ADDR'))
        return cls(ip_address, request.META.get('HTTP_USER_AGENT', '')[:500])


EMPTY_REQUEST_META = RequestMeta(None, '')


def normalize_expense_ids(expense_ids):
    """
    Validate a requested expense set and return its ids without duplicates,
    keeping the first-seen order.
    """
    if not isinstance(expense_ids, (list, tuple)) or not expense_ids:
        raise ValidationError('Please provide at least one expense ID')

    ids = []
    for value in expense_ids:
        if isinstance(value, bool):
            raise ValidationError(f"Invalid expense ID: {value}")
        try:
            pk = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid expense ID: {value}")
        if pk < 1:
            raise ValidationError(f"Invalid expense ID: {value}")
        if pk not in ids:
            ids.append(pk)
    return ids


def fold_settlement(expenses, settle_one):
    """
    Apply ``settle_one`` to every expense in order and split the outcome
    into the settled expenses and the failure records.
    """
    settled, failed = [], []
    for expense in expenses:
        try:
            settled.append(settle_one(expense))
        except Exception as exc:
            error = PerRecordError(expense, exc)
            logger.error(f"Failed to process expense {expense.expense_number}: {error.message}", exc_info=True)
            failed.append(error.as_failure())
    return settled, failed


class SettlementResult:
    """
    Outcome of one settlement call.

    ``skipped`` lists requested ids that were not eligible when loaded;
    they are reported but are part of neither ``processed`` nor ``failed``.
    """

    def __init__(self, settled, failed, skipped, reference, ledger_entry=None, statistics_errors=None):
        self.settled = settled
        self.failed = failed
        self.skipped = skipped
        self.reference = reference
        self.ledger_entry = ledger_entry
        # settled records whose site totals could not be updated
        self.statistics_errors = statistics_errors or []

    @property
    def processed(self):
        return [
            {
                'expense_id': expense.pk,
                'expense_number': expense.expense_number,
                'amount': expense.amount,
                'submitter_name': expense.submitted_by.get_full_name(),
            }
            for expense in self.settled
        ]

    @property
    def total_processed(self):
        return len(self.settled)

    @property
    def total_failed(self):
        return len(self.failed)

    @property
    def total_amount(self):
        return sum((expense.amount for expense in self.settled), Decimal('0.00'))

    @property
    def message(self):
        attempted = self.total_processed + self.total_failed
        return f"Successfully processed {self.total_processed} out of {attempted} expenses"

    def as_dict(self):
        return {
            'processed': self.processed,
            'failed': self.failed,
            'skipped': self.skipped,
            'total_processed': self.total_processed,
            'total_failed': self.total_failed,
            'total_amount': self.total_amount,
            'reference': self.reference,
            'batch_payment_id': self.ledger_entry.pk if self.ledger_entry else None,
            'statistics_errors': self.statistics_errors,
        }


class BatchSettlementEngine:
    """
    Settles approved expenses for one operator.

    The operator's role is checked by the API layer before the engine is
    used. Notifications and the realtime broadcast run as Celery tasks,
    which use the senders and publisher configured in ``BATCH_PAYMENTS``.
    """

    def __init__(self, actor, request_meta=None):
        self.actor = actor
        self.request_meta = request_meta or EMPTY_REQUEST_META

    # -------------------------------
    # Loading
    # -------------------------------
    def load(self, expense_ids):
        """
        Fetch the requested expenses. Returns ``(eligible, skipped)`` where
        skipped holds a reason for every id that is unknown or not in an
        eligible status.
        """
        eligible_statuses = get_setting('ELIGIBLE_STATUSES')
        records = {
            expense.pk: expense
            for expense in Expense.objects.select_related('submitted_by', 'site').filter(pk__in=expense_ids)
        }

        eligible, skipped = [], []
        for pk in expense_ids:
            expense = records.get(pk)
            if expense is None:
                skipped.append({'expense_id': pk, 'expense_number': None, 'reason': 'Expense not found'})
            elif expense.status not in eligible_statuses:
                skipped.append({
                    'expense_id': pk,
                    'expense_number': expense.expense_number,
                    'reason': f"Invalid status: {expense.status}",
                })
            else:
                eligible.append(expense)
        return eligible, skipped

    # -------------------------------
    # Settlement
    # -------------------------------
    def settle(self, expense_ids, reference, remarks=None, payment_method=DIRECT_TRANSFER, otp=None):
        ids = normalize_expense_ids(expense_ids)
        reference = str(reference or '').strip()
        if not reference:
            raise ValidationError('UTR number is required')
        remarks = (remarks or '').strip() or None

        eligible, skipped = self.load(ids)
        if not eligible:
            raise NotFoundError('No eligible expenses found for payment processing')

        settle_one = partial(
            self._settle_one,
            reference=reference,
            remarks=remarks,
            payment_method=payment_method,
            extra_details={'otp_id': str(otp.pk)} if otp else None,
        )
        settled, failed = fold_settlement(eligible, settle_one)
        statistics_errors = self._update_site_statistics(settled)

        ledger_entry = None
        if settled:
            ledger_entry = BatchPayment.objects.create(
                utr_number=reference,
                user=self.actor,
                expense_ids=[expense.pk for expense in settled],
                total_amount=sum((expense.amount for expense in settled), Decimal('0.00')),
                expense_count=len(settled),
                payment_remarks=remarks,
                payment_method=payment_method,
                otp_id=otp.pk if otp else None,
            )

        result = SettlementResult(settled, failed, skipped, reference, ledger_entry, statistics_errors)
        logger.info(
            f"Batch payment {reference} by {self.actor.email}: "
            f"{result.total_processed} processed, {result.total_failed} failed, "
            f"{len(skipped)} skipped, total {result.total_amount}"
        )
        if statistics_errors:
            logger.warning(
                f"Batch payment {reference}: site statistics not updated for {len(statistics_errors)} expenses"
            )

        self._schedule_side_effects(result)
        return result

    def _settle_one(self, expense, reference, remarks, payment_method, extra_details=None):
        with transaction.atomic():
            expense.mark_payment_processed(
                self.actor,
                reference,
                payment_method,
                remarks=remarks,
                extra_details=extra_details,
            )
            ApprovalHistory.objects.create(
                expense=expense,
                approver=self.actor,
                action=ApprovalHistory.PAYMENT_PROCESSED,
                level=ApprovalHistory.FINANCE_LEVEL,
                comments=f"Batch payment via bank transfer. UTR: {reference}",
                payment_amount=expense.amount,
                payment_date=expense.payment_date,
                ip_address=self.request_meta.ip_address,
                user_agent=self.request_meta.user_agent,
            )
        return expense

    def _update_site_statistics(self, settled):
        """
        Add each settled expense to its site's payment totals. Runs after the
        record has committed; a failure is logged and reported but never
        undoes the payment.
        """
        errors = []
        for expense in settled:
            if not expense.site_id:
                continue
            try:
                with transaction.atomic():
                    expense.site.update_statistics(expense.amount, is_payment=True)
            except Exception as exc:
                logger.exception(f"Site statistics update failed for expense {expense.expense_number}")
                errors.append(PerRecordError(expense, exc).as_failure())
        return errors

    # -------------------------------
    # Deferred work
    # -------------------------------
    def _schedule_side_effects(self, result):
        notifications = [
            {
                'email': expense.submitted_by.email,
                'phone': expense.submitted_by.phone,
                'expense_number': expense.expense_number,
                'amount': str(expense.amount),
                'site_name': expense.site.name if expense.site_id else None,
            }
            for expense in result.settled
        ]
        payments = [
            {
                'submitter_id': expense.submitted_by_id,
                'expense_number': expense.expense_number,
                'amount': str(expense.amount),
                'payment_date': expense.payment_date.isoformat(),
            }
            for expense in result.settled
        ]
        summary = {
            'processed_count': result.total_processed,
            'total_amount': str(result.total_amount),
            'failed_count': result.total_failed,
            'processed_by': self.actor.get_full_name(),
            'utr_number': result.reference,
            'timestamp': timezone.now().isoformat(),
        }

        if notifications:
            enqueue_on_commit(deliver_payment_notifications, notifications)
        enqueue_on_commit(broadcast_settlement, payments, summary)
