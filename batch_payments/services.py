"""
Batch payment services - every state change of the workflow goes through here.

Two settlement flows exist:
- direct: the operator asserts a UTR reference and the batch settles at once
- OTP: a code bound to the exact expense set is issued, then verified; the
  verified credential's own expense set is settled
"""
import logging
from collections import namedtuple
from decimal import Decimal

from django.db import transaction

from .conf import get_collaborator, get_setting
from .exceptions import AuthorizationError, CancellationError, NotFoundError, OtpStateError, ValidationError
from .models import BatchOTP
from .notifications import send_batch_otp
from .tasks import enqueue_on_commit, publish_event
from .settlement_engine import (
    BatchSettlementEngine,
    OTP_VERIFIED_TRANSFER,
    EMPTY_REQUEST_META,
    normalize_expense_ids,
)

logger = logging.getLogger(__name__)

IssuedOtp = namedtuple('IssuedOtp', ['otp', 'code', 'channels'])


# ========================================
# Direct (UTR) settlement
# ========================================

def settle_direct(actor, expense_ids, reference, remarks=None, request_meta=None):
    """
    Settle every eligible expense of ``expense_ids`` against an operator
    supplied reference. Ineligible ids are reported, not settled.
    """
    engine = BatchSettlementEngine(actor, request_meta=request_meta)
    return engine.settle(expense_ids, reference, remarks=remarks)


# ========================================
# OTP credential store
# ========================================

def issue_batch_otp(actor, expense_ids, request_meta=None):
    """
    Issue a code for settling exactly ``expense_ids``.

    Every requested expense must be eligible. The plaintext code is returned
    once and delivered to the operator; only its hash is stored.
    """
    request_meta = request_meta or EMPTY_REQUEST_META
    ids = normalize_expense_ids(expense_ids)

    eligible, skipped = BatchSettlementEngine(actor, request_meta=request_meta).load(ids)
    if not eligible:
        raise NotFoundError('No eligible expenses found for payment processing')
    if skipped:
        raise ValidationError(
            f"Only {len(eligible)} out of {len(ids)} expenses are eligible for payment"
        )

    total_amount = sum((expense.amount for expense in eligible), Decimal('0.00'))
    code = BatchOTP.generate_code()

    with transaction.atomic():
        otp = BatchOTP(
            user=actor,
            total_amount=total_amount,
            expense_count=len(eligible),
            ip_address=request_meta.ip_address,
            user_agent=request_meta.user_agent,
        )
        otp.set_code(code)
        otp.save()
        otp.expenses.set(eligible)

    logger.info(
        f"Batch OTP generated: otp_id={otp.pk} user={actor.email} "
        f"expense_count={otp.expense_count} total_amount={total_amount}"
    )

    # the operator waits on this code, so it is delivered in the request
    channels = send_batch_otp(
        actor, code, otp.expense_count, total_amount,
        get_collaborator('EMAIL_SENDER'), get_collaborator('SMS_SENDER'),
    )

    enqueue_on_commit(publish_event, actor.user_channel, 'batch-otp-generated', {
        'expense_count': otp.expense_count,
        'total_amount': str(total_amount),
        'expires_at': otp.expires_at.isoformat(),
    })
    return IssuedOtp(otp, code, channels)


def _get_owned_otp(actor, otp_id, not_found_message):
    try:
        otp = BatchOTP.objects.get(pk=otp_id)
    except (BatchOTP.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(not_found_message)
    if otp.user_id != actor.pk:
        raise AuthorizationError('This OTP does not belong to you')
    return otp


def verify_batch_otp(actor, otp_id, code):
    """
    Spend one attempt of the credential on ``code``. Raises OtpStateError
    for expired, used, locked or mismatched codes.
    """
    otp = _get_owned_otp(actor, otp_id, 'Invalid OTP request')
    verification = otp.verify(code)
    if not verification.success:
        logger.warning(
            f"Batch OTP {otp.pk} rejected for {actor.email}: state={verification.state} "
            f"attempts={otp.attempts}/{otp.max_attempts}"
        )
        raise OtpStateError(verification.message, verification.state, verification.remaining_attempts)
    return otp


def cancel_batch_otp(actor, otp_id):
    """Invalidate an unused, unexpired credential without settling anything."""
    otp = _get_owned_otp(actor, otp_id, 'OTP not found')
    if otp.is_used:
        raise CancellationError('Cannot cancel an already used OTP')
    if otp.is_expired():
        raise CancellationError('Cannot cancel an expired OTP')
    otp.mark_as_used(BatchOTP.CANCELLED)
    logger.info(f"Batch OTP {otp.pk} cancelled by {actor.email}")
    return otp


# ========================================
# OTP gated settlement
# ========================================

def verify_and_settle(actor, otp_id, code, remarks=None, reference=None, request_meta=None):
    """
    Verify the code and settle the expense set the credential was issued
    for. The credential stays used however many expenses succeed.
    """
    otp = verify_batch_otp(actor, otp_id, code)

    expense_ids = list(otp.expenses.order_by('pk').values_list('pk', flat=True))
    if not expense_ids:
        raise NotFoundError('No expenses found for processing')

    reference = str(reference or '').strip() or f"OTP-{otp.pk.hex[:12].upper()}"
    engine = BatchSettlementEngine(actor, request_meta=request_meta)
    return engine.settle(
        expense_ids,
        reference,
        remarks=remarks,
        payment_method=OTP_VERIFIED_TRANSFER,
        otp=otp,
    )


def purge_expired_otps():
    return BatchOTP.objects.clean_expired()


def otp_validity_label():
    return f"{get_setting('OTP_VALIDITY_MINUTES')} minutes"


def get_event_publisher():
    return get_collaborator('EVENT_PUBLISHER')

