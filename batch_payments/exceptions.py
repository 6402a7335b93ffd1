"""
Errors raised by the batch payment services.

Every error that aborts a request carries the HTTP status the API answers
with. Per-record, notification and broadcast errors never leave the
settlement engine; they are recorded or logged where they happen.
"""
from rest_framework import status


class BatchPaymentError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Batch payment request failed.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BatchPaymentError):
    default_message = 'Invalid batch payment request.'


class NotFoundError(BatchPaymentError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'No eligible expenses found for payment processing'


class AuthorizationError(BatchPaymentError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'You are not allowed to perform this action.'


class OtpStateError(BatchPaymentError):
    """Expired, used, locked or mismatched OTP."""
    default_message = 'Invalid OTP.'

    def __init__(self, message=None, state=None, remaining_attempts=None):
        super().__init__(message)
        self.state = state
        self.remaining_attempts = remaining_attempts


class CancellationError(BatchPaymentError):
    default_message = 'Cannot cancel an already used OTP'


class PerRecordError(BatchPaymentError):
    """A single expense failed inside a batch; the batch carries on."""

    def __init__(self, expense, cause):
        super().__init__(str(cause) or cause.__class__.__name__)
        self.expense = expense
        self.cause = cause

    def as_failure(self):
        return {
            'expense_id': self.expense.pk,
            'expense_number': self.expense.expense_number,
            'reason': self.message,
        }


class NotificationError(BatchPaymentError):
    default_message = 'Notification delivery failed.'


class BroadcastError(BatchPaymentError):
    default_message = 'Realtime event could not be published.'
