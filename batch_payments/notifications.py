"""
Email and SMS delivery for the batch payment workflow.

Senders follow a ``send(payload) -> bool`` contract and are built once per
process (see ``conf.get_collaborator``). They report failure by returning
False; the fan-out functions log every failed channel and keep going.
"""
import logging

import requests
from django.conf import settings
from django.core.mail import EmailMessage
from django.template.loader import render_to_string

from .conf import get_setting
from .exceptions import NotificationError

logger = logging.getLogger(__name__)


class TemplateEmailSender:
    """
    Renders an HTML template and sends it through Django's mail backend.

    payload: ``{'to', 'subject', 'template', 'context'}``
    """

    def send(self, payload):
        try:
            message = render_to_string(payload['template'], payload.get('context', {}))
            email = EmailMessage(payload['subject'], message, to=[payload['to']])
            email.content_subtype = "html"
            email.send(fail_silently=False)
            logger.info(f"Email '{payload['subject']}' sent to {payload['to']}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {payload.get('to')}: {str(e)}")
            return False


class GatewaySmsSender:
    """
    Posts SMS messages to an HTTP gateway.

    payload: ``{'to', 'message'}``
    """

    def __init__(self, url=None, api_key=None, sender_id=None, timeout=10):
        self.url = url if url is not None else settings.SMS_GATEWAY_URL
        self.api_key = api_key if api_key is not None else settings.SMS_GATEWAY_API_KEY
        self.sender_id = sender_id or settings.SMS_SENDER_ID
        self.timeout = timeout

    def send(self, payload):
        if not self.url:
            logger.info(f"SMS gateway not configured, SMS to {payload['to']} skipped")
            return False
        try:
            response = requests.post(
                self.url,
                json={
                    'to': payload['to'],
                    'message': payload['message'],
                    'sender': self.sender_id,
                },
                headers={'Authorization': f'Bearer {self.api_key}'},
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.info(f"SMS sent to {payload['to']}")
            return True
        except requests.RequestException as e:
            logger.error(f"Failed to send SMS to {payload['to']}: {str(e)}")
            return False


def _deliver(channel, sender, payload):
    if not sender.send(payload):
        raise NotificationError(f"{channel} delivery to {payload['to']} failed")


# ========================================
# OTP delivery
# ========================================

def send_batch_otp(user, code, expense_count, total_amount, email_sender, sms_sender):
    """
    Send a freshly issued code to the operator by email and, when a phone
    is on file, SMS. Returns the channels that were attempted.
    """
    validity = f"{get_setting('OTP_VALIDITY_MINUTES')} minutes"
    channels = ['email']

    try:
        _deliver('email', email_sender, {
            'to': user.email,
            'subject': f"Batch Payment OTP - {expense_count} Expenses",
            'template': 'emails/batch_payment_otp.html',
            'context': {
                'name': user.get_full_name(),
                'otp': code,
                'expense_count': expense_count,
                'total_amount': total_amount,
                'validity': validity,
            },
        })
    except NotificationError as e:
        logger.warning(f"Batch OTP email not delivered: {e}")

    if user.phone:
        channels.append('phone')
        try:
            _deliver('sms', sms_sender, {
                'to': user.phone,
                'message': (
                    f"Your batch payment OTP is {code} for {expense_count} expenses. "
                    f"Valid for {validity}. Do not share it with anyone."
                ),
            })
        except NotificationError as e:
            logger.warning(f"Batch OTP SMS not delivered: {e}")

    return channels


# ========================================
# Payment processed fan-out
# ========================================

def send_payment_processed_notifications(notifications, email_sender, sms_sender):
    """
    Notify each submitter that their expense was paid.

    ``notifications`` is a list of plain dicts with ``email``, ``phone``,
    ``expense_number``, ``amount`` and ``site_name``. A failed channel
    never stops the other channel or the next submitter.
    """
    delivered = {'email': 0, 'sms': 0}

    for notification in notifications:
        try:
            _deliver('email', email_sender, {
                'to': notification['email'],
                'subject': f"Payment Processed - {notification['expense_number']}",
                'template': 'emails/payment_processed.html',
                'context': {
                    'expense_number': notification['expense_number'],
                    'amount': notification['amount'],
                    'site_name': notification.get('site_name'),
                },
            })
            delivered['email'] += 1
        except NotificationError as e:
            logger.warning(str(e))
        except Exception:
            logger.exception(f"Failed to send payment email for {notification['expense_number']}")

        if not notification.get('phone'):
            continue

        try:
            _deliver('sms', sms_sender, {
                'to': notification['phone'],
                'message': (
                    f"Payment of INR {notification['amount']} for expense "
                    f"{notification['expense_number']} has been processed."
                ),
            })
            delivered['sms'] += 1
        except NotificationError as e:
            logger.warning(str(e))
        except Exception:
            logger.exception(f"Failed to send payment SMS for {notification['expense_number']}")

    logger.info(
        f"Payment notifications sent: {delivered['email']} email, {delivered['sms']} sms "
        f"for {len(notifications)} expenses"
    )
    return delivered
