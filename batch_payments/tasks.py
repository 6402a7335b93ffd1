"""
Celery tasks for the batch payment workflow.

Notification fan-out and realtime publishing must not hold up the API
response. Work is queued only once the surrounding database transaction has
committed and receives plain, JSON-serialisable data. Each task resolves
its senders and publisher from ``BATCH_PAYMENTS`` inside the worker and
logs failures instead of raising them.
"""
import logging

from celery import shared_task
from django.db import transaction

from .conf import get_collaborator
from .notifications import send_payment_processed_notifications
from .realtime import broadcast_batch_settlement, safe_publish

logger = logging.getLogger(__name__)


def enqueue_on_commit(task, *args):
    """Queue ``task.delay(*args)`` after the current transaction commits."""
    transaction.on_commit(lambda: task.delay(*args))


@shared_task(ignore_result=True)
def deliver_payment_notifications(notifications):
    try:
        return send_payment_processed_notifications(
            notifications,
            get_collaborator('EMAIL_SENDER'),
            get_collaborator('SMS_SENDER'),
        )
    except Exception:
        logger.exception(f"Payment notification task failed for {len(notifications)} expenses")


@shared_task(ignore_result=True)
def broadcast_settlement(payments, summary):
    try:
        broadcast_batch_settlement(get_collaborator('EVENT_PUBLISHER'), payments, summary)
    except Exception:
        logger.exception(f"Broadcast task failed for batch {summary.get('utr_number')}")


@shared_task(ignore_result=True)
def publish_event(channel, event, payload):
    return safe_publish(get_collaborator('EVENT_PUBLISHER'), channel, event, payload)
