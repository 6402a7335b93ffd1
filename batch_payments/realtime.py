"""
Realtime events for connected clients.

Events are addressed to a channel: ``user-<id>`` for one user,
``role-<role>`` for everyone holding a role, and ``broadcast`` for all.
Delivery is at-most-once; nothing is acknowledged or retried.
"""
import logging
import uuid

from django.core.cache import caches
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .conf import get_setting
from .exceptions import BroadcastError

logger = logging.getLogger(__name__)

BROADCAST_CHANNEL = 'broadcast'
PAYMENT_ROLE_CHANNELS = ('role-finance', 'role-l3_approver')


class EventPublisher:
    """
    Interface of realtime publishers.
    """

    def publish(self, channel, event, payload):
        raise NotImplementedError

    def fetch(self, channels, since=None):
        return []


class CacheEventPublisher(EventPublisher):
    """
    Keeps a short, time limited buffer of events per channel in the Django
    cache. Clients poll the buffer through the events endpoint.

    Every event gets its own key, numbered from a per-channel counter that
    is bumped with ``cache.incr``. Concurrent publishers therefore never
    overwrite each other's events.
    """
    key_prefix = 'realtime'

    def __init__(self, cache_alias='default'):
        self.cache_alias = cache_alias

    @property
    def cache(self):
        return caches[self.cache_alias]

    def _sequence_key(self, channel):
        return f"{self.key_prefix}:{channel}:seq"

    def _event_key(self, channel, sequence):
        return f"{self.key_prefix}:{channel}:{sequence}"

    def _next_sequence(self, channel):
        key = self._sequence_key(channel)
        self.cache.add(key, 0, timeout=None)
        return self.cache.incr(key)

    def publish(self, channel, event, payload):
        message = {
            'id': uuid.uuid4().hex,
            'channel': channel,
            'event': event,
            'payload': payload,
            'timestamp': timezone.now().isoformat(),
        }
        try:
            sequence = self._next_sequence(channel)
            self.cache.set(
                self._event_key(channel, sequence),
                message,
                timeout=get_setting('EVENT_TTL_SECONDS'),
            )
        except Exception as exc:
            raise BroadcastError(f"Could not publish {event} to {channel}: {exc}") from exc
        return message

    def _channel_events(self, channel):
        last = self.cache.get(self._sequence_key(channel))
        if not last:
            return []
        first = max(1, last - get_setting('EVENT_BUFFER_SIZE') + 1)
        keys = [self._event_key(channel, sequence) for sequence in range(first, last + 1)]
        found = self.cache.get_many(keys)
        return [found[key] for key in keys if key in found]

    def fetch(self, channels, since=None):
        events = []
        for channel in channels:
            events.extend(self._channel_events(channel))
        if since is not None:
            events = [e for e in events if parse_datetime(e['timestamp']) > since]
        return sorted(events, key=lambda e: e['timestamp'])


def safe_publish(publisher, channel, event, payload):
    """Publish one event; failures are logged and swallowed."""
    try:
        publisher.publish(channel, event, payload)
        return True
    except BroadcastError as e:
        logger.warning(str(e))
    except Exception:
        logger.exception(f"Failed to publish {event} to {channel}")
    return False


def broadcast_batch_settlement(publisher, payments, summary):
    """
    Publish the events of a settled batch, in order: one event per paid
    expense to its submitter, the batch summary to finance and L3
    approvers, then a dashboard refresh to everyone.
    """
    for payment in payments:
        safe_publish(publisher, f"user-{payment['submitter_id']}", 'expense_payment_processed', {
            'expense_number': payment['expense_number'],
            'amount': payment['amount'],
            'payment_date': payment['payment_date'],
            'processed_by': summary['processed_by'],
            'batch_processing': True,
        })

    for channel in PAYMENT_ROLE_CHANNELS:
        safe_publish(publisher, channel, 'batch-payment-completed', summary)

    safe_publish(publisher, BROADCAST_CHANNEL, 'dashboard-update', {
        'type': 'batch_payment',
        'count': summary['processed_count'],
        'timestamp': summary['timestamp'],
    })
