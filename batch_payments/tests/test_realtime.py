import pytest
from datetime import timedelta
from unittest.mock import MagicMock
from django.core.cache import caches
from django.utils import timezone

from batch_payments.exceptions import BroadcastError
from batch_payments.realtime import (
    CacheEventPublisher,
    broadcast_batch_settlement,
    safe_publish,
)
from batch_payments.tests.fakes import FakePublisher


class InterleavingCache:
    """Proxies a cache and runs ``interleave`` once, right after the first call."""

    def __init__(self, cache, interleave):
        self._cache = cache
        self._interleave = interleave

    def __getattr__(self, name):
        attr = getattr(self._cache, name)
        if not callable(attr):
            return attr

        def call(*args, **kwargs):
            result = attr(*args, **kwargs)
            interleave, self._interleave = self._interleave, None
            if interleave:
                interleave()
            return result
        return call


class InterleavingPublisher(CacheEventPublisher):
    """Lets another publisher write between this one's cache calls."""

    def __init__(self, interleave):
        super().__init__()
        self._cache = InterleavingCache(caches[self.cache_alias], interleave)

    @property
    def cache(self):
        return self._cache


class TestCacheEventPublisher:

    def test_publish_and_fetch(self):
        publisher = CacheEventPublisher()
        publisher.publish("user-1", "expense_payment_processed", {"amount": "10.00"})
        publisher.publish("broadcast", "dashboard-update", {"count": 1})
        publisher.publish("user-2", "expense_payment_processed", {"amount": "20.00"})

        events = publisher.fetch(["user-1", "broadcast"])
        assert [(e["channel"], e["event"]) for e in events] == [
            ("user-1", "expense_payment_processed"),
            ("broadcast", "dashboard-update"),
        ]
        assert events[0]["payload"] == {"amount": "10.00"}

    def test_fetch_since(self):
        publisher = CacheEventPublisher()
        publisher.publish("user-1", "old", {})
        cutoff = timezone.now()
        publisher.publish("user-1", "new", {})

        events = publisher.fetch(["user-1"], since=cutoff)
        assert [e["event"] for e in events] == ["new"]
        assert publisher.fetch(["user-1"], since=cutoff + timedelta(minutes=1)) == []

    def test_buffer_is_trimmed(self, settings):
        settings.BATCH_PAYMENTS = {"EVENT_BUFFER_SIZE": 2}
        publisher = CacheEventPublisher()
        for n in range(4):
            publisher.publish("user-1", f"event-{n}", {})

        assert [e["event"] for e in publisher.fetch(["user-1"])] == ["event-2", "event-3"]

    def test_interleaved_publishers_keep_every_event(self):
        other = CacheEventPublisher()
        publisher = InterleavingPublisher(lambda: other.publish("user-1", "from-other", {}))

        publisher.publish("user-1", "from-first", {})

        events = CacheEventPublisher().fetch(["user-1"])
        assert sorted(e["event"] for e in events) == ["from-first", "from-other"]

    def test_expired_events_are_dropped(self):
        publisher = CacheEventPublisher()
        publisher.publish("user-1", "gone", {})
        publisher.publish("user-1", "kept", {})
        caches["default"].delete("realtime:user-1:1")

        assert [e["event"] for e in publisher.fetch(["user-1"])] == ["kept"]

    def test_cache_failure_raises_broadcast_error(self, monkeypatch):
        publisher = CacheEventPublisher()
        broken = MagicMock()
        broken.incr.side_effect = ConnectionError("cache down")
        monkeypatch.setattr(CacheEventPublisher, "cache", broken)

        with pytest.raises(BroadcastError):
            publisher.publish("user-1", "event", {})


class TestSafePublish:

    def test_swallows_errors(self):
        publisher = MagicMock()
        publisher.publish.side_effect = BroadcastError("nope")
        assert safe_publish(publisher, "user-1", "event", {}) is False

        publisher.publish.side_effect = RuntimeError("nope")
        assert safe_publish(publisher, "user-1", "event", {}) is False

    def test_returns_true_on_success(self):
        assert safe_publish(FakePublisher(), "user-1", "event", {}) is True


class TestBroadcastBatchSettlement:
    summary = {
        "processed_count": 2,
        "total_amount": "300.00",
        "failed_count": 0,
        "processed_by": "Fiona Nance",
        "utr_number": "UTR1",
        "timestamp": "2026-01-01T00:00:00+00:00",
    }
    payments = [
        {"submitter_id": 7, "expense_number": "EXP-000001", "amount": "100.00",
         "payment_date": "2026-01-01T00:00:00+00:00"},
        {"submitter_id": 8, "expense_number": "EXP-000002", "amount": "200.00",
         "payment_date": "2026-01-01T00:00:00+00:00"},
    ]

    def test_event_order(self):
        publisher = FakePublisher()
        broadcast_batch_settlement(publisher, self.payments, self.summary)

        assert [(c, e) for c, e, _ in publisher.events] == [
            ("user-7", "expense_payment_processed"),
            ("user-8", "expense_payment_processed"),
            ("role-finance", "batch-payment-completed"),
            ("role-l3_approver", "batch-payment-completed"),
            ("broadcast", "dashboard-update"),
        ]
        assert publisher.events[0][2]["batch_processing"] is True
        assert publisher.events[-1][2] == {
            "type": "batch_payment", "count": 2, "timestamp": self.summary["timestamp"],
        }

    def test_failed_publish_does_not_stop_the_rest(self):
        publisher = FakePublisher()
        original = publisher.publish

        def flaky(channel, event, payload):
            if channel == "user-7":
                raise BroadcastError("gone")
            original(channel, event, payload)

        publisher.publish = flaky
        broadcast_batch_settlement(publisher, self.payments, self.summary)
        assert len(publisher.events) == 4
