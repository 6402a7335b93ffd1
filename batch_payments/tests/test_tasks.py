import pytest
from unittest.mock import MagicMock, patch

from batch_payments.tasks import (
    broadcast_settlement,
    deliver_payment_notifications,
    enqueue_on_commit,
    publish_event,
)

NOTIFICATION = {
    "email": "employee@example.com",
    "phone": "+919812345678",
    "expense_number": "EXP-000001",
    "amount": "100.00",
    "site_name": "Head Office",
}
SUMMARY = {
    "processed_count": 1,
    "total_amount": "100.00",
    "failed_count": 0,
    "processed_by": "Fiona Nance",
    "utr_number": "UTR1",
    "timestamp": "2026-01-01T00:00:00+00:00",
}
PAYMENT = {
    "submitter_id": 7,
    "expense_number": "EXP-000001",
    "amount": "100.00",
    "payment_date": "2026-01-01T00:00:00+00:00",
}


@pytest.mark.django_db
class TestEnqueueOnCommit:

    def test_nothing_queued_before_commit(self, django_capture_on_commit_callbacks):
        task = MagicMock()

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            enqueue_on_commit(task, 42, {"a": 1})
        task.delay.assert_not_called()

        callbacks[0]()
        task.delay.assert_called_once_with(42, {"a": 1})

    def test_eager_task_runs_after_commit(self, email_sender, sms_sender, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            enqueue_on_commit(deliver_payment_notifications, [NOTIFICATION])

        assert [p["to"] for p in email_sender.sent] == ["employee@example.com"]
        assert [p["to"] for p in sms_sender.sent] == ["+919812345678"]


class TestPaymentTasks:

    def test_deliver_payment_notifications(self, email_sender, sms_sender):
        deliver_payment_notifications.delay([NOTIFICATION, dict(NOTIFICATION, phone=None)])
        assert len(email_sender.sent) == 2
        assert len(sms_sender.sent) == 1

    @patch("batch_payments.tasks.logger")
    @patch("batch_payments.tasks.send_payment_processed_notifications", side_effect=RuntimeError("boom"))
    def test_notification_errors_are_logged_not_raised(self, mock_send, mock_logger, fake_collaborators):
        deliver_payment_notifications.delay([NOTIFICATION])
        mock_logger.exception.assert_called_once_with("Payment notification task failed for 1 expenses")

    def test_broadcast_settlement(self, publisher):
        broadcast_settlement.delay([PAYMENT], SUMMARY)
        assert [(c, e) for c, e, _ in publisher.events] == [
            ("user-7", "expense_payment_processed"),
            ("role-finance", "batch-payment-completed"),
            ("role-l3_approver", "batch-payment-completed"),
            ("broadcast", "dashboard-update"),
        ]

    @patch("batch_payments.tasks.logger")
    @patch("batch_payments.tasks.broadcast_batch_settlement", side_effect=RuntimeError("boom"))
    def test_broadcast_errors_are_logged_not_raised(self, mock_broadcast, mock_logger, fake_collaborators):
        broadcast_settlement.delay([PAYMENT], SUMMARY)
        mock_logger.exception.assert_called_once_with("Broadcast task failed for batch UTR1")

    def test_publish_event(self, publisher):
        publish_event.delay("user-1", "batch-otp-generated", {"expense_count": 2})
        assert publisher.events == [("user-1", "batch-otp-generated", {"expense_count": 2})]
