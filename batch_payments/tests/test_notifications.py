import pytest
import requests
from decimal import Decimal
from unittest.mock import patch, MagicMock
from django.core import mail

from batch_payments.tests.fakes import FakeSender
from batch_payments.notifications import (
    GatewaySmsSender,
    TemplateEmailSender,
    send_batch_otp,
    send_payment_processed_notifications,
)


@pytest.mark.django_db
class TestSendBatchOtp:

    def test_email_and_sms(self, finance_user, email_sender, sms_sender):
        channels = send_batch_otp(finance_user, "123456", 2, Decimal("1200.00"), email_sender, sms_sender)

        assert channels == ["email", "phone"]
        payload = email_sender.sent[0]
        assert payload["to"] == finance_user.email
        assert payload["subject"] == "Batch Payment OTP - 2 Expenses"
        assert payload["context"]["otp"] == "123456"
        assert payload["context"]["validity"] == "5 minutes"
        assert sms_sender.sent[0]["to"] == finance_user.phone
        assert "123456" in sms_sender.sent[0]["message"]

    def test_email_only_without_phone(self, l3_user, email_sender, sms_sender):
        channels = send_batch_otp(l3_user, "123456", 1, Decimal("10.00"), email_sender, sms_sender)
        assert channels == ["email"]
        assert sms_sender.sent == []

    def test_failed_email_still_sends_sms(self, finance_user, sms_sender):
        failing = FakeSender(ok=False)
        send_batch_otp(finance_user, "123456", 1, Decimal("10.00"), failing, sms_sender)
        assert len(failing.sent) == 1
        assert len(sms_sender.sent) == 1


class TestPaymentProcessedNotifications:

    def notification(self, number, phone="+919812345678"):
        return {
            "email": f"{number.lower()}@example.com",
            "phone": phone,
            "expense_number": number,
            "amount": "500.00",
            "site_name": "Head Office",
        }

    def test_counts_delivered(self, email_sender, sms_sender):
        delivered = send_payment_processed_notifications(
            [self.notification("EXP-000001"), self.notification("EXP-000002", phone=None)],
            email_sender, sms_sender,
        )
        assert delivered == {"email": 2, "sms": 1}
        assert email_sender.sent[0]["subject"] == "Payment Processed - EXP-000001"
        assert email_sender.sent[0]["template"] == "emails/payment_processed.html"

    def test_failures_do_not_stop_fan_out(self, sms_sender):
        failing = FakeSender(ok=False)
        delivered = send_payment_processed_notifications(
            [self.notification("EXP-000001"), self.notification("EXP-000002")],
            failing, sms_sender,
        )
        assert delivered == {"email": 0, "sms": 2}
        assert len(failing.sent) == 2

    def test_sender_exception_is_contained(self, sms_sender):
        broken = MagicMock()
        broken.send.side_effect = RuntimeError("smtp down")
        delivered = send_payment_processed_notifications(
            [self.notification("EXP-000001")], broken, sms_sender,
        )
        assert delivered == {"email": 0, "sms": 1}


class TestTemplateEmailSender:

    def test_renders_html(self):
        sent = TemplateEmailSender().send({
            "to": "someone@example.com",
            "subject": "Payment Processed - EXP-000001",
            "template": "emails/payment_processed.html",
            "context": {"expense_number": "EXP-000001", "amount": "500.00", "site_name": "HO"},
        })

        assert sent is True
        assert len(mail.outbox) == 1
        assert mail.outbox[0].content_subtype == "html"
        assert "EXP-000001" in mail.outbox[0].body

    def test_missing_template_returns_false(self):
        assert TemplateEmailSender().send({
            "to": "someone@example.com",
            "subject": "x",
            "template": "emails/does_not_exist.html",
        }) is False


class TestGatewaySmsSender:

    def test_skipped_without_gateway(self):
        assert GatewaySmsSender(url="").send({"to": "+911", "message": "hi"}) is False

    @patch("batch_payments.notifications.requests.post")
    def test_posts_to_gateway(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200)
        sender = GatewaySmsSender(url="https://sms.example.com/send", api_key="key", sender_id="EXPSYS")

        assert sender.send({"to": "+919812345678", "message": "hi"}) is True
        _, kwargs = mock_post.call_args
        assert kwargs["json"] == {"to": "+919812345678", "message": "hi", "sender": "EXPSYS"}
        assert kwargs["headers"] == {"Authorization": "Bearer key"}

    @patch("batch_payments.notifications.requests.post", side_effect=requests.ConnectionError("down"))
    def test_gateway_error_returns_false(self, mock_post):
        sender = GatewaySmsSender(url="https://sms.example.com/send", api_key="key")
        assert sender.send({"to": "+919812345678", "message": "hi"}) is False
