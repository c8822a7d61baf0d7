from unittest import mock

import pytest
from django.core import mail
from django.core.management import call_command
from django.db import DatabaseError

from notifications import services as notifications
from notifications.models import MailMessage
from notifications.services import EmailQueueError

pytestmark = pytest.mark.django_db


def test_queue_email_creates_outbox_row():
    mail_id = notifications.queue_email("asha@example.com", "Hello", "<p>Hi</p>", "Hi")

    message = MailMessage.objects.get(pk=mail_id)
    assert message.to == ["asha@example.com"]
    assert message.state == MailMessage.DeliveryState.PENDING
    assert message.text == "Hi"


def test_queue_email_raises_on_database_failure():
    with mock.patch.object(MailMessage.objects, "create", side_effect=DatabaseError("read only")):
        with pytest.raises(EmailQueueError, match="Failed to queue email"):
            notifications.queue_email("asha@example.com", "Hello", "<p>Hi</p>")


def test_confirmation_email_content(order):
    mail_id = notifications.send_order_confirmation_email(order)

    message = MailMessage.objects.get(pk=mail_id)
    assert message.subject == f"Order Confirmed - #{order.order_number}"
    assert "Sheesham Wood King Bed" in message.html
    assert "₹216.00" in message.text
    assert f"/account/orders/{order.pk}" in message.text


def test_blank_email_is_skipped(order, caplog):
    order.customer_email = "  "

    assert notifications.send_order_confirmation_email(order) is None
    assert notifications.send_order_cancellation_email(order) is None
    assert notifications.send_order_status_update_email(order, "shipped") is None
    assert MailMessage.objects.count() == 0
    assert "Skipping confirmation email" in caplog.text


def test_pending_status_update_is_skipped(order):
    assert notifications.send_order_status_update_email(order, "pending") is None
    assert MailMessage.objects.count() == 0


def test_cancellation_email_includes_reason(order):
    mail_id = notifications.send_order_cancellation_email(order, reason="Item discontinued")
    message = MailMessage.objects.get(pk=mail_id)
    assert message.subject == f"Order Cancelled - #{order.order_number}"
    assert "Item discontinued" in message.html


def test_send_helpers_swallow_failures(order, caplog):
    with mock.patch("notifications.services.queue_email", side_effect=EmailQueueError("boom")):
        assert notifications.send_order_status_update_email(order, "confirmed") is None
    assert "Failed to send order status update email" in caplog.text


def test_get_email_status(order):
    mail_id = notifications.send_order_confirmation_email(order)

    assert notifications.get_email_status(mail_id) == {"state": "PENDING", "error": None, "attempts": 0}
    assert notifications.get_email_status(987654) is None


def test_format_currency():
    assert notifications.format_currency(123456.5) == "₹123,456.50"


class TestSendQueuedMail:
    def test_delivers_pending_messages(self):
        notifications.queue_email(["a@example.com", "b@example.com"], "First", "<p>1</p>", "1")
        notifications.queue_email("c@example.com", "Second", "<p>2</p>")

        call_command("send_queued_mail")

        assert len(mail.outbox) == 2
        assert mail.outbox[0].to == ["a@example.com", "b@example.com"]
        assert mail.outbox[0].alternatives[0][1] == "text/html"
        assert set(MailMessage.objects.values_list("state", flat=True)) == {"SUCCESS"}
        assert all(m.delivered_at is not None for m in MailMessage.objects.all())

    def test_respects_limit(self):
        for i in range(3):
            notifications.queue_email("a@example.com", f"Message {i}", "<p>x</p>")

        call_command("send_queued_mail", limit=2)

        assert MailMessage.objects.filter(state="SUCCESS").count() == 2
        assert MailMessage.objects.filter(state="PENDING").count() == 1

    def test_records_delivery_errors(self):
        mail_id = notifications.queue_email("a@example.com", "Broken", "<p>x</p>")

        with mock.patch(
            "django.core.mail.EmailMultiAlternatives.send",
            side_effect=ConnectionRefusedError("smtp down"),
        ):
            call_command("send_queued_mail")

        assert notifications.get_email_status(mail_id) == {"state": "ERROR", "error": "smtp down", "attempts": 1}
