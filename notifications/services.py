"""
E-mail notification adapter.

`queue_email` writes to the outbox and raises on failure. The order helpers
built on top of it are best-effort: they skip orders without an e-mail
address, render the templates, enqueue, and turn every failure into a
logged warning. A notification problem must never fail an order mutation.
"""

import logging

from django.conf import settings
from django.db import DatabaseError
from django.template.loader import render_to_string

from orders.status import OrderStatus, get_status_config

from .models import MailMessage

logger = logging.getLogger(__name__)

# Status updates that never trigger a customer e-mail.
SKIPPED_STATUS_NOTIFICATIONS = frozenset({OrderStatus.PENDING.value})


class EmailQueueError(Exception):
    pass


def format_currency(amount) -> str:
    return f"₹{amount:,.2f}"


def queue_email(to, subject, html, text=None) -> str:
    """
    Add a message to the outbox and return its id.
    """
    recipients = [to] if isinstance(to, str) else list(to)
    try:
        message = MailMessage.objects.create(
            to=recipients,
            subject=subject,
            html=html,
            text=text or "",
        )
    except DatabaseError as e:
        logger.error(f"Error queuing email: {e}")
        raise EmailQueueError(f"Failed to queue email: {e}") from e

    logger.info(f"Email queued successfully with ID: {message.pk}")
    return str(message.pk)


def _order_context(order, **extra):
    context = {
        "order": order,
        "store_name": getattr(settings, "STORE_NAME", "Store"),
        "items": [
            {
                "title": item.title,
                "quantity": item.quantity,
                "image": item.image,
                "subtotal": format_currency(item.subtotal),
            }
            for item in order.items.all()
        ],
        "subtotal": format_currency(order.subtotal),
        "tax": format_currency(order.tax),
        "shipping": format_currency(order.shipping),
        "total": format_currency(order.total),
        "order_url": f"{getattr(settings, 'APP_BASE_URL', '')}/account/orders/{order.pk}",
    }
    context.update(extra)
    return context


def _render(template_name, context):
    html = render_to_string(f"notifications/email/{template_name}.html", context)
    text = render_to_string(f"notifications/email/{template_name}.txt", context)
    return html, text


def _has_recipient(order, kind) -> bool:
    if not order.customer_email or not order.customer_email.strip():
        logger.warning(f"No email found for order {order.order_number}. Skipping {kind} email.")
        return False
    return True


def send_order_confirmation_email(order):
    """
    Returns the outbox id, or None if nothing was queued.
    """
    if not _has_recipient(order, "confirmation"):
        return None

    try:
        html, text = _render("order_confirmation", _order_context(order))
        mail_id = queue_email(
            order.customer_email,
            f"Order Confirmed - #{order.order_number}",
            html,
            text,
        )
    except Exception as e:
        logger.warning(f"Failed to send order confirmation email for order {order.order_number}: {e}")
        return None

    logger.info(f"Order confirmation email queued for order {order.order_number}")
    return mail_id


def send_order_cancellation_email(order, reason=None):
    if not _has_recipient(order, "cancellation"):
        return None

    try:
        html, text = _render("order_cancellation", _order_context(order, reason=reason))
        mail_id = queue_email(
            order.customer_email,
            f"Order Cancelled - #{order.order_number}",
            html,
            text,
        )
    except Exception as e:
        logger.warning(f"Failed to send order cancellation email for order {order.order_number}: {e}")
        return None

    logger.info(f"Order cancellation email queued for order {order.order_number}")
    return mail_id


def send_order_status_update_email(order, new_status, tracking_number=None):
    if not _has_recipient(order, "status update"):
        return None

    if str(new_status).lower() in SKIPPED_STATUS_NOTIFICATIONS:
        logger.info(f'Skipping email for status "{new_status}" on order {order.order_number}')
        return None

    try:
        config = get_status_config(new_status)
        context = _order_context(
            order,
            status_label=config.label,
            status_description=config.description,
            tracking_number=tracking_number or order.tracking_number,
        )
        html, text = _render("order_status_update", context)
        mail_id = queue_email(
            order.customer_email,
            f"Order Update: {config.label} - #{order.order_number}",
            html,
            text,
        )
    except Exception as e:
        logger.warning(f"Failed to send order status update email for order {order.order_number}: {e}")
        return None

    logger.info(f"Order status update email queued for order {order.order_number} (status: {new_status})")
    return mail_id


def get_email_status(mail_id):
    """
    Delivery state of an outbox message, or None if it does not exist.
    """
    message = MailMessage.objects.filter(pk=mail_id).first()
    if message is None:
        return None
    return {
        "state": message.state,
        "error": message.error or None,
        "attempts": message.attempts,
    }
