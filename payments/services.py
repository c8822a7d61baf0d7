"""
Glue between the PhonePe client and the order repository.

The merchant order id sent to PhonePe is the order number, so callbacks and
status polls can be matched back to an order without extra bookkeeping.
"""

import logging
from functools import lru_cache

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from orders import services as order_services
from orders.status import PaymentMethod, PaymentStatus

from .phonepe import STATE_COMPLETED, STATE_FAILED, PaymentRequest, PhonePeClient, get_payment_status_text

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_phonepe_client():
    """
    Process-wide client built from settings.PHONEPE. The client owns the
    token cache, so tokens are reused across requests.
    """
    config = getattr(settings, "PHONEPE", {})
    if not config.get("CLIENT_ID") or not config.get("CLIENT_SECRET"):
        raise ImproperlyConfigured("PhonePe credentials are not configured")
    return PhonePeClient(
        client_id=config["CLIENT_ID"],
        client_secret=config["CLIENT_SECRET"],
        client_version=config.get("CLIENT_VERSION", "1"),
        environment=config.get("ENV", "SANDBOX"),
        timeout=config.get("TIMEOUT", 10),
        callback_username=config.get("CALLBACK_USERNAME", ""),
        callback_password=config.get("CALLBACK_PASSWORD", ""),
    )


def build_redirect_url(order):
    return f"{settings.APP_BASE_URL}/payment-status?orderId={order.pk}&orderNumber={order.order_number}"


def initiate_checkout(user, data, client):
    """
    Create a PhonePe order and start the payment.

    Returns (order, PaymentInitiation). When the gateway refuses the payment
    the order is kept with its payment marked failed.
    """
    data = dict(data, payment={"method": PaymentMethod.PHONEPE})
    order = order_services.create_order(user, data, history_note="Order created, awaiting payment")

    result = client.initiate_payment(
        PaymentRequest(
            merchant_order_id=order.order_number,
            amount=order.total,
            redirect_url=build_redirect_url(order),
            message=f"Payment for order {order.order_number}",
            expire_after=settings.PHONEPE.get("PAYMENT_EXPIRY_SECONDS", 1200),
        )
    )
    if not result.success:
        order = order_services.apply_payment_state(order, STATE_FAILED, failure_reason=result.message)
    return order, result


def _status_body(order, payment_status, success, message, transaction_id=None):
    return {
        "success": success,
        "order_id": order.pk,
        "order_number": order.order_number,
        "payment_status": payment_status,
        "order_status": order.status,
        "transaction_id": transaction_id or order.payment_transaction_id or None,
        "message": message,
    }


def refresh_payment_status(order, client):
    """
    Settled payments are answered from the order; pending ones are polled
    from the gateway and reconciled into the order.
    """
    if order.payment_status == PaymentStatus.COMPLETED:
        return _status_body(order, STATE_COMPLETED, True, get_payment_status_text(STATE_COMPLETED))
    if order.payment_status == PaymentStatus.FAILED:
        return _status_body(order, STATE_FAILED, False, order.payment_failure_reason or "Payment failed")

    result = client.check_payment_status(order.order_number)
    if result.state is None:
        return _status_body(order, "PENDING", False, "Payment status check failed. Please try again.")

    order = order_services.apply_payment_state(
        order,
        result.state,
        transaction_id=result.transaction_id,
        failure_reason=result.code,
    )
    return _status_body(order, result.state, result.success, result.message, result.transaction_id)


def handle_callback(client, merchant_order_id, state, transaction_id=None, failure_reason=None, verified=False):
    """
    Apply a gateway callback. Returns the updated order, or None when no
    order matches the merchant order id.

    The state in an unverified callback body is ignored; the payment is
    re-read from the gateway and reconciled from that answer.
    """
    order = order_services.get_order_by_number(merchant_order_id)
    if order is None:
        logger.error(f"PhonePe callback for unknown order {merchant_order_id}")
        return None
    if not verified:
        logger.warning(f"Unverified PhonePe callback for order {merchant_order_id}, polling gateway status")
        refresh_payment_status(order, client)
        order.refresh_from_db()
        return order
    logger.info(f"PhonePe callback for order {merchant_order_id}: {state}")
    if state:
        order = order_services.apply_payment_state(
            order,
            state,
            transaction_id=transaction_id,
            failure_reason=failure_reason,
        )
    return order
