"""
Order status registry.

The status choices and their configuration table are defined together so
every status is guaranteed to have an entry. The table is the single source
of truth for which status may follow which; the repository consults
`check_transition` / `check_cancellation` before every status change.
"""

from dataclasses import dataclass

from django.db import models
from django.utils.translation import gettext_lazy as _


class OrderStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    CONFIRMED = "confirmed", _("Confirmed")
    PROCESSING = "processing", _("Processing")
    SHIPPED = "shipped", _("Shipped")
    OUT_FOR_DELIVERY = "out_for_delivery", _("Out for Delivery")
    DELIVERED = "delivered", _("Delivered")
    CANCELLED = "cancelled", _("Cancelled")
    REFUNDED = "refunded", _("Refunded")


class PaymentStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    COMPLETED = "completed", _("Completed")
    FAILED = "failed", _("Failed")
    REFUNDED = "refunded", _("Refunded")


class PaymentMethod(models.TextChoices):
    CARD = "card", _("Card")
    PAYPAL = "paypal", _("PayPal")
    COD = "cod", _("Cash on Delivery")
    PHONEPE = "phonepe", _("PhonePe")


@dataclass(frozen=True)
class StatusConfig:
    label: str
    description: str
    can_cancel: bool
    can_refund: bool
    next_statuses: tuple


STATUS_CONFIG = {
    OrderStatus.PENDING: StatusConfig(
        label="Pending",
        description="Order placed, awaiting payment confirmation",
        can_cancel=True,
        can_refund=False,
        next_statuses=(OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    ),
    OrderStatus.CONFIRMED: StatusConfig(
        label="Confirmed",
        description="Payment confirmed, processing order",
        can_cancel=True,
        can_refund=True,
        next_statuses=(OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    ),
    OrderStatus.PROCESSING: StatusConfig(
        label="Processing",
        description="Order is being prepared",
        can_cancel=False,
        can_refund=True,
        next_statuses=(OrderStatus.SHIPPED, OrderStatus.CANCELLED),
    ),
    OrderStatus.SHIPPED: StatusConfig(
        label="Shipped",
        description="Order has been shipped",
        can_cancel=False,
        can_refund=True,
        next_statuses=(OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED),
    ),
    OrderStatus.OUT_FOR_DELIVERY: StatusConfig(
        label="Out for Delivery",
        description="Order is out for delivery",
        can_cancel=False,
        can_refund=True,
        next_statuses=(OrderStatus.DELIVERED,),
    ),
    OrderStatus.DELIVERED: StatusConfig(
        label="Delivered",
        description="Order delivered successfully",
        can_cancel=False,
        can_refund=True,
        next_statuses=(OrderStatus.REFUNDED,),
    ),
    OrderStatus.CANCELLED: StatusConfig(
        label="Cancelled",
        description="Order cancelled",
        can_cancel=False,
        can_refund=False,
        next_statuses=(),
    ),
    OrderStatus.REFUNDED: StatusConfig(
        label="Refunded",
        description="Order refunded",
        can_cancel=False,
        can_refund=False,
        next_statuses=(),
    ),
}

INACTIVE_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED})


def get_status_config(status) -> StatusConfig:
    return STATUS_CONFIG[OrderStatus(status)]


def get_next_statuses(status) -> list:
    return list(get_status_config(status).next_statuses)


def can_cancel_order(status) -> bool:
    return get_status_config(status).can_cancel


def can_refund_order(status) -> bool:
    return get_status_config(status).can_refund


def is_order_active(status) -> bool:
    return OrderStatus(status) not in INACTIVE_STATUSES


def is_order_completed(status) -> bool:
    return OrderStatus(status) == OrderStatus.DELIVERED


@dataclass(frozen=True)
class Allowed:
    allowed = True


@dataclass(frozen=True)
class Denied:
    reason: str
    allowed = False


def check_transition(current, target):
    """
    Decide whether an order in `current` may move to `target`.

    Re-applying the current status is allowed so a note can be appended to
    the history without changing state.
    """
    try:
        current = OrderStatus(current)
        target = OrderStatus(target)
    except ValueError as exc:
        return Denied(str(exc))

    if target == current or target in STATUS_CONFIG[current].next_statuses:
        return Allowed()
    if not STATUS_CONFIG[current].next_statuses:
        return Denied(f"Order in {current.value} status cannot change status")
    return Denied(f"Cannot transition order from {current.value} to {target.value}")


def check_cancellation(current):
    """
    Customer cancellation is narrower than the admin transition table:
    only orders that have not started processing can be cancelled.
    """
    current = OrderStatus(current)
    if not can_cancel_order(current):
        return Denied(f"Order cannot be cancelled in {current.value} status")
    return check_transition(current, OrderStatus.CANCELLED)
