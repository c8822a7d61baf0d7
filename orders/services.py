"""
Order repository.

Every read and write of orders goes through this module. Mutations run
inside `transaction.atomic()` with the order row locked, validate the
requested status change against the status registry, append exactly one
history entry through `append_status_history`, mirror the change into the
order's summary row and schedule the customer e-mail with
`transaction.on_commit`. E-mail is best-effort and can never roll back or
fail an order mutation.
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Count, Q, Sum, Value
from django.db.models.functions import Concat
from django.utils import timezone

from notifications.services import (
    send_order_cancellation_email,
    send_order_confirmation_email,
    send_order_status_update_email,
)

from .exceptions import InvalidOrderTransition, OrderAccessDenied, OrderNotFound
from .models import Order, OrderItem, OrderStatusHistory, OrderSummary
from .numbering import generate_order_number
from .pricing import calculate_order_totals, quantize
from .status import OrderStatus, PaymentStatus, check_cancellation, check_transition

logger = logging.getLogger(__name__)

DB_SORT_FIELDS = frozenset({"created_at", "total", "status", "order_number"})
MEMORY_SORT_FIELDS = frozenset({"item_count", "customer_name"})
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Gateway payment states
PAYMENT_COMPLETED = "COMPLETED"
PAYMENT_FAILED = "FAILED"
PAYMENT_PENDING = "PENDING"


def _actor(user):
    if user is None:
        return ""
    return str(getattr(user, "pk", user))


def _order_queryset():
    return Order.objects.prefetch_related("items", "status_history")


def _get_locked_order(order_id):
    try:
        return Order.objects.select_for_update().get(pk=order_id)
    except Order.DoesNotExist:
        raise OrderNotFound()


def _schedule(func, *args, **kwargs):
    transaction.on_commit(lambda: func(*args, **kwargs))


def append_status_history(order, status, note="", updated_by=""):
    """
    Record a status change: set `order.status` and append one history entry.

    This is the only code path that writes OrderStatusHistory rows. The
    caller is responsible for validating the transition and for running
    inside a transaction.
    """
    entry = OrderStatusHistory.objects.create(
        order=order,
        status=status,
        timestamp=timezone.now(),
        note=note or "",
        updated_by=updated_by or "",
    )
    order.status = status
    order.save(update_fields=["status", "updated_at"])
    return entry


def _sync_summary(order):
    OrderSummary.objects.filter(order=order).update(status=order.status, total=order.total)


def create_order(user, data, tax_rate=None, shipping_cost=None, history_note="Order placed"):
    """
    Persist a new order for `user` from validated checkout data.

    `data` holds `customer`, `shipping_address`, `items`, `payment` and an
    optional `notes`. Totals are always recomputed from the items.
    """
    items = data["items"]
    customer = data["customer"]
    address = data["shipping_address"]
    payment = data.get("payment") or {}
    totals = calculate_order_totals(items, tax_rate=tax_rate, shipping_cost=shipping_cost)

    with transaction.atomic():
        order_number = generate_order_number()
        order = Order.objects.create(
            order_number=order_number,
            user=user,
            customer_email=customer.get("email", ""),
            customer_first_name=customer["first_name"],
            customer_last_name=customer["last_name"],
            customer_phone=customer["phone"],
            shipping_address=address["address"],
            shipping_city=address["city"],
            shipping_state=address["state"],
            shipping_zip_code=address["zip_code"],
            shipping_country=address.get("country") or "US",
            subtotal=totals["subtotal"],
            tax=totals["tax"],
            shipping=totals["shipping"],
            total=totals["total"],
            payment_method=payment.get("method", data.get("payment_method", "")),
            payment_status=PaymentStatus.PENDING,
            payment_last_four_digits=payment.get("last_four_digits") or "",
            status=OrderStatus.PENDING,
            notes=data.get("notes") or "",
        )
        for item in items:
            OrderItem.objects.create(
                order=order,
                product_id=str(item["product_id"]),
                title=item["title"],
                slug=item["slug"],
                image=item["image"],
                price=quantize(item["price"]),
                quantity=item["quantity"],
            )
        append_status_history(order, OrderStatus.PENDING, history_note, _actor(user))
        OrderSummary.objects.create(
            order=order,
            user=user,
            order_number=order.order_number,
            total=order.total,
            status=order.status,
            item_count=sum(int(item["quantity"]) for item in items),
            thumbnail_image=items[0]["image"] if items else "",
        )
        _schedule(send_order_confirmation_email, order)

    logger.info(f"Order created: {order.order_number} for user {user.pk} (total: {order.total})")
    return order


def get_order_by_id(order_id, user=None):
    """
    Returns None when the order does not exist. When `user` is given the
    order must belong to them.
    """
    order = _order_queryset().filter(pk=order_id).first()
    if order is not None and user is not None and order.user_id != user.pk:
        raise OrderAccessDenied()
    return order


def get_order_by_number(order_number, user=None):
    order = _order_queryset().filter(order_number=order_number).first()
    if order is not None and user is not None and order.user_id != user.pk:
        raise OrderAccessDenied()
    return order


def search_orders(term, user=None):
    """Exact order-number lookup, optionally scoped to one user."""
    term = (term or "").strip().upper()
    if not term:
        return []
    queryset = _order_queryset().filter(order_number=term)
    if user is not None:
        queryset = queryset.filter(user=user)
    return list(queryset)


def _apply_search(queryset, search):
    search = (search or "").strip()
    if not search:
        return queryset
    return queryset.annotate(
        full_name=Concat("customer_first_name", Value(" "), "customer_last_name"),
    ).filter(
        Q(order_number__icontains=search)
        | Q(customer_first_name__icontains=search)
        | Q(customer_last_name__icontains=search)
        | Q(full_name__icontains=search)
        | Q(customer_email__icontains=search)
    )


def _sort_in_memory(queryset, sort_by, descending):
    limit = getattr(settings, "ORDER_FALLBACK_SORT_LIMIT", 100)
    orders = list(queryset.order_by("-created_at")[:limit])

    def sort_key(order):
        value = getattr(order, sort_by, None)
        return value.lower() if isinstance(value, str) else value

    orders.sort(key=sort_key, reverse=descending)
    return orders


def _list_orders(queryset, params):
    params = params or {}
    status = params.get("status") or "all"
    sort_by = params.get("sort_by") or "created_at"
    descending = (params.get("sort_order") or "desc") == "desc"
    page = max(int(params.get("page") or 1), 1)
    limit = min(max(int(params.get("limit") or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

    if status != "all":
        queryset = queryset.filter(status=status)
    queryset = _apply_search(queryset, params.get("search"))

    offset = (page - 1) * limit
    if sort_by in DB_SORT_FIELDS:
        ordering = f"-{sort_by}" if descending else sort_by
        try:
            total = queryset.count()
            orders = list(queryset.order_by(ordering, "-id")[offset:offset + limit])
        except DatabaseError as e:
            logger.warning(f"Ordered order query failed, falling back to in-memory sort: {e}")
            orders = _sort_in_memory(queryset, sort_by, descending)
            total = len(orders)
            orders = orders[offset:offset + limit]
    else:
        if sort_by not in MEMORY_SORT_FIELDS:
            sort_by = "created_at"
        orders = _sort_in_memory(queryset, sort_by, descending)
        total = len(orders)
        orders = orders[offset:offset + limit]

    return {
        "orders": orders,
        "has_more": offset + len(orders) < total,
        "total": total,
    }


def get_user_orders(user, params=None):
    return _list_orders(_order_queryset().filter(user=user), params)


def get_all_orders(params=None):
    return _list_orders(_order_queryset(), params)


def cancel_order(order_id, user, reason="Cancelled by customer"):
    """
    Customer cancellation. Ownership is checked before order state, so a
    non-owner is always refused with OrderAccessDenied.
    """
    with transaction.atomic():
        order = _get_locked_order(order_id)
        if order.user_id != user.pk:
            raise OrderAccessDenied()

        decision = check_cancellation(order.status)
        if not decision.allowed:
            raise InvalidOrderTransition(decision.reason)

        append_status_history(order, OrderStatus.CANCELLED, reason, _actor(user))
        _sync_summary(order)
        _schedule(send_order_cancellation_email, order, reason)

    logger.info(f"Order {order.order_number} cancelled by user {user.pk}")
    return get_order_by_id(order.pk)


def _set_status(order, new_status, note, updated_by, tracking_number):
    previous = order.status
    decision = check_transition(previous, new_status)
    if not decision.allowed:
        raise InvalidOrderTransition(decision.reason)

    now = timezone.now()
    update_fields = []
    if tracking_number:
        order.tracking_number = tracking_number
        update_fields.append("tracking_number")
    if new_status == OrderStatus.SHIPPED and order.shipped_at is None:
        order.shipped_at = now
        update_fields.append("shipped_at")
    if new_status == OrderStatus.DELIVERED and order.delivered_at is None:
        order.delivered_at = now
        update_fields.append("delivered_at")
    if update_fields:
        order.save(update_fields=update_fields + ["updated_at"])

    append_status_history(order, new_status, note, updated_by)
    _sync_summary(order)

    if new_status == previous:
        return
    if new_status == OrderStatus.CANCELLED:
        _schedule(send_order_cancellation_email, order, note)
    else:
        _schedule(send_order_status_update_email, order, new_status, tracking_number)


def update_order_status(order_id, new_status, note=None, updated_by=None, tracking_number=None):
    """
    Admin status change. Re-applying the current status only appends a note.
    """
    with transaction.atomic():
        order = _get_locked_order(order_id)
        previous = order.status
        _set_status(
            order,
            new_status,
            note or f"Status updated to {new_status}",
            _actor(updated_by),
            tracking_number,
        )

    logger.info(f"Order {order.order_number} status updated: {previous} -> {new_status}")
    return get_order_by_id(order.pk)


def update_order(order_id, changes, updated_by=None):
    """
    Admin edit of tracking number, estimated delivery and notes, with an
    optional status change described by `status` and `status_note`. As in
    update_order_status, re-applying the current status appends a note.
    """
    editable = ("tracking_number", "estimated_delivery", "notes")

    with transaction.atomic():
        order = _get_locked_order(order_id)
        new_status = changes.get("status")
        if new_status:
            _set_status(
                order,
                new_status,
                changes.get("status_note") or f"Status updated to {new_status}",
                _actor(updated_by),
                changes.get("tracking_number"),
            )

        update_fields = []
        for field in editable:
            if field in changes:
                value = changes[field]
                if value is None and field != "estimated_delivery":
                    value = ""
                setattr(order, field, value)
                update_fields.append(field)
        if update_fields:
            order.save(update_fields=update_fields + ["updated_at"])

    logger.info(f"Order {order.order_number} updated: {', '.join(sorted(changes))}")
    return get_order_by_id(order.pk)


def apply_payment_state(order, state, transaction_id=None, failure_reason=None):
    """
    Reconcile a gateway payment state into the order.

    A completed payment confirms a pending order. When the order can no
    longer move to confirmed (for example it was cancelled while the
    customer was paying) only the payment fields are updated.
    """
    with transaction.atomic():
        order = _get_locked_order(order.pk)
        if order.payment_status == PaymentStatus.COMPLETED and state != PAYMENT_COMPLETED:
            logger.warning(f"Ignoring payment state {state} for already paid order {order.order_number}")
            return order
        update_fields = ["payment_status"]

        if state == PAYMENT_COMPLETED:
            already_completed = order.payment_status == PaymentStatus.COMPLETED
            order.payment_status = PaymentStatus.COMPLETED
            if transaction_id:
                order.payment_transaction_id = transaction_id
                update_fields.append("payment_transaction_id")
            if order.payment_completed_at is None:
                order.payment_completed_at = timezone.now()
                update_fields.append("payment_completed_at")
            order.save(update_fields=update_fields + ["updated_at"])

            if not already_completed and order.status != OrderStatus.CONFIRMED:
                decision = check_transition(order.status, OrderStatus.CONFIRMED)
                if decision.allowed:
                    _set_status(order, OrderStatus.CONFIRMED, "Payment completed", "system", None)
                else:
                    logger.warning(
                        f"Payment completed for order {order.order_number} but status not updated: {decision.reason}"
                    )
        elif state == PAYMENT_FAILED:
            order.payment_status = PaymentStatus.FAILED
            order.payment_failure_reason = (failure_reason or "Payment failed")[:255]
            order.save(update_fields=update_fields + ["payment_failure_reason", "updated_at"])
        else:
            order.payment_status = PaymentStatus.PENDING
            order.save(update_fields=update_fields + ["updated_at"])

    logger.info(f"Payment state {state} applied to order {order.order_number}")
    return order


def get_order_statistics(recent_limit=5):
    aggregates = Order.objects.aggregate(total_orders=Count("id"), total_revenue=Sum("total"))
    total_orders = aggregates["total_orders"] or 0
    total_revenue = aggregates["total_revenue"] or Decimal("0.00")
    average = quantize(total_revenue / total_orders) if total_orders else Decimal("0.00")

    orders_by_status = {choice: 0 for choice in OrderStatus.values}
    for row in Order.objects.values("status").annotate(count=Count("id")):
        orders_by_status[row["status"]] = row["count"]

    recent = OrderSummary.objects.order_by("-created_at")[:recent_limit]
    return {
        "total_orders": total_orders,
        "total_revenue": total_revenue,
        "average_order_value": average,
        "orders_by_status": orders_by_status,
        "recent_orders": [
            {
                "order_id": summary.order_id,
                "order_number": summary.order_number,
                "total": summary.total,
                "status": summary.status,
                "item_count": summary.item_count,
                "created_at": summary.created_at,
            }
            for summary in recent
        ],
    }
