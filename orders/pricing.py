"""
Order total computation.

All amounts are Decimal and rounded half-up to two places, matching what the
customer sees at checkout.
"""

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

CENT = Decimal("0.01")


def quantize(amount) -> Decimal:
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_item_subtotal(price, quantity) -> Decimal:
    return Decimal(str(price)) * int(quantity)


def calculate_order_totals(items, tax_rate=None, shipping_cost=None) -> dict:
    """
    Compute subtotal, tax, shipping and total for a list of item dicts
    (each with `price` and `quantity`).

    Tax is charged on the unrounded subtotal; the total is the sum of the
    rounded components so that `total == subtotal + tax + shipping` always
    holds on the stored values.
    """
    if tax_rate is None:
        tax_rate = getattr(settings, "ORDER_TAX_RATE", Decimal("0.08"))
    if shipping_cost is None:
        shipping_cost = getattr(settings, "ORDER_SHIPPING_COST", Decimal("0.00"))

    raw_subtotal = sum(
        (calculate_item_subtotal(item["price"], item["quantity"]) for item in items),
        Decimal("0"),
    )
    subtotal = quantize(raw_subtotal)
    tax = quantize(raw_subtotal * Decimal(str(tax_rate)))
    shipping = quantize(shipping_cost)

    return {
        "subtotal": subtotal,
        "tax": tax,
        "shipping": shipping,
        "total": subtotal + tax + shipping,
    }


def validate_order_totals(order) -> bool:
    """
    Reconcile an order's stored totals against its items.

    The tax rate is recovered from the stored tax and subtotal, so this
    checks internal consistency rather than the current configured rate.
    """
    items = [{"price": item.price, "quantity": item.quantity} for item in order.items.all()]
    tax_rate = order.tax / order.subtotal if order.subtotal else Decimal("0")
    calculated = calculate_order_totals(items, tax_rate=tax_rate, shipping_cost=order.shipping)
    return (
        abs(calculated["subtotal"] - order.subtotal) < CENT
        and abs(calculated["tax"] - order.tax) < CENT
        and abs(calculated["total"] - order.total) < CENT
        and order.total == order.calculate_total()
    )
