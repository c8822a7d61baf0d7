"""
Customer directory for store staff.

Customers are storefront accounts that are neither superusers nor ADMIN
role holders. Each listed customer carries its order count and lifetime
spend, aggregated from the orders table. Cancelled and refunded orders
count as orders but not as spend.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, DecimalField, F, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from orders.status import OrderStatus

from .models import ADMIN_ROLE, User

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_PAGE_SIZE = 20
MAX_CUSTOMER_PAGE_SIZE = 100

CUSTOMER_SORT_FIELDS = {
    "created_at": ("created_at",),
    "last_login": ("last_login",),
    "name": ("first_name", "last_name"),
    "email": ("email",),
    "total_orders": ("total_orders",),
    "total_spent": ("total_spent",),
}

UNPAID_ORDER_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


class CustomerNotFound(Exception):
    pass


def customer_queryset():
    return (
        User.objects.exclude(is_superuser=True)
        .exclude(roles__name=ADMIN_ROLE)
        .annotate(
            total_orders=Count("orders", distinct=True),
            total_spent=Coalesce(
                Sum("orders__total", filter=~Q(orders__status__in=UNPAID_ORDER_STATUSES)),
                Value(Decimal("0.00")),
                output_field=DecimalField(max_digits=14, decimal_places=2),
            ),
        )
    )


def _apply_search(queryset, search):
    search = (search or "").strip()
    if not search:
        return queryset
    return queryset.filter(
        Q(email__icontains=search)
        | Q(first_name__icontains=search)
        | Q(last_name__icontains=search)
        | Q(username__icontains=search)
        | Q(phone_number__icontains=search)
    )


def _ordering(sort_by, descending):
    fields = CUSTOMER_SORT_FIELDS.get(sort_by, CUSTOMER_SORT_FIELDS["created_at"])
    if descending:
        ordering = [F(field).desc(nulls_last=True) for field in fields]
    else:
        ordering = [F(field).asc(nulls_last=True) for field in fields]
    return ordering + ["-id"]


def list_customers(params=None):
    """
    Filter, sort and page the customer directory.

    `params` keys: search, status (all/active/inactive), sort_by,
    sort_order (asc/desc), page, limit. Returns a dict with `customers`,
    `total` and `has_more`.
    """
    params = params or {}
    status = params.get("status") or "all"
    descending = (params.get("sort_order") or "desc") == "desc"
    page = max(int(params.get("page") or 1), 1)
    limit = min(max(int(params.get("limit") or DEFAULT_CUSTOMER_PAGE_SIZE), 1), MAX_CUSTOMER_PAGE_SIZE)

    queryset = customer_queryset()
    if status == "active":
        queryset = queryset.filter(is_active=True)
    elif status == "inactive":
        queryset = queryset.filter(is_active=False)
    queryset = _apply_search(queryset, params.get("search"))

    offset = (page - 1) * limit
    total = queryset.count()
    customers = list(queryset.order_by(*_ordering(params.get("sort_by"), descending))[offset:offset + limit])
    return {
        "customers": customers,
        "total": total,
        "has_more": offset + len(customers) < total,
    }


def get_customer(customer_id):
    try:
        return customer_queryset().get(pk=customer_id)
    except User.DoesNotExist:
        raise CustomerNotFound()


def get_customer_stats(today=None):
    today = today or timezone.localdate()
    start_of_month = today.replace(day=1)
    customers = User.objects.exclude(is_superuser=True).exclude(roles__name=ADMIN_ROLE)
    return customers.aggregate(
        total_customers=Count("id"),
        active_customers=Count("id", filter=Q(is_active=True)),
        new_customers_this_month=Count("id", filter=Q(created_at__date__gte=start_of_month)),
    )


def set_customer_active(customer_id, is_active):
    """
    Activate or deactivate a customer account. Inactive accounts cannot log
    in and their existing tokens stop authenticating.
    """
    with transaction.atomic():
        try:
            customer = (
                User.objects.select_for_update()
                .exclude(is_superuser=True)
                .exclude(roles__name=ADMIN_ROLE)
                .get(pk=customer_id)
            )
        except User.DoesNotExist:
            raise CustomerNotFound()

        if customer.is_active != is_active:
            customer.is_active = is_active
            customer.save(update_fields=["is_active", "updated_at"])
            logger.info(f"Customer {customer.pk} {'activated' if is_active else 'deactivated'}")

    return get_customer(customer.pk)
