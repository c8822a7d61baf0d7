"""
Sequential, day-scoped order numbers: ORD-YYYYMMDD-NNN.

The counter row is locked with SELECT ... FOR UPDATE for the whole
read-increment-write, so two concurrent checkouts can never be issued the
same number for a day. SQLite has no row locks; there the database is
configured with IMMEDIATE transactions, which take the write lock at BEGIN.
"""

import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from .exceptions import OrderNumberGenerationError
from .models import OrderCounter

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "ORD"
COUNTER_PK = 1


def format_order_number(date_str: str, number: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{date_str}-{number:03d}"


def generate_order_number(today=None) -> str:
    """
    Issue the next order number for `today` (the store's local date by default).

    Raises OrderNumberGenerationError if the counter transaction fails; there
    is no retry.
    """
    current_date = (today or timezone.localdate()).strftime("%Y%m%d")

    try:
        with transaction.atomic():
            counter, created = OrderCounter.objects.select_for_update().get_or_create(
                pk=COUNTER_PK,
                defaults={"last_number": 0, "last_date": current_date},
            )
            if counter.last_date == current_date:
                next_number = counter.last_number + 1
            else:
                next_number = 1

            counter.last_number = next_number
            counter.last_date = current_date
            counter.save(update_fields=["last_number", "last_date", "updated_at"])

            order_number = format_order_number(current_date, next_number)
    except DatabaseError as e:
        logger.error(f"Error generating order number: {e}")
        raise OrderNumberGenerationError() from e

    logger.info(f"Generated order number {order_number}")
    return order_number
