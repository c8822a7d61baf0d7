"""
Order models for the storefront.

An Order carries snapshots of everything that may change after checkout:
the customer's contact details, the shipping address and each purchased
item's title, image and price. Status changes are recorded as append-only
OrderStatusHistory rows; an OrderSummary mirrors a few fields per user for
cheap account listings. OrderCounter is the singleton row that mints
sequential, day-scoped order numbers.
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinLengthValidator, MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .status import OrderStatus, PaymentMethod, PaymentStatus, can_cancel_order, get_next_statuses


class Order(models.Model):
    """
    A customer purchase.

    Orders are never deleted: cancellation and refunds are statuses.
    Totals are stored as Decimal with two places and are computed
    server-side when the order is created.
    """

    order_number = models.CharField(
        max_length=32,
        unique=True,
        db_index=True,
        help_text=_("Sequential identifier, e.g. ORD-20240105-007"),
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )

    # Customer contact snapshot
    customer_email = models.EmailField(blank=True)
    customer_first_name = models.CharField(max_length=100)
    customer_last_name = models.CharField(max_length=100)
    customer_phone = models.CharField(max_length=20, validators=[MinLengthValidator(10)])

    # Shipping address snapshot
    shipping_address = models.CharField(max_length=500)
    shipping_city = models.CharField(max_length=100)
    shipping_state = models.CharField(max_length=100)
    shipping_zip_code = models.CharField(max_length=20)
    shipping_country = models.CharField(max_length=100, default="US")

    # Monetary totals
    subtotal = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    tax = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    shipping = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )

    # Payment sub-record
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_transaction_id = models.CharField(max_length=100, blank=True)
    payment_last_four_digits = models.CharField(
        max_length=4,
        blank=True,
        validators=[RegexValidator(r"^\d{4}$", _("Last four digits must be exactly 4 digits."))],
    )
    payment_failure_reason = models.CharField(max_length=255, blank=True)
    payment_completed_at = models.DateTimeField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
    )

    notes = models.TextField(blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)
    estimated_delivery = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "created_at"]),
            models.Index(fields=["status", "created_at"]),
        ]
        verbose_name = _("Order")
        verbose_name_plural = _("Orders")

    def __str__(self):
        return f"Order {self.order_number} - {self.customer_email} - {self.total}"

    @property
    def customer_name(self) -> str:
        return f"{self.customer_first_name} {self.customer_last_name}".strip()

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items.all())

    def calculate_total(self) -> Decimal:
        return self.subtotal + self.tax + self.shipping

    def can_be_cancelled(self) -> bool:
        return can_cancel_order(self.status)

    def next_statuses(self) -> list:
        return get_next_statuses(self.status)


class OrderItem(models.Model):
    """
    Snapshot of a product line at checkout time. Never edited afterwards.
    """

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product_id = models.CharField(max_length=64)
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255)
    image = models.URLField(max_length=500)
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.quantity}x {self.title} in Order {self.order.order_number}"

    def calculate_subtotal(self) -> Decimal:
        return self.price * self.quantity

    def save(self, *args, **kwargs):
        self.subtotal = self.calculate_subtotal()
        super().save(*args, **kwargs)


class OrderStatusHistory(models.Model):
    """
    One entry of an order's append-only status log.
    """

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="status_history")
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    timestamp = models.DateTimeField(default=timezone.now)
    note = models.CharField(max_length=500, blank=True)
    updated_by = models.CharField(
        max_length=150,
        blank=True,
        help_text=_("Actor who made the change: a user id, an admin e-mail or 'system'"),
    )

    class Meta:
        ordering = ["timestamp", "id"]
        verbose_name_plural = _("Order status history")

    def __str__(self):
        return f"{self.order.order_number}: {self.status} at {self.timestamp}"


class OrderSummary(models.Model):
    """
    Denormalized per-user copy of the fields shown in account order lists.
    Written in the same transaction as the order it mirrors.
    """

    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name="summary")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="order_summaries",
    )
    order_number = models.CharField(max_length=32)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    item_count = models.PositiveIntegerField()
    thumbnail_image = models.URLField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = _("Order summaries")

    def __str__(self):
        return f"{self.order_number} ({self.status})"


class OrderCounter(models.Model):
    """
    Singleton row (pk=1) holding the last issued order number and its day.
    """

    last_number = models.PositiveIntegerField(default=0)
    last_date = models.CharField(max_length=8, help_text=_("YYYYMMDD"))
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.last_date}: {self.last_number}"
