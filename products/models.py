"""
Catalog models for the furniture storefront.

Products are never hard-deleted: deactivating one (is_active=False) hides it
from the storefront while keeping it available for order history and audit.
Order items snapshot the product at checkout, so editing a product never
changes past orders.
"""

from decimal import ROUND_HALF_UP, Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class Product(models.Model):
    """
    A piece of furniture or an accessory offered for sale.

    Security Considerations:
    - Prices are stored as Decimal to prevent floating-point errors
    - Stock quantities are validated to be non-negative
    - Soft deletion (is_active) preserves audit trails
    """

    class Category(models.TextChoices):
        BEDS = "beds", _("Beds")
        SOFAS = "sofas", _("Sofas")
        COUCHES = "couches", _("Couches")
        CUSTOM = "custom", _("Custom")
        ACCESSORIES = "accessories", _("Accessories")

    class Section(models.TextChoices):
        FEATURED = "featured", _("Featured")
        TRENDING = "trending", _("Trending")
        NEW_ARRIVAL = "new_arrival", _("New Arrivals")
        OFFERS = "offers", _("Offers")
        HOME_PAGE = "home_page", _("Home Page")

    title = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=220, unique=True)
    description = models.TextField()
    short_description = models.CharField(max_length=300, blank=True)
    category = models.CharField(max_length=20, choices=Category.choices, db_index=True)
    section = models.CharField(
        max_length=20,
        choices=Section.choices,
        default=Section.FEATURED,
        help_text=_("Storefront section the product is displayed in"),
    )

    # Using DecimalField to avoid floating-point precision issues
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text=_("Selling price in INR"),
    )
    mrp = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text=_("Maximum retail price; the discount is shown against it"),
    )
    stock = models.PositiveIntegerField(default=0)
    sku = models.CharField(max_length=100, unique=True, null=True, blank=True)

    image_urls = models.JSONField(default=list, help_text=_("Ordered list of image URLs"))
    materials = models.JSONField(default=list, blank=True)
    tags = models.JSONField(default=list, blank=True)
    lead_time_days = models.PositiveIntegerField(null=True, blank=True)
    is_custom_allowed = models.BooleanField(default=False)

    rating_average = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00")), MaxValueValidator(Decimal("5.00"))],
    )
    rating_count = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(
        default=True,
        help_text=_("If False, product is hidden from customers but preserved for audit"),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_active", "section"]),
            models.Index(fields=["is_active", "category"]),
        ]
        verbose_name = _("Product")
        verbose_name_plural = _("Products")

    def __str__(self):
        return f"{self.title} ({self.slug})"

    def is_in_stock(self) -> bool:
        return self.stock > 0

    @property
    def discount_percent(self) -> int:
        """Whole-percent discount of `price` against `mrp`, never negative."""
        if not self.mrp or self.mrp <= 0:
            return 0
        percent = ((self.mrp - self.price) / self.mrp * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return max(0, int(percent))

    @property
    def savings_amount(self) -> Decimal:
        if not self.mrp:
            return Decimal("0.00")
        return max(Decimal("0.00"), self.mrp - self.price)

    @property
    def thumbnail(self) -> str:
        return self.image_urls[0] if self.image_urls else ""


class ProductSizeOption(models.Model):
    """
    A purchasable size of a product (e.g. Queen 60x78).

    `price` overrides the product's base price when set.
    """

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="size_options")
    label = models.CharField(max_length=50)
    value = models.CharField(max_length=50)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    in_stock = models.BooleanField(default=True)
    is_default = models.BooleanField(default=False)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["product", "value"], name="unique_product_size_value"),
        ]

    def __str__(self):
        return f"{self.product.title} - {self.label}"

    @property
    def effective_price(self) -> Decimal:
        return self.price if self.price is not None else self.product.price
