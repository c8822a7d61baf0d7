"""
Order serializers for the storefront API.

Read serializers group the flat Order columns into the nested `customer`,
`shipping_address` and `payment` objects clients work with. Write
serializers only validate input; persistence is done by `orders.services`.

Security Considerations:
- Client-sent totals are never trusted; they are recomputed server-side
- Order number, status and payment state are read-only for customers
"""

from decimal import Decimal

from rest_framework import serializers

from .models import Order, OrderItem, OrderStatusHistory
from .services import DB_SORT_FIELDS, MAX_PAGE_SIZE, MEMORY_SORT_FIELDS
from .status import OrderStatus, PaymentMethod, get_status_config


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ["product_id", "title", "slug", "image", "price", "quantity", "subtotal"]
        read_only_fields = fields


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["status", "timestamp", "note", "updated_by"]
        read_only_fields = fields


class CustomerInfoSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100)
    phone = serializers.CharField(
        min_length=10,
        max_length=20,
        error_messages={"min_length": "Phone number must be at least 10 digits"},
    )


class ShippingAddressSerializer(serializers.Serializer):
    address = serializers.CharField(min_length=5, max_length=500)
    city = serializers.CharField(min_length=2, max_length=100)
    state = serializers.CharField(min_length=2, max_length=100)
    zip_code = serializers.CharField(min_length=5, max_length=20)
    country = serializers.CharField(min_length=2, max_length=100, default="US")


class PaymentInputSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    last_four_digits = serializers.RegexField(
        r"^\d{4}$",
        required=False,
        allow_blank=True,
        error_messages={"invalid": "Last four digits must be exactly 4 digits."},
    )


class OrderItemInputSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=64)
    title = serializers.CharField(max_length=255)
    slug = serializers.SlugField(max_length=255)
    image = serializers.URLField(max_length=500)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    quantity = serializers.IntegerField(min_value=1)


class OrderCreateSerializer(serializers.Serializer):
    """
    Checkout payload.

    `subtotal`, `tax`, `shipping` and `total` are accepted for compatibility
    with clients that send them but are ignored.
    """

    customer = CustomerInfoSerializer()
    shipping_address = ShippingAddressSerializer()
    items = OrderItemInputSerializer(many=True, allow_empty=False)
    payment = PaymentInputSerializer()
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("Order must have at least one item")
        return value


class CheckoutSerializer(OrderCreateSerializer):
    """Checkout payload for gateway payments; the method is implied."""

    payment = None


class OrderSerializer(serializers.ModelSerializer):
    """
    Full order representation.
    """

    customer = serializers.SerializerMethodField()
    shipping_address = serializers.SerializerMethodField()
    payment = serializers.SerializerMethodField()
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    status_label = serializers.SerializerMethodField()
    can_cancel = serializers.BooleanField(source="can_be_cancelled", read_only=True)
    next_statuses = serializers.ListField(read_only=True, child=serializers.CharField())

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "customer",
            "shipping_address",
            "items",
            "subtotal",
            "tax",
            "shipping",
            "total",
            "payment",
            "status",
            "status_label",
            "status_history",
            "can_cancel",
            "next_statuses",
            "notes",
            "tracking_number",
            "estimated_delivery",
            "created_at",
            "updated_at",
            "shipped_at",
            "delivered_at",
        ]
        read_only_fields = fields

    def get_customer(self, obj):
        return {
            "email": obj.customer_email,
            "first_name": obj.customer_first_name,
            "last_name": obj.customer_last_name,
            "phone": obj.customer_phone,
        }

    def get_shipping_address(self, obj):
        return {
            "address": obj.shipping_address,
            "city": obj.shipping_city,
            "state": obj.shipping_state,
            "zip_code": obj.shipping_zip_code,
            "country": obj.shipping_country,
        }

    def get_payment(self, obj):
        return {
            "method": obj.payment_method,
            "status": obj.payment_status,
            "transaction_id": obj.payment_transaction_id or None,
            "last_four_digits": obj.payment_last_four_digits or None,
            "failure_reason": obj.payment_failure_reason or None,
            "completed_at": obj.payment_completed_at,
        }

    def get_status_label(self, obj):
        return get_status_config(obj.status).label


class OrderQueryParamsSerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=MAX_PAGE_SIZE, default=10)
    status = serializers.ChoiceField(choices=["all"] + list(OrderStatus.values), default="all")
    search = serializers.CharField(required=False, allow_blank=True, default="")
    sort_by = serializers.ChoiceField(
        choices=sorted(DB_SORT_FIELDS | MEMORY_SORT_FIELDS),
        default="created_at",
    )
    sort_order = serializers.ChoiceField(choices=["asc", "desc"], default="desc")


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(required=False, allow_blank=True, max_length=500)
    tracking_number = serializers.CharField(required=False, allow_blank=True, max_length=100)


class OrderUpdateSerializer(serializers.Serializer):
    """Admin edit; at least one field is required."""

    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    status_note = serializers.CharField(required=False, allow_blank=True, max_length=500)
    tracking_number = serializers.CharField(required=False, allow_blank=True, max_length=100)
    estimated_delivery = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("No changes provided")
        return attrs


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)
