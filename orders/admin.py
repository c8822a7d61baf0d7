from django.contrib import admin

from .models import Order, OrderCounter, OrderItem, OrderStatusHistory, OrderSummary


class OrderItemInline(admin.TabularInline):
    """Line items are a checkout snapshot and cannot be added or edited here."""
    model = OrderItem
    extra = 0
    readonly_fields = ["product_id", "title", "slug", "image", "price", "quantity", "subtotal"]
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class OrderStatusHistoryInline(admin.TabularInline):
    """History is append-only; status changes go through the order API."""
    model = OrderStatusHistory
    extra = 0
    readonly_fields = ["status", "timestamp", "note", "updated_by"]
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ["order_number", "customer_email", "status", "payment_status", "total", "created_at"]
    list_filter = ["status", "payment_status", "payment_method", "created_at"]
    search_fields = ["order_number", "customer_email", "customer_first_name", "customer_last_name"]
    readonly_fields = [
        "order_number",
        "user",
        "customer_email",
        "customer_first_name",
        "customer_last_name",
        "customer_phone",
        "shipping_address",
        "shipping_city",
        "shipping_state",
        "shipping_zip_code",
        "shipping_country",
        "status",
        "subtotal",
        "tax",
        "shipping",
        "total",
        "payment_method",
        "payment_status",
        "payment_transaction_id",
        "payment_last_four_digits",
        "payment_failure_reason",
        "payment_completed_at",
        "created_at",
        "updated_at",
        "shipped_at",
        "delivered_at",
    ]
    date_hierarchy = "created_at"
    inlines = [OrderItemInline, OrderStatusHistoryInline]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(OrderSummary)
class OrderSummaryAdmin(admin.ModelAdmin):
    list_display = ["order_number", "user", "status", "total", "item_count", "created_at"]
    list_filter = ["status"]
    search_fields = ["order_number"]


@admin.register(OrderCounter)
class OrderCounterAdmin(admin.ModelAdmin):
    list_display = ["last_date", "last_number", "updated_at"]
    readonly_fields = ["updated_at"]
