"""
Product serializers for the storefront API.

Size options are nested and written together with their product: an update
that includes `size_options` replaces the whole list.
"""

from django.db import transaction
from rest_framework import serializers

from .models import Product, ProductSizeOption


class ProductSizeOptionSerializer(serializers.ModelSerializer):
    effective_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = ProductSizeOption
        fields = ["id", "label", "value", "price", "effective_price", "in_stock", "is_default"]
        read_only_fields = ["id", "effective_price"]


class ProductSerializer(serializers.ModelSerializer):
    """
    Serializer for Product model.

    Security Features:
    - Read-only fields prevent tampering with timestamps and IDs
    - Price and stock validation prevent invalid data
    """

    size_options = ProductSizeOptionSerializer(many=True, required=False)
    is_in_stock = serializers.BooleanField(read_only=True)
    discount_percent = serializers.IntegerField(read_only=True)
    savings_amount = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "title",
            "slug",
            "description",
            "short_description",
            "category",
            "section",
            "price",
            "mrp",
            "discount_percent",
            "savings_amount",
            "rating_average",
            "rating_count",
            "stock",
            "is_in_stock",
            "sku",
            "image_urls",
            "materials",
            "tags",
            "lead_time_days",
            "is_custom_allowed",
            "size_options",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at", "is_in_stock", "discount_percent", "savings_amount"]

    def validate(self, attrs):
        price = attrs.get("price", getattr(self.instance, "price", None))
        mrp = attrs.get("mrp", getattr(self.instance, "mrp", None))
        if mrp is not None and price is not None and mrp < price:
            raise serializers.ValidationError({"mrp": "MRP cannot be lower than the selling price."})
        return attrs

    def validate_image_urls(self, value):
        if not isinstance(value, list) or not value:
            raise serializers.ValidationError("At least one image URL is required.")
        url_field = serializers.URLField()
        for url in value:
            url_field.run_validation(url)
        return value

    def validate_sku(self, value):
        """
        SKU is optional; when given it is alphanumeric with hyphens and underscores.
        """
        if not value:
            return None
        if not value.replace("-", "").replace("_", "").isalnum():
            raise serializers.ValidationError(
                "SKU must contain only alphanumeric characters, hyphens, and underscores."
            )
        return value.upper()

    def validate_size_options(self, value):
        if sum(1 for option in value if option.get("is_default")) > 1:
            raise serializers.ValidationError("Only one size option can be the default.")
        values = [option["value"] for option in value]
        if len(values) != len(set(values)):
            raise serializers.ValidationError("Size option values must be unique.")
        return value

    def _write_size_options(self, product, options):
        product.size_options.all().delete()
        ProductSizeOption.objects.bulk_create(
            [ProductSizeOption(product=product, **option) for option in options]
        )

    @transaction.atomic
    def create(self, validated_data):
        options = validated_data.pop("size_options", [])
        product = super().create(validated_data)
        self._write_size_options(product, options)
        return product

    @transaction.atomic
    def update(self, instance, validated_data):
        options = validated_data.pop("size_options", None)
        product = super().update(instance, validated_data)
        if options is not None:
            self._write_size_options(product, options)
        return product


class ProductListSerializer(serializers.ModelSerializer):
    """
    Lightweight serializer for product listings (reduces payload size).
    """

    is_in_stock = serializers.BooleanField(read_only=True)
    thumbnail = serializers.CharField(read_only=True)
    discount_percent = serializers.IntegerField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "title",
            "slug",
            "category",
            "section",
            "price",
            "mrp",
            "discount_percent",
            "rating_average",
            "rating_count",
            "thumbnail",
            "is_in_stock",
            "created_at",
        ]
        read_only_fields = fields
