from django.contrib import admin

from .models import Product, ProductSizeOption


class ProductSizeOptionInline(admin.TabularInline):
    model = ProductSizeOption
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["title", "category", "section", "price", "mrp", "stock", "is_active", "created_at"]
    list_filter = ["category", "section", "is_active"]
    search_fields = ["title", "slug", "sku"]
    prepopulated_fields = {"slug": ("title",)}
    readonly_fields = ["created_at", "updated_at"]
    inlines = [ProductSizeOptionInline]
