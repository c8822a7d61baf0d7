"""
URL configuration for the storefront backend.

- Django admin interface
- Product, order and admin order ViewSet routes
- Authentication and JWT token endpoints
- PhonePe payment endpoints
"""

from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from orders.views import AdminOrderViewSet, OrderViewSet
from products.views import ProductViewSet

router = DefaultRouter()
router.register(r"products", ProductViewSet, basename="product")
router.register(r"orders", OrderViewSet, basename="order")
router.register(r"admin/orders", AdminOrderViewSet, basename="admin-order")

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include(router.urls)),
    path("api/", include("authentication.urls")),
    path("api/", include("payments.urls")),
]
