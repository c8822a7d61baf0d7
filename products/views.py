"""
Product ViewSet for the storefront API.

Security Features:
- Anyone can browse active products
- Only the ADMIN role can create, update or deactivate products
- Rate limiting on write operations
- Write requests are recorded by AuditLoggingMiddleware
"""

import logging

from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django_filters.rest_framework import DjangoFilterBackend
from django_ratelimit.decorators import ratelimit
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from authentication.permissions import HasAdminRole

from .models import Product
from .serializers import ProductListSerializer, ProductSerializer

logger = logging.getLogger(__name__)


class ProductViewSet(viewsets.ModelViewSet):
    queryset = Product.objects.prefetch_related("size_options")
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ["section", "category", "is_active"]
    search_fields = ["title", "description", "sku"]
    ordering_fields = ["title", "price", "created_at"]
    ordering = ["-created_at"]

    def get_serializer_class(self):
        if self.action == "list":
            return ProductListSerializer
        return ProductSerializer

    def get_queryset(self):
        """
        Admins see every product, including deactivated ones; everyone else
        only sees active products.
        """
        queryset = super().get_queryset()
        user = self.request.user
        if user.is_authenticated and user.is_store_admin:
            return queryset
        return queryset.filter(is_active=True)

    def get_permissions(self):
        if self.action in ["create", "update", "partial_update", "destroy"]:
            return [IsAuthenticated(), HasAdminRole()]
        return [AllowAny()]

    @method_decorator(ratelimit(key="user", rate="10/m", method="POST"))
    def create(self, request, *args, **kwargs):
        response = super().create(request, *args, **kwargs)
        logger.info(f"Product created: {response.data.get('slug')} by {request.user.email}")
        return response

    @method_decorator(ratelimit(key="user", rate="20/m", method=["PUT", "PATCH"]))
    def update(self, request, *args, **kwargs):
        return super().update(request, *args, **kwargs)

    @method_decorator(ratelimit(key="user", rate="10/m", method="DELETE"))
    def destroy(self, request, *args, **kwargs):
        """
        Soft delete: the product is deactivated, never removed.
        """
        instance = self.get_object()
        instance.is_active = False
        instance.save(update_fields=["is_active", "updated_at"])
        logger.info(f"Product deactivated: {instance.slug} by {request.user.email}")
        return Response(
            {"detail": "Product deactivated successfully."},
            status=status.HTTP_200_OK,
        )

    @action(detail=False, methods=["get"], url_path=r"slug/(?P<slug>[-\w]+)")
    def by_slug(self, request, slug=None):
        product = get_object_or_404(self.get_queryset(), slug=slug)
        return Response(ProductSerializer(product).data)
