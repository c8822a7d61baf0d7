"""
Order ViewSets for the storefront API.

Customers manage their own orders through OrderViewSet; store staff use
AdminOrderViewSet. Both are thin: validation happens in serializers and
every read and write goes through `orders.services`.

Security Considerations:
- Authentication required for all order endpoints
- Customers only ever see their own orders (ownership enforced by the repository)
- Admin endpoints require the ADMIN role
- Rate limiting on order creation, cancellation and status changes
- Mutating requests are recorded by AuditLoggingMiddleware
"""

import logging

from django.db import DatabaseError
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from authentication.permissions import HasAdminRole

from . import services
from .exceptions import OrderError, OrderNotFound
from .serializers import (
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderQueryParamsSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
    OrderUpdateSerializer,
)

logger = logging.getLogger(__name__)


def error_response(message, status_code=status.HTTP_400_BAD_REQUEST, details=None):
    body = {"success": False, "error": message}
    if details is not None:
        body["details"] = details
    return Response(body, status=status_code)


def order_error_response(exc):
    return error_response(exc.message, exc.status_code)


def order_response(order, status_code=status.HTTP_200_OK, **extra):
    body = {"success": True, "order": OrderSerializer(order).data}
    body.update(extra)
    return Response(body, status=status_code)


def order_list_response(result):
    return Response(
        {
            "success": True,
            "orders": OrderSerializer(result["orders"], many=True).data,
            "has_more": result["has_more"],
            "total": result["total"],
        }
    )


def parse_query_params(request):
    """Returns (params, error_response)."""
    serializer = OrderQueryParamsSerializer(data=request.query_params)
    if not serializer.is_valid():
        return None, error_response("Invalid query parameters", details=serializer.errors)
    return serializer.validated_data, None


class OrderViewSet(viewsets.ViewSet):
    """
    Customer order endpoints.

    Security Features:
    - Authentication required for all operations
    - Ownership checked on every lookup
    - Order number, totals and status are assigned server-side
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def list(self, request):
        params, error = parse_query_params(request)
        if error:
            return error
        try:
            result = services.get_user_orders(request.user, params)
        except DatabaseError as e:
            logger.error(f"Error fetching orders for user {request.user.pk}: {e}")
            return error_response("Failed to fetch orders", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return order_list_response(result)

    @method_decorator(ratelimit(key="user", rate="5/m", method="POST"))
    @method_decorator(ratelimit(key="ip", rate="10/m", method="POST"))
    def create(self, request):
        """
        Place an order.

        Security:
        - Rate limited: 5 orders per minute per user, 10 per minute per IP
        - Owner is always request.user
        - Totals are recalculated server-side
        """
        serializer = OrderCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response("Invalid order data", details=serializer.errors)

        try:
            order = services.create_order(request.user, serializer.validated_data)
        except OrderError as e:
            return order_error_response(e)
        except DatabaseError as e:
            logger.error(f"Error creating order for user {request.user.pk}: {e}")
            return error_response("Failed to create order", status.HTTP_500_INTERNAL_SERVER_ERROR)

        return order_response(
            services.get_order_by_id(order.pk),
            status.HTTP_201_CREATED,
            message="Order created successfully",
        )

    def retrieve(self, request, pk=None):
        try:
            order = services.get_order_by_id(pk, user=request.user)
        except OrderError as e:
            return order_error_response(e)
        if order is None:
            return order_error_response(OrderNotFound())
        return order_response(order)

    @action(detail=False, methods=["get"], url_path=r"by-number/(?P<order_number>[^/]+)")
    def by_number(self, request, order_number=None):
        try:
            order = services.get_order_by_number(order_number.upper(), user=request.user)
        except OrderError as e:
            return order_error_response(e)
        if order is None:
            return order_error_response(OrderNotFound())
        return order_response(order)

    @action(detail=True, methods=["post"])
    @method_decorator(ratelimit(key="user", rate="10/m", method="POST"))
    def cancel(self, request, pk=None):
        """
        Cancel an order.

        Security:
        - Rate limited: 10 cancellations per minute per user
        - Only the owner can cancel, and only while pending or confirmed
        """
        serializer = OrderCancelSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response("Invalid cancellation request", details=serializer.errors)
        reason = serializer.validated_data.get("reason") or "Cancelled by customer"

        try:
            order = services.cancel_order(pk, request.user, reason)
        except OrderError as e:
            logger.warning(f"Cancellation of order {pk} by user {request.user.pk} refused: {e.message}")
            return order_error_response(e)

        return order_response(order, message="Order cancelled successfully")


class AdminOrderViewSet(viewsets.ViewSet):
    """
    Store staff order management.

    Security Features:
    - ADMIN role required
    - Status changes validated against the transition table
    - Every change is attributed to the acting admin in the status history
    """

    permission_classes = [IsAuthenticated, HasAdminRole]
    lookup_value_regex = r"\d+"

    def list(self, request):
        params, error = parse_query_params(request)
        if error:
            return error
        try:
            result = services.get_all_orders(params)
        except DatabaseError as e:
            logger.error(f"Error fetching admin orders: {e}")
            return error_response("Failed to fetch orders", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return order_list_response(result)

    def retrieve(self, request, pk=None):
        order = services.get_order_by_id(pk)
        if order is None:
            return order_error_response(OrderNotFound())
        return order_response(order)

    @method_decorator(ratelimit(key="user", rate="30/m", method="PATCH"))
    def partial_update(self, request, pk=None):
        serializer = OrderUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response("Invalid update data", details=serializer.errors)

        try:
            order = services.update_order(pk, serializer.validated_data, updated_by=request.user.email)
        except OrderError as e:
            return order_error_response(e)

        return order_response(order, message="Order updated successfully")

    @action(detail=True, methods=["put"], url_path="status")
    @method_decorator(ratelimit(key="user", rate="30/m", method="PUT"))
    def update_status(self, request, pk=None):
        """
        Move an order to a new status.

        Security:
        - Rate limited: 30 status changes per minute per admin
        - Invalid transitions are rejected with the reason
        """
        serializer = OrderStatusUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response("Invalid status", details=serializer.errors)

        data = serializer.validated_data
        try:
            order = services.update_order_status(
                pk,
                data["status"],
                note=data.get("note"),
                updated_by=request.user.email,
                tracking_number=data.get("tracking_number"),
            )
        except OrderError as e:
            logger.warning(f"Status update of order {pk} to {data['status']} refused: {e.message}")
            return order_error_response(e)

        return order_response(order, message="Order status updated successfully")

    @action(detail=False, methods=["get"])
    def statistics(self, request):
        try:
            stats = services.get_order_statistics()
        except DatabaseError as e:
            logger.error(f"Error computing order statistics: {e}")
            return error_response("Failed to fetch statistics", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response({"success": True, "statistics": stats})
