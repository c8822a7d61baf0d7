"""
PhonePe payment endpoints.

Security Considerations:
- Initiation and status polling require an authenticated customer
- Customers can only poll payments of their own orders
- Callbacks are unauthenticated server-to-server calls; when callback
  credentials are configured, the Authorization header must match
- Without callback credentials the posted state is ignored and the payment
  status is re-read from the gateway
- Rate limiting on initiation
"""

import logging

from django.core.exceptions import ImproperlyConfigured
from django_ratelimit.decorators import ratelimit
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from orders import services as order_services
from orders.exceptions import OrderError, OrderNotFound
from orders.serializers import CheckoutSerializer
from orders.views import error_response, order_error_response

from . import services
from .phonepe import PAYMENT_STATUS_TEXT, parse_callback_payload

logger = logging.getLogger(__name__)


def _gateway_unavailable(exc):
    logger.error(f"PhonePe client unavailable: {exc}")
    return error_response("Payment gateway is not configured", status.HTTP_503_SERVICE_UNAVAILABLE)


@ratelimit(key="ip", rate="10/m", method="POST")
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def initiate_payment(request):
    order_data = request.data.get("order_data", request.data)
    serializer = CheckoutSerializer(data=order_data)
    if not serializer.is_valid():
        return error_response("Invalid order data", details=serializer.errors)

    try:
        client = services.get_phonepe_client()
    except ImproperlyConfigured as e:
        return _gateway_unavailable(e)

    try:
        order, result = services.initiate_checkout(request.user, serializer.validated_data, client)
    except OrderError as e:
        return order_error_response(e)

    if not result.success:
        return Response(
            {
                "success": False,
                "error": "Payment initiation failed",
                "code": result.code,
                "message": result.message,
                "order_id": order.pk,
                "order_number": order.order_number,
            },
            status=status.HTTP_400_BAD_REQUEST,
        )

    return Response(
        {
            "success": True,
            "order_id": order.pk,
            "order_number": order.order_number,
            "redirect_url": result.redirect_url,
            "message": "Payment initiated successfully",
        }
    )


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def payment_status(request):
    order_number = request.query_params.get("order_number")
    if not order_number:
        return error_response("Missing order_number parameter")

    try:
        order = order_services.get_order_by_number(order_number.upper(), user=request.user)
    except OrderError as e:
        return order_error_response(e)
    if order is None:
        return order_error_response(OrderNotFound())

    try:
        client = services.get_phonepe_client()
    except ImproperlyConfigured as e:
        return _gateway_unavailable(e)

    return Response(services.refresh_payment_status(order, client))


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def payment_callback(request):
    try:
        client = services.get_phonepe_client()
    except ImproperlyConfigured as e:
        return _gateway_unavailable(e)

    verified = client.callback_verification_enabled
    if verified and not client.verify_callback(request.headers.get("Authorization", "")):
        logger.warning("PhonePe callback rejected: invalid authorization")
        return Response(
            {"success": False, "message": "Invalid callback authorization"},
            status=status.HTTP_401_UNAUTHORIZED,
        )

    body = request.data if isinstance(request.data, dict) else {}
    merchant_order_id, state, transaction_id, failure_reason = parse_callback_payload(body)
    if not merchant_order_id:
        return Response(
            {"success": False, "message": "Invalid callback data - missing merchantOrderId"},
            status=status.HTTP_400_BAD_REQUEST,
        )
    if state not in PAYMENT_STATUS_TEXT:
        return Response(
            {"success": False, "message": f"Invalid callback data - unknown state {state}"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    order = services.handle_callback(
        client,
        merchant_order_id,
        state,
        transaction_id=transaction_id,
        failure_reason=failure_reason,
        verified=verified,
    )
    if order is None:
        return Response(
            {"success": False, "message": "Order not found"},
            status=status.HTTP_404_NOT_FOUND,
        )

    return Response({"success": True, "message": "Callback processed successfully"})
