import logging

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.utils.translation import gettext_lazy as _
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.tokens import RefreshToken
from django_ratelimit.decorators import ratelimit

from . import customers
from .audit import log_audit_event
from .models import Role
from .permissions import HasAdminRole
from .serializers import (
    CustomerQueryParamsSerializer,
    CustomerSerializer,
    CustomerStatusSerializer,
    LoginSerializer,
    RoleAssignmentSerializer,
    RoleSerializer,
    UserRegistrationSerializer,
    UserSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()


def _issue_tokens_for_user(user) -> dict:
    refresh = RefreshToken.for_user(user)
    return {
        "refresh": str(refresh),
        "access": str(refresh.access_token),
    }


@ratelimit(key="ip", rate="10/m", method="POST")
@api_view(["POST"])
@permission_classes([AllowAny])
def register_user(request):
    serializer = UserRegistrationSerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
    user = serializer.save()
    return Response(
        {
            "message": _("Registration successful."),
            "user": UserSerializer(user).data,
            "tokens": _issue_tokens_for_user(user),
        },
        status=status.HTTP_201_CREATED,
    )


@ratelimit(key="ip", rate="20/m", method="POST")
@api_view(["POST"])
@permission_classes([AllowAny])
def login_user(request):
    serializer = LoginSerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
    user = serializer.validated_data["user"]
    log_audit_event(request, "LOGIN", "USER", user.id, "SUCCESS")
    return Response(
        {
            "message": _("Login successful."),
            "user": UserSerializer(user).data,
            "tokens": _issue_tokens_for_user(user),
        },
        status=status.HTTP_200_OK,
    )


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def me(request):
    return Response(UserSerializer(request.user).data, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([HasAdminRole])
def list_users(request):
    queryset = User.objects.all().order_by("-created_at")
    return Response(UserSerializer(queryset, many=True).data, status=status.HTTP_200_OK)


@api_view(["POST"])
@permission_classes([HasAdminRole])
def assign_roles(request):
    serializer = RoleAssignmentSerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
    user = serializer.save()
    log_audit_event(
        request, "ASSIGN_ROLES", "USER", user.id, "SUCCESS",
        {"roles": sorted(role.name for role in serializer.validated_data["role_instances"])},
    )
    return Response(
        {"message": _("Roles updated successfully."), "user": UserSerializer(user).data},
        status=status.HTTP_200_OK,
    )


@api_view(["GET", "POST"])
@permission_classes([HasAdminRole])
def roles(request):
    if request.method == "GET":
        return Response(RoleSerializer(Role.objects.all(), many=True).data, status=status.HTTP_200_OK)

    serializer = RoleSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    role = serializer.save()
    return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)


def _customer_not_found():
    return Response({"success": False, "error": _("Customer not found")}, status=status.HTTP_404_NOT_FOUND)


@api_view(["GET"])
@permission_classes([HasAdminRole])
def list_customers(request):
    params = CustomerQueryParamsSerializer(data=request.query_params)
    if not params.is_valid():
        return Response(
            {"success": False, "error": _("Invalid query parameters"), "details": params.errors},
            status=status.HTTP_400_BAD_REQUEST,
        )

    try:
        result = customers.list_customers(params.validated_data)
        stats = customers.get_customer_stats()
    except DatabaseError as e:
        logger.error(f"Error fetching customers: {e}")
        return Response(
            {"success": False, "error": _("Failed to fetch customers")},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return Response(
        {
            "success": True,
            "customers": CustomerSerializer(result["customers"], many=True).data,
            "total": result["total"],
            "has_more": result["has_more"],
            "stats": stats,
        },
        status=status.HTTP_200_OK,
    )


@api_view(["GET"])
@permission_classes([HasAdminRole])
def customer_detail(request, pk):
    try:
        customer = customers.get_customer(pk)
    except customers.CustomerNotFound:
        return _customer_not_found()
    return Response({"success": True, "customer": CustomerSerializer(customer).data}, status=status.HTTP_200_OK)


@ratelimit(key="ip", rate="30/m", method="PATCH")
@api_view(["PATCH"])
@permission_classes([HasAdminRole])
def update_customer_status(request, pk):
    """
    Activate or deactivate a customer account.

    Security:
    - ADMIN role required; staff accounts are not customers and cannot be changed here
    - Rate limited: 30 changes per minute per IP
    - Every change is written to the audit log
    """
    serializer = CustomerStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            {"success": False, "error": _("Invalid status"), "details": serializer.errors},
            status=status.HTTP_400_BAD_REQUEST,
        )

    is_active = serializer.validated_data["is_active"]
    try:
        customer = customers.set_customer_active(pk, is_active)
    except customers.CustomerNotFound:
        return _customer_not_found()

    log_audit_event(request, "UPDATE_CUSTOMER_STATUS", "USER", customer.pk, "SUCCESS", {"is_active": is_active})
    return Response(
        {
            "success": True,
            "message": _("Customer activated.") if is_active else _("Customer deactivated."),
            "customer": CustomerSerializer(customer).data,
        },
        status=status.HTTP_200_OK,
    )
