from rest_framework.permissions import BasePermission

from .models import ADMIN_ROLE


class HasAdminRole(BasePermission):
    """
    Grants access to authenticated users holding the ADMIN role (or superusers).
    """

    message = "Unauthorized: Admin access required"

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.has_role(ADMIN_ROLE))
