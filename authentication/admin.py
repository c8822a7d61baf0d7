"""
Django admin configuration for accounts, roles and the audit trail.
"""

from django.contrib import admin
from django.contrib.auth import get_user_model

from .models import AuditLog, Role, UserRole

User = get_user_model()


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ["email", "username", "phone_number", "is_verified", "is_active", "created_at"]
    list_filter = ["is_verified", "is_active", "is_superuser"]
    search_fields = ["email", "username", "phone_number", "first_name", "last_name"]
    readonly_fields = ["created_at", "updated_at", "last_login", "date_joined"]


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ["name", "display_name", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "display_name"]


@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ["user", "role", "assigned_by", "assigned_at"]
    list_filter = ["role"]
    search_fields = ["user__email", "role__name"]


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Read-only view of the audit trail."""

    list_display = ["timestamp", "action", "resource_type", "resource_id", "user", "status", "ip_address"]
    list_filter = ["action", "resource_type", "status"]
    search_fields = ["resource_id", "user__email", "ip_address"]
    readonly_fields = [field.name for field in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
