"""
Authentication models for the storefront.

Customers sign in with their e-mail address or phone number. Staff access
to the admin dashboard APIs is granted through roles (ADMIN), and every
security-relevant request is written to the audit log.
"""

from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone


ADMIN_ROLE = "ADMIN"
CUSTOMER_ROLE = "CUSTOMER"


class Role(models.Model):
    """
    Authorization role attached to one or more users.
    """

    name = models.CharField(
        max_length=32,
        unique=True,
        help_text="Machine-friendly role identifier, e.g. ADMIN, CUSTOMER.",
        validators=[
            RegexValidator(
                regex=r"^[A-Z_]{3,32}$",
                message="Role names must be uppercase letters and underscores only (3-32 chars).",
            )
        ],
    )
    display_name = models.CharField(max_length=64)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(
        default=True,
        help_text="Inactive roles remain for audit history but cannot be newly assigned.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name",)

    def __str__(self) -> str:
        return self.display_name or self.name


class User(AbstractUser):
    """
    Storefront account.

    E-mail is the login identifier; the phone number is an alternative
    identifier used by the phone sign-in flow and as the default contact
    number at checkout.
    """

    username = models.CharField(
        max_length=50,
        unique=True,
        validators=[
            RegexValidator(
                regex=r"^[A-Za-z0-9_.-]{3,50}$",
                message="Username must be 3-50 characters and may include letters, numbers, underscores, periods or hyphens.",
            )
        ],
    )
    email = models.EmailField(unique=True)
    phone_number = models.CharField(
        max_length=20,
        blank=True,
        db_index=True,
        help_text="International format recommended, e.g. +919812345678.",
        validators=[
            RegexValidator(
                regex=r"^\+?[1-9]\d{7,14}$",
                message="Enter a valid phone number in international format (8-15 digits, optional leading +).",
            )
        ],
    )
    is_verified = models.BooleanField(default=False)
    roles = models.ManyToManyField(
        Role,
        through="UserRole",
        through_fields=("user", "role"),
        related_name="users",
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    failed_login_attempts = models.PositiveIntegerField(default=0)
    last_failed_login = models.DateTimeField(null=True, blank=True)
    account_locked_until = models.DateTimeField(null=True, blank=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    objects = UserManager()

    class Meta:
        ordering = ("-created_at",)

    def __str__(self) -> str:
        return f"{self.email} ({self.get_full_name() or self.username})"

    @property
    def is_account_locked(self) -> bool:
        return bool(self.account_locked_until and timezone.now() < self.account_locked_until)

    def register_failed_login(self, threshold: int, minutes: int) -> None:
        self.failed_login_attempts += 1
        self.last_failed_login = timezone.now()
        if self.failed_login_attempts >= threshold:
            self.account_locked_until = timezone.now() + timedelta(minutes=minutes)
        self.save(update_fields=["failed_login_attempts", "last_failed_login", "account_locked_until"])

    def reset_failed_logins(self) -> None:
        self.failed_login_attempts = 0
        self.last_failed_login = None
        self.account_locked_until = None
        self.save(update_fields=["failed_login_attempts", "last_failed_login", "account_locked_until"])

    def has_role(self, *role_names: str) -> bool:
        """
        Whether the user holds any of the given active roles.
        Superusers always return True.
        """
        if self.is_superuser:
            return True
        return self.roles.filter(name__in=role_names, is_active=True).exists()

    @property
    def is_store_admin(self) -> bool:
        return self.is_authenticated and self.has_role(ADMIN_ROLE)


class UserRole(models.Model):
    """
    Who granted which role to a user and when.
    """

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="role_memberships")
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="role_memberships")
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="roles_granted",
    )
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("user", "role")
        ordering = ("-assigned_at",)

    def __str__(self) -> str:
        return f"{self.user.email} -> {self.role.name}"


class AuditLog(models.Model):
    """
    Security event record.

    Written for logins, order mutations, admin status changes and payment
    callbacks. Rows are never deleted.
    """

    STATUS_CHOICES = [
        ("SUCCESS", "Success"),
        ("FAILURE", "Failure"),
        ("BLOCKED", "Blocked"),
    ]

    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    action = models.CharField(max_length=100, db_index=True)
    resource_type = models.CharField(max_length=100, db_index=True)
    resource_id = models.CharField(max_length=100, null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    request_path = models.CharField(max_length=500, blank=True)
    request_method = models.CharField(max_length=10, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="SUCCESS", db_index=True)
    metadata = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["user", "timestamp"]),
            models.Index(fields=["action", "status", "timestamp"]),
            models.Index(fields=["resource_type", "resource_id"]),
        ]

    def __str__(self):
        user_str = self.user.email if self.user else "Anonymous"
        return f"{self.action} on {self.resource_type} by {user_str} at {self.timestamp}"
