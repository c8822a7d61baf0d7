from django.conf import settings
from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed

from .customers import CUSTOMER_SORT_FIELDS, DEFAULT_CUSTOMER_PAGE_SIZE, MAX_CUSTOMER_PAGE_SIZE
from .models import Role, User, UserRole


class RoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ["id", "name", "display_name", "description", "is_active", "created_at", "updated_at"]
        read_only_fields = ("id", "created_at", "updated_at")


class UserSerializer(serializers.ModelSerializer):
    roles = RoleSerializer(many=True, read_only=True)
    is_store_admin = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "username",
            "first_name",
            "last_name",
            "phone_number",
            "is_active",
            "is_verified",
            "is_store_admin",
            "roles",
            "created_at",
        ]
        read_only_fields = ("id", "is_active", "is_verified", "created_at")


class UserRegistrationSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, style={"input_type": "password"})
    password_confirm = serializers.CharField(write_only=True, style={"input_type": "password"})

    class Meta:
        model = User
        fields = [
            "email",
            "username",
            "first_name",
            "last_name",
            "phone_number",
            "password",
            "password_confirm",
        ]

    def validate_email(self, value: str) -> str:
        return value.lower()

    def validate(self, attrs):
        password_confirm = attrs.pop("password_confirm", None)
        if attrs.get("password") != password_confirm:
            raise serializers.ValidationError({"password_confirm": _("Passwords do not match.")})
        validate_password(attrs["password"])
        return attrs

    @transaction.atomic
    def create(self, validated_data):
        password = validated_data.pop("password")
        user = User.objects.create_user(password=password, **validated_data)

        # New accounts only ever receive the least-privileged role.
        default_role_name = getattr(settings, "DEFAULT_CUSTOMER_ROLE", None)
        if default_role_name:
            role = Role.objects.filter(name=default_role_name, is_active=True).first()
            if role is None:
                raise serializers.ValidationError(
                    {"non_field_errors": [_("Default role '%(role)s' is not configured.") % {"role": default_role_name}]}
                )
            UserRole.objects.get_or_create(user=user, role=role)
        return user


class LoginSerializer(serializers.Serializer):
    """
    Password login with either the e-mail address or the phone number as
    identifier. Repeated failures lock the account for a while.
    """

    identifier = serializers.CharField(max_length=254)
    password = serializers.CharField(write_only=True, style={"input_type": "password"})

    def validate(self, attrs):
        identifier = attrs["identifier"].strip()
        request = self.context.get("request")

        user = User.objects.filter(Q(email__iexact=identifier) | Q(phone_number=identifier)).first()
        if user is None:
            raise AuthenticationFailed(_("Invalid credentials."), code="authorization")

        if user.is_account_locked:
            locked_until = timezone.localtime(user.account_locked_until)
            raise AuthenticationFailed(
                _("Account locked due to repeated failures. Try again at %(datetime)s.") % {"datetime": locked_until},
                code="account_locked",
            )

        if not user.is_active and user.check_password(attrs["password"]):
            raise AuthenticationFailed(_("This account has been deactivated."), code="account_inactive")

        authenticated_user = authenticate(request, username=user.email, password=attrs["password"])
        if not authenticated_user:
            user.register_failed_login(
                getattr(settings, "AUTH_LOCKOUT_THRESHOLD", 5),
                getattr(settings, "AUTH_LOCKOUT_MINUTES", 15),
            )
            raise AuthenticationFailed(_("Invalid credentials."), code="authorization")

        if user.failed_login_attempts:
            user.reset_failed_logins()

        attrs["user"] = authenticated_user
        return attrs


class RoleAssignmentSerializer(serializers.Serializer):
    user_email = serializers.EmailField()
    roles = serializers.ListField(child=serializers.CharField(max_length=32), allow_empty=False)

    def validate(self, attrs):
        user = User.objects.filter(email__iexact=attrs["user_email"]).first()
        if user is None:
            raise serializers.ValidationError({"user_email": _("No user found with that email address.")})

        role_names = {name.upper() for name in attrs["roles"]}
        roles = list(Role.objects.filter(name__in=role_names, is_active=True))
        missing = role_names - {role.name for role in roles}
        if missing:
            raise serializers.ValidationError({"roles": _("Unknown or inactive roles: %(roles)s") % {"roles": ", ".join(sorted(missing))}})

        attrs["user"] = user
        attrs["role_instances"] = roles
        return attrs

    def save(self, **kwargs):
        user = self.validated_data["user"]
        roles = self.validated_data["role_instances"]
        request = self.context.get("request")
        assigning_user = request.user if request and request.user.is_authenticated else None

        UserRole.objects.filter(user=user).exclude(role__in=roles).delete()
        for role in roles:
            UserRole.objects.update_or_create(user=user, role=role, defaults={"assigned_by": assigning_user})
        return user


class CustomerSerializer(serializers.ModelSerializer):
    total_orders = serializers.IntegerField(read_only=True)
    total_spent = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "username",
            "first_name",
            "last_name",
            "phone_number",
            "is_active",
            "is_verified",
            "total_orders",
            "total_spent",
            "last_login",
            "created_at",
        ]


class CustomerQueryParamsSerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=MAX_CUSTOMER_PAGE_SIZE, default=DEFAULT_CUSTOMER_PAGE_SIZE)
    status = serializers.ChoiceField(choices=["all", "active", "inactive"], default="all")
    search = serializers.CharField(required=False, allow_blank=True, default="")
    sort_by = serializers.ChoiceField(choices=sorted(CUSTOMER_SORT_FIELDS), default="created_at")
    sort_order = serializers.ChoiceField(choices=["asc", "desc"], default="desc")


class CustomerStatusSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()
