import pytest
from django.contrib.auth import get_user_model

from authentication.models import ADMIN_ROLE, AuditLog, Role

pytestmark = pytest.mark.django_db

User = get_user_model()

PASSWORD = "Str0ng-Passw0rd!"


@pytest.fixture
def registration_payload():
    return {
        "email": "Neha@Example.com",
        "username": "neha",
        "first_name": "Neha",
        "last_name": "Kapoor",
        "phone_number": "+919876500000",
        "password": "Teak-Wardrobe-42",
        "password_confirm": "Teak-Wardrobe-42",
    }


class TestRegistration:
    def test_register(self, api_client, registration_payload):
        response = api_client.post("/api/auth/register/", registration_payload, format="json")

        assert response.status_code == 201
        assert response.data["user"]["email"] == "neha@example.com"
        assert response.data["user"]["is_store_admin"] is False
        assert set(response.data["tokens"]) == {"access", "refresh"}
        assert User.objects.get(email="neha@example.com").check_password("Teak-Wardrobe-42")
        assert AuditLog.objects.filter(action="REGISTER", resource_type="USER", status="SUCCESS").exists()

    def test_password_mismatch(self, api_client, registration_payload):
        registration_payload["password_confirm"] = "something-else-42"

        response = api_client.post("/api/auth/register/", registration_payload, format="json")

        assert response.status_code == 400
        assert "password_confirm" in response.data
        assert not User.objects.filter(email="neha@example.com").exists()

    def test_missing_default_role_leaves_no_account(self, api_client, registration_payload, settings):
        settings.DEFAULT_CUSTOMER_ROLE = "CUSTOMER"

        response = api_client.post("/api/auth/register/", registration_payload, format="json")

        assert response.status_code == 400
        assert "non_field_errors" in response.data
        assert not User.objects.filter(email="neha@example.com").exists()

    def test_default_role_is_assigned(self, api_client, registration_payload, settings):
        settings.DEFAULT_CUSTOMER_ROLE = "CUSTOMER"
        Role.objects.create(name="CUSTOMER", display_name="Customer")

        response = api_client.post("/api/auth/register/", registration_payload, format="json")

        assert response.status_code == 201
        assert User.objects.get(email="neha@example.com").has_role("CUSTOMER")


class TestLogin:
    def test_login_with_email(self, api_client, customer):
        response = api_client.post(
            "/api/auth/login/", {"identifier": "ASHA@example.com", "password": PASSWORD}, format="json"
        )

        assert response.status_code == 200
        assert response.data["user"]["id"] == customer.pk
        assert "access" in response.data["tokens"]

    def test_login_with_phone_number(self, api_client, customer):
        response = api_client.post(
            "/api/auth/login/", {"identifier": "+919812345678", "password": PASSWORD}, format="json"
        )

        assert response.status_code == 200
        assert response.data["user"]["email"] == customer.email

    def test_access_token_authenticates_requests(self, api_client, customer):
        login = api_client.post(
            "/api/auth/login/", {"identifier": customer.email, "password": PASSWORD}, format="json"
        )
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['tokens']['access']}")

        response = api_client.get("/api/auth/me/")

        assert response.status_code == 200
        assert response.data["email"] == customer.email

    def test_wrong_password(self, api_client, customer):
        response = api_client.post(
            "/api/auth/login/", {"identifier": customer.email, "password": "nope"}, format="json"
        )

        assert response.status_code == 401
        customer.refresh_from_db()
        assert customer.failed_login_attempts == 1

    def test_repeated_failures_lock_the_account(self, api_client, customer, settings):
        settings.AUTH_LOCKOUT_THRESHOLD = 3
        for _ in range(3):
            api_client.post("/api/auth/login/", {"identifier": customer.email, "password": "nope"}, format="json")

        response = api_client.post(
            "/api/auth/login/", {"identifier": customer.email, "password": PASSWORD}, format="json"
        )

        assert response.status_code == 401
        assert "locked" in str(response.data["detail"])
        customer.refresh_from_db()
        assert customer.is_account_locked

    def test_successful_login_resets_failures(self, api_client, customer):
        api_client.post("/api/auth/login/", {"identifier": customer.email, "password": "nope"}, format="json")

        api_client.post("/api/auth/login/", {"identifier": customer.email, "password": PASSWORD}, format="json")

        customer.refresh_from_db()
        assert customer.failed_login_attempts == 0

    def test_unknown_identifier(self, api_client):
        response = api_client.post(
            "/api/auth/login/", {"identifier": "ghost@example.com", "password": PASSWORD}, format="json"
        )
        assert response.status_code == 401


class TestRoles:
    def test_admin_assigns_roles(self, staff_client, customer):
        response = staff_client.post(
            "/api/auth/roles/assign/", {"user_email": customer.email, "roles": ["admin"]}, format="json"
        )

        assert response.status_code == 200
        assert customer.has_role(ADMIN_ROLE)
        assert customer.role_memberships.get().assigned_by.email == "admin@example.com"

    def test_unknown_role(self, staff_client, customer):
        response = staff_client.post(
            "/api/auth/roles/assign/", {"user_email": customer.email, "roles": ["WIZARD"]}, format="json"
        )

        assert response.status_code == 400
        assert "roles" in response.data

    def test_customer_cannot_assign_roles(self, customer_client, customer, store_admin):
        response = customer_client.post(
            "/api/auth/roles/assign/", {"user_email": customer.email, "roles": ["ADMIN"]}, format="json"
        )

        assert response.status_code == 403
        assert not customer.has_role(ADMIN_ROLE)

    def test_list_users_is_admin_only(self, staff_client, customer_client, customer):
        assert staff_client.get("/api/auth/users/").status_code == 200
        assert customer_client.get("/api/auth/users/").status_code == 403

    def test_superuser_is_store_admin(self, django_user_model):
        user = django_user_model.objects.create_superuser(
            email="root@example.com", username="root", password=PASSWORD
        )
        assert user.is_store_admin


def test_security_headers(api_client):
    response = api_client.get("/api/products/")

    assert response["X-Content-Type-Options"] == "nosniff"
    assert response["X-Frame-Options"] == "DENY"
    assert "frame-ancestors 'none'" in response["Content-Security-Policy"]
