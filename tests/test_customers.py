from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from authentication import customers
from authentication.models import AuditLog
from orders import services

pytestmark = pytest.mark.django_db

URL = "/api/auth/customers/"
PASSWORD = "Str0ng-Passw0rd!"


def by_email(response):
    return {row["email"]: row for row in response.data["customers"]}


class TestCustomerList:
    def test_lists_customers_with_order_totals(self, staff_client, customer, other_customer, make_order):
        make_order()
        cancelled = make_order()
        services.cancel_order(cancelled.pk, customer)

        response = staff_client.get(URL)

        assert response.status_code == 200
        assert response.data["success"] is True
        rows = by_email(response)
        assert set(rows) == {"asha@example.com", "ravi@example.com"}
        assert rows["asha@example.com"]["total_orders"] == 2
        assert rows["asha@example.com"]["total_spent"] == Decimal("216.00")
        assert rows["ravi@example.com"]["total_orders"] == 0
        assert rows["ravi@example.com"]["total_spent"] == Decimal("0.00")
        assert response.data["total"] == 2
        assert response.data["has_more"] is False

    def test_store_staff_are_not_listed(self, staff_client, customer, django_user_model):
        django_user_model.objects.create_superuser(email="root@example.com", username="root", password=PASSWORD)

        response = staff_client.get(URL)

        assert set(by_email(response)) == {"asha@example.com"}

    def test_status_filter(self, staff_client, customer, other_customer):
        other_customer.is_active = False
        other_customer.save()

        inactive = staff_client.get(URL, {"status": "inactive"})
        active = staff_client.get(URL, {"status": "active"})

        assert set(by_email(inactive)) == {"ravi@example.com"}
        assert set(by_email(active)) == {"asha@example.com"}

    def test_search(self, staff_client, customer, other_customer):
        response = staff_client.get(URL, {"search": "RAVI"})

        assert set(by_email(response)) == {"ravi@example.com"}

    def test_search_by_phone_number(self, staff_client, customer, other_customer):
        response = staff_client.get(URL, {"search": "98123"})

        assert set(by_email(response)) == {"asha@example.com"}

    def test_sort_by_total_spent(self, staff_client, customer, other_customer, make_order):
        make_order()

        descending = staff_client.get(URL, {"sort_by": "total_spent", "sort_order": "desc"})
        ascending = staff_client.get(URL, {"sort_by": "total_spent", "sort_order": "asc"})

        assert descending.data["customers"][0]["email"] == "asha@example.com"
        assert ascending.data["customers"][0]["email"] == "ravi@example.com"

    def test_pagination(self, staff_client, customer, other_customer):
        first = staff_client.get(URL, {"limit": 1, "sort_by": "email", "sort_order": "asc"})
        second = staff_client.get(URL, {"limit": 1, "page": 2, "sort_by": "email", "sort_order": "asc"})

        assert [row["email"] for row in first.data["customers"]] == ["asha@example.com"]
        assert first.data["total"] == 2
        assert first.data["has_more"] is True
        assert [row["email"] for row in second.data["customers"]] == ["ravi@example.com"]
        assert second.data["has_more"] is False

    def test_invalid_query_parameters(self, staff_client):
        response = staff_client.get(URL, {"status": "banned"})

        assert response.status_code == 400
        assert "status" in response.data["details"]

    def test_stats(self, staff_client, customer, other_customer):
        other_customer.is_active = False
        other_customer.save()
        type(customer).objects.filter(pk=customer.pk).update(created_at=timezone.now() - timedelta(days=400))

        response = staff_client.get(URL)

        assert response.data["stats"] == {
            "total_customers": 2,
            "active_customers": 1,
            "new_customers_this_month": 1,
        }

    def test_customers_cannot_list_customers(self, customer_client, api_client):
        assert customer_client.get(URL).status_code == 403
        assert api_client.get(URL).status_code == 401


class TestCustomerDetail:
    def test_detail(self, staff_client, customer, make_order):
        make_order()

        response = staff_client.get(f"{URL}{customer.pk}/")

        assert response.status_code == 200
        assert response.data["customer"]["email"] == customer.email
        assert response.data["customer"]["total_orders"] == 1

    def test_staff_account_is_not_a_customer(self, staff_client, store_admin):
        response = staff_client.get(f"{URL}{store_admin.pk}/")

        assert response.status_code == 404
        assert response.data["success"] is False


class TestCustomerStatus:
    def test_deactivate(self, staff_client, customer):
        response = staff_client.patch(f"{URL}{customer.pk}/status/", {"is_active": False}, format="json")

        assert response.status_code == 200
        assert response.data["customer"]["is_active"] is False
        customer.refresh_from_db()
        assert customer.is_active is False
        assert AuditLog.objects.filter(
            action="UPDATE_CUSTOMER_STATUS", resource_id=str(customer.pk), metadata={"is_active": False}
        ).exists()

    def test_reactivate(self, staff_client, customer):
        customer.is_active = False
        customer.save()

        response = staff_client.patch(f"{URL}{customer.pk}/status/", {"is_active": True}, format="json")

        assert response.status_code == 200
        customer.refresh_from_db()
        assert customer.is_active is True

    def test_deactivated_customer_cannot_log_in(self, staff_client, api_client, customer):
        staff_client.patch(f"{URL}{customer.pk}/status/", {"is_active": False}, format="json")

        response = api_client.post(
            "/api/auth/login/", {"identifier": customer.email, "password": PASSWORD}, format="json"
        )

        assert response.status_code == 401
        assert "deactivated" in str(response.data["detail"])

    def test_staff_accounts_cannot_be_deactivated_here(self, staff_client, store_admin):
        response = staff_client.patch(f"{URL}{store_admin.pk}/status/", {"is_active": False}, format="json")

        assert response.status_code == 404
        store_admin.refresh_from_db()
        assert store_admin.is_active is True

    def test_missing_flag(self, staff_client, customer):
        response = staff_client.patch(f"{URL}{customer.pk}/status/", {}, format="json")

        assert response.status_code == 400
        assert "is_active" in response.data["details"]

    def test_customer_cannot_change_status(self, customer_client, other_customer):
        response = customer_client.patch(f"{URL}{other_customer.pk}/status/", {"is_active": False}, format="json")

        assert response.status_code == 403
        other_customer.refresh_from_db()
        assert other_customer.is_active is True


def test_unknown_customer():
    with pytest.raises(customers.CustomerNotFound):
        customers.set_customer_active(999999, False)


def test_stats_count_new_customers_from_the_first_of_the_month(customer, other_customer):
    type(customer).objects.filter(pk=other_customer.pk).update(created_at=timezone.now() - timedelta(days=62))

    stats = customers.get_customer_stats()

    assert stats["total_customers"] == 2
    assert stats["new_customers_this_month"] == 1
