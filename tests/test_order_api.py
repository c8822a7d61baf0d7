from unittest import mock

import pytest
from django.db import DatabaseError

from orders import services
from orders.models import Order

pytestmark = pytest.mark.django_db

ORDERS_URL = "/api/orders/"
ADMIN_ORDERS_URL = "/api/admin/orders/"


class TestCustomerOrderApi:
    def test_requires_authentication(self, api_client):
        assert api_client.get(ORDERS_URL).status_code == 401

    def test_create_order(self, customer_client, api_order_payload):
        response = customer_client.post(ORDERS_URL, api_order_payload, format="json")

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        order = body["order"]
        assert order["order_number"].startswith("ORD-")
        assert order["status"] == "pending"
        assert order["total"] == 216.0
        assert order["customer"]["first_name"] == "Asha"
        assert order["shipping_address"]["zip_code"] == "250001"
        assert order["payment"]["method"] == "cod"
        assert order["next_statuses"] == ["confirmed", "cancelled"]
        assert order["can_cancel"] is True
        assert [entry["status"] for entry in order["status_history"]] == ["pending"]

    def test_create_order_validation(self, customer_client, api_order_payload):
        api_order_payload["customer"]["phone"] = "12345"
        api_order_payload["items"] = []

        response = customer_client.post(ORDERS_URL, api_order_payload, format="json")

        assert response.status_code == 400
        body = response.json()
        assert body == {"success": False, "error": "Invalid order data", "details": mock.ANY}
        assert "items" in body["details"]
        assert body["details"]["customer"]["phone"] == ["Phone number must be at least 10 digits"]

    def test_create_order_database_failure(self, customer_client, api_order_payload):
        with mock.patch("orders.services.create_order", side_effect=DatabaseError("disk full")):
            response = customer_client.post(ORDERS_URL, api_order_payload, format="json")
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Failed to create order"}

    def test_list_own_orders(self, customer_client, make_order, other_customer):
        make_order()
        make_order(user=other_customer)

        response = customer_client.get(ORDERS_URL, {"limit": 10})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["has_more"] is False
        assert len(body["orders"]) == 1

    def test_list_rejects_bad_sort(self, customer_client):
        response = customer_client.get(ORDERS_URL, {"sort_by": "password"})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_retrieve_own_order(self, customer_client, order):
        response = customer_client.get(f"{ORDERS_URL}{order.pk}/")
        assert response.status_code == 200
        assert response.json()["order"]["id"] == order.pk

    def test_retrieve_someone_elses_order(self, other_client, order):
        response = other_client.get(f"{ORDERS_URL}{order.pk}/")
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Unauthorized: Order does not belong to user"}

    def test_retrieve_missing_order(self, customer_client):
        response = customer_client.get(f"{ORDERS_URL}987654/")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Order not found"}

    def test_retrieve_by_number(self, customer_client, order):
        response = customer_client.get(f"{ORDERS_URL}by-number/{order.order_number.lower()}/")
        assert response.status_code == 200
        assert response.json()["order"]["order_number"] == order.order_number

    def test_cancel(self, customer_client, order):
        response = customer_client.post(f"{ORDERS_URL}{order.pk}/cancel/", {"reason": "Found a cheaper one"}, format="json")

        assert response.status_code == 200
        body = response.json()
        assert body["order"]["status"] == "cancelled"
        assert body["order"]["status_history"][-1]["note"] == "Found a cheaper one"

    def test_cancel_processing_order(self, customer_client, order):
        services.update_order_status(order.pk, "confirmed")
        services.update_order_status(order.pk, "processing")

        response = customer_client.post(f"{ORDERS_URL}{order.pk}/cancel/", format="json")

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Order cannot be cancelled in processing status"}

    def test_cancel_someone_elses_order(self, other_client, order):
        response = other_client.post(f"{ORDERS_URL}{order.pk}/cancel/", format="json")
        assert response.status_code == 403
        order.refresh_from_db()
        assert order.status == "pending"

    def test_cancel_writes_audit_log(self, customer_client, order):
        from authentication.models import AuditLog

        customer_client.post(f"{ORDERS_URL}{order.pk}/cancel/", format="json")

        log = AuditLog.objects.get(action="CANCEL")
        assert log.resource_type == "ORDER"
        assert log.resource_id == order.order_number
        assert log.status == "SUCCESS"


class TestAdminOrderApi:
    def test_customers_are_forbidden(self, customer_client):
        response = customer_client.get(ADMIN_ORDERS_URL)
        assert response.status_code == 403

    def test_list_all_orders(self, staff_client, make_order, other_customer):
        make_order()
        make_order(user=other_customer)

        response = staff_client.get(ADMIN_ORDERS_URL, {"status": "pending", "sort_by": "order_number"})

        assert response.status_code == 200
        assert response.json()["total"] == 2

    def test_update_status(self, staff_client, order, store_admin):
        response = staff_client.put(
            f"{ADMIN_ORDERS_URL}{order.pk}/status/",
            {"status": "confirmed", "note": "Payment verified"},
            format="json",
        )

        assert response.status_code == 200
        body = response.json()
        assert body["order"]["status"] == "confirmed"
        last = body["order"]["status_history"][-1]
        assert last["note"] == "Payment verified"
        assert last["updated_by"] == store_admin.email

    def test_update_status_invalid_transition(self, staff_client, order):
        response = staff_client.put(f"{ADMIN_ORDERS_URL}{order.pk}/status/", {"status": "delivered"}, format="json")
        assert response.status_code == 400
        assert response.json()["error"] == "Cannot transition order from pending to delivered"

    def test_update_status_unknown_value(self, staff_client, order):
        response = staff_client.put(f"{ADMIN_ORDERS_URL}{order.pk}/status/", {"status": "lost"}, format="json")
        assert response.status_code == 400
        assert "status" in response.json()["details"]

    def test_update_status_missing_order(self, staff_client):
        response = staff_client.put(f"{ADMIN_ORDERS_URL}123456/status/", {"status": "confirmed"}, format="json")
        assert response.status_code == 404

    def test_patch_order(self, staff_client, order):
        response = staff_client.patch(
            f"{ADMIN_ORDERS_URL}{order.pk}/",
            {"tracking_number": "DLV-9981", "notes": "Fragile"},
            format="json",
        )
        assert response.status_code == 200
        body = response.json()["order"]
        assert body["tracking_number"] == "DLV-9981"
        assert body["notes"] == "Fragile"

    def test_patch_without_changes(self, staff_client, order):
        response = staff_client.patch(f"{ADMIN_ORDERS_URL}{order.pk}/", {}, format="json")
        assert response.status_code == 400

    def test_statistics(self, staff_client, make_order):
        make_order()

        response = staff_client.get(f"{ADMIN_ORDERS_URL}statistics/")

        assert response.status_code == 200
        stats = response.json()["statistics"]
        assert stats["total_orders"] == 1
        assert stats["total_revenue"] == 216.0
        assert stats["orders_by_status"]["pending"] == 1

    def test_retrieve_any_order(self, staff_client, order):
        response = staff_client.get(f"{ADMIN_ORDERS_URL}{order.pk}/")
        assert response.status_code == 200
        assert Order.objects.get(pk=response.json()["order"]["id"]) == order
