import copy
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from authentication.models import ADMIN_ROLE, Role, UserRole
from orders import services

ORDER_DATA = {
    "customer": {
        "email": "asha@example.com",
        "first_name": "Asha",
        "last_name": "Verma",
        "phone": "9812345678",
    },
    "shipping_address": {
        "address": "12 MG Road, Sector 4",
        "city": "Meerut",
        "state": "Uttar Pradesh",
        "zip_code": "250001",
        "country": "IN",
    },
    "items": [
        {
            "product_id": "bed-001",
            "title": "Sheesham Wood King Bed",
            "slug": "sheesham-wood-king-bed",
            "image": "https://cdn.example.com/beds/king.jpg",
            "price": Decimal("100.00"),
            "quantity": 2,
        },
    ],
    "payment": {"method": "cod"},
    "notes": "",
}


@pytest.fixture(autouse=True)
def disable_ratelimit(settings):
    settings.RATELIMIT_ENABLE = False
    settings.ORDER_TAX_RATE = Decimal("0.08")
    settings.ORDER_SHIPPING_COST = Decimal("0.00")


@pytest.fixture
def order_data():
    return copy.deepcopy(ORDER_DATA)


@pytest.fixture
def api_order_payload():
    """The checkout payload as a JSON client would send it."""
    payload = copy.deepcopy(ORDER_DATA)
    for item in payload["items"]:
        item["price"] = str(item["price"])
    return payload


@pytest.fixture
def customer(django_user_model):
    return django_user_model.objects.create_user(
        email="asha@example.com",
        username="asha",
        password="Str0ng-Passw0rd!",
        phone_number="+919812345678",
    )


@pytest.fixture
def other_customer(django_user_model):
    return django_user_model.objects.create_user(
        email="ravi@example.com",
        username="ravi",
        password="Str0ng-Passw0rd!",
    )


@pytest.fixture
def store_admin(django_user_model):
    user = django_user_model.objects.create_user(
        email="admin@example.com",
        username="storeadmin",
        password="Str0ng-Passw0rd!",
    )
    role, _ = Role.objects.get_or_create(name=ADMIN_ROLE, defaults={"display_name": "Administrator"})
    UserRole.objects.create(user=user, role=role)
    return user


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def customer_client(customer):
    client = APIClient()
    client.force_authenticate(user=customer)
    return client


@pytest.fixture
def other_client(other_customer):
    client = APIClient()
    client.force_authenticate(user=other_customer)
    return client


@pytest.fixture
def staff_client(store_admin):
    client = APIClient()
    client.force_authenticate(user=store_admin)
    return client


@pytest.fixture
def make_order(customer, order_data):
    def _make_order(user=None, **overrides):
        data = copy.deepcopy(order_data)
        data.update(overrides)
        return services.create_order(user or customer, data)

    return _make_order


@pytest.fixture
def order(make_order):
    return make_order()
