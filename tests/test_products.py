from decimal import Decimal

import pytest

from products.models import Product, ProductSizeOption

pytestmark = pytest.mark.django_db

PRODUCTS_URL = "/api/products/"


def create_product(**overrides):
    fields = {
        "title": "Sheesham Wood King Bed",
        "slug": "sheesham-wood-king-bed",
        "description": "Solid sheesham wood bed with hydraulic storage.",
        "category": Product.Category.BEDS,
        "section": Product.Section.FEATURED,
        "price": Decimal("45999.00"),
        "stock": 4,
        "image_urls": ["https://cdn.example.com/beds/king.jpg", "https://cdn.example.com/beds/king-2.jpg"],
    }
    fields.update(overrides)
    return Product.objects.create(**fields)


@pytest.fixture
def product_payload():
    return {
        "title": "Three Seater Fabric Sofa",
        "slug": "three-seater-fabric-sofa",
        "description": "Deep seated sofa with removable covers.",
        "category": "sofas",
        "section": "trending",
        "price": "32999.00",
        "stock": 6,
        "sku": "sofa-3s-grey",
        "image_urls": ["https://cdn.example.com/sofas/grey.jpg"],
        "materials": ["teak", "linen"],
        "size_options": [
            {"label": "Standard", "value": "standard", "is_default": True},
            {"label": "Extended", "value": "extended", "price": "38999.00"},
        ],
    }


class TestProductCatalog:
    def test_public_list_hides_inactive_products(self, api_client):
        create_product()
        create_product(title="Old Couch", slug="old-couch", category="couches", is_active=False)

        response = api_client.get(PRODUCTS_URL)

        assert response.status_code == 200
        slugs = [product["slug"] for product in response.data]
        assert slugs == ["sheesham-wood-king-bed"]
        assert response.data[0]["thumbnail"] == "https://cdn.example.com/beds/king.jpg"
        assert response.data[0]["is_in_stock"] is True

    def test_admin_sees_inactive_products(self, staff_client):
        create_product(is_active=False)

        response = staff_client.get(PRODUCTS_URL)

        assert len(response.data) == 1

    def test_filter_by_section(self, api_client):
        create_product()
        create_product(title="Lounge Couch", slug="lounge-couch", category="couches", section="trending")

        response = api_client.get(PRODUCTS_URL, {"section": "trending"})

        assert [product["slug"] for product in response.data] == ["lounge-couch"]

    def test_search(self, api_client):
        create_product()
        create_product(title="Lounge Couch", slug="lounge-couch", category="couches", description="Low lounge couch")

        response = api_client.get(PRODUCTS_URL, {"search": "sheesham"})

        assert [product["slug"] for product in response.data] == ["sheesham-wood-king-bed"]

    def test_by_slug(self, api_client):
        product = create_product()
        ProductSizeOption.objects.create(product=product, label="Queen", value="queen", is_default=True)

        response = api_client.get(f"{PRODUCTS_URL}slug/sheesham-wood-king-bed/")

        assert response.status_code == 200
        assert response.data["id"] == product.pk
        assert response.data["size_options"][0]["value"] == "queen"
        assert response.data["size_options"][0]["effective_price"] == 45999.0

    def test_pricing_and_rating(self, api_client):
        create_product(mrp=Decimal("59999.00"), rating_average=Decimal("4.50"), rating_count=12)

        detail = api_client.get(f"{PRODUCTS_URL}slug/sheesham-wood-king-bed/")
        listing = api_client.get(PRODUCTS_URL)

        assert detail.data["mrp"] == Decimal("59999.00")
        assert detail.data["discount_percent"] == 23
        assert detail.data["savings_amount"] == Decimal("14000.00")
        assert detail.data["rating_average"] == Decimal("4.50")
        assert detail.data["rating_count"] == 12
        assert listing.data[0]["discount_percent"] == 23

    def test_by_slug_of_inactive_product(self, api_client):
        create_product(is_active=False)

        response = api_client.get(f"{PRODUCTS_URL}slug/sheesham-wood-king-bed/")

        assert response.status_code == 404


class TestProductAdmin:
    def test_create_with_size_options(self, staff_client, product_payload):
        response = staff_client.post(PRODUCTS_URL, product_payload, format="json")

        assert response.status_code == 201
        product = Product.objects.get(slug="three-seater-fabric-sofa")
        assert product.sku == "SOFA-3S-GREY"
        options = list(product.size_options.all())
        assert [option.value for option in options] == ["standard", "extended"]
        assert options[0].effective_price == Decimal("32999.00")
        assert options[1].effective_price == Decimal("38999.00")

    def test_update_replaces_size_options(self, staff_client, product_payload):
        staff_client.post(PRODUCTS_URL, product_payload, format="json")
        product = Product.objects.get(slug="three-seater-fabric-sofa")

        response = staff_client.patch(
            f"{PRODUCTS_URL}{product.pk}/",
            {"size_options": [{"label": "Compact", "value": "compact", "is_default": True}]},
            format="json",
        )

        assert response.status_code == 200
        assert [option["value"] for option in response.data["size_options"]] == ["compact"]
        assert product.size_options.count() == 1

    def test_rejects_two_default_sizes(self, staff_client, product_payload):
        product_payload["size_options"][1]["is_default"] = True

        response = staff_client.post(PRODUCTS_URL, product_payload, format="json")

        assert response.status_code == 400
        assert "size_options" in response.data

    def test_requires_an_image(self, staff_client, product_payload):
        product_payload["image_urls"] = []

        response = staff_client.post(PRODUCTS_URL, product_payload, format="json")

        assert response.status_code == 400
        assert "image_urls" in response.data

    def test_rejects_bad_sku(self, staff_client, product_payload):
        product_payload["sku"] = "sofa 3s!"

        response = staff_client.post(PRODUCTS_URL, product_payload, format="json")

        assert response.status_code == 400
        assert "sku" in response.data

    def test_rejects_mrp_below_price(self, staff_client, product_payload):
        product_payload["mrp"] = "29999.00"

        response = staff_client.post(PRODUCTS_URL, product_payload, format="json")

        assert response.status_code == 400
        assert "mrp" in response.data

    def test_price_update_checked_against_stored_mrp(self, staff_client):
        product = create_product(mrp=Decimal("49999.00"))

        response = staff_client.patch(f"{PRODUCTS_URL}{product.pk}/", {"price": "52999.00"}, format="json")

        assert response.status_code == 400
        assert "mrp" in response.data
        product.refresh_from_db()
        assert product.price == Decimal("45999.00")

    def test_rejects_rating_above_five(self, staff_client, product_payload):
        product_payload["rating_average"] = "5.10"

        response = staff_client.post(PRODUCTS_URL, product_payload, format="json")

        assert response.status_code == 400
        assert "rating_average" in response.data

    def test_customer_cannot_create(self, customer_client, product_payload):
        response = customer_client.post(PRODUCTS_URL, product_payload, format="json")

        assert response.status_code == 403
        assert not Product.objects.exists()

    def test_anonymous_cannot_create(self, api_client, product_payload):
        response = api_client.post(PRODUCTS_URL, product_payload, format="json")
        assert response.status_code == 401

    def test_delete_deactivates(self, staff_client, api_client):
        product = create_product()

        response = staff_client.delete(f"{PRODUCTS_URL}{product.pk}/")

        assert response.status_code == 200
        assert response.data == {"detail": "Product deactivated successfully."}
        product.refresh_from_db()
        assert product.is_active is False
        assert api_client.get(f"{PRODUCTS_URL}{product.pk}/").status_code == 404


def test_effective_price_falls_back_to_product_price():
    product = create_product()
    option = ProductSizeOption.objects.create(product=product, label="King", value="king")
    assert option.effective_price == Decimal("45999.00")


def test_thumbnail_of_product_without_images():
    product = create_product(image_urls=[])
    assert product.thumbnail == ""
    assert product.is_in_stock()


def test_discount_without_mrp():
    product = create_product()
    assert product.discount_percent == 0
    assert product.savings_amount == Decimal("0.00")


def test_discount_rounds_half_up():
    product = create_product(price=Decimal("199.00"), mrp=Decimal("200.00"))
    assert product.discount_percent == 1
    assert product.savings_amount == Decimal("1.00")


def test_discount_is_never_negative():
    product = Product(price=Decimal("120.00"), mrp=Decimal("100.00"))
    assert product.discount_percent == 0
    assert product.savings_amount == Decimal("0.00")
