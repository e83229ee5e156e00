import pytest
from django.urls import reverse

from stock.models import PurchaseOrder


pytestmark = pytest.mark.django_db


@pytest.fixture
def order_payload(supplier, make_item):
    item = make_item(current_stock=1)
    return {
        "supplier_id": supplier.id,
        "items": [{"inventory_id": item.id, "quantity": 5, "unit_price": "3.00"}],
        "tax": "1.50",
    }


def assert_error(response, status, code):
    assert response.status_code == status
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == code
    assert "message" in body["error"]
    assert "details" in body["error"]


class TestAccessControl:

    def test_anonymous_is_rejected(self, api_client):
        response = api_client.get(reverse("stock:inventory-list"))

        assert_error(response, 401, "UNAUTHORIZED")

    def test_bad_token_is_anonymous(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer not-a-token")

        response = api_client.get(reverse("stock:inventory-list"))

        assert_error(response, 401, "UNAUTHORIZED")

    def test_staff_can_read(self, auth_client, staff_user):
        response = auth_client(staff_user).get(reverse("stock:po-list"))

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_staff_cannot_create_orders(self, auth_client, staff_user, order_payload):
        response = auth_client(staff_user).post(
            reverse("stock:po-list"), order_payload, format="json"
        )

        assert_error(response, 403, "FORBIDDEN")
        assert not PurchaseOrder.objects.exists()

    def test_manager_cannot_delete(self, auth_client, manager_user, make_item):
        item = make_item()

        response = auth_client(manager_user).delete(
            reverse("stock:inventory-detail", args=[item.id])
        )

        assert_error(response, 403, "FORBIDDEN")


class TestPurchaseOrderEndpoints:

    def test_create(self, auth_client, manager_user, order_payload):
        response = auth_client(manager_user).post(
            reverse("stock:po-list"), order_payload, format="json"
        )

        assert response.status_code == 201
        body = response.json()
        assert body["order_number"] == "PO-000001"
        assert body["order"]["subtotal"] == "15.00"
        assert body["order"]["total"] == "16.50"
        assert body["order"]["created_by_id"] == manager_user.id

    def test_create_validation_error(self, auth_client, manager_user, supplier):
        response = auth_client(manager_user).post(
            reverse("stock:po-list"), {"supplier_id": supplier.id, "items": []}, format="json"
        )

        assert_error(response, 400, "VALIDATION_ERROR")
        assert response.json()["error"]["details"]["field"] == "items"

    def test_unknown_supplier(self, auth_client, manager_user, order_payload):
        order_payload["supplier_id"] = 999

        response = auth_client(manager_user).post(
            reverse("stock:po-list"), order_payload, format="json"
        )

        assert_error(response, 404, "NOT_FOUND")

    def test_malformed_json(self, auth_client, manager_user):
        response = auth_client(manager_user).generic(
            "POST", reverse("stock:po-list"), "{not json", content_type="application/json"
        )

        assert_error(response, 400, "VALIDATION_ERROR")

    def test_body_not_utf8(self, auth_client, manager_user):
        response = auth_client(manager_user).generic(
            "POST", reverse("stock:po-list"), b'{"notes": "\xff"}', content_type="application/json"
        )

        assert_error(response, 400, "VALIDATION_ERROR")

    def test_receive_then_illegal_transition(self, auth_client, manager_user, order_payload):
        client = auth_client(manager_user)
        order_id = client.post(reverse("stock:po-list"), order_payload, format="json").json()["id"]
        url = reverse("stock:po-status", args=[order_id])

        received = client.patch(url, {"status": "received"}, format="json")
        cancelled = client.patch(url, {"status": "cancelled"}, format="json")

        assert received.status_code == 200
        assert received.json()["reconciled"] is True
        assert received.json()["lines"][0]["outcome"] == "applied"
        assert_error(cancelled, 409, "INVALID_TRANSITION")
        assert cancelled.json()["error"]["details"]["current_status"] == "received"

    def test_delete_received_order_conflicts(self, auth_client, admin_user, order_payload):
        client = auth_client(admin_user)
        order_id = client.post(reverse("stock:po-list"), order_payload, format="json").json()["id"]
        client.patch(reverse("stock:po-status", args=[order_id]), {"status": "received"}, format="json")

        response = client.delete(reverse("stock:po-detail", args=[order_id]))

        assert_error(response, 409, "CONFLICT")

    def test_missing_order(self, auth_client, staff_user):
        response = auth_client(staff_user).get(reverse("stock:po-detail", args=[12345]))

        assert_error(response, 404, "NOT_FOUND")

    def test_reorder_suggestions(self, auth_client, staff_user, make_item):
        make_item(current_stock=0)

        response = auth_client(staff_user).get(reverse("stock:po-reorder-suggestions"))

        assert response.status_code == 200
        assert response.json()["count"] == 1


class TestInventoryEndpoints:

    def test_create_and_sell(self, auth_client, manager_user):
        client = auth_client(manager_user)
        created = client.post(reverse("stock:inventory-list"), {
            "sku": "pen-1", "name": "Pen", "category": "Office",
            "unit_price": "2", "cost_price": "1", "current_stock": 10,
        }, format="json")
        item_id = created.json()["id"]

        sale = client.post(reverse("stock:inventory-sale", args=[item_id]), {"quantity": 3}, format="json")
        history = client.get(reverse("stock:inventory-history", args=[item_id]))

        assert created.status_code == 201
        assert created.json()["item"]["sku"] == "PEN-1"
        assert sale.status_code == 201
        assert sale.json()["item"]["current_stock"] == 7
        assert history.json()["in_balance"] is True

    def test_oversell(self, auth_client, manager_user, make_item):
        item = make_item(current_stock=1)

        response = auth_client(manager_user).post(
            reverse("stock:inventory-sale", args=[item.id]), {"quantity": 5}, format="json"
        )

        assert_error(response, 400, "INSUFFICIENT_STOCK")

    def test_unknown_fields_are_ignored(self, auth_client, manager_user, make_item):
        item = make_item()

        response = auth_client(manager_user).patch(
            reverse("stock:inventory-detail", args=[item.id]),
            {"name": "Renamed", "total_sold": 999},
            format="json",
        )

        assert response.status_code == 200
        assert response.json()["item"]["name"] == "Renamed"
        assert response.json()["item"]["total_sold"] == 0

    def test_admin_delete(self, auth_client, admin_user, make_item):
        item = make_item()

        response = auth_client(admin_user).delete(reverse("stock:inventory-detail", args=[item.id]))

        assert response.status_code == 200


class TestSupplierEndpoints:

    def test_create_and_stats(self, auth_client, manager_user):
        client = auth_client(manager_user)
        created = client.post(reverse("stock:supplier-list"), {
            "name": "Beta", "contact_person": "Bo", "email": "bo@beta.test", "phone": "1",
        }, format="json")
        supplier_id = created.json()["id"]

        stats = client.get(reverse("stock:supplier-stats", args=[supplier_id]))

        assert created.status_code == 201
        assert stats.json()["stats"]["total_orders"] == 0

    def test_bad_email(self, auth_client, manager_user):
        response = auth_client(manager_user).post(reverse("stock:supplier-list"), {
            "name": "Beta", "contact_person": "Bo", "email": "nope", "phone": "1",
        }, format="json")

        assert_error(response, 400, "VALIDATION_ERROR")
        assert response.json()["error"]["details"]["field"] == "email"


class TestAnalyticsEndpoints:

    @pytest.mark.parametrize("name", [
        "analytics-dashboard",
        "analytics-sales-trends",
        "analytics-inventory-turnover",
        "analytics-supplier-performance",
        "analytics-category-analysis",
        "analytics-alerts",
        "transaction-list",
        "inventory-low-stock",
        "inventory-categories",
        "po-stats",
    ])
    def test_read_endpoints(self, auth_client, staff_user, make_item, name):
        make_item(current_stock=3)

        response = auth_client(staff_user).get(reverse(f"stock:{name}"))

        assert response.status_code == 200
        assert response.json()["success"] is True
