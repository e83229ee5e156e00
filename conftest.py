from datetime import datetime, timezone
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from accounts.models import User
from accounts.services.auth_service import AuthService
from stock.models import Supplier, InventoryItem


FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


def _make_user(role, username):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="secret123",
        first_name=username.title(),
        last_name="Tester",
        role=role,
    )


@pytest.fixture
def admin_user(db):
    return _make_user(User.RoleChoices.ADMIN, "admin")


@pytest.fixture
def manager_user(db):
    return _make_user(User.RoleChoices.MANAGER, "manager")


@pytest.fixture
def staff_user(db):
    return _make_user(User.RoleChoices.STAFF, "staff")


@pytest.fixture
def supplier(db):
    return Supplier.objects.create(
        name="Acme Supply",
        contact_person="Jane Roe",
        email="jane@acme.test",
        phone="555-0100",
    )


@pytest.fixture
def make_item(db):
    counter = {"n": 0}

    def factory(**overrides):
        counter["n"] += 1
        values = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Item {counter['n']}",
            "category": "General",
            "unit_price": Decimal("20.00"),
            "cost_price": Decimal("10.00"),
        }
        values.update(overrides)
        return InventoryItem.objects.create(**values)

    return factory


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def auth_client(db):
    def factory(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {AuthService.generate_token(user)}")
        return client

    return factory
