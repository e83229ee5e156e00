from datetime import datetime, timedelta, timezone

import pytest
from django.urls import reverse

from accounts.models import User
from accounts.services.auth_service import AuthService


pytestmark = pytest.mark.django_db


REGISTRATION = {
    "username": "newbie",
    "email": "newbie@example.com",
    "password": "hunter22",
    "first_name": "New",
    "last_name": "Bie",
}


class TestAuthService:

    def test_register_always_creates_staff(self):
        result = AuthService.register(**REGISTRATION)

        assert result["success"] is True
        assert result["user"]["role"] == User.RoleChoices.STAFF
        assert AuthService.get_user_from_token(result["token"]).username == "newbie"

    def test_register_duplicate(self, staff_user):
        result = AuthService.register(**{**REGISTRATION, "email": staff_user.email.upper()})

        assert result["success"] is False
        assert result["message"] == "User already exists"

    @pytest.mark.parametrize("field, value", [
        ("username", "ab"),
        ("email", "not-an-email"),
        ("password", "123"),
        ("first_name", ""),
    ])
    def test_register_validation(self, field, value):
        result = AuthService.register(**{**REGISTRATION, field: value})

        assert result["success"] is False
        assert not User.objects.exists()

    def test_login(self, manager_user):
        result = AuthService.login("MANAGER@example.com", "secret123")

        assert result["success"] is True
        assert result["user"]["role"] == "manager"

    def test_login_wrong_password(self, manager_user):
        assert AuthService.login(manager_user.email, "wrong")["success"] is False

    def test_login_inactive(self, manager_user):
        manager_user.is_active = False
        manager_user.save()

        result = AuthService.login(manager_user.email, "secret123")

        assert result["message"] == "Account is deactivated"

    def test_expired_token(self, staff_user):
        issued = datetime.now(timezone.utc) - timedelta(days=30)
        token = AuthService.generate_token(staff_user, now=issued)

        assert AuthService.get_user_from_token(token) is None

    def test_token_of_deactivated_user(self, staff_user):
        token = AuthService.generate_token(staff_user)
        User.objects.filter(id=staff_user.id).update(is_active=False)

        assert AuthService.get_user_from_token(token) is None

    def test_update_user_role(self, staff_user):
        result = AuthService.update_user(staff_user.id, role="manager")

        staff_user.refresh_from_db()
        assert result["success"] is True
        assert staff_user.role == User.RoleChoices.MANAGER

    def test_update_user_bad_role(self, staff_user):
        result = AuthService.update_user(staff_user.id, role="owner")

        assert result["success"] is False

    @pytest.mark.parametrize("changes", [
        {"email": "MANAGER@example.com"},
        {"username": "manager"},
        {"email": "not-an-email"},
        {"username": "ab"},
        {"first_name": ""},
        {"is_active": "yes"},
        {"password": "123"},
    ])
    def test_update_user_rejects_bad_fields(self, staff_user, manager_user, changes):
        result = AuthService.update_user(staff_user.id, **changes)

        staff_user.refresh_from_db()
        assert result["success"] is False
        assert result["error_code"] == "VALIDATION_ERROR"
        assert staff_user.email == "staff@example.com"
        assert staff_user.username == "staff"
        assert staff_user.is_active is True

    def test_update_user_keeps_own_email(self, staff_user):
        result = AuthService.update_user(staff_user.id, email="STAFF@example.com", first_name="Sam")

        assert result["success"] is True
        assert result["user"]["first_name"] == "Sam"


class TestAuthEndpoints:

    def test_register(self, api_client):
        response = api_client.post(
            reverse("accounts:register"), {**REGISTRATION, "role": "admin"}, format="json"
        )

        assert response.status_code == 201
        assert response.json()["user"]["role"] == "staff"

    def test_register_invalid(self, api_client):
        response = api_client.post(reverse("accounts:register"), {"username": "x"}, format="json")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_login_and_me(self, api_client, staff_user):
        login = api_client.post(
            reverse("accounts:login"),
            {"email": staff_user.email, "password": "secret123"},
            format="json",
        )
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.json()['token']}")

        me = api_client.get(reverse("accounts:me"))

        assert login.status_code == 200
        assert me.status_code == 200
        assert me.json()["user"]["username"] == "staff"

    def test_bad_login(self, api_client, staff_user):
        response = api_client.post(
            reverse("accounts:login"), {"email": staff_user.email, "password": "nope"}, format="json"
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"

    def test_me_requires_token(self, api_client):
        response = api_client.get(reverse("accounts:me"))

        assert response.status_code == 401

    def test_invalid_token(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer garbage")

        response = api_client.get(reverse("accounts:me"))

        assert response.status_code == 401
        assert response["WWW-Authenticate"] == "Bearer"

    def test_users_admin_only(self, auth_client, manager_user, admin_user):
        assert auth_client(manager_user).get(reverse("accounts:user-list")).status_code == 403

        response = auth_client(admin_user).get(reverse("accounts:user-list"))

        assert response.status_code == 200
        assert [u["username"] for u in response.json()["users"]] == ["admin", "manager"]

    def test_admin_creates_manager(self, auth_client, admin_user):
        response = auth_client(admin_user).post(
            reverse("accounts:user-list"),
            {**REGISTRATION, "role": "manager"},
            format="json",
        )

        assert response.status_code == 201
        assert User.objects.get(username="newbie").role == "manager"

    def test_update_missing_user(self, auth_client, admin_user):
        response = auth_client(admin_user).patch(
            reverse("accounts:user-detail", args=[999]), {"role": "manager"}, format="json"
        )

        assert response.status_code == 404

    def test_update_to_taken_email(self, auth_client, admin_user, staff_user):
        response = auth_client(admin_user).patch(
            reverse("accounts:user-detail", args=[staff_user.id]),
            {"email": admin_user.email},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_delete_user(self, auth_client, admin_user, staff_user):
        response = auth_client(admin_user).delete(reverse("accounts:user-detail", args=[staff_user.id]))

        assert response.status_code == 200
        assert response.json()["deactivated"] is False
        assert not User.objects.filter(id=staff_user.id).exists()

    def test_delete_self(self, auth_client, admin_user):
        response = auth_client(admin_user).delete(reverse("accounts:user-detail", args=[admin_user.id]))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SELF_DELETE"

    def test_delete_user_with_history_deactivates(self, auth_client, admin_user, manager_user, supplier, make_item):
        from stock.services import PurchaseOrderService

        item = make_item()
        PurchaseOrderService.create(
            supplier_id=supplier.id,
            items=[{"inventory_id": item.id, "quantity": 1, "unit_price": "1"}],
            created_by_id=manager_user.id,
        )

        response = auth_client(admin_user).delete(reverse("accounts:user-detail", args=[manager_user.id]))

        manager_user.refresh_from_db()
        assert response.json()["deactivated"] is True
        assert manager_user.is_active is False
