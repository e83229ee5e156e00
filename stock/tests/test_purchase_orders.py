from datetime import timedelta
from decimal import Decimal

import pytest

from stock.models import OrderSequence, PurchaseOrder, StockTransaction, Supplier
from stock.services import (
    PurchaseOrderService,
    ValidationError, NotFoundError, InvalidTransitionError, ConflictError,
)
from stock.services.sequence_service import PURCHASE_ORDER_SEQUENCE


pytestmark = pytest.mark.django_db


@pytest.fixture
def two_items(make_item):
    return make_item(sku="A-1", current_stock=0), make_item(sku="B-1", current_stock=0)


def place_order(supplier, items, user, **kwargs):
    lines = [
        {"inventory_id": items[0].id, "quantity": 5, "unit_price": "10"},
        {"inventory_id": items[1].id, "quantity": 2, "unit_price": "50"},
    ]
    return PurchaseOrderService.create(
        supplier_id=supplier.id,
        items=kwargs.pop("lines", lines),
        created_by_id=user.id,
        **kwargs,
    )


class TestCreate:

    def test_totals_are_computed_from_lines(self, supplier, two_items, manager_user):
        result = place_order(supplier, two_items, manager_user, tax="5", shipping="10")

        order = result["order"]
        assert Decimal(order["subtotal"]) == Decimal("150")
        assert Decimal(order["total"]) == Decimal("165")
        assert [Decimal(line["total_price"]) for line in order["items"]] == [Decimal("50"), Decimal("100")]
        assert order["status"] == PurchaseOrder.Status.PENDING

    def test_caller_totals_are_ignored(self, supplier, two_items, manager_user):
        lines = [
            {"inventory_id": two_items[0].id, "quantity": 3, "unit_price": "4.50", "total_price": "999"},
        ]
        result = place_order(supplier, two_items, manager_user, lines=lines)

        po = PurchaseOrder.objects.get(id=result["id"])
        assert po.subtotal == Decimal("13.50")
        assert po.total == Decimal("13.50")
        assert po.items.get().total_price == Decimal("13.50")

    def test_first_order_number(self, supplier, two_items, manager_user):
        result = place_order(supplier, two_items, manager_user)

        assert result["order_number"] == "PO-000001"

    def test_numbers_continue_from_existing_orders(self, supplier, two_items, manager_user):
        for n in range(1, 6):
            PurchaseOrder.objects.create(
                order_number=f"LEGACY-{n}", supplier=supplier, created_by=manager_user
            )

        result = place_order(supplier, two_items, manager_user)

        assert result["order_number"] == "PO-000006"

    def test_numbers_do_not_repeat_after_delete(self, supplier, two_items, manager_user):
        first = place_order(supplier, two_items, manager_user)
        PurchaseOrderService.delete(first["id"])

        second = place_order(supplier, two_items, manager_user)

        assert second["order_number"] == "PO-000002"
        assert OrderSequence.objects.get(name=PURCHASE_ORDER_SEQUENCE).value == 2

    def test_supplier_totals_are_bumped(self, supplier, two_items, manager_user, fixed_now):
        place_order(supplier, two_items, manager_user, tax="5", shipping="10", now=fixed_now)

        supplier.refresh_from_db()
        assert supplier.total_orders == 1
        assert supplier.total_value == Decimal("165.00")
        assert supplier.last_order_date == fixed_now

    def test_unknown_supplier(self, two_items, manager_user):
        with pytest.raises(NotFoundError):
            PurchaseOrderService.create(
                supplier_id=9999,
                items=[{"inventory_id": two_items[0].id, "quantity": 1, "unit_price": "1"}],
                created_by_id=manager_user.id,
            )

    def test_empty_items(self, supplier, manager_user):
        with pytest.raises(ValidationError) as exc:
            PurchaseOrderService.create(supplier_id=supplier.id, items=[], created_by_id=manager_user.id)

        assert exc.value.field == "items"

    @pytest.mark.parametrize("line, field", [
        ({"quantity": 0, "unit_price": "1"}, "items[0].quantity"),
        ({"quantity": 1.5, "unit_price": "1"}, "items[0].quantity"),
        ({"quantity": 1, "unit_price": "-1"}, "items[0].unit_price"),
        ({"quantity": 1, "unit_price": "abc"}, "items[0].unit_price"),
        ({"quantity": 1}, "items[0].unit_price"),
        ({"quantity": 10 ** 20, "unit_price": "1"}, "items[0].quantity"),
        ({"quantity": 2147483648, "unit_price": "1"}, "items[0].quantity"),
        ({"quantity": 1, "unit_price": "1e15"}, "items[0].unit_price"),
        ({"quantity": 1, "unit_price": "10000000000"}, "items[0].unit_price"),
        ({"quantity": 2147483647, "unit_price": "9999999999"}, "items[0].quantity"),
    ])
    def test_invalid_line(self, supplier, two_items, manager_user, line, field):
        line = {"inventory_id": two_items[0].id, **line}

        with pytest.raises(ValidationError) as exc:
            PurchaseOrderService.create(supplier_id=supplier.id, items=[line], created_by_id=manager_user.id)

        assert exc.value.field == field
        assert not PurchaseOrder.objects.exists()

    def test_line_with_unknown_item(self, supplier, two_items, manager_user):
        lines = [
            {"inventory_id": two_items[0].id, "quantity": 1, "unit_price": "1"},
            {"inventory_id": 424242, "quantity": 1, "unit_price": "1"},
        ]

        with pytest.raises(ValidationError) as exc:
            PurchaseOrderService.create(supplier_id=supplier.id, items=lines, created_by_id=manager_user.id)

        assert exc.value.field == "items[1].inventory_id"

    def test_negative_tax(self, supplier, two_items, manager_user):
        with pytest.raises(ValidationError) as exc:
            place_order(supplier, two_items, manager_user, tax="-1")

        assert exc.value.field == "tax"

    @pytest.mark.parametrize("field", ["tax", "shipping"])
    def test_oversized_charges(self, supplier, two_items, manager_user, field):
        with pytest.raises(ValidationError) as exc:
            place_order(supplier, two_items, manager_user, **{field: "1e15"})

        assert exc.value.field == field
        assert not PurchaseOrder.objects.exists()

    def test_largest_storable_line(self, supplier, two_items, manager_user):
        line = {"inventory_id": two_items[0].id, "quantity": 1000, "unit_price": "9999999999.99"}

        result = PurchaseOrderService.create(
            supplier_id=supplier.id, items=[line], created_by_id=manager_user.id
        )

        assert result["order"]["total"] == "9999999999990.00"

    def test_expected_date_is_parsed(self, supplier, two_items, manager_user):
        result = place_order(supplier, two_items, manager_user, expected_date="2024-04-01")

        assert result["order"]["expected_date"].startswith("2024-04-01")


class TestUpdateStatus:

    def test_ordered_records_approver(self, supplier, two_items, manager_user, admin_user):
        po_id = place_order(supplier, two_items, manager_user)["id"]

        result = PurchaseOrderService.update_status(po_id, "ordered", admin_user.id)

        assert result["order"]["status"] == "ordered"
        assert result["order"]["approved_by_id"] == admin_user.id
        assert result["reconciled"] is False

    def test_receive_applies_stock(self, supplier, two_items, manager_user, fixed_now):
        po_id = place_order(supplier, two_items, manager_user, tax="5", shipping="10")["id"]
        PurchaseOrderService.update_status(po_id, "ordered", manager_user.id)

        result = PurchaseOrderService.update_status(po_id, "received", manager_user.id, now=fixed_now)

        a, b = two_items
        a.refresh_from_db()
        b.refresh_from_db()
        assert (a.current_stock, b.current_stock) == (5, 2)
        assert (a.total_purchased, b.total_purchased) == (5, 2)
        assert a.last_restocked == fixed_now
        assert result["reconciled"] is True
        assert [line["outcome"] for line in result["lines"]] == ["applied", "applied"]
        assert result["order"]["received_date"] == fixed_now.isoformat()

        purchases = StockTransaction.objects.filter(
            type=StockTransaction.Type.PURCHASE, reference_id=po_id
        ).order_by("id")
        assert [t.total_price for t in purchases] == [Decimal("50.00"), Decimal("100.00")]
        assert [t.quantity for t in purchases] == [5, 2]

    def test_direct_receipt_from_pending(self, supplier, two_items, manager_user):
        po_id = place_order(supplier, two_items, manager_user)["id"]

        result = PurchaseOrderService.update_status(po_id, "received", manager_user.id)

        assert result["reconciled"] is True
        two_items[0].refresh_from_db()
        assert two_items[0].current_stock == 5

    def test_receiving_twice_applies_once(self, supplier, two_items, manager_user):
        po_id = place_order(supplier, two_items, manager_user)["id"]

        PurchaseOrderService.update_status(po_id, "received", manager_user.id)
        again = PurchaseOrderService.update_status(po_id, "received", manager_user.id)

        two_items[0].refresh_from_db()
        assert two_items[0].current_stock == 5
        assert again["reconciled"] is False
        assert again["lines"] == []
        assert StockTransaction.objects.filter(reference_id=po_id).count() == 2

    def test_lost_race_does_not_reconcile(self, supplier, two_items, manager_user, monkeypatch):
        po_id = place_order(supplier, two_items, manager_user)["id"]
        stale = PurchaseOrder.objects.get(id=po_id)

        # Another request receives the order between our read and our update
        PurchaseOrderService.update_status(po_id, "received", manager_user.id)
        monkeypatch.setattr(PurchaseOrderService, "get_or_404", classmethod(lambda cls, _id: stale))

        result = PurchaseOrderService.update_status(po_id, "received", manager_user.id)

        two_items[0].refresh_from_db()
        assert two_items[0].current_stock == 5
        assert result["reconciled"] is False

    @pytest.mark.parametrize("terminal, target", [
        ("received", "cancelled"),
        ("received", "pending"),
        ("cancelled", "ordered"),
        ("cancelled", "received"),
    ])
    def test_terminal_states_are_final(self, supplier, two_items, manager_user, terminal, target):
        po_id = place_order(supplier, two_items, manager_user)["id"]
        PurchaseOrderService.update_status(po_id, terminal, manager_user.id)

        with pytest.raises(InvalidTransitionError) as exc:
            PurchaseOrderService.update_status(po_id, target, manager_user.id)

        assert exc.value.details == {"current_status": terminal, "requested_status": target}

    def test_ordered_cannot_go_back_to_pending(self, supplier, two_items, manager_user):
        po_id = place_order(supplier, two_items, manager_user)["id"]
        PurchaseOrderService.update_status(po_id, "ordered", manager_user.id)

        with pytest.raises(InvalidTransitionError):
            PurchaseOrderService.update_status(po_id, "pending", manager_user.id)

    def test_unknown_status(self, supplier, two_items, manager_user):
        po_id = place_order(supplier, two_items, manager_user)["id"]

        with pytest.raises(ValidationError):
            PurchaseOrderService.update_status(po_id, "shipped", manager_user.id)

    def test_missing_order(self, manager_user):
        with pytest.raises(NotFoundError):
            PurchaseOrderService.update_status(9999, "ordered", manager_user.id)

    def test_cancel_leaves_stock_alone(self, supplier, two_items, manager_user):
        po_id = place_order(supplier, two_items, manager_user)["id"]

        PurchaseOrderService.update_status(po_id, "cancelled", manager_user.id)

        two_items[0].refresh_from_db()
        assert two_items[0].current_stock == 0
        assert not StockTransaction.objects.filter(reference_id=po_id).exists()

    def test_cancel_releases_supplier_totals(self, supplier, two_items, manager_user):
        kept = place_order(supplier, two_items, manager_user)["id"]
        dropped = place_order(supplier, two_items, manager_user)["id"]

        PurchaseOrderService.update_status(dropped, "cancelled", manager_user.id)
        PurchaseOrderService.update_status(dropped, "cancelled", manager_user.id)

        supplier.refresh_from_db()
        assert PurchaseOrder.objects.get(id=kept).status == "pending"
        assert (supplier.total_orders, supplier.total_value) == (1, Decimal("150.00"))


class TestDeleteAndRead:

    def test_received_order_cannot_be_deleted(self, supplier, two_items, manager_user):
        po_id = place_order(supplier, two_items, manager_user)["id"]
        PurchaseOrderService.update_status(po_id, "received", manager_user.id)

        with pytest.raises(ConflictError):
            PurchaseOrderService.delete(po_id)

        assert PurchaseOrder.objects.filter(id=po_id).exists()

    def test_pending_order_is_deleted_with_lines(self, supplier, two_items, manager_user):
        po_id = place_order(supplier, two_items, manager_user)["id"]

        PurchaseOrderService.delete(po_id)

        assert not PurchaseOrder.objects.filter(id=po_id).exists()

    def test_delete_releases_supplier_totals(self, supplier, make_item, manager_user):
        item = make_item()
        po_id = PurchaseOrderService.create(
            supplier_id=supplier.id,
            items=[{"inventory_id": item.id, "quantity": 2, "unit_price": "4"}],
            created_by_id=manager_user.id,
        )["id"]

        PurchaseOrderService.delete(po_id)

        supplier.refresh_from_db()
        assert (supplier.total_orders, supplier.total_value) == (0, Decimal("0.00"))

    def test_deleting_cancelled_order_releases_once(self, supplier, two_items, manager_user):
        place_order(supplier, two_items, manager_user)
        po_id = place_order(supplier, two_items, manager_user)["id"]
        PurchaseOrderService.update_status(po_id, "cancelled", manager_user.id)

        PurchaseOrderService.delete(po_id)

        supplier.refresh_from_db()
        assert (supplier.total_orders, supplier.total_value) == (1, Decimal("150.00"))

    def test_totals_never_go_negative(self, supplier, two_items, manager_user):
        po_id = place_order(supplier, two_items, manager_user)["id"]
        Supplier.objects.filter(id=supplier.id).update(total_orders=0, total_value=Decimal("0"))

        PurchaseOrderService.delete(po_id)

        supplier.refresh_from_db()
        assert (supplier.total_orders, supplier.total_value) == (0, Decimal("0.00"))

    def test_delete_missing(self):
        with pytest.raises(NotFoundError):
            PurchaseOrderService.delete(12345)

    def test_list_filters_by_status(self, supplier, two_items, manager_user):
        first = place_order(supplier, two_items, manager_user)["id"]
        place_order(supplier, two_items, manager_user)
        PurchaseOrderService.update_status(first, "ordered", manager_user.id)

        result = PurchaseOrderService.list(status="ordered")

        assert [o["id"] for o in result["orders"]] == [first]
        assert result["pagination"]["total_items"] == 1

    def test_stats(self, supplier, two_items, manager_user):
        place_order(supplier, two_items, manager_user, tax="5", shipping="10")
        place_order(supplier, two_items, manager_user)

        stats = PurchaseOrderService.get_stats()["stats"]

        assert stats["total_orders"] == 2
        assert Decimal(stats["total_value"]) == Decimal("315")
        assert stats["by_status"]["pending"]["count"] == 2
        assert stats["by_status"]["received"]["count"] == 0

    def test_get_missing(self):
        with pytest.raises(NotFoundError):
            PurchaseOrderService.get(777)

    def test_expected_date_offset(self, supplier, two_items, manager_user, fixed_now):
        expected = fixed_now + timedelta(days=7)
        result = place_order(supplier, two_items, manager_user, expected_date=expected, now=fixed_now)

        assert result["order"]["expected_date"] == expected.isoformat()
        assert result["order"]["order_date"] == fixed_now.isoformat()
        assert Supplier.objects.get(id=supplier.id).total_orders == 1
