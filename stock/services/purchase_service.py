import logging
from typing import Dict, Any, List
from decimal import Decimal
from datetime import datetime, date, time
from django.db import transaction
from django.db.models import Q, Sum, Count, F, Value, DecimalField, PositiveIntegerField
from django.db.models.functions import Greatest
from django.utils import timezone
from django.utils.dateparse import parse_datetime, parse_date

from stock.models import PurchaseOrder, PurchaseOrderItem, Supplier, InventoryItem
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, InvalidTransitionError, ConflictError,
    require_decimal, require_int, round_decimal, resolve_now, MAX_TOTAL
)
from stock.services.sequence_service import OrderSequenceService
from stock.services.reconciliation_service import ReconciliationService


logger = logging.getLogger(__name__)


def parse_when(value: Any, field: str):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        parsed = parse_datetime(str(value))
        if parsed is None:
            day = parse_date(str(value))
            if day is None:
                raise ValidationError(f"{field} must be an ISO date", field)
            parsed = datetime.combine(day, time.min)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


class PurchaseOrderItemService:

    @classmethod
    def serialize(cls, line: PurchaseOrderItem, item: InventoryItem = None) -> Dict[str, Any]:
        return {
            "id": line.id,
            "inventory_id": line.inventory_id,
            "inventory_sku": item.sku if item else None,
            "inventory_name": item.name if item else None,
            "quantity": line.quantity,
            "unit_price": str(line.unit_price),
            "total_price": str(line.total_price),
        }

    @classmethod
    def clean_lines(cls, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Validate caller lines and compute totals; caller totals are ignored."""
        if not isinstance(items, (list, tuple)) or not items:
            raise ValidationError("At least one item is required", "items")

        ids = []
        lines = []
        for index, raw in enumerate(items):
            if not isinstance(raw, dict):
                raise ValidationError(f"items[{index}] must be an object", f"items[{index}]")

            inventory_id = require_int(
                raw.get("inventory_id", raw.get("inventory")), f"items[{index}].inventory_id", minimum=1
            )
            quantity = require_int(raw.get("quantity"), f"items[{index}].quantity", minimum=1)
            unit_price = round_decimal(
                require_decimal(raw.get("unit_price"), f"items[{index}].unit_price")
            )

            total_price = round_decimal(quantity * unit_price)
            if total_price > MAX_TOTAL:
                raise ValidationError(
                    f"items[{index}] total must be at most {MAX_TOTAL}", f"items[{index}].quantity"
                )

            ids.append(inventory_id)
            lines.append({
                "inventory_id": inventory_id,
                "quantity": quantity,
                "unit_price": unit_price,
                "total_price": total_price,
            })

        known = set(InventoryItem.objects.filter(id__in=ids).values_list("id", flat=True))

        for index, line in enumerate(lines):
            if line["inventory_id"] not in known:
                raise ValidationError(
                    f"items[{index}].inventory_id does not exist", f"items[{index}].inventory_id"
                )

        return lines


class PurchaseOrderService(BaseService):
    model = PurchaseOrder
    resource_name = "Purchase order"

    @classmethod
    def serialize(cls, po: PurchaseOrder, include_items: bool = True) -> Dict[str, Any]:
        data = {
            "id": po.id,
            "order_number": po.order_number,

            "supplier_id": po.supplier_id,
            "supplier": {
                "id": po.supplier.id,
                "name": po.supplier.name,
                "contact_person": po.supplier.contact_person,
                "email": po.supplier.email,
            },

            "status": po.status,
            "status_display": po.get_status_display(),

            "subtotal": str(po.subtotal),
            "tax": str(po.tax),
            "shipping": str(po.shipping),
            "total": str(po.total),

            "order_date": po.order_date.isoformat(),
            "expected_date": po.expected_date.isoformat() if po.expected_date else None,
            "received_date": po.received_date.isoformat() if po.received_date else None,

            "created_by_id": po.created_by_id,
            "approved_by_id": po.approved_by_id,
            "notes": po.notes,
            "created_at": po.created_at.isoformat(),
            "updated_at": po.updated_at.isoformat(),
        }

        if include_items:
            lines = list(po.items.all())
            items = InventoryItem.objects.in_bulk([line.inventory_id for line in lines])
            data["items"] = [
                PurchaseOrderItemService.serialize(line, items.get(line.inventory_id))
                for line in lines
            ]
            data["item_count"] = len(lines)

        return data

    @classmethod
    def serialize_brief(cls, po: PurchaseOrder) -> Dict[str, Any]:
        return {
            "id": po.id,
            "order_number": po.order_number,
            "supplier_name": po.supplier.name,
            "status": po.status,
            "status_display": po.get_status_display(),
            "order_date": po.order_date.isoformat(),
            "total": str(po.total),
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             search: str = None,
             status: str = None,
             supplier_id: int = None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("supplier")

        if status:
            queryset = queryset.filter(status=status)

        if supplier_id:
            queryset = queryset.filter(supplier_id=supplier_id)

        if search:
            queryset = queryset.filter(
                Q(order_number__icontains=search) |
                Q(supplier__name__icontains=search) |
                Q(notes__icontains=search)
            )

        queryset = queryset.order_by("-order_date", "-id")

        orders, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "orders": [cls.serialize_brief(po) for po in orders],
            "pagination": pagination,
            "statuses": [{"value": c[0], "label": c[1]} for c in PurchaseOrder.Status.choices],
        })

    @classmethod
    def get(cls, order_id: int) -> Dict[str, Any]:
        po = cls.get_or_404(order_id)

        return success_response({
            "order": cls.serialize(po)
        })

    @classmethod
    @transaction.atomic
    def create(cls,
               supplier_id: int,
               items: List[Dict[str, Any]],
               created_by_id: int,
               tax: Decimal = Decimal("0"),
               shipping: Decimal = Decimal("0"),
               expected_date: datetime = None,
               notes: str = "",
               now: datetime = None) -> Dict[str, Any]:
        now = resolve_now(now)

        try:
            supplier = Supplier.objects.get(id=supplier_id)
        except (Supplier.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Supplier", supplier_id)

        lines = PurchaseOrderItemService.clean_lines(items)
        tax = round_decimal(require_decimal(tax if tax is not None else 0, "tax"))
        shipping = round_decimal(require_decimal(shipping if shipping is not None else 0, "shipping"))
        expected_date = parse_when(expected_date, "expected_date")

        subtotal = sum((line["total_price"] for line in lines), Decimal("0"))
        total = subtotal + tax + shipping
        if total > MAX_TOTAL:
            raise ValidationError(f"Order total must be at most {MAX_TOTAL}", "items")

        order_number = OrderSequenceService.next_number()

        po = cls.model.objects.create(
            order_number=order_number,
            supplier=supplier,
            status=PurchaseOrder.Status.PENDING,
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            total=total,
            order_date=now,
            expected_date=expected_date,
            notes=notes or "",
            created_by_id=created_by_id,
        )

        PurchaseOrderItem.objects.bulk_create([
            PurchaseOrderItem(purchase_order=po, **line) for line in lines
        ])

        Supplier.objects.filter(pk=supplier.pk).update(
            total_orders=F("total_orders") + 1,
            total_value=F("total_value") + total,
            last_order_date=now,
            updated_at=now,
        )

        logger.info(
            "Purchase order %s created for supplier %s: %s lines, total %s",
            order_number, supplier.id, len(lines), total
        )

        return success_response({
            "id": po.id,
            "order_number": po.order_number,
            "order": cls.serialize(po)
        }, f"Purchase order {order_number} created")

    @classmethod
    @transaction.atomic
    def update_status(cls,
                      order_id: int,
                      new_status: str,
                      actor_id: int,
                      now: datetime = None) -> Dict[str, Any]:
        now = resolve_now(now)

        if new_status not in PurchaseOrder.Status.values:
            raise ValidationError(
                f"Invalid status. Valid: {PurchaseOrder.Status.values}", "status"
            )

        po = cls.get_or_404(order_id)
        current = po.status

        if current == new_status:
            return cls._status_response(po, reconciled=False, outcomes=[])

        if not po.can_transition_to(new_status):
            raise InvalidTransitionError(current, new_status)

        changes = {"status": new_status, "updated_at": now}
        if new_status == PurchaseOrder.Status.RECEIVED:
            changes["received_date"] = now
        elif new_status == PurchaseOrder.Status.ORDERED:
            changes["approved_by_id"] = actor_id

        # Only the caller whose update matches may reconcile
        claimed = cls.model.objects.filter(
            id=po.id, status__in=PurchaseOrder.sources_for(new_status)
        ).update(**changes)

        po.refresh_from_db()

        if not claimed:
            if po.status == new_status:
                return cls._status_response(po, reconciled=False, outcomes=[])
            raise InvalidTransitionError(po.status, new_status)

        logger.info("Purchase order %s moved %s -> %s", po.order_number, current, new_status)

        outcomes = []
        reconciled = False
        if new_status == PurchaseOrder.Status.RECEIVED:
            outcomes = ReconciliationService.apply(po, actor_id, now)
            reconciled = True
        elif new_status == PurchaseOrder.Status.CANCELLED:
            cls._release_supplier_totals(po)

        return cls._status_response(po, reconciled=reconciled, outcomes=outcomes)

    @classmethod
    def _release_supplier_totals(cls, po: PurchaseOrder):
        """Undo what create added to the supplier's order count and value."""
        Supplier.objects.filter(pk=po.supplier_id).update(
            total_orders=Greatest(
                F("total_orders") - 1, Value(0), output_field=PositiveIntegerField()
            ),
            total_value=Greatest(
                F("total_value") - po.total, Value(Decimal("0")),
                output_field=DecimalField(max_digits=15, decimal_places=2)
            ),
        )

    @classmethod
    def _status_response(cls, po: PurchaseOrder, reconciled: bool, outcomes: List) -> Dict[str, Any]:
        return success_response({
            "order": cls.serialize(po),
            "reconciled": reconciled,
            "lines": [outcome.as_dict() for outcome in outcomes],
        }, f"Purchase order {po.get_status_display().lower()}")

    @classmethod
    @transaction.atomic
    def delete(cls, order_id: int) -> Dict[str, Any]:
        po = cls.get_or_404(order_id)

        if po.status == PurchaseOrder.Status.RECEIVED:
            raise ConflictError(
                "Cannot delete received purchase",
                {"order_number": po.order_number, "status": po.status}
            )

        # Cancelled orders were already taken out of the supplier totals
        if po.status != PurchaseOrder.Status.CANCELLED:
            cls._release_supplier_totals(po)

        order_number = po.order_number
        po.delete()
        logger.info("Purchase order %s deleted", order_number)

        return success_response(message="Purchase deleted successfully")

    @classmethod
    def get_stats(cls) -> Dict[str, Any]:
        by_status = {
            row["status"]: {"count": row["count"], "value": str(row["value"] or 0)}
            for row in cls.model.objects.values("status").annotate(
                count=Count("id"), value=Sum("total")
            ).order_by("status")
        }

        totals = cls.model.objects.aggregate(
            total_orders=Count("id"),
            total_value=Sum("total"),
        )

        return success_response({
            "stats": {
                "total_orders": totals["total_orders"] or 0,
                "total_value": str(totals["total_value"] or 0),
                "by_status": {
                    status: by_status.get(status, {"count": 0, "value": "0"})
                    for status in PurchaseOrder.Status.values
                },
            }
        })
