import logging
from typing import Dict, Any, List
from datetime import datetime
from decimal import Decimal
from django.db import transaction
from django.db.models import Q

from stock.models import InventoryItem, StockTransaction
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, InsufficientStockError,
    require_decimal, require_int, round_decimal, resolve_now, MAX_QUANTITY
)
from stock.services.supplier_service import SupplierService, SupplierRef
from stock.services.transaction_service import StockTransactionService


logger = logging.getLogger(__name__)


class InventoryItemService(BaseService):
    model = InventoryItem
    resource_name = "Inventory item"

    REQUIRED_FIELDS = ("sku", "name", "category")
    TEXT_FIELDS = ("sku", "name", "description", "category", "location", "supplier_name")
    LEVEL_FIELDS = ("current_stock", "min_stock", "max_stock", "reorder_point")
    PRICE_FIELDS = ("unit_price", "cost_price")
    EDITABLE_FIELDS = TEXT_FIELDS + LEVEL_FIELDS + PRICE_FIELDS + ("status", "supplier_id")

    @classmethod
    def serialize(cls, item: InventoryItem, supplier_block: Dict[str, Any] = None) -> Dict[str, Any]:
        if supplier_block is None:
            ref = SupplierRef.for_item(item)
            supplier_block = SupplierService.display_block(ref, SupplierService.resolve(ref))

        return {
            "id": item.id,
            "sku": item.sku,
            "name": item.name,
            "description": item.description,
            "category": item.category,

            "current_stock": item.current_stock,
            "min_stock": item.min_stock,
            "max_stock": item.max_stock,
            "reorder_point": item.reorder_point,
            "stock_status": item.stock_status,
            "needs_reorder": item.needs_reorder,

            "unit_price": str(item.unit_price),
            "cost_price": str(item.cost_price),
            **supplier_block,

            "location": item.location,
            "status": item.status,
            "status_display": item.get_status_display(),
            "last_restocked": item.last_restocked.isoformat() if item.last_restocked else None,
            "total_sold": item.total_sold,
            "total_purchased": item.total_purchased,
            "created_at": item.created_at.isoformat(),
            "updated_at": item.updated_at.isoformat(),
        }

    @classmethod
    def serialize_many(cls, items: List[InventoryItem]) -> List[Dict[str, Any]]:
        refs = {item.id: SupplierRef.for_item(item) for item in items}
        resolved = SupplierService.resolve_many(refs.values())
        return [
            cls.serialize(item, SupplierService.display_block(refs[item.id], resolved[refs[item.id]]))
            for item in items
        ]

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             search: str = None,
             category: str = None,
             status: str = None,
             supplier_id: int = None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("supplier")

        if category:
            queryset = queryset.filter(category=category)

        if status:
            queryset = queryset.filter(status=status)

        if supplier_id:
            queryset = queryset.filter(supplier_id=supplier_id)

        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(sku__icontains=search) |
                Q(description__icontains=search)
            )

        queryset = queryset.order_by("-created_at")

        items, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "items": cls.serialize_many(items),
            "pagination": pagination,
            "statuses": [{"value": c[0], "label": c[1]} for c in InventoryItem.Status.choices],
        })

    @classmethod
    def get(cls, item_id: int) -> Dict[str, Any]:
        item = cls.get_or_404(item_id)

        return success_response({
            "item": cls.serialize(item)
        })

    @classmethod
    def categories(cls) -> Dict[str, Any]:
        categories = list(
            cls.model.objects.order_by("category").values_list("category", flat=True).distinct()
        )
        return success_response({"categories": categories})

    @classmethod
    def _clean(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = {}

        for field, value in data.items():
            if field in cls.TEXT_FIELDS:
                value = str(value or "").strip()
                if field in cls.REQUIRED_FIELDS and not value:
                    raise ValidationError(f"{field} is required", field)
                if field == "sku":
                    value = value.upper()
                cleaned[field] = value

            elif field in cls.LEVEL_FIELDS:
                cleaned[field] = require_int(value, field)

            elif field in cls.PRICE_FIELDS:
                cleaned[field] = round_decimal(require_decimal(value, field))

            elif field == "status":
                if value not in InventoryItem.Status.values:
                    raise ValidationError(
                        f"Invalid status. Valid: {InventoryItem.Status.values}", "status"
                    )
                cleaned[field] = value

            elif field == "supplier_id":
                if value in (None, ""):
                    cleaned["supplier"] = None
                else:
                    supplier = SupplierService.get_by_id(value)
                    if not supplier:
                        raise NotFoundError("Supplier", value)
                    cleaned["supplier"] = supplier

        return cleaned

    @classmethod
    def _check_sku_free(cls, sku: str, exclude_id: int = None):
        queryset = cls.model.objects.filter(sku=sku)
        if exclude_id:
            queryset = queryset.exclude(id=exclude_id)
        if queryset.exists():
            raise ValidationError(f"SKU '{sku}' already exists", "sku")

    @classmethod
    @transaction.atomic
    def create(cls, created_by_id: int, now: datetime = None, **data) -> Dict[str, Any]:
        for field in cls.REQUIRED_FIELDS + cls.PRICE_FIELDS:
            if field not in data:
                raise ValidationError(f"{field} is required", field)

        cleaned = cls._clean(data)
        cls._check_sku_free(cleaned["sku"])

        item = cls.model.objects.create(**cleaned)

        StockTransactionService.record(
            type=StockTransaction.Type.ADJUSTMENT,
            inventory_id=item.id,
            quantity=item.current_stock,
            unit_price=item.cost_price,
            reference="Initial stock",
            notes="Initial inventory entry",
            location=item.location,
            created_by_id=created_by_id,
            now=now,
        )
        logger.info("Inventory item %s created with stock %s", item.sku, item.current_stock)

        return success_response({
            "id": item.id,
            "item": cls.serialize(item)
        }, f"Inventory item '{item.name}' created")

    @classmethod
    @transaction.atomic
    def update(cls, item_id: int, actor_id: int, now: datetime = None, **data) -> Dict[str, Any]:
        item = cls.model.objects.select_for_update().filter(id=item_id).first()
        if not item:
            raise NotFoundError(cls.resource_name, item_id)

        cleaned = cls._clean(data)
        if "sku" in cleaned:
            cls._check_sku_free(cleaned["sku"], exclude_id=item.id)

        old_stock = item.current_stock
        for field, value in cleaned.items():
            setattr(item, field, value)
        item.save()

        if item.current_stock != old_stock:
            change = item.current_stock - old_stock
            StockTransactionService.record(
                type=StockTransaction.Type.ADJUSTMENT,
                inventory_id=item.id,
                quantity=change,
                unit_price=item.cost_price,
                reference="Stock adjustment",
                notes=f"Stock adjusted from {old_stock} to {item.current_stock}",
                location=item.location,
                created_by_id=actor_id,
                now=now,
            )
            logger.info("Inventory item %s stock edited %s -> %s", item.sku, old_stock, item.current_stock)

        return success_response({
            "item": cls.serialize(item)
        }, "Inventory item updated")

    @classmethod
    @transaction.atomic
    def adjust_stock(cls,
                     item_id: int,
                     quantity: int,
                     actor_id: int,
                     reason: str = "",
                     now: datetime = None) -> Dict[str, Any]:
        quantity = require_int(quantity, "quantity", minimum=None)
        if quantity == 0:
            raise ValidationError("quantity must not be zero", "quantity")

        item = cls.model.objects.select_for_update().filter(id=item_id).first()
        if not item:
            raise NotFoundError(cls.resource_name, item_id)

        if item.current_stock + quantity < 0:
            raise InsufficientStockError(item.name, abs(quantity), item.current_stock)
        if item.current_stock + quantity > MAX_QUANTITY:
            raise ValidationError(f"Stock cannot exceed {MAX_QUANTITY}", "quantity")

        old_stock = item.current_stock
        item.current_stock += quantity
        item.save(update_fields=["current_stock", "updated_at"])

        trans = StockTransactionService.record(
            type=StockTransaction.Type.ADJUSTMENT,
            inventory_id=item.id,
            quantity=quantity,
            unit_price=item.cost_price,
            reference="Manual adjustment",
            notes=reason or f"Stock adjusted from {old_stock} to {item.current_stock}",
            location=item.location,
            created_by_id=actor_id,
            now=now,
        )
        logger.info("Inventory item %s adjusted by %+d", item.sku, quantity)

        return success_response({
            "item": cls.serialize(item),
            "transaction": StockTransactionService.serialize(trans),
        }, "Stock adjusted")

    @classmethod
    @transaction.atomic
    def record_sale(cls,
                    item_id: int,
                    quantity: int,
                    actor_id: int,
                    unit_price: Decimal = None,
                    now: datetime = None) -> Dict[str, Any]:
        quantity = require_int(quantity, "quantity", minimum=1)

        item = cls.model.objects.select_for_update().filter(id=item_id).first()
        if not item:
            raise NotFoundError(cls.resource_name, item_id)

        if item.status != InventoryItem.Status.ACTIVE:
            raise ValidationError(f"Cannot sell a {item.status} item", "status")

        if item.current_stock < quantity:
            raise InsufficientStockError(item.name, quantity, item.current_stock)

        price = item.unit_price if unit_price is None else require_decimal(unit_price, "unit_price")

        item.current_stock -= quantity
        item.total_sold += quantity
        item.save(update_fields=["current_stock", "total_sold", "updated_at"])

        trans = StockTransactionService.record(
            type=StockTransaction.Type.SALE,
            inventory_id=item.id,
            quantity=-quantity,
            unit_price=price,
            reference="Sale",
            location=item.location,
            created_by_id=actor_id,
            now=now,
        )
        logger.info("Inventory item %s sold %s", item.sku, quantity)

        return success_response({
            "item": cls.serialize(item),
            "transaction": StockTransactionService.serialize(trans),
        }, "Sale recorded")

    @classmethod
    @transaction.atomic
    def record_return(cls,
                      item_id: int,
                      quantity: int,
                      actor_id: int,
                      notes: str = "",
                      now: datetime = None) -> Dict[str, Any]:
        quantity = require_int(quantity, "quantity", minimum=1)

        item = cls.model.objects.select_for_update().filter(id=item_id).first()
        if not item:
            raise NotFoundError(cls.resource_name, item_id)

        if item.current_stock + quantity > MAX_QUANTITY:
            raise ValidationError(f"Stock cannot exceed {MAX_QUANTITY}", "quantity")

        item.current_stock += quantity
        item.save(update_fields=["current_stock", "updated_at"])

        trans = StockTransactionService.record(
            type=StockTransaction.Type.RETURN,
            inventory_id=item.id,
            quantity=quantity,
            unit_price=item.unit_price,
            reference="Customer return",
            notes=notes,
            location=item.location,
            created_by_id=actor_id,
            now=now,
        )
        logger.info("Inventory item %s returned %s", item.sku, quantity)

        return success_response({
            "item": cls.serialize(item),
            "transaction": StockTransactionService.serialize(trans),
        }, "Return recorded")

    @classmethod
    @transaction.atomic
    def set_status(cls, item_id: int, status: str) -> Dict[str, Any]:
        if status not in InventoryItem.Status.values:
            raise ValidationError(f"Invalid status. Valid: {InventoryItem.Status.values}", "status")

        item = cls.get_or_404(item_id)
        item.status = status
        item.save(update_fields=["status", "updated_at"])

        return success_response({
            "item": cls.serialize(item)
        }, f"Inventory item marked {status}")

    @classmethod
    @transaction.atomic
    def delete(cls, item_id: int) -> Dict[str, Any]:
        item = cls.get_or_404(item_id)
        sku = item.sku
        item.delete()
        logger.info("Inventory item %s deleted (id=%s)", sku, item_id)

        return success_response(message="Inventory item deleted successfully")

    @classmethod
    def mark_restocked(cls, item: InventoryItem, quantity: int, now: datetime = None) -> InventoryItem:
        """Apply a receipt to a locked row. Callers write the ledger entry."""
        item.current_stock += quantity
        item.total_purchased += quantity
        item.last_restocked = resolve_now(now)
        item.save(update_fields=["current_stock", "total_purchased", "last_restocked", "updated_at"])
        return item
