from typing import Dict, Any, List, Optional
from django.conf import settings
from django.db import models
from django.db.models import F

from stock.models import InventoryItem, Supplier
from stock.services.base_service import success_response
from stock.services.supplier_service import SupplierService, SupplierRef


class AlertUrgency(models.TextChoices):
    CRITICAL = "critical", "Critical"
    WARNING = "warning", "Warning"


class SuggestionUrgency(models.TextChoices):
    CRITICAL = "critical", "Critical"
    LOW = "low", "Low"


def reorder_buffer() -> int:
    return getattr(settings, "REORDER_BUFFER", 10)


def sales_window_days() -> int:
    return getattr(settings, "SALES_RATE_WINDOW_DAYS", 30)


def suggested_quantity(current_stock: int, reorder_point: int, minimum_order: int = 0) -> int:
    return max(reorder_point - current_stock + reorder_buffer(), minimum_order or 1)


def days_until_out_of_stock(current_stock: int, total_sold: int) -> int:
    """Whole days of cover left at the average daily sales rate; 0 when unknown."""
    if current_stock <= 0 or total_sold <= 0:
        return 0
    # ceil(stock / (sold / window)) without floats
    return -(-(current_stock * sales_window_days()) // total_sold)


class ReorderAdvisoryService:
    """Read-only view over items at or below their reorder point."""

    @classmethod
    def candidates(cls):
        return InventoryItem.objects.filter(
            status=InventoryItem.Status.ACTIVE,
            current_stock__lte=F("reorder_point"),
        ).order_by("current_stock", "id")

    @classmethod
    def _with_suppliers(cls, items: List[InventoryItem]):
        refs = {item.id: SupplierRef.for_item(item) for item in items}
        resolved = SupplierService.resolve_many(refs.values())
        for item in items:
            ref = refs[item.id]
            yield item, ref, resolved[ref]

    @classmethod
    def _is_critical(cls, item: InventoryItem) -> bool:
        return item.current_stock <= item.min_stock

    @classmethod
    def build_suggestion(cls, item: InventoryItem, ref: SupplierRef,
                         supplier: Optional[Supplier]) -> Dict[str, Any]:
        minimum_order = supplier.minimum_order if supplier else 0
        quantity = suggested_quantity(item.current_stock, item.reorder_point, minimum_order)

        return {
            "item": {
                "id": item.id,
                "sku": item.sku,
                "name": item.name,
                "current_stock": item.current_stock,
                "reorder_point": item.reorder_point,
                "min_stock": item.min_stock,
                "cost_price": str(item.cost_price),
            },
            **SupplierService.display_block(ref, supplier),
            "minimum_order": minimum_order,
            "suggested_quantity": quantity,
            "estimated_cost": str(item.cost_price * quantity),
            "urgency": (
                SuggestionUrgency.CRITICAL if cls._is_critical(item) else SuggestionUrgency.LOW
            ).value,
        }

    @classmethod
    def build_alert(cls, item: InventoryItem, ref: SupplierRef,
                    supplier: Optional[Supplier]) -> Dict[str, Any]:
        return {
            "id": item.id,
            "sku": item.sku,
            "name": item.name,
            "category": item.category,
            "current_stock": item.current_stock,
            "reorder_point": item.reorder_point,
            "min_stock": item.min_stock,
            **SupplierService.display_block(ref, supplier),
            "urgency": (
                AlertUrgency.CRITICAL if cls._is_critical(item) else AlertUrgency.WARNING
            ).value,
            "days_until_out_of_stock": days_until_out_of_stock(item.current_stock, item.total_sold),
        }

    @classmethod
    def suggestions(cls) -> Dict[str, Any]:
        items = list(cls.candidates())
        suggestions = [cls.build_suggestion(*row) for row in cls._with_suppliers(items)]

        return success_response({
            "suggestions": suggestions,
            "count": len(suggestions),
        })

    @classmethod
    def alerts(cls) -> Dict[str, Any]:
        items = list(cls.candidates())
        alerts = [cls.build_alert(*row) for row in cls._with_suppliers(items)]
        alerts.sort(key=lambda alert: alert["current_stock"])

        return success_response({
            "alerts": alerts,
            "count": len(alerts),
            "critical": sum(1 for a in alerts if a["urgency"] == AlertUrgency.CRITICAL),
        })

    @classmethod
    def low_stock(cls) -> Dict[str, Any]:
        items = list(cls.candidates())
        rows = []
        for item, ref, supplier in cls._with_suppliers(items):
            rows.append({
                "id": item.id,
                "sku": item.sku,
                "name": item.name,
                "current_stock": item.current_stock,
                "reorder_point": item.reorder_point,
                "stock_status": item.stock_status,
                **SupplierService.display_block(ref, supplier),
            })

        return success_response({
            "items": rows,
            "count": len(rows),
        })
