from typing import Dict, Any
from datetime import datetime, timedelta
from decimal import Decimal
from django.db.models import Sum, Count, Avg, Q, F, DecimalField, ExpressionWrapper
from django.db.models.functions import TruncDate, Abs

from stock.models import InventoryItem, PurchaseOrder, StockTransaction, Supplier
from stock.services.base_service import success_response, to_decimal, round_decimal, resolve_now


STOCK_VALUE = ExpressionWrapper(
    F("current_stock") * F("cost_price"),
    output_field=DecimalField(max_digits=18, decimal_places=2)
)


class AnalyticsService:

    @classmethod
    def dashboard(cls) -> Dict[str, Any]:
        active = InventoryItem.objects.filter(status=InventoryItem.Status.ACTIVE)

        inventory_value = to_decimal(active.aggregate(total=Sum(STOCK_VALUE))["total"])

        recent_purchases = PurchaseOrder.objects.filter(
            status=PurchaseOrder.Status.RECEIVED
        ).select_related("supplier").order_by("-received_date")[:5]

        top_selling = active.order_by("-total_sold", "id")[:5]

        return success_response({
            "overview": {
                "total_items": active.count(),
                "low_stock_items": active.filter(current_stock__lte=F("reorder_point")).count(),
                "out_of_stock_items": active.filter(current_stock=0).count(),
                "total_suppliers": Supplier.objects.count(),
                "active_suppliers": Supplier.objects.filter(status=Supplier.Status.ACTIVE).count(),
                "inventory_value": str(round_decimal(inventory_value)),
            },
            "recent_purchases": [
                {
                    "id": po.id,
                    "order_number": po.order_number,
                    "supplier_name": po.supplier.name,
                    "total": str(po.total),
                    "received_date": po.received_date.isoformat() if po.received_date else None,
                }
                for po in recent_purchases
            ],
            "top_selling_items": [
                {
                    "id": item.id,
                    "sku": item.sku,
                    "name": item.name,
                    "total_sold": item.total_sold,
                    "current_stock": item.current_stock,
                }
                for item in top_selling
            ],
        })

    @classmethod
    def sales_trends(cls, days: int = 30, now: datetime = None) -> Dict[str, Any]:
        days = max(1, int(days or 30))
        start = resolve_now(now) - timedelta(days=days)

        rows = StockTransaction.objects.filter(
            type=StockTransaction.Type.SALE,
            created_at__gte=start,
        ).annotate(
            day=TruncDate("created_at")
        ).values("day").annotate(
            total_sales=Sum("total_price"),
            total_quantity=Sum(Abs("quantity")),
            transaction_count=Count("id"),
        ).order_by("day")

        return success_response({
            "days": days,
            "trends": [
                {
                    "date": row["day"].isoformat(),
                    "total_sales": str(row["total_sales"] or 0),
                    "total_quantity": row["total_quantity"] or 0,
                    "transaction_count": row["transaction_count"],
                }
                for row in rows
            ],
        })

    @classmethod
    def inventory_turnover(cls, limit: int = 20) -> Dict[str, Any]:
        items = InventoryItem.objects.filter(status=InventoryItem.Status.ACTIVE).only(
            "id", "sku", "name", "current_stock", "total_sold", "total_purchased"
        )

        rows = []
        for item in items:
            rate = (
                Decimal(item.total_sold) / Decimal(item.current_stock)
                if item.current_stock > 0 else Decimal("0")
            )
            rows.append({
                "id": item.id,
                "sku": item.sku,
                "name": item.name,
                "current_stock": item.current_stock,
                "total_sold": item.total_sold,
                "total_purchased": item.total_purchased,
                "turnover_rate": round_decimal(rate),
            })

        rows.sort(key=lambda row: row["turnover_rate"], reverse=True)
        rows = rows[:max(1, int(limit or 20))]
        for row in rows:
            row["turnover_rate"] = str(row["turnover_rate"])

        return success_response({"turnover": rows})

    @classmethod
    def supplier_performance(cls) -> Dict[str, Any]:
        suppliers = Supplier.objects.annotate(
            purchase_count=Count("purchase_orders"),
            on_time_count=Count(
                "purchase_orders",
                filter=Q(
                    purchase_orders__status=PurchaseOrder.Status.RECEIVED,
                    purchase_orders__received_date__lte=F("purchase_orders__expected_date"),
                )
            ),
        ).order_by("-rating", "-total_value")

        rows = []
        for supplier in suppliers:
            average = (
                supplier.total_value / supplier.total_orders
                if supplier.total_orders else Decimal("0")
            )
            on_time = (
                Decimal(supplier.on_time_count * 100) / Decimal(supplier.purchase_count)
                if supplier.purchase_count else Decimal("0")
            )
            rows.append({
                "id": supplier.id,
                "name": supplier.name,
                "rating": supplier.rating,
                "total_orders": supplier.total_orders,
                "total_value": str(supplier.total_value),
                "average_order_value": str(round_decimal(average)),
                "on_time_delivery": str(round_decimal(on_time)),
            })

        return success_response({"suppliers": rows})

    @classmethod
    def category_analysis(cls) -> Dict[str, Any]:
        rows = InventoryItem.objects.filter(
            status=InventoryItem.Status.ACTIVE
        ).values("category").annotate(
            total_items=Count("id"),
            total_stock=Sum("current_stock"),
            total_value=Sum(STOCK_VALUE),
            total_sold=Sum("total_sold"),
            average_price=Avg("unit_price"),
        ).order_by("-total_value", "category")

        return success_response({
            "categories": [
                {
                    "category": row["category"],
                    "total_items": row["total_items"],
                    "total_stock": row["total_stock"] or 0,
                    "total_value": str(round_decimal(to_decimal(row["total_value"]))),
                    "total_sold": row["total_sold"] or 0,
                    "average_price": str(round_decimal(to_decimal(row["average_price"]))),
                }
                for row in rows
            ],
        })
