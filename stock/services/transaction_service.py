from typing import Dict, Any, Optional
from decimal import Decimal
from datetime import date, datetime
from django.db.models import Sum

from stock.models import StockTransaction, InventoryItem
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, to_decimal, round_decimal, get_date_range, resolve_now, MAX_TOTAL
)


class StockTransactionService(BaseService):
    model = StockTransaction
    resource_name = "Stock transaction"

    @classmethod
    def serialize(cls, trans: StockTransaction) -> Dict[str, Any]:
        return {
            "id": trans.id,
            "type": trans.type,
            "type_display": trans.get_type_display(),
            "inventory_id": trans.inventory_id,
            "quantity": trans.quantity,
            "unit_price": str(trans.unit_price),
            "total_price": str(trans.total_price),
            "reference": trans.reference,
            "reference_id": trans.reference_id,
            "notes": trans.notes,
            "location": trans.location,
            "created_by_id": trans.created_by_id,
            "created_at": trans.created_at.isoformat(),
        }

    @classmethod
    def record(cls,
               type: str,
               inventory_id: int,
               quantity: int,
               unit_price: Decimal,
               created_by_id: int,
               total_price: Decimal = None,
               reference: str = "",
               reference_id: int = None,
               notes: str = "",
               location: str = InventoryItem.DEFAULT_LOCATION,
               now: datetime = None) -> StockTransaction:
        if type not in StockTransaction.Type.values:
            raise ValidationError(
                f"Invalid transaction type. Valid: {StockTransaction.Type.values}", "type"
            )

        unit_price = to_decimal(unit_price)
        if total_price is None:
            total_price = abs(quantity) * unit_price
        total_price = round_decimal(abs(to_decimal(total_price)))
        if total_price > MAX_TOTAL:
            raise ValidationError(f"Transaction value must be at most {MAX_TOTAL}", "quantity")

        return cls.model.objects.create(
            type=type,
            inventory_id=inventory_id,
            quantity=quantity,
            unit_price=unit_price,
            total_price=total_price,
            reference=reference,
            reference_id=reference_id,
            notes=notes,
            location=location or InventoryItem.DEFAULT_LOCATION,
            created_by_id=created_by_id,
            created_at=resolve_now(now),
        )

    @classmethod
    def list(cls,
             inventory_id: int = None,
             type: str = None,
             period: str = None,
             date_from: date = None,
             date_to: date = None,
             page: int = 1,
             per_page: int = 50,
             now: datetime = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if inventory_id:
            queryset = queryset.filter(inventory_id=inventory_id)

        if type:
            if type not in StockTransaction.Type.values:
                raise ValidationError(
                    f"Invalid transaction type. Valid: {StockTransaction.Type.values}", "type"
                )
            queryset = queryset.filter(type=type)

        if period:
            date_from, date_to = get_date_range(period, now)

        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)

        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)

        transactions, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "transactions": [cls.serialize(t) for t in transactions],
            "pagination": pagination,
            "types": [
                {"value": c[0], "label": c[1]}
                for c in StockTransaction.Type.choices
            ]
        })

    @classmethod
    def get_by_reference(cls, reference_id: int) -> Dict[str, Any]:
        transactions = cls.model.objects.filter(reference_id=reference_id)

        return success_response({
            "transactions": [cls.serialize(t) for t in transactions],
            "count": transactions.count()
        })

    @classmethod
    def ledger_balance(cls, inventory_id: int) -> int:
        total = cls.model.objects.filter(
            inventory_id=inventory_id
        ).aggregate(total=Sum("quantity"))["total"]
        return total or 0

    @classmethod
    def get_item_history(cls, inventory_id: int, limit: int = 100) -> Dict[str, Any]:
        item: Optional[InventoryItem] = InventoryItem.objects.filter(id=inventory_id).first()
        transactions = cls.model.objects.filter(inventory_id=inventory_id)

        summary = transactions.values("type").annotate(
            total_qty=Sum("quantity"),
            total_value=Sum("total_price")
        ).order_by("type")

        ledger_balance = cls.ledger_balance(inventory_id)

        return success_response({
            "transactions": [cls.serialize(t) for t in transactions[:limit]],
            "summary": [
                {
                    "type": row["type"],
                    "total_qty": row["total_qty"] or 0,
                    "total_value": str(row["total_value"] or 0),
                }
                for row in summary
            ],
            "total_transactions": transactions.count(),
            "ledger_balance": ledger_balance,
            "current_stock": item.current_stock if item else None,
            "in_balance": item is not None and item.current_stock == ledger_balance,
        })
