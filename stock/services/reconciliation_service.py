import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, List
from datetime import datetime

from stock.models import PurchaseOrder, InventoryItem, StockTransaction
from stock.services.base_service import resolve_now
from stock.services.item_service import InventoryItemService
from stock.services.transaction_service import StockTransactionService


logger = logging.getLogger(__name__)


@dataclass
class LineOutcome:
    APPLIED = "applied"
    SKIPPED = "skipped"

    line_id: int
    inventory_id: int
    quantity: int
    outcome: str
    transaction_id: int = None
    reason: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ReconciliationService:
    """
    Turns a received purchase order into stock. Must run inside the
    transaction that claimed the order's move into received, and only once.
    """

    @classmethod
    def apply(cls, order: PurchaseOrder, actor_id: int, now: datetime = None) -> List[LineOutcome]:
        now = resolve_now(now)
        outcomes = []

        for line in order.items.order_by("id"):
            item = InventoryItem.objects.select_for_update().filter(id=line.inventory_id).first()

            if item is None:
                logger.warning(
                    "Purchase order %s line %s points at missing inventory item %s, skipped",
                    order.order_number, line.id, line.inventory_id
                )
                outcomes.append(LineOutcome(
                    line_id=line.id,
                    inventory_id=line.inventory_id,
                    quantity=line.quantity,
                    outcome=LineOutcome.SKIPPED,
                    reason="Inventory item not found",
                ))
                continue

            InventoryItemService.mark_restocked(item, line.quantity, now)

            trans = StockTransactionService.record(
                type=StockTransaction.Type.PURCHASE,
                inventory_id=item.id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
                reference="Purchase",
                reference_id=order.id,
                notes=f"Purchase order {order.order_number}",
                location=item.location,
                created_by_id=actor_id,
                now=now,
            )
            logger.info(
                "Purchase order %s received %s x %s, stock now %s",
                order.order_number, line.quantity, item.sku, item.current_stock
            )
            outcomes.append(LineOutcome(
                line_id=line.id,
                inventory_id=item.id,
                quantity=line.quantity,
                outcome=LineOutcome.APPLIED,
                transaction_id=trans.id,
            ))

        return outcomes
