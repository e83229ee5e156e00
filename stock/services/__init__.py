"""
Stock Services - inventory, purchasing and reorder business logic

Usage:
    from stock.services import PurchaseOrderService, ReorderAdvisoryService

    # Place an order
    result = PurchaseOrderService.create(supplier_id=1, items=[...], created_by_id=1)

    # Receive it; stock is reconciled once
    PurchaseOrderService.update_status(result["id"], "received", actor_id=1)

    # What needs reordering
    ReorderAdvisoryService.suggestions()
"""

# Base utilities
from stock.services.base_service import (
    ServiceError,
    ValidationError,
    NotFoundError,
    InvalidTransitionError,
    ConflictError,
    BusinessRuleError,
    InsufficientStockError,
    success_response,
    paginate_queryset,
    to_decimal,
    round_decimal,
    get_date_range,
    resolve_now,
    BaseService,
)

# Ledger & numbering
from .transaction_service import StockTransactionService
from .sequence_service import OrderSequenceService

# Core entities
from .supplier_service import SupplierService, SupplierRef
from .item_service import InventoryItemService

# Purchasing
from .reconciliation_service import ReconciliationService, LineOutcome
from .purchase_service import PurchaseOrderService, PurchaseOrderItemService

# Read models
from .advisory_service import ReorderAdvisoryService, AlertUrgency, SuggestionUrgency
from .analytics_service import AnalyticsService


__all__ = [
    # Base
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "InvalidTransitionError",
    "ConflictError",
    "BusinessRuleError",
    "InsufficientStockError",
    "success_response",
    "paginate_queryset",
    "to_decimal",
    "round_decimal",
    "get_date_range",
    "resolve_now",
    "BaseService",

    # Ledger & numbering
    "StockTransactionService",
    "OrderSequenceService",

    # Core entities
    "SupplierService",
    "SupplierRef",
    "InventoryItemService",

    # Purchasing
    "ReconciliationService",
    "LineOutcome",
    "PurchaseOrderService",
    "PurchaseOrderItemService",

    # Read models
    "ReorderAdvisoryService",
    "AlertUrgency",
    "SuggestionUrgency",
    "AnalyticsService",
]
