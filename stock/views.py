import json
import logging
from django.http import JsonResponse
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from accounts.decorators import role_required, login_required
from stock.services import (
    ServiceError, ValidationError, NotFoundError, InvalidTransitionError,
    ConflictError, BusinessRuleError, InsufficientStockError,
    InventoryItemService, SupplierService, PurchaseOrderService,
    StockTransactionService, ReorderAdvisoryService, AnalyticsService,
)


logger = logging.getLogger(__name__)

ADMIN = "admin"
MANAGER = "manager"

can_read = method_decorator(login_required)
can_write = method_decorator(role_required(ADMIN, MANAGER))
can_delete = method_decorator(role_required(ADMIN))


ERROR_STATUS = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (ConflictError, 409),
    (InsufficientStockError, 400),
    (BusinessRuleError, 400),
)


def error_response(message: str, code: str = "ERROR", status: int = 400, details: dict = None):
    data = {"success": False, "error": {"code": code, "message": message, "details": details or {}}}
    return JsonResponse(data, status=status)


def handle_service_error(e: Exception):
    if isinstance(e, ServiceError):
        for error_class, status in ERROR_STATUS:
            if isinstance(e, error_class):
                details = dict(e.details)
                if isinstance(e, ValidationError) and e.field:
                    details.setdefault("field", e.field)
                return error_response(e.message, e.code, status, details)
        return error_response(e.message, e.code, 400, e.details)

    logger.exception("Unhandled error in stock API")
    return error_response("Server error", "SERVER_ERROR", 500)


class BaseStockView(View):
    @method_decorator(csrf_exempt)
    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except Exception as e:
            return handle_service_error(e)

    def get_json_body(self, request):
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Request body must be valid JSON", "body")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object", "body")
        return data

    def pick(self, data: dict, fields) -> dict:
        return {k: v for k, v in data.items() if k in fields}

    def get_int(self, request, name: str, default: int = None):
        value = request.GET.get(name)
        if value in (None, ""):
            return default
        try:
            return int(value)
        except ValueError:
            raise ValidationError(f"{name} must be an integer", name)

    def get_user_id(self, request):
        if request.user.is_authenticated:
            return request.user.id
        return None

    def success(self, data: dict, status: int = 200):
        return JsonResponse({"success": True, **data}, status=status)


# ==================== INVENTORY ====================

class InventoryListView(BaseStockView):

    @can_read
    def get(self, request):
        result = InventoryItemService.list(
            page=self.get_int(request, "page", 1),
            per_page=self.get_int(request, "per_page", 20),
            search=request.GET.get("search"),
            category=request.GET.get("category"),
            status=request.GET.get("status"),
            supplier_id=self.get_int(request, "supplier_id"),
        )
        return self.success(result)

    @can_write
    def post(self, request):
        data = self.get_json_body(request)
        result = InventoryItemService.create(
            created_by_id=self.get_user_id(request),
            **self.pick(data, InventoryItemService.EDITABLE_FIELDS)
        )
        return self.success(result, 201)


class InventoryDetailView(BaseStockView):

    @can_read
    def get(self, request, item_id):
        return self.success(InventoryItemService.get(item_id))

    @can_write
    def put(self, request, item_id):
        data = self.get_json_body(request)
        result = InventoryItemService.update(
            item_id,
            actor_id=self.get_user_id(request),
            **self.pick(data, InventoryItemService.EDITABLE_FIELDS)
        )
        return self.success(result)

    patch = put

    @can_delete
    def delete(self, request, item_id):
        return self.success(InventoryItemService.delete(item_id))


class InventoryAdjustView(BaseStockView):

    @can_write
    def post(self, request, item_id):
        data = self.get_json_body(request)
        result = InventoryItemService.adjust_stock(
            item_id,
            quantity=data.get("quantity"),
            actor_id=self.get_user_id(request),
            reason=data.get("reason", ""),
        )
        return self.success(result)


class InventorySaleView(BaseStockView):

    @can_write
    def post(self, request, item_id):
        data = self.get_json_body(request)
        result = InventoryItemService.record_sale(
            item_id,
            quantity=data.get("quantity"),
            actor_id=self.get_user_id(request),
            unit_price=data.get("unit_price"),
        )
        return self.success(result, 201)


class InventoryReturnView(BaseStockView):

    @can_write
    def post(self, request, item_id):
        data = self.get_json_body(request)
        result = InventoryItemService.record_return(
            item_id,
            quantity=data.get("quantity"),
            actor_id=self.get_user_id(request),
            notes=data.get("notes", ""),
        )
        return self.success(result, 201)


class InventoryStatusView(BaseStockView):

    @can_write
    def patch(self, request, item_id):
        data = self.get_json_body(request)
        return self.success(InventoryItemService.set_status(item_id, data.get("status")))


class InventoryHistoryView(BaseStockView):

    @can_read
    def get(self, request, item_id):
        InventoryItemService.get_or_404(item_id)
        result = StockTransactionService.get_item_history(
            item_id, limit=self.get_int(request, "limit", 100)
        )
        return self.success(result)


class CategoryListView(BaseStockView):

    @can_read
    def get(self, request):
        return self.success(InventoryItemService.categories())


class LowStockView(BaseStockView):

    @can_read
    def get(self, request):
        return self.success(ReorderAdvisoryService.low_stock())


# ==================== SUPPLIERS ====================

class SupplierListView(BaseStockView):

    @can_read
    def get(self, request):
        result = SupplierService.list(
            page=self.get_int(request, "page", 1),
            per_page=self.get_int(request, "per_page", 20),
            search=request.GET.get("search"),
            status=request.GET.get("status"),
        )
        return self.success(result)

    @can_write
    def post(self, request):
        data = self.get_json_body(request)
        return self.success(
            SupplierService.create(**self.pick(data, SupplierService.EDITABLE_FIELDS)), 201
        )


class SupplierDetailView(BaseStockView):

    @can_read
    def get(self, request, supplier_id):
        return self.success(SupplierService.get(supplier_id))

    @can_write
    def put(self, request, supplier_id):
        data = self.get_json_body(request)
        return self.success(
            SupplierService.update(supplier_id, **self.pick(data, SupplierService.EDITABLE_FIELDS))
        )

    patch = put

    @can_delete
    def delete(self, request, supplier_id):
        return self.success(SupplierService.delete(supplier_id))


class SupplierStatsView(BaseStockView):

    @can_read
    def get(self, request, supplier_id):
        return self.success(SupplierService.get_stats(supplier_id))


# ==================== PURCHASE ORDERS ====================

class PurchaseOrderListView(BaseStockView):

    @can_read
    def get(self, request):
        result = PurchaseOrderService.list(
            page=self.get_int(request, "page", 1),
            per_page=self.get_int(request, "per_page", 20),
            search=request.GET.get("search"),
            status=request.GET.get("status"),
            supplier_id=self.get_int(request, "supplier_id"),
        )
        return self.success(result)

    @can_write
    def post(self, request):
        data = self.get_json_body(request)
        result = PurchaseOrderService.create(
            supplier_id=data.get("supplier_id", data.get("supplier")),
            items=data.get("items"),
            created_by_id=self.get_user_id(request),
            tax=data.get("tax", 0),
            shipping=data.get("shipping", 0),
            expected_date=data.get("expected_date"),
            notes=data.get("notes", ""),
        )
        return self.success(result, 201)


class PurchaseOrderDetailView(BaseStockView):

    @can_read
    def get(self, request, order_id):
        return self.success(PurchaseOrderService.get(order_id))

    @can_delete
    def delete(self, request, order_id):
        return self.success(PurchaseOrderService.delete(order_id))


class PurchaseOrderStatusView(BaseStockView):

    @can_write
    def patch(self, request, order_id):
        data = self.get_json_body(request)
        result = PurchaseOrderService.update_status(
            order_id,
            new_status=data.get("status"),
            actor_id=self.get_user_id(request),
        )
        return self.success(result)


class PurchaseOrderStatsView(BaseStockView):

    @can_read
    def get(self, request):
        return self.success(PurchaseOrderService.get_stats())


class ReorderSuggestionView(BaseStockView):

    @can_read
    def get(self, request):
        return self.success(ReorderAdvisoryService.suggestions())


# ==================== TRANSACTIONS ====================

class TransactionListView(BaseStockView):

    @can_read
    def get(self, request):
        result = StockTransactionService.list(
            inventory_id=self.get_int(request, "inventory_id"),
            type=request.GET.get("type"),
            period=request.GET.get("period"),
            page=self.get_int(request, "page", 1),
            per_page=self.get_int(request, "per_page", 50),
        )
        return self.success(result)


class TransactionReferenceView(BaseStockView):

    @can_read
    def get(self, request, reference_id):
        return self.success(StockTransactionService.get_by_reference(reference_id))


# ==================== ANALYTICS ====================

class DashboardView(BaseStockView):

    @can_read
    def get(self, request):
        return self.success(AnalyticsService.dashboard())


class SalesTrendsView(BaseStockView):

    @can_read
    def get(self, request):
        return self.success(AnalyticsService.sales_trends(days=self.get_int(request, "days", 30)))


class InventoryTurnoverView(BaseStockView):

    @can_read
    def get(self, request):
        return self.success(AnalyticsService.inventory_turnover(limit=self.get_int(request, "limit", 20)))


class SupplierPerformanceView(BaseStockView):

    @can_read
    def get(self, request):
        return self.success(AnalyticsService.supplier_performance())


class CategoryAnalysisView(BaseStockView):

    @can_read
    def get(self, request):
        return self.success(AnalyticsService.category_analysis())


class AlertListView(BaseStockView):

    @can_read
    def get(self, request):
        return self.success(ReorderAdvisoryService.alerts())
