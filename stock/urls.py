from django.urls import path
from . import views

app_name = "stock"

urlpatterns = [
    path("inventory/", views.InventoryListView.as_view(), name="inventory-list"),
    path("inventory/categories/", views.CategoryListView.as_view(), name="inventory-categories"),
    path("inventory/low-stock/", views.LowStockView.as_view(), name="inventory-low-stock"),
    path("inventory/<int:item_id>/", views.InventoryDetailView.as_view(), name="inventory-detail"),
    path("inventory/<int:item_id>/adjust/", views.InventoryAdjustView.as_view(), name="inventory-adjust"),
    path("inventory/<int:item_id>/sale/", views.InventorySaleView.as_view(), name="inventory-sale"),
    path("inventory/<int:item_id>/return/", views.InventoryReturnView.as_view(), name="inventory-return"),
    path("inventory/<int:item_id>/status/", views.InventoryStatusView.as_view(), name="inventory-status"),
    path("inventory/<int:item_id>/history/", views.InventoryHistoryView.as_view(), name="inventory-history"),

    path("suppliers/", views.SupplierListView.as_view(), name="supplier-list"),
    path("suppliers/<int:supplier_id>/", views.SupplierDetailView.as_view(), name="supplier-detail"),
    path("suppliers/<int:supplier_id>/stats/", views.SupplierStatsView.as_view(), name="supplier-stats"),

    path("purchases/", views.PurchaseOrderListView.as_view(), name="po-list"),
    path("purchases/stats/", views.PurchaseOrderStatsView.as_view(), name="po-stats"),
    path("purchases/reorder-suggestions/", views.ReorderSuggestionView.as_view(), name="po-reorder-suggestions"),
    path("purchases/<int:order_id>/", views.PurchaseOrderDetailView.as_view(), name="po-detail"),
    path("purchases/<int:order_id>/status/", views.PurchaseOrderStatusView.as_view(), name="po-status"),

    path("transactions/", views.TransactionListView.as_view(), name="transaction-list"),
    path("transactions/reference/<int:reference_id>/", views.TransactionReferenceView.as_view(), name="transaction-reference"),

    path("analytics/dashboard/", views.DashboardView.as_view(), name="analytics-dashboard"),
    path("analytics/sales-trends/", views.SalesTrendsView.as_view(), name="analytics-sales-trends"),
    path("analytics/inventory-turnover/", views.InventoryTurnoverView.as_view(), name="analytics-inventory-turnover"),
    path("analytics/supplier-performance/", views.SupplierPerformanceView.as_view(), name="analytics-supplier-performance"),
    path("analytics/category-analysis/", views.CategoryAnalysisView.as_view(), name="analytics-category-analysis"),
    path("analytics/alerts/", views.AlertListView.as_view(), name="analytics-alerts"),
]
