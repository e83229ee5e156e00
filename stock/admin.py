from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display
from unfold.contrib.filters.admin import RangeDateTimeFilter, RangeNumericFilter

from .models import (
    Supplier, InventoryItem, PurchaseOrder, PurchaseOrderItem,
    OrderSequence, StockTransaction,
)


class PurchaseOrderItemInline(TabularInline):
    model = PurchaseOrderItem
    extra = 0
    fields = ('inventory', 'quantity', 'unit_price', 'total_price')
    readonly_fields = ('inventory', 'quantity', 'unit_price', 'total_price')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Supplier)
class SupplierAdmin(ModelAdmin):
    list_display = ['id', 'name', 'contact_person', 'email', 'status_badge', 'rating',
                    'total_orders', 'total_value_display', 'last_order_date']
    list_filter = ['status', 'payment_terms']
    search_fields = ['name', 'contact_person', 'email']
    list_filter_submit = True
    readonly_fields = ['total_orders', 'total_value', 'last_order_date', 'created_at', 'updated_at']

    fieldsets = (
        (_('Supplier'), {
            'fields': ('name', 'contact_person', 'email', 'phone', 'website', 'tax_id')
        }),
        (_('Address'), {
            'fields': ('street', 'city', 'state', 'zip_code', 'country')
        }),
        (_('Terms'), {
            'fields': ('payment_terms', 'lead_time_days', 'minimum_order', 'rating', 'status', 'notes')
        }),
        (_('Statistics'), {
            'fields': ('total_orders', 'total_value', 'last_order_date')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at')
        }),
    )

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        colors = {
            Supplier.Status.ACTIVE: 'success',
            Supplier.Status.INACTIVE: 'info',
            Supplier.Status.SUSPENDED: 'danger',
        }
        return colors.get(obj.status, 'info'), obj.get_status_display()

    @display(description=_("Total value"), ordering='total_value')
    def total_value_display(self, obj):
        return f"${obj.total_value:.2f}"


@admin.register(InventoryItem)
class InventoryItemAdmin(ModelAdmin):
    list_display = ['sku', 'name', 'category', 'current_stock', 'reorder_point',
                    'stock_badge', 'status', 'supplier']
    list_filter = [
        'status',
        'category',
        ('current_stock', RangeNumericFilter),
    ]
    search_fields = ['sku', 'name', 'description', 'supplier_name']
    list_filter_submit = True
    list_fullwidth = True
    # Stock moves go through the API so every change has a ledger row
    readonly_fields = ['current_stock', 'total_sold', 'total_purchased', 'last_restocked',
                       'created_at', 'updated_at']

    @display(description=_("Stock"), label=True)
    def stock_badge(self, obj):
        colors = {
            'out_of_stock': 'danger',
            'low_stock': 'warning',
            'critical': 'danger',
            'in_stock': 'success',
        }
        return colors.get(obj.stock_status, 'info'), obj.stock_status.replace('_', ' ')


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(ModelAdmin):
    list_display = ['order_number', 'supplier', 'status_badge', 'total_display',
                    'order_date', 'expected_date', 'received_date']
    list_filter = [
        'status',
        ('order_date', RangeDateTimeFilter),
        ('total', RangeNumericFilter),
    ]
    search_fields = ['order_number', 'supplier__name', 'notes']
    list_filter_submit = True
    list_fullwidth = True
    inlines = [PurchaseOrderItemInline]
    readonly_fields = ['order_number', 'status', 'subtotal', 'tax', 'shipping', 'total',
                       'received_date', 'created_by', 'approved_by', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        return False

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        colors = {
            PurchaseOrder.Status.PENDING: 'info',
            PurchaseOrder.Status.ORDERED: 'warning',
            PurchaseOrder.Status.RECEIVED: 'success',
            PurchaseOrder.Status.CANCELLED: 'danger',
        }
        return colors.get(obj.status, 'info'), obj.get_status_display()

    @display(description=_("Total"), ordering='total')
    def total_display(self, obj):
        return f"${obj.total:.2f}"


@admin.register(OrderSequence)
class OrderSequenceAdmin(ModelAdmin):
    list_display = ['name', 'value', 'updated_at']
    readonly_fields = ['name', 'value', 'updated_at']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockTransaction)
class StockTransactionAdmin(ModelAdmin):
    list_display = ['id', 'type', 'inventory_id', 'quantity', 'unit_price', 'total_price',
                    'reference', 'created_by', 'created_at']
    list_filter = [
        'type',
        ('created_at', RangeDateTimeFilter),
    ]
    search_fields = ['reference', 'notes']
    list_filter_submit = True
    list_fullwidth = True

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
