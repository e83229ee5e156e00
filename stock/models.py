from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils import timezone

from stock.exceptions import BusinessRuleError


class Supplier(models.Model):
    class PaymentTerms(models.TextChoices):
        NET_15 = "net_15", "Net 15"
        NET_30 = "net_30", "Net 30"
        NET_45 = "net_45", "Net 45"
        NET_60 = "net_60", "Net 60"
        COD = "cod", "Cash on Delivery"
        PREPAID = "prepaid", "Prepaid"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        SUSPENDED = "suspended", "Suspended"

    name = models.CharField(max_length=200, db_index=True)
    contact_person = models.CharField(max_length=100)
    email = models.EmailField(db_index=True)
    phone = models.CharField(max_length=50)

    street = models.CharField(max_length=200, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    state = models.CharField(max_length=100, blank=True, default="")
    zip_code = models.CharField(max_length=20, blank=True, default="")
    country = models.CharField(max_length=100, blank=True, default="")
    website = models.URLField(blank=True, default="")
    tax_id = models.CharField(max_length=50, blank=True, default="")

    payment_terms = models.CharField(
        max_length=10, choices=PaymentTerms.choices, default=PaymentTerms.NET_30
    )
    lead_time_days = models.PositiveIntegerField(default=7)
    minimum_order = models.PositiveIntegerField(default=0)
    rating = models.PositiveSmallIntegerField(
        default=3, validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True
    )
    notes = models.TextField(blank=True, default="")

    # Running purchase totals, bumped when orders are placed
    total_orders = models.PositiveIntegerField(default=0)
    total_value = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    last_order_date = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class InventoryItem(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        DISCONTINUED = "discontinued", "Discontinued"

    DEFAULT_LOCATION = "Main Warehouse"

    sku = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=100, db_index=True)

    current_stock = models.PositiveIntegerField(default=0)
    min_stock = models.PositiveIntegerField(default=10)
    max_stock = models.PositiveIntegerField(default=100)
    reorder_point = models.PositiveIntegerField(default=20)

    unit_price = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)]
    )
    cost_price = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)]
    )

    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="items",
    )
    # Imported records sometimes carry only the supplier's name
    supplier_name = models.CharField(max_length=200, blank=True, default="")

    location = models.CharField(max_length=100, blank=True, default=DEFAULT_LOCATION)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True
    )
    last_restocked = models.DateTimeField(null=True, blank=True)
    total_sold = models.PositiveIntegerField(default=0)
    total_purchased = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def save(self, *args, **kwargs):
        self.sku = (self.sku or "").strip().upper()
        super().save(*args, **kwargs)

    @property
    def stock_status(self) -> str:
        if self.current_stock <= 0:
            return "out_of_stock"
        if self.current_stock <= self.reorder_point:
            return "low_stock"
        if self.current_stock <= self.min_stock:
            return "critical"
        return "in_stock"

    @property
    def needs_reorder(self) -> bool:
        return self.current_stock <= self.reorder_point

    def __str__(self):
        return f"{self.sku} | {self.name}"


class PurchaseOrder(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        ORDERED = "ordered", "Ordered"
        RECEIVED = "received", "Received"
        CANCELLED = "cancelled", "Cancelled"

    # Legal moves; received and cancelled are terminal
    TRANSITIONS = {
        "pending": {"ordered", "received", "cancelled"},
        "ordered": {"received", "cancelled"},
        "received": set(),
        "cancelled": set(),
    }

    order_number = models.CharField(max_length=20, unique=True)
    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, related_name="purchase_orders"
    )
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True
    )

    subtotal = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    tax = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    shipping = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=15, decimal_places=2, default=0)

    order_date = models.DateTimeField(default=timezone.now, db_index=True)
    expected_date = models.DateTimeField(null=True, blank=True)
    received_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_purchase_orders",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_purchase_orders",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    @classmethod
    def sources_for(cls, status: str) -> set:
        return {source for source, targets in cls.TRANSITIONS.items() if str(status) in targets}

    def can_transition_to(self, status: str) -> bool:
        return str(status) in self.TRANSITIONS.get(str(self.status), set())

    def __str__(self):
        return self.order_number


class PurchaseOrderItem(models.Model):
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.CASCADE, related_name="items"
    )
    # No FK constraint: an item may be deleted administratively while lines
    # still point at it.
    inventory = models.ForeignKey(
        InventoryItem,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="+",
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=15, decimal_places=2)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.inventory_id} × {self.quantity}"


class OrderSequence(models.Model):
    """
    Named counter used for human-facing document numbers.
    Incremented atomically, never derived from a row count after seeding.
    """

    name = models.CharField(max_length=50, unique=True)
    value = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name}: {self.value}"


class StockTransaction(models.Model):
    """
    Append-only stock ledger. Quantity is signed: positive for stock coming
    in, negative for stock going out. total_price is always a magnitude.
    """

    class Type(models.TextChoices):
        SALE = "sale", "Sale"
        PURCHASE = "purchase", "Purchase"
        ADJUSTMENT = "adjustment", "Adjustment"
        TRANSFER = "transfer", "Transfer"
        RETURN = "return", "Return"

    type = models.CharField(max_length=20, choices=Type.choices, db_index=True)
    inventory = models.ForeignKey(
        InventoryItem,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="transactions",
    )
    quantity = models.IntegerField()
    unit_price = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)]
    )
    total_price = models.DecimalField(
        max_digits=15, decimal_places=2, validators=[MinValueValidator(0)]
    )
    reference = models.CharField(max_length=100, blank=True, default="")
    reference_id = models.PositiveBigIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    location = models.CharField(
        max_length=100, blank=True, default=InventoryItem.DEFAULT_LOCATION
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="stock_transactions",
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["inventory", "created_at"], name="stock_stock_invento_8a1f2c_idx"),
            models.Index(fields=["type", "created_at"], name="stock_stock_type_5d7e3b_idx"),
            models.Index(fields=["reference_id"], name="stock_stock_referen_c94b1a_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise BusinessRuleError("Stock transactions are immutable", "append_only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise BusinessRuleError("Stock transactions cannot be deleted", "append_only")

    def __str__(self):
        return f"{self.get_type_display()} {self.quantity:+} | item {self.inventory_id}"
