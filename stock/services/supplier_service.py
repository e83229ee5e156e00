import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional, Iterable
from django.core.validators import validate_email
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q, Sum, Count, F, DecimalField, ExpressionWrapper

from stock.models import Supplier, InventoryItem, PurchaseOrder
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, ConflictError,
    require_int
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SupplierRef:
    """How an inventory item points at its supplier, decided once per read."""

    REFERENCE = "reference"
    INLINE_NAME = "inline_name"
    UNRESOLVED = "unresolved"

    kind: str
    supplier_id: Optional[int] = None
    name: str = ""

    @classmethod
    def for_item(cls, item: InventoryItem) -> "SupplierRef":
        if item.supplier_id:
            return cls(cls.REFERENCE, supplier_id=item.supplier_id)
        if item.supplier_name.strip():
            return cls(cls.INLINE_NAME, name=item.supplier_name.strip())
        return cls(cls.UNRESOLVED)


class SupplierService(BaseService):
    model = Supplier
    resource_name = "Supplier"

    REQUIRED_FIELDS = ("name", "contact_person", "email", "phone")
    EDITABLE_FIELDS = (
        "name", "contact_person", "email", "phone", "street", "city", "state",
        "zip_code", "country", "website", "tax_id", "payment_terms",
        "lead_time_days", "minimum_order", "rating", "status", "notes",
    )

    @classmethod
    def serialize(cls, supplier: Supplier) -> Dict[str, Any]:
        return {
            "id": supplier.id,
            "name": supplier.name,
            "contact_person": supplier.contact_person,
            "email": supplier.email,
            "phone": supplier.phone,

            "address": {
                "street": supplier.street,
                "city": supplier.city,
                "state": supplier.state,
                "zip_code": supplier.zip_code,
                "country": supplier.country,
            },
            "website": supplier.website,
            "tax_id": supplier.tax_id,

            "payment_terms": supplier.payment_terms,
            "payment_terms_display": supplier.get_payment_terms_display(),
            "lead_time_days": supplier.lead_time_days,
            "minimum_order": supplier.minimum_order,
            "rating": supplier.rating,
            "status": supplier.status,
            "notes": supplier.notes,

            "total_orders": supplier.total_orders,
            "total_value": str(supplier.total_value),
            "last_order_date": supplier.last_order_date.isoformat() if supplier.last_order_date else None,
            "created_at": supplier.created_at.isoformat(),
            "updated_at": supplier.updated_at.isoformat(),
        }

    @classmethod
    def serialize_brief(cls, supplier: Supplier) -> Dict[str, Any]:
        return {
            "id": supplier.id,
            "name": supplier.name,
            "contact_person": supplier.contact_person,
            "email": supplier.email,
            "status": supplier.status,
            "rating": supplier.rating,
        }

    @classmethod
    def resolve_many(cls, refs: Iterable[SupplierRef]) -> Dict[SupplierRef, Optional[Supplier]]:
        """Resolve a batch of refs with at most two queries."""
        refs = set(refs)
        ids = {r.supplier_id for r in refs if r.kind == SupplierRef.REFERENCE}
        names = {r.name.lower() for r in refs if r.kind == SupplierRef.INLINE_NAME}

        by_id = {s.id: s for s in cls.model.objects.filter(id__in=ids)} if ids else {}

        by_name = {}
        if names:
            name_filter = Q()
            for name in names:
                name_filter |= Q(name__iexact=name)
            for supplier in cls.model.objects.filter(name_filter).order_by("id"):
                by_name.setdefault(supplier.name.lower(), supplier)

        resolved = {}
        for ref in refs:
            if ref.kind == SupplierRef.REFERENCE:
                resolved[ref] = by_id.get(ref.supplier_id)
            elif ref.kind == SupplierRef.INLINE_NAME:
                resolved[ref] = by_name.get(ref.name.lower())
            else:
                resolved[ref] = None
        return resolved

    @classmethod
    def resolve(cls, ref: SupplierRef) -> Optional[Supplier]:
        return cls.resolve_many([ref])[ref]

    @classmethod
    def display_block(cls, ref: SupplierRef, supplier: Optional[Supplier]) -> Dict[str, Any]:
        if supplier is not None:
            return {
                "supplier_id": supplier.id,
                "supplier_name": supplier.name,
                "supplier_contact": supplier.contact_person,
                "supplier_email": supplier.email,
            }
        return {
            "supplier_id": ref.supplier_id,
            "supplier_name": ref.name or "Unknown",
            "supplier_contact": "N/A",
            "supplier_email": "N/A",
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             search: str = None,
             status: str = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if status:
            queryset = queryset.filter(status=status)

        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(contact_person__icontains=search) |
                Q(email__icontains=search)
            )

        queryset = queryset.order_by("-created_at")

        suppliers, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "suppliers": [cls.serialize_brief(s) for s in suppliers],
            "pagination": pagination,
            "statuses": [{"value": c[0], "label": c[1]} for c in Supplier.Status.choices],
        })

    @classmethod
    def get(cls, supplier_id: int) -> Dict[str, Any]:
        supplier = cls.get_or_404(supplier_id)

        return success_response({
            "supplier": cls.serialize(supplier)
        })

    @classmethod
    def _clean(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = {}

        for field, value in data.items():
            if field not in cls.EDITABLE_FIELDS:
                continue

            if field in cls.REQUIRED_FIELDS:
                value = str(value or "").strip()
                if not value:
                    raise ValidationError(f"{field} is required", field)

            if field == "email":
                try:
                    validate_email(value)
                except DjangoValidationError:
                    raise ValidationError("Please provide a valid email", "email")

            if field in ("lead_time_days", "minimum_order"):
                value = require_int(value, field)

            if field == "rating":
                value = require_int(value, field, minimum=1)
                if value > 5:
                    raise ValidationError("rating must be between 1 and 5", "rating")

            if field == "payment_terms" and value not in Supplier.PaymentTerms.values:
                raise ValidationError(
                    f"Invalid payment terms. Valid: {Supplier.PaymentTerms.values}", "payment_terms"
                )

            if field == "status" and value not in Supplier.Status.values:
                raise ValidationError(
                    f"Invalid status. Valid: {Supplier.Status.values}", "status"
                )

            cleaned[field] = value

        return cleaned

    @classmethod
    @transaction.atomic
    def create(cls, **data) -> Dict[str, Any]:
        for field in cls.REQUIRED_FIELDS:
            if field not in data:
                raise ValidationError(f"{field} is required", field)

        supplier = cls.model.objects.create(**cls._clean(data))
        logger.info("Supplier %s created (id=%s)", supplier.name, supplier.id)

        return success_response({
            "id": supplier.id,
            "supplier": cls.serialize(supplier)
        }, f"Supplier '{supplier.name}' created")

    @classmethod
    @transaction.atomic
    def update(cls, supplier_id: int, **data) -> Dict[str, Any]:
        supplier = cls.get_or_404(supplier_id)

        cleaned = cls._clean(data)
        for field, value in cleaned.items():
            setattr(supplier, field, value)
        supplier.save(update_fields=list(cleaned) + ["updated_at"])

        return success_response({
            "supplier": cls.serialize(supplier)
        }, "Supplier updated")

    @classmethod
    @transaction.atomic
    def delete(cls, supplier_id: int) -> Dict[str, Any]:
        supplier = cls.get_or_404(supplier_id)

        if supplier.purchase_orders.exists():
            raise ConflictError(
                "Cannot delete a supplier that has purchase orders",
                {"supplier_id": supplier.id, "purchase_orders": supplier.purchase_orders.count()}
            )

        name = supplier.name
        supplier.delete()
        logger.info("Supplier %s deleted (id=%s)", name, supplier_id)

        return success_response(message=f"Supplier '{name}' deleted")

    @classmethod
    def get_stats(cls, supplier_id: int) -> Dict[str, Any]:
        supplier = cls.get_or_404(supplier_id)

        items = InventoryItem.objects.filter(supplier=supplier)
        stock_value = ExpressionWrapper(
            F("current_stock") * F("cost_price"),
            output_field=DecimalField(max_digits=18, decimal_places=2)
        )
        item_stats = items.aggregate(
            total_items=Count("id"),
            total_value=Sum(stock_value),
        )
        low_stock = items.filter(current_stock__lte=F("reorder_point")).count()

        order_stats = PurchaseOrder.objects.filter(supplier=supplier).aggregate(
            purchase_count=Count("id"),
            purchase_value=Sum("total"),
        )

        return success_response({
            "stats": {
                "total_items": item_stats["total_items"] or 0,
                "total_value": str(item_stats["total_value"] or 0),
                "low_stock_items": low_stock,
                "total_orders": supplier.total_orders,
                "total_order_value": str(supplier.total_value),
                "purchase_count": order_stats["purchase_count"] or 0,
                "purchase_value": str(order_stats["purchase_value"] or 0),
                "rating": supplier.rating,
            }
        })
