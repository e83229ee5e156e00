from typing import Dict, Any, Optional, List, Tuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import datetime, date, timedelta
from django.db.models import Model
from django.utils import timezone

from stock.exceptions import (
    ServiceError,
    ValidationError,
    NotFoundError,
    InvalidTransitionError,
    ConflictError,
    BusinessRuleError,
    InsufficientStockError,
)


def success_response(data: Any = None, message: str = "Success") -> Dict:
    response = {"success": True, "message": message}
    if data is not None:
        if isinstance(data, dict):
            response.update(data)
        else:
            response["data"] = data
    return response


def paginate_queryset(queryset, page: int = 1, per_page: int = 20) -> Tuple[List, Dict]:
    page = max(1, page)
    per_page = min(max(1, per_page), 100)

    total = queryset.count()
    total_pages = (total + per_page - 1) // per_page

    offset = (page - 1) * per_page
    items = list(queryset[offset:offset + per_page])

    return items, {
        "page": page,
        "per_page": per_page,
        "total_items": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }


def resolve_now(now: Optional[datetime] = None) -> datetime:
    return now if now is not None else timezone.now()


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def round_decimal(value: Decimal, places: int = 2) -> Decimal:
    if value is None:
        return Decimal("0")
    quantize_str = "0." + "0" * places
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


# Largest values the storage columns accept: PositiveIntegerField, and
# DecimalField(max_digits=12, decimal_places=2) for prices and amounts.
MAX_QUANTITY = 2147483647
MAX_AMOUNT = Decimal("9999999999.99")
# DecimalField(max_digits=15, decimal_places=2) for line and order totals
MAX_TOTAL = Decimal("9999999999999.99")


def require_decimal(value: Any, field: str, minimum: Decimal = Decimal("0"),
                    maximum: Decimal = MAX_AMOUNT) -> Decimal:
    """Strict counterpart of to_decimal for caller input: no silent defaults."""
    if value is None or isinstance(value, bool) or value == "":
        raise ValidationError(f"{field} is required", field)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number", field)
    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", field)
    if maximum is not None and abs(result) > maximum:
        raise ValidationError(f"{field} must be at most {maximum}", field)
    return result


def require_int(value: Any, field: str, minimum: int = 0, maximum: int = MAX_QUANTITY) -> int:
    if value is None or isinstance(value, bool) or value == "":
        raise ValidationError(f"{field} is required", field)
    number = require_decimal(value, field, minimum=None, maximum=maximum)
    if number != number.to_integral_value():
        raise ValidationError(f"{field} must be a whole number", field)
    result = int(number)
    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", field)
    return result


def get_date_range(period: str, now: Optional[datetime] = None) -> Tuple[date, date]:
    today = resolve_now(now).date()

    if period == "today":
        return today, today
    elif period == "yesterday":
        return today - timedelta(days=1), today - timedelta(days=1)
    elif period == "this_week":
        start = today - timedelta(days=today.weekday())
        return start, today
    elif period == "this_month":
        return today.replace(day=1), today
    elif period == "last_month":
        first_of_month = today.replace(day=1)
        last_month_end = first_of_month - timedelta(days=1)
        last_month_start = last_month_end.replace(day=1)
        return last_month_start, last_month_end
    elif period == "this_year":
        return today.replace(month=1, day=1), today
    elif period.startswith("last_") and period.endswith("_days"):
        try:
            days = int(period.replace("last_", "").replace("_days", ""))
            return today - timedelta(days=days), today
        except ValueError:
            pass

    return today, today


class BaseService:
    model = None
    resource_name = None

    @classmethod
    def get_by_id(cls, id: int) -> Optional[Model]:
        try:
            return cls.model.objects.get(id=id)
        except (cls.model.DoesNotExist, ValueError, TypeError):
            return None

    @classmethod
    def get_or_404(cls, id: int) -> Model:
        obj = cls.get_by_id(id)
        if not obj:
            raise NotFoundError(cls.resource_name or cls.model.__name__, id)
        return obj
