from typing import Callable, Union
from django.conf import settings
from django.db import transaction
from django.db.models import F

from stock.models import OrderSequence, PurchaseOrder


PURCHASE_ORDER_SEQUENCE = "purchase_order"


class OrderSequenceService:
    """
    Hands out document numbers from a locked counter row. Two callers can
    never receive the same value, even inside concurrent transactions.
    """

    @classmethod
    @transaction.atomic
    def next_value(cls, name: str, seed: Union[int, Callable[[], int]] = 0) -> int:
        sequence = OrderSequence.objects.select_for_update().filter(name=name).first()

        if sequence is None:
            start = seed() if callable(seed) else seed
            sequence, _ = OrderSequence.objects.select_for_update().get_or_create(
                name=name, defaults={"value": start}
            )

        OrderSequence.objects.filter(pk=sequence.pk).update(value=F("value") + 1)
        sequence.refresh_from_db(fields=["value"])
        return sequence.value

    @classmethod
    def format_number(cls, value: int, prefix: str = None, width: int = None) -> str:
        prefix = prefix or getattr(settings, "PURCHASE_ORDER_PREFIX", "PO")
        width = width or getattr(settings, "PURCHASE_ORDER_NUMBER_WIDTH", 6)
        return f"{prefix}-{value:0{width}d}"

    @classmethod
    def next_number(cls) -> str:
        value = cls.next_value(PURCHASE_ORDER_SEQUENCE, seed=PurchaseOrder.objects.count)
        return cls.format_number(value)
