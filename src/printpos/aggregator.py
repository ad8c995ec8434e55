"""Order totals: subtotal, bounded discount, service fee, grand total."""

import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable

from .errors import DiscountOutOfRangeError, InvalidInputError
from .models import LineItem, OrderTotals
from .utils import ZERO, to_amount, to_decimal

logger = logging.getLogger(__name__)


class Priority(str, Enum):
    STANDARD = "STANDARD"
    EXPRESS = "EXPRESS"
    URGENT = "URGENT"


PRIORITY_FEES = {
    Priority.STANDARD: ZERO,
    Priority.EXPRESS: Decimal("15000"),
    Priority.URGENT: Decimal("30000"),
}


def priority_fee(priority: Priority | str) -> Decimal:
    """Service fee preset for a handling priority."""
    try:
        return PRIORITY_FEES[Priority(priority)]
    except ValueError:
        raise InvalidInputError("priority", priority, "unknown priority") from None


def aggregate(line_items: Iterable[LineItem], discount: Any = 0, service_fee: Any = 0) -> OrderTotals:
    """
    Sum line items and apply one order-level discount and service fee.

    The discount is clamped into [0, subtotal]; a clamp is logged, never
    raised. grand_total = max(0, subtotal + service_fee - discount).

    Raises:
        InvalidInputError: If service_fee is negative or either amount is
            not a number.
    """
    subtotal = sum((item.subtotal for item in line_items), ZERO)
    requested = to_decimal(discount, "discount")
    fee = to_amount(service_fee, "service_fee")

    applied = min(max(requested, ZERO), subtotal)
    if applied != requested:
        logger.warning("%s", DiscountOutOfRangeError(requested, applied, subtotal))

    grand_total = max(subtotal + fee - applied, ZERO)
    return OrderTotals(
        subtotal=subtotal,
        discount=applied,
        service_fee=fee,
        grand_total=grand_total,
        requested_discount=requested,
    )
