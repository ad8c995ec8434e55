"""Checkout: price a cart, total it, take the payment and produce an unsaved order."""

import logging
from dataclasses import dataclass, field
from typing import Any

from .aggregator import Priority, aggregate, priority_fee
from .errors import InvalidInputError, ProductNotFoundError
from .line_items import build_line_item
from .models import (
    Catalog,
    CustomerSnapshot,
    Order,
    PaymentRecord,
    PaymentResolution,
    ProductionStatus,
    Selection,
    _generate_id,
    _utc_now,
)
from .payments import resolve_payment, retained_amount
from .utils import ZERO, money_out

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    product_id: str
    selection: Selection = field(default_factory=Selection)
    notes: str = ""
    specs: dict[str, Any] = field(default_factory=dict)


@dataclass
class CheckoutRequest:
    """Everything the cashier submits when finalizing a cart."""

    lines: list[CartLine]
    customer: CustomerSnapshot
    created_by: str
    discount: Any = 0
    service_fee: Any = None  # explicit fee wins over the priority preset
    priority: Priority | str | None = None
    paid_amount: Any = 0
    is_tempo: bool = False
    payment_method: str = "CASH"
    notes: str = ""


@dataclass
class CheckoutResult:
    order: Order
    payment: PaymentResolution

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": self.order.to_dict(),
            "payment": self.payment.to_dict(),
            "discount_clamped": self.order.totals.discount_clamped,
        }


def _service_fee(request: CheckoutRequest) -> Any:
    if request.service_fee is not None:
        return request.service_fee
    if request.priority is not None:
        return priority_fee(request.priority)
    return ZERO


def checkout(request: CheckoutRequest, catalog: Catalog) -> CheckoutResult:
    """
    Turn a cart into an order ready to persist.

    The order has no order number yet; the order store assigns one. A
    deferred-payment (tempo) order records nothing paid, whatever was
    tendered. The order keeps what the shop retains (paid minus change);
    the change itself is on the returned payment.

    Raises:
        InvalidInputError: Empty cart, blank customer or cashier, a
            zero-priced line, or any pricing input error.
        ProductNotFoundError: If a cart line names an unknown product.
        PriceNotFoundError, BelowMinimumOrderError: From pricing.
    """
    if not request.lines:
        raise InvalidInputError("cart", [], "cart is empty")
    customer_name = (request.customer.name or "").strip()
    if not customer_name:
        raise InvalidInputError("customer_name", request.customer.name, "required")
    created_by = (request.created_by or "").strip()
    if not created_by:
        raise InvalidInputError("created_by", request.created_by, "required")

    items = []
    for line in request.lines:
        product = catalog.product(line.product_id)
        if product is None:
            raise ProductNotFoundError(line.product_id)
        if not product.is_active:
            raise InvalidInputError("product", line.product_id, "product is not active")

        item = build_line_item(product, line.selection, {"notes": line.notes, "specs": line.specs})
        if item.subtotal <= 0:
            raise InvalidInputError("price", money_out(item.subtotal), f"{product.name} has no price")
        items.append(item)

    totals = aggregate(items, request.discount, _service_fee(request))

    tendered: Any = request.paid_amount
    if request.is_tempo:
        if request.paid_amount:
            logger.info("Tempo order: ignoring tendered amount %s", request.paid_amount)
        tendered = ZERO
    payment = resolve_payment(totals.grand_total, tendered)
    created_at = _utc_now()
    kept = retained_amount(payment)
    payments = []
    if kept > 0:
        payments.append(PaymentRecord(amount=kept, paid_at=created_at, method=request.payment_method))

    order = Order(
        id=_generate_id(),
        order_number=None,
        items=items,
        totals=totals,
        paid_amount=kept,
        remaining_amount=payment.remaining,
        payment_status=payment.status.value,
        production_status=ProductionStatus.PENDING.value,
        customer=CustomerSnapshot(name=customer_name, phone=(request.customer.phone or "").strip()),
        is_tempo=request.is_tempo,
        payment_method=request.payment_method,
        created_at=created_at,
        created_by=created_by,
        notes=request.notes,
        payments=payments,
    )
    logger.info(
        "Checkout for %s: %d item(s), grand total %s, %s",
        customer_name, len(items), totals.grand_total, payment.status.value,
    )
    return CheckoutResult(order=order, payment=payment)
