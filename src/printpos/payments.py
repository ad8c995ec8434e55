"""Payment status, remaining balance and payment-record reconciliation."""

from decimal import Decimal
from typing import Any

from .errors import InvalidInputError
from .models import Order, PaymentCheck, PaymentCheckStatus, PaymentResolution, PaymentStatus
from .utils import TOLERANCE, ZERO, to_amount


def resolve_payment(grand_total: Any, paid_amount: Any) -> PaymentResolution:
    """
    Classify a payment against a grand total.

    PAID when paid >= total, PARTIAL when 0 < paid < total, UNPAID when
    nothing was paid. Pure: the same inputs always give the same result.
    """
    total = to_amount(grand_total, "grand_total")
    paid = to_amount(paid_amount, "paid_amount")

    if paid >= total:
        status = PaymentStatus.PAID
    elif paid > 0:
        status = PaymentStatus.PARTIAL
    else:
        status = PaymentStatus.UNPAID

    return PaymentResolution(
        grand_total=total,
        paid_amount=paid,
        remaining=max(total - paid, ZERO),
        change=max(paid - total, ZERO),
        status=status,
    )


def apply_payment(current: PaymentResolution, increment: Any) -> PaymentResolution:
    """
    Add a payment and re-resolve from the new cumulative amount.

    What was paid before counts only up to the grand total, so the change
    on the result comes from this increment alone.
    """
    amount = to_amount(increment, "payment")
    if amount == 0:
        raise InvalidInputError("payment", increment, "must be greater than zero")
    already_paid = min(current.paid_amount, current.grand_total)
    return resolve_payment(current.grand_total, already_paid + amount)


def retained_amount(resolution: PaymentResolution) -> Decimal:
    """What the shop keeps of the tendered amount once change is handed back."""
    return resolution.paid_amount - resolution.change


def _same(a: Decimal, b: Decimal) -> bool:
    return abs(a - b) <= TOLERANCE


def validate_order_payments(order: Order) -> PaymentCheck:
    """
    Reconcile an order's stored paid and remaining amounts with its payment records.

    Read-only. Statuses, checked in this order:
        NO_PAYMENTS: no records and nothing paid.
        LEGACY_ORDER: no records but a paid amount (taken before payments
            were recorded one by one).
        OVERPAID: the records add up to more than the grand total.
        MISMATCH_PAID: the records disagree with the stored paid amount, or
            the remaining they imply disagrees with the stored remaining.
        OK: everything agrees.

    Amounts within 1 of each other count as equal.
    """
    total = order.totals.grand_total
    recalculated_paid = sum((p.amount for p in order.payments), ZERO)
    recalculated_remaining = max(total - recalculated_paid, ZERO)

    if not order.payments:
        status = PaymentCheckStatus.LEGACY_ORDER if order.paid_amount > 0 else PaymentCheckStatus.NO_PAYMENTS
    elif recalculated_paid > total and not _same(recalculated_paid, total):
        status = PaymentCheckStatus.OVERPAID
    elif not _same(recalculated_paid, order.paid_amount):
        status = PaymentCheckStatus.MISMATCH_PAID
    elif not _same(recalculated_remaining, order.remaining_amount):
        status = PaymentCheckStatus.MISMATCH_PAID
    else:
        status = PaymentCheckStatus.OK

    return PaymentCheck(
        order_id=order.id,
        order_number=order.order_number,
        status=status,
        grand_total=total,
        recorded_paid=order.paid_amount,
        recalculated_paid=recalculated_paid,
        recorded_remaining=order.remaining_amount,
        recalculated_remaining=recalculated_remaining,
        payments_count=len(order.payments),
    )
