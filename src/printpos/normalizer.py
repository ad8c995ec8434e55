"""
Normalization of stored orders and order items.

Records written by different code paths over time spell the same field
several ways. Every canonical field is resolved through one FieldRule: an
ordered list of source keys (dotted paths reach into nested objects) and a
default. The first present value wins; None and blank strings count as
absent.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .aggregator import aggregate
from .errors import InvalidInputError, MalformedRecordError
from .line_items import (
    charges_from_raw,
    describe_specs,
    resolve_quantity,
    stored_dimension,
)
from .models import (
    Catalog,
    CustomerSnapshot,
    FinishingCharge,
    LineItem,
    Order,
    PaymentRecord,
    PaymentStatus,
    ProductionStatus,
)
from .payments import resolve_payment
from .utils import TOLERANCE, dig, first_present, is_present, parse_json_object, to_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldRule:
    name: str
    sources: tuple[str, ...]
    default: Any = None

# Order fields
ORDER_NUMBER = FieldRule("order_number", ("order_number", "orderNumber"))
PRODUCTION_STATUS = FieldRule(
    "production_status", ("production_status", "productionStatus"), ProductionStatus.PENDING.value
)
PAYMENT_STATUS = FieldRule("payment_status", ("payment_status",), PaymentStatus.UNPAID.value)
CUSTOMER_NAME = FieldRule(
    "customer_name",
    ("customer_name", "customer.name", "customer_snapshot.name", "customerSnapshot.name"),
    "",
)
CUSTOMER_PHONE = FieldRule(
    "customer_phone",
    (
        "customer_phone",
        "customer.phone",
        "customer_snapshot.phone",
        "customer_snapshot.whatsapp",
        "customerSnapshot.whatsapp",
    ),
    "",
)
DISCOUNT = FieldRule("discount", ("discount_amount", "discount", "discountAmount"), 0)
SERVICE_FEE = FieldRule("service_fee", ("service_fee", "serviceFee"), 0)
GRAND_TOTAL = FieldRule(
    "grand_total", ("grand_total", "final_amount", "total_amount", "grandTotal", "totalAmount")
)
PAID_AMOUNT = FieldRule("paid_amount", ("paid_amount", "paidAmount"), 0)
REMAINING_AMOUNT = FieldRule("remaining_amount", ("remaining_amount", "remainingAmount"))
IS_TEMPO = FieldRule("is_tempo", ("is_tempo", "isTempo"), False)
PAYMENT_METHOD = FieldRule("payment_method", ("payment_method", "paymentMethod"), "CASH")
CREATED_AT = FieldRule("created_at", ("created_at", "createdAt"), "")
CREATED_BY = FieldRule("created_by", ("created_by", "meta.createdBy", "received_by"), "")
CANCEL_REASON = FieldRule("cancel_reason", ("cancel_reason", "cancelReason"))
CANCELLED_AT = FieldRule("cancelled_at", ("cancelled_at", "cancelledAt"))
ORDER_NOTES = FieldRule("notes", ("notes",), "")
PAYMENTS = FieldRule("payments", ("payments", "order_payments", "payment_history"))

# Item fields
UNIT_PRICE = FieldRule("unit_price", ("unit_price", "price"), 0)
SUBTOTAL = FieldRule("subtotal", ("subtotal", "totalPrice"))  # then unit_price * quantity, then 0
PRODUCT_ID = FieldRule("product_id", ("product_id", "productId", "products_id"))
PRODUCT_NAME = FieldRule("product_name", ("product_name", "productName", "name"), "")
PRICING_MODEL = FieldRule("pricing_model", ("pricing_model", "pricingType"))
VARIANT = FieldRule("variant", ("variant", "variant_label", "variantLabel"))
ITEM_NOTES = FieldRule(
    "notes", ("notes", "specs.note", "specs.notes", "meta.notes", "metadata.notes"), ""
)


def resolve_field(record: Mapping[str, Any], rule: FieldRule) -> Any:
    """First present source value for the rule, else its default."""
    found = first_present(record, rule.sources)
    return found[1] if found is not None else rule.default


@dataclass
class SkippedRecord:
    record_id: str | None
    reason: str


@dataclass
class NormalizedBatch:
    orders: list[Order] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)


def resolve_specs(raw_item: Mapping[str, Any], warnings: list[str] | None = None) -> dict[str, Any]:
    """
    Specs of a stored item: the ``dimensions`` JSON column first, then the
    specs embedded in ``meta`` (``meta.specs``, older ``metadata.specs_json``),
    then {}. Keys from ``dimensions`` win when both are present.
    """
    raw_dims = raw_item.get("dimensions")
    dims = parse_json_object(raw_dims)
    if dims is None and is_present(raw_dims) and warnings is not None:
        warnings.append(f"item {raw_item.get('id')}: unreadable dimensions ignored")

    meta = parse_json_object(raw_item.get("meta")) or parse_json_object(raw_item.get("metadata")) or {}
    embedded = parse_json_object(meta.get("specs"))
    if embedded is None:
        embedded = parse_json_object(meta.get("specs_json"))

    if dims is None and embedded is None:
        return {}
    return {**(embedded or {}), **(dims or {})}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "t")
    return bool(value)


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def check_status(value: str, allowed: type, field_name: str, warnings: list[str]) -> None:
    """Keep the stored status verbatim; report values outside the enum."""
    values = {member.value for member in allowed}
    if value in values:
        return
    if value.upper() in values:
        warnings.append(
            f"{field_name} '{value}' differs only in case from '{value.upper()}'; kept as stored"
        )
    else:
        warnings.append(f"{field_name} '{value}' is not a known status")


def _item_finishings(
    raw_item: Mapping[str, Any], specs: Mapping[str, Any]
) -> list[FinishingCharge]:
    for source in (raw_item.get("finishings"), specs.get("finishing_list"), dig(raw_item, "meta.finishing_list"),
                   dig(raw_item, "metadata.finishing_list")):
        if isinstance(source, list) and source:
            return charges_from_raw(source)
    return []


def _reconcile_finishings(
    item: LineItem, catalog: Catalog, warnings: list[str]
) -> list[FinishingCharge]:
    """
    Match an item's finishings to the catalog: by id when the id is known,
    by name otherwise. Disagreements are reported, never rewritten.
    """
    product = catalog.product(item.product_id) if item.product_id else None
    group_ids = set()
    if product is not None and product.advanced_features is not None:
        group_ids = {g.id for g in product.advanced_features.finishing_groups}

    resolved = []
    for charge in item.finishings:
        if charge.id and charge.id in group_ids:
            resolved.append(charge)
            continue
        by_id = catalog.finishing(charge.id) if charge.id else None
        if by_id is not None:
            if charge.name and by_id.name != charge.name:
                warnings.append(
                    f"item {item.id}: finishing {charge.id} is '{by_id.name}' in the catalog "
                    f"but '{charge.name}' on the item"
                )
            resolved.append(charge)
            continue
        by_name = catalog.finishing_by_name(charge.name) if charge.name else None
        if by_name is not None:
            if charge.id:
                warnings.append(
                    f"item {item.id}: finishing id {charge.id} unknown, matched '{charge.name}' by name"
                )
                resolved.append(charge)
            else:
                resolved.append(
                    FinishingCharge(
                        id=by_name.id,
                        name=charge.name,
                        unit_price=charge.unit_price,
                        quantity=charge.quantity,
                        amount=charge.amount,
                    )
                )
            continue
        warnings.append(f"item {item.id}: finishing '{charge.name or charge.id}' not in catalog")
        resolved.append(charge)
    return resolved


def _normalize_item(
    raw_item: Mapping[str, Any],
    catalog: Catalog | None,
    fallback_id: str | None,
    warnings: list[str],
) -> LineItem:
    if not isinstance(raw_item, Mapping):
        raise MalformedRecordError("item object")

    item_id = raw_item.get("id") if is_present(raw_item.get("id")) else fallback_id
    if not item_id:
        raise MalformedRecordError("id")

    quantity = resolve_quantity(raw_item)
    unit_price = to_amount(resolve_field(raw_item, UNIT_PRICE), "unit_price")
    stored_subtotal = resolve_field(raw_item, SUBTOTAL)
    if stored_subtotal is not None:
        subtotal = to_amount(stored_subtotal, "subtotal")
    else:
        subtotal = unit_price * quantity

    specs = resolve_specs(raw_item, warnings)
    notes = first_present({**raw_item, "specs": specs}, ITEM_NOTES.sources)
    item_warnings: list[str] = []

    item = LineItem(
        id=str(item_id),
        product_id=_optional_str(resolve_field(raw_item, PRODUCT_ID)),
        product_name=str(resolve_field(raw_item, PRODUCT_NAME)),
        quantity=quantity,
        unit_price=unit_price,
        subtotal=subtotal,
        pricing_model=_optional_str(resolve_field(raw_item, PRICING_MODEL)),
        length=stored_dimension(specs, "length", item_warnings),
        width=stored_dimension(specs, "width", item_warnings),
        variant=_optional_str(resolve_field(raw_item, VARIANT)),
        finishings=_item_finishings(raw_item, specs),
        notes=str(notes[1]) if notes else ITEM_NOTES.default,
        specs=specs,
        description=describe_specs(specs),
    )
    warnings.extend(f"item {item.id}: {w}" for w in item_warnings)

    if catalog is not None and item.finishings:
        item.finishings = _reconcile_finishings(item, catalog, warnings)

    expected = item.unit_price * item.quantity + item.finishing_total
    if abs(expected - item.subtotal) > TOLERANCE:
        warnings.append(
            f"item {item.id}: subtotal {item.subtotal} does not match "
            f"unit price x quantity + finishings ({expected})"
        )
    return item


def normalize_item(
    raw_item: Mapping[str, Any],
    catalog: Catalog | None = None,
    fallback_id: str | None = None,
) -> LineItem:
    """
    Rebuild a canonical line item from a stored item record.

    Raises:
        MalformedRecordError: If the item has no id and no fallback_id.
        InvalidInputError: If quantity or an amount is unusable.
    """
    warnings: list[str] = []
    item = _normalize_item(raw_item, catalog, fallback_id, warnings)
    for warning in warnings:
        logger.warning("%s", warning)
    return item


def _raw_items(record: Mapping[str, Any], warnings: list[str]) -> list[Any]:
    """Items from items_snapshot (list, object or JSON text), else the items relation."""
    snapshot = record.get("items_snapshot")
    if isinstance(snapshot, str) and snapshot.strip():
        try:
            snapshot = json.loads(snapshot)
        except ValueError:
            warnings.append("items_snapshot is not valid JSON; using items")
            snapshot = None
    if isinstance(snapshot, Mapping):
        return [snapshot]
    if isinstance(snapshot, list) and snapshot:
        return snapshot

    items = record.get("items")
    return items if isinstance(items, list) else []


def _payment_records(record: Mapping[str, Any], warnings: list[str]) -> list[PaymentRecord]:
    """Payment history of an order; orders from before the ledger have none."""
    entries = resolve_field(record, PAYMENTS)
    if entries is None:
        return []
    if not isinstance(entries, list):
        warnings.append("payments is not a list; ignored")
        return []
    payments = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            warnings.append(f"payment entry {entry!r} ignored")
            continue
        payments.append(PaymentRecord.from_dict(dict(entry)))
    return payments


def normalize(record: Mapping[str, Any] | Order, catalog: Catalog | None = None) -> Order:
    """
    Rebuild the canonical order from a stored record.

    Totals are re-derived from the items, the stored discount (clamped into
    [0, subtotal]) and the service fee. A stored grand total or remaining
    amount that disagrees is reported in ``warnings``, not kept. Statuses
    are kept verbatim.

    An Order passes through unchanged, and normalize(order.to_dict())
    gives back an equal Order.

    Raises:
        MalformedRecordError: If the record has no id or no order number.
        InvalidInputError: If a quantity or amount is unusable.
    """
    if isinstance(record, Order):
        return record
    if not isinstance(record, Mapping):
        raise MalformedRecordError("record object")

    order_id = record.get("id")
    if not is_present(order_id):
        raise MalformedRecordError("id")
    order_id = str(order_id)
    order_number = resolve_field(record, ORDER_NUMBER)
    if order_number is None:
        raise MalformedRecordError("order_number", order_id)

    warnings: list[str] = []
    items = [
        _normalize_item(raw, catalog, f"{order_id}-{index + 1}", warnings)
        for index, raw in enumerate(_raw_items(record, warnings))
    ]

    totals = aggregate(items, resolve_field(record, DISCOUNT), resolve_field(record, SERVICE_FEE))
    paid = to_amount(resolve_field(record, PAID_AMOUNT), "paid_amount")
    payment = resolve_payment(totals.grand_total, paid)

    payment_status = str(resolve_field(record, PAYMENT_STATUS))
    production_status = str(resolve_field(record, PRODUCTION_STATUS))
    check_status(payment_status, PaymentStatus, "payment_status", warnings)
    check_status(production_status, ProductionStatus, "production_status", warnings)

    if totals.discount_clamped:
        warnings.append(
            f"discount {totals.requested_discount} outside [0, {totals.subtotal}]; applied {totals.discount}"
        )
    stored_total = resolve_field(record, GRAND_TOTAL)
    if stored_total is not None:
        stored_total = to_amount(stored_total, "grand_total")
        if abs(stored_total - totals.grand_total) > TOLERANCE:
            warnings.append(
                f"stored total {stored_total} does not match subtotal + fee - discount ({totals.grand_total})"
            )
    stored_remaining = resolve_field(record, REMAINING_AMOUNT)
    if stored_remaining is not None:
        stored_remaining = to_amount(stored_remaining, "remaining_amount")
        if abs(stored_remaining - payment.remaining) > TOLERANCE:
            warnings.append(
                f"stored remaining {stored_remaining} does not match total - paid ({payment.remaining})"
            )
    if payment_status in {s.value for s in PaymentStatus} and payment_status != payment.status.value:
        warnings.append(
            f"payment_status {payment_status} disagrees with amounts (expected {payment.status.value})"
        )

    payments = _payment_records(record, warnings)

    for warning in warnings:
        logger.warning("Order %s: %s", order_number, warning)

    return Order(
        id=order_id,
        order_number=str(order_number),
        items=items,
        totals=totals,
        paid_amount=paid,
        remaining_amount=payment.remaining,
        payment_status=payment_status,
        production_status=production_status,
        customer=CustomerSnapshot(
            name=str(resolve_field(record, CUSTOMER_NAME)).strip(),
            phone=str(resolve_field(record, CUSTOMER_PHONE)).strip(),
        ),
        is_tempo=_as_bool(resolve_field(record, IS_TEMPO)),
        payment_method=str(resolve_field(record, PAYMENT_METHOD)),
        created_at=str(resolve_field(record, CREATED_AT)),
        created_by=str(resolve_field(record, CREATED_BY)),
        cancel_reason=_optional_str(resolve_field(record, CANCEL_REASON)),
        cancelled_at=_optional_str(resolve_field(record, CANCELLED_AT)),
        notes=str(resolve_field(record, ORDER_NOTES)),
        payments=payments,
        warnings=warnings,
    )


def normalize_orders(records: Iterable[Any], catalog: Catalog | None = None) -> NormalizedBatch:
    """
    Normalize a list of stored orders, skipping the ones that cannot be read.

    A bad record is logged and reported in ``skipped``; it never aborts the
    rest of the list.
    """
    batch = NormalizedBatch()
    for record in records:
        try:
            batch.orders.append(normalize(record, catalog))
        except (MalformedRecordError, InvalidInputError) as e:
            record_id = record.get("id") if isinstance(record, Mapping) else None
            logger.warning("Skipping order %s: %s", record_id, e)
            batch.skipped.append(SkippedRecord(record_id=_optional_str(record_id), reason=str(e)))
    return batch
