"""Line item construction with a single canonical quantity and a recomputed subtotal."""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Mapping

from .errors import InvalidInputError
from .models import FinishingCharge, LineItem, Product, Selection, _generate_id
from .pricing import check_quantity, resolve_unit_price
from .utils import (
    ZERO,
    dig,
    first_present,
    format_number,
    is_present,
    money_out,
    quantize_money,
    to_amount,
    to_decimal,
)

logger = logging.getLogger(__name__)

QUANTITY_SOURCES = ("qty", "quantity")
UNIT_PRICE_SOURCES = ("unitPrice", "unit_price", "price")
TOTAL_SOURCES = ("totalPrice", "subtotal")
NOTE_SOURCES = ("notes", "selected_details.notes", "specs.note", "specs.notes")


def resolve_quantity(raw: Mapping[str, Any]) -> int:
    """
    Resolve the one quantity of a line: qty, then quantity, then 1.

    Raises:
        InvalidInputError: If the winning value is not a positive whole number.
    """
    found = first_present(raw, QUANTITY_SOURCES)
    if found is None:
        return 1
    key, value = found
    number = to_decimal(value, key)
    if number != number.to_integral_value():
        raise InvalidInputError(key, value, "must be a whole number")
    return check_quantity(int(number))


def resolve_raw_unit_price(raw: Mapping[str, Any], quantity: int, charges_total: Decimal = ZERO) -> Decimal:
    """
    Unit price of a raw/legacy line: unitPrice, then price, then derived
    from (totalPrice or subtotal) / quantity, then 0.

    A zero explicit price counts as missing so a stale 0 can be backfilled
    from the stored total.
    """
    for key in UNIT_PRICE_SOURCES:
        value = raw.get(key)
        if is_present(value):
            price = to_amount(value, key)
            if price:
                return price

    found = first_present(raw, TOTAL_SOURCES)
    if found is not None and quantity > 0:
        key, value = found
        total = to_amount(value, key)
        if total:
            derived = quantize_money((total - charges_total) / quantity)
            logger.debug("Derived unit price %s from %s=%s / %d", derived, key, total, quantity)
            return max(derived, ZERO)
    return ZERO


def _dimension_text(value: Any) -> str:
    try:
        return format_number(value)
    except InvalidInputError:
        return str(value).strip()


def describe_specs(specs: Mapping[str, Any]) -> str:
    """Display text: variant_info, then summary, then "{length}m x {width}m", then ""."""
    for key in ("variant_info", "summary"):
        value = specs.get(key)
        if is_present(value):
            return str(value)
    length = dig(specs, "inputs.length")
    width = dig(specs, "inputs.width")
    if is_present(length) and is_present(width):
        return f"{_dimension_text(length)}m x {_dimension_text(width)}m"
    return ""


def stored_dimension(
    specs: Mapping[str, Any], name: str, warnings: list[str] | None = None
) -> Decimal | None:
    """
    A stored ``inputs.length``/``inputs.width`` as a number.

    These only feed display text, so a value that does not parse (such as
    "3,5") gives None and a warning; the raw text stays in the specs.
    """
    value = dig(specs, f"inputs.{name}")
    if not is_present(value):
        return None
    try:
        return to_decimal(value, name)
    except InvalidInputError:
        message = f"{name} {value!r} is not a number; kept as text"
        if warnings is not None:
            warnings.append(message)
        else:
            logger.warning("%s", message)
        return None


def resolve_notes(raw: Mapping[str, Any]) -> str:
    found = first_present(raw, NOTE_SOURCES)
    return str(found[1]) if found else ""


def charges_from_raw(entries: Any) -> list[FinishingCharge]:
    """
    Read finishing entries of a stored line.

    Entries with an ``amount`` are line-level charges. Older entries
    (bare names, or {id, name, price}) are references whose cost was
    already folded into the unit price, so they carry no amount.
    """
    if not isinstance(entries, list):
        return []
    charges = []
    for entry in entries:
        if isinstance(entry, str):
            charges.append(FinishingCharge(name=entry, unit_price=ZERO, quantity=1, amount=ZERO))
        elif isinstance(entry, Mapping):
            if is_present(entry.get("amount")):
                charges.append(FinishingCharge.from_dict(dict(entry)))
            else:
                charges.append(
                    FinishingCharge(
                        id=entry.get("id"),
                        name=str(entry.get("name") or ""),
                        unit_price=ZERO,
                        quantity=1,
                        amount=ZERO,
                    )
                )
    return charges


def merge_finishing_names(existing: Any, charges: list[FinishingCharge]) -> list[str]:
    """Union of names already in specs and the structured charges, order kept."""
    names: list[str] = []
    for entry in existing if isinstance(existing, list) else []:
        name = entry.get("name") if isinstance(entry, Mapping) else entry
        if is_present(name) and str(name) not in names:
            names.append(str(name))
    for charge in charges:
        if charge.name and charge.name not in names:
            names.append(charge.name)
    return names


def _selection_summary(selection: Selection) -> str:
    parts = []
    label = selection.variant or selection.material
    if label:
        parts.append(label)
    if selection.size:
        parts.append(selection.size)
    if selection.length is not None and selection.width is not None:
        parts.append(f"{format_number(selection.length)}m x {format_number(selection.width)}m")
    elif selection.length is not None:
        parts.append(f"{format_number(selection.length)}m")
    return " ".join(parts)


def _build_specs(
    raw_specs: Any,
    selection: Selection | None,
    charges: list[FinishingCharge],
    notes: str,
) -> dict[str, Any]:
    specs = dict(raw_specs) if isinstance(raw_specs, Mapping) else {}

    if selection is not None:
        raw_inputs = specs.get("inputs")
        if is_present(raw_inputs) and not isinstance(raw_inputs, Mapping):
            raise InvalidInputError("specs.inputs", raw_inputs, "must be an object")
        inputs = dict(raw_inputs or {})
        if selection.length is not None:
            inputs["length"] = money_out(selection.length)
        if selection.width is not None:
            inputs["width"] = money_out(selection.width)
        for key in ("variant", "material", "size"):
            value = getattr(selection, key)
            if value:
                inputs[key] = value
        if inputs:
            specs["inputs"] = inputs
        if not is_present(specs.get("summary")):
            summary = _selection_summary(selection)
            if summary:
                specs["summary"] = summary

    names = merge_finishing_names(specs.get("finishing_list"), charges)
    if names:
        specs["finishing_list"] = names
    if notes:
        specs["note"] = notes
    return specs


def build_line_item(
    product: Product,
    selection: Selection,
    raw_input: Mapping[str, Any] | None = None,
) -> LineItem:
    """
    Price a product selection into a cart line.

    The quantity comes from raw_input (qty, then quantity) when it carries
    one, otherwise from the selection; that single value feeds the pricing
    call and every quantity field of the item.

    Raises:
        InvalidInputError, PriceNotFoundError, BelowMinimumOrderError:
            From the resolver; nothing partial is returned.
    """
    raw = raw_input or {}
    if first_present(raw, QUANTITY_SOURCES) is not None:
        quantity = resolve_quantity(raw)
    else:
        quantity = check_quantity(selection.quantity)
    if quantity != selection.quantity:
        selection = replace(selection, quantity=quantity)

    price = resolve_unit_price(product, selection)
    subtotal = price.unit_price * quantity + sum((c.amount for c in price.charges), ZERO)

    notes = resolve_notes(raw)
    specs = _build_specs(raw.get("specs"), selection, price.charges, notes)
    specs.setdefault("breakdown", price.breakdown)

    return LineItem(
        id=raw.get("id") or _generate_id(),
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        unit_price=price.unit_price,
        subtotal=subtotal,
        pricing_model=product.pricing_model.value,
        length=selection.length,
        width=selection.width,
        variant=selection.variant or selection.material,
        finishings=price.charges,
        notes=notes,
        specs=specs,
        description=describe_specs(specs),
    )


def rebuild_line_item(raw_input: Mapping[str, Any]) -> LineItem:
    """
    Rebuild a line from a raw/legacy cart entry without a catalog lookup.

    The cached subtotal on the input is only used to backfill a missing
    unit price; the item's subtotal is recomputed.
    """
    found_name = first_present(raw_input, ("productName", "product_name", "name"))
    product_name = str(found_name[1]) if found_name else ""

    quantity = resolve_quantity(raw_input)
    charges = charges_from_raw(raw_input.get("finishings"))
    charges_total = sum((c.amount for c in charges), ZERO)
    unit_price = resolve_raw_unit_price(raw_input, quantity, charges_total)
    subtotal = unit_price * quantity + charges_total

    stale = first_present(raw_input, TOTAL_SOURCES)
    if stale is not None and to_decimal(stale[1], stale[0]) != subtotal:
        logger.warning(
            "Recomputed subtotal %s replaces cached %s=%s for %s",
            subtotal, stale[0], stale[1], product_name or "line",
        )

    notes = resolve_notes(raw_input)
    specs = _build_specs(raw_input.get("specs"), None, charges, notes)

    return LineItem(
        id=raw_input.get("id") or _generate_id(),
        product_id=raw_input.get("productId") or raw_input.get("product_id"),
        product_name=product_name,
        quantity=quantity,
        unit_price=unit_price,
        subtotal=subtotal,
        pricing_model=raw_input.get("pricingType") or raw_input.get("pricing_model"),
        length=stored_dimension(specs, "length"),
        width=stored_dimension(specs, "width"),
        variant=raw_input.get("variantLabel") or raw_input.get("variant"),
        finishings=charges,
        notes=notes,
        specs=specs,
        description=describe_specs(specs),
    )
