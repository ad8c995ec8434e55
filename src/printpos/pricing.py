"""Unit price resolution for every pricing model."""

import logging
from decimal import Decimal

from .errors import BelowMinimumOrderError, InvalidInputError, PriceNotFoundError
from .models import (
    GROUP_CHECKBOX,
    GROUP_RADIO,
    GROUP_TEXT_INPUT,
    PRICE_PER_JOB,
    FinishingCharge,
    FinishingGroup,
    PriceResolution,
    PricingModel,
    Product,
    Selection,
    WholesaleTier,
)
from .utils import ZERO, format_number, format_rupiah, quantize_money, to_positive_decimal

logger = logging.getLogger(__name__)


def resolve_unit_price(product: Product, selection: Selection) -> PriceResolution:
    """
    Compute the unit price of a product for the given selection.

    Add-ons (catalog finishings, advanced finishing groups) are returned as
    line-level charges rather than folded into the unit price, so callers
    can keep subtotal == unit_price * quantity + sum(charges).

    Raises:
        InvalidInputError: Non-positive quantity/dimension, unknown or
            missing finishing selection.
        PriceNotFoundError: No price for the selected variant/material/size.
        BelowMinimumOrderError: Quantity under an advanced product's minimum.
    """
    quantity = check_quantity(selection.quantity)

    if product.pricing_model is PricingModel.UNIT:
        rate = _variant_rate(product, selection)
        unit_price, breakdown = rate, f"{format_rupiah(rate)} / pcs"
    elif product.pricing_model is PricingModel.LINEAR:
        rate = _variant_rate(product, selection)
        length = _dimension(selection.length, "length")
        unit_price = quantize_money(rate * length)
        breakdown = f"{format_number(length)}m x {format_rupiah(rate)}"
    elif product.pricing_model is PricingModel.AREA:
        rate = _variant_rate(product, selection)
        length = _dimension(selection.length, "length")
        width = _dimension(selection.width, "width")
        unit_price = quantize_money(rate * length * width)
        breakdown = (
            f"{format_number(length)}m x {format_number(width)}m "
            f"= {format_number(length * width)}m² x {format_rupiah(rate)}"
        )
    elif product.pricing_model is PricingModel.MATRIX:
        unit_price = _matrix_price(product, selection)
        breakdown = f"{selection.material or '-'} / {selection.size} @ {format_rupiah(unit_price)}"
    elif product.pricing_model is PricingModel.ADVANCED:
        unit_price, breakdown = _wholesale_price(product, quantity)
    else:
        raise PriceNotFoundError(product.id, f"pricing model {product.pricing_model}")

    if product.pricing_model is PricingModel.ADVANCED:
        charges = _group_charges(product, selection, quantity)
    else:
        charges = _catalog_charges(product, selection, quantity)

    addons = sum((c.amount for c in charges), ZERO)
    return PriceResolution(
        unit_price=unit_price,
        breakdown=breakdown,
        charges=charges,
        unit_price_final=quantize_money(unit_price + addons / quantity),
    )


def check_quantity(quantity: object) -> int:
    """Require a positive integer quantity."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInputError("quantity", quantity, "must be a whole number")
    if quantity < 1:
        raise InvalidInputError("quantity", quantity, "must be at least 1")
    return quantity


def _dimension(value: Decimal | None, name: str) -> Decimal:
    if value is None:
        raise InvalidInputError(name, value, "required for this product")
    return to_positive_decimal(value, name)


def _variant_rate(product: Product, selection: Selection) -> Decimal:
    """The product's base price, or the selected variant's flat price."""
    if selection.variant is None:
        return product.base_price
    variant = product.find_variant(selection.variant)
    if variant is None or variant.price is None:
        raise PriceNotFoundError(product.id, f"variant '{selection.variant}'")
    return variant.price


def _matrix_price(product: Product, selection: Selection) -> Decimal:
    if not selection.size:
        raise InvalidInputError("size", selection.size, "required for this product")

    if product.variants:
        key = f"material '{selection.material}' / size '{selection.size}'"
        if not selection.material:
            raise InvalidInputError("material", selection.material, "required for this product")
        variant = product.find_variant(selection.material)
        if variant is None or not variant.price_list or selection.size not in variant.price_list:
            raise PriceNotFoundError(product.id, key)
        return variant.price_list[selection.size]

    # Older products carry a flat size -> price table
    if not product.prices or selection.size not in product.prices:
        raise PriceNotFoundError(product.id, f"size '{selection.size}'")
    return product.prices[selection.size]


def validate_tiers(product_id: str, tiers: list[WholesaleTier]) -> None:
    """Tiers must be ascending and non-overlapping; only the last may be open-ended."""
    previous: WholesaleTier | None = None
    for tier in tiers:
        if tier.min < 1 or (tier.max is not None and tier.max < tier.min):
            raise InvalidInputError("wholesale tier", tier.to_dict(), f"invalid range on {product_id}")
        if previous is not None:
            if previous.max is None or tier.min <= previous.max:
                raise InvalidInputError(
                    "wholesale tier", tier.to_dict(), f"overlaps previous tier on {product_id}"
                )
        previous = tier


def _wholesale_price(product: Product, quantity: int) -> tuple[Decimal, str]:
    features = product.advanced_features
    tiers = features.wholesale_rules if features else []

    if features and features.min_order and quantity < features.min_order:
        raise BelowMinimumOrderError(product.id, quantity, features.min_order)

    if not tiers:
        return product.base_price, f"{format_rupiah(product.base_price)} / pcs"

    validate_tiers(product.id, tiers)
    if quantity < tiers[0].min:
        raise BelowMinimumOrderError(product.id, quantity, tiers[0].min)

    for tier in tiers:
        if tier.contains(quantity):
            upper = "+" if tier.max is None else f"-{tier.max}"
            return tier.price, f"Grosir {tier.min}{upper} @ {format_rupiah(tier.price)}"

    raise PriceNotFoundError(product.id, f"wholesale tier for quantity {quantity}")


def _group_charges(product: Product, selection: Selection, quantity: int) -> list[FinishingCharge]:
    groups = product.advanced_features.finishing_groups if product.advanced_features else []
    known = {g.id for g in groups}
    for group_id in list(selection.group_selections) + list(selection.text_inputs):
        if group_id not in known:
            raise InvalidInputError("finishing group", group_id, f"not offered by {product.id}")

    charges: list[FinishingCharge] = []
    for group in groups:
        if group.type == GROUP_TEXT_INPUT:
            charges.extend(_text_input_charge(group, selection, quantity))
        elif group.type in (GROUP_RADIO, GROUP_CHECKBOX):
            charges.extend(_option_charges(group, selection, quantity))
        else:
            raise InvalidInputError("finishing group type", group.type, f"group {group.id}")
    return charges


def _text_input_charge(group: FinishingGroup, selection: Selection, quantity: int) -> list[FinishingCharge]:
    text = (selection.text_inputs.get(group.id) or "").strip()
    if not text:
        if group.required:
            raise InvalidInputError(group.title or group.id, text, "required")
        return []
    # price_add is per unit regardless of the group's price_mode
    return [
        FinishingCharge(
            id=group.id,
            name=f"{group.title}: {text}",
            unit_price=group.price_add,
            quantity=quantity,
            amount=group.price_add * quantity,
        )
    ]


def _option_charges(group: FinishingGroup, selection: Selection, quantity: int) -> list[FinishingCharge]:
    labels = selection.group_selections.get(group.id) or []
    if not labels:
        if group.required:
            raise InvalidInputError(group.title or group.id, None, "a selection is required")
        return []
    if group.type == GROUP_RADIO and len(labels) > 1:
        raise InvalidInputError(group.title or group.id, labels, "only one option allowed")

    charges = []
    for label in labels:
        option = group.find_option(label)
        if option is None:
            raise InvalidInputError(group.title or group.id, label, "unknown option")
        if option.min_qty and quantity < option.min_qty:
            raise InvalidInputError(label, quantity, f"needs at least {option.min_qty} pcs")
        applied = 1 if group.price_mode == PRICE_PER_JOB else quantity
        charges.append(
            FinishingCharge(
                id=group.id,
                name=f"{group.title}: {option.label}",
                unit_price=option.price,
                quantity=applied,
                amount=option.price * applied,
            )
        )
    return charges


def _catalog_charges(product: Product, selection: Selection, quantity: int) -> list[FinishingCharge]:
    charges = []
    for option in selection.finishings:
        if option.category and product.category and option.category != product.category:
            raise InvalidInputError(
                "finishing", option.name, f"not available for category {product.category}"
            )
        if option.min_qty and quantity < option.min_qty:
            raise InvalidInputError(option.name, quantity, f"needs at least {option.min_qty} pcs")
        applied = quantity if option.per_unit else 1
        charges.append(
            FinishingCharge(
                id=option.id,
                name=option.name,
                unit_price=option.price,
                quantity=applied,
                amount=option.price * applied,
            )
        )
    if charges:
        logger.debug("%s: %d finishing charge(s)", product.id, len(charges))
    return charges
