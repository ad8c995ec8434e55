"""Data models for printpos."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
import uuid

from .utils import ZERO, money_out, to_amount, to_decimal


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id() -> str:
    """Generate a new order or line item ID."""
    return str(uuid.uuid4())


def _decimal_or_none(value: Any, name: str) -> Decimal | None:
    if value is None:
        return None
    return to_decimal(value, name)


class PricingModel(str, Enum):
    UNIT = "UNIT"
    LINEAR = "LINEAR"
    AREA = "AREA"
    MATRIX = "MATRIX"
    ADVANCED = "ADVANCED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class ProductionStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    READY = "READY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentCheckStatus(str, Enum):
    """Outcome of reconciling an order's amounts with its payment records."""

    OK = "OK"
    MISMATCH_PAID = "MISMATCH_PAID"
    OVERPAID = "OVERPAID"
    NO_PAYMENTS = "NO_PAYMENTS"
    LEGACY_ORDER = "LEGACY_ORDER"


# Finishing group kinds on advanced products
GROUP_RADIO = "radio"
GROUP_CHECKBOX = "checkbox"
GROUP_TEXT_INPUT = "text_input"

PRICE_PER_UNIT = "PER_UNIT"
PRICE_PER_JOB = "PER_JOB"


# Catalog models


@dataclass
class Variant:
    """A selectable variant: flat price, or a price list keyed by size."""

    label: str
    price: Decimal | None = None
    price_list: dict[str, Decimal] | None = None
    specs: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"label": self.label}
        if self.price is not None:
            result["price"] = money_out(self.price)
        if self.price_list is not None:
            result["price_list"] = {k: money_out(v) for k, v in self.price_list.items()}
        if self.specs:
            result["specs"] = self.specs
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Variant":
        price_list = data.get("price_list")
        return cls(
            label=data["label"],
            price=_decimal_or_none(data.get("price"), "variant price"),
            price_list=(
                {k: to_decimal(v, "variant price") for k, v in price_list.items()}
                if price_list is not None
                else None
            ),
            specs=data.get("specs", {}),
        )


@dataclass
class WholesaleTier:
    """Inclusive quantity range with its unit price. max=None is open-ended."""

    min: int
    max: int | None
    price: Decimal

    def contains(self, quantity: int) -> bool:
        return quantity >= self.min and (self.max is None or quantity <= self.max)

    def to_dict(self) -> dict[str, Any]:
        return {"min": self.min, "max": self.max, "price": money_out(self.price)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WholesaleTier":
        return cls(
            min=int(data["min"]),
            max=int(data["max"]) if data.get("max") is not None else None,
            price=to_decimal(data["price"], "tier price"),
        )


@dataclass
class FinishingGroupOption:
    label: str
    price: Decimal = ZERO
    min_qty: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"label": self.label, "price": money_out(self.price)}
        if self.min_qty is not None:
            result["min_qty"] = self.min_qty
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FinishingGroupOption":
        return cls(
            label=data["label"],
            price=to_decimal(data.get("price", 0), "option price"),
            min_qty=data.get("min_qty"),
        )


@dataclass
class FinishingGroup:
    """A group of finishing choices on an advanced product."""

    id: str
    title: str
    type: str = GROUP_RADIO
    required: bool = False
    price_mode: str = PRICE_PER_UNIT
    options: list[FinishingGroupOption] = field(default_factory=list)
    price_add: Decimal = ZERO  # text_input groups only, always per unit

    def find_option(self, label: str) -> FinishingGroupOption | None:
        for option in self.options:
            if option.label == label:
                return option
        return None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "required": self.required,
            "price_mode": self.price_mode,
            "options": [o.to_dict() for o in self.options],
        }
        if self.type == GROUP_TEXT_INPUT:
            result["price_add"] = money_out(self.price_add)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any], index: int = 0) -> "FinishingGroup":
        return cls(
            id=data.get("id") or f"group_{index}",
            title=data.get("title", ""),
            type=data.get("type", GROUP_RADIO),
            required=bool(data.get("required", False)),
            price_mode=data.get("price_mode", PRICE_PER_UNIT),
            options=[FinishingGroupOption.from_dict(o) for o in data.get("options", [])],
            price_add=to_decimal(data.get("price_add", 0), "price_add"),
        )


@dataclass
class AdvancedFeatures:
    wholesale_rules: list[WholesaleTier] = field(default_factory=list)
    finishing_groups: list[FinishingGroup] = field(default_factory=list)
    min_order: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "wholesale_rules": [t.to_dict() for t in self.wholesale_rules],
            "finishing_groups": [g.to_dict() for g in self.finishing_groups],
        }
        if self.min_order is not None:
            result["min_order"] = self.min_order
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AdvancedFeatures":
        return cls(
            wholesale_rules=[WholesaleTier.from_dict(t) for t in data.get("wholesale_rules", [])],
            finishing_groups=[
                FinishingGroup.from_dict(g, i) for i, g in enumerate(data.get("finishing_groups", []))
            ],
            min_order=data.get("min_order"),
        )


@dataclass
class Product:
    """Catalog product. Reference data, never mutated by pricing."""

    id: str
    name: str
    pricing_model: PricingModel
    base_price: Decimal = ZERO
    category: str | None = None
    variants: list[Variant] = field(default_factory=list)
    prices: dict[str, Decimal] | None = None  # legacy size -> price table for MATRIX
    advanced_features: AdvancedFeatures | None = None
    is_active: bool = True

    def find_variant(self, label: str) -> Variant | None:
        for variant in self.variants:
            if variant.label == label:
                return variant
        return None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "pricing_model": self.pricing_model.value,
            "base_price": money_out(self.base_price),
            "is_active": self.is_active,
        }
        if self.category is not None:
            result["category"] = self.category
        if self.variants:
            result["variants"] = [v.to_dict() for v in self.variants]
        if self.prices is not None:
            result["prices"] = {k: money_out(v) for k, v in self.prices.items()}
        if self.advanced_features is not None:
            result["advanced_features"] = self.advanced_features.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        prices = data.get("prices")
        advanced = data.get("advanced_features")
        return cls(
            id=data["id"],
            name=data["name"],
            pricing_model=PricingModel(data.get("pricing_model", "UNIT")),
            base_price=to_decimal(data.get("base_price", 0), "base_price"),
            category=data.get("category"),
            variants=[Variant.from_dict(v) for v in data.get("variants", [])],
            prices=(
                {k: to_decimal(v, "matrix price") for k, v in prices.items()}
                if prices is not None
                else None
            ),
            advanced_features=AdvancedFeatures.from_dict(advanced) if advanced else None,
            is_active=data.get("is_active", True),
        )


@dataclass
class FinishingOption:
    """Catalog add-on (lamination, cutting, eyelets) priced flat or per unit."""

    id: str
    name: str
    price: Decimal
    per_unit: bool = True
    category: str | None = None
    min_qty: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "price": money_out(self.price),
            "per_unit": self.per_unit,
        }
        if self.category is not None:
            result["category"] = self.category
        if self.min_qty is not None:
            result["min_qty"] = self.min_qty
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FinishingOption":
        return cls(
            id=data["id"],
            name=data["name"],
            price=to_decimal(data.get("price", 0), "finishing price"),
            per_unit=data.get("per_unit", True),
            category=data.get("category"),
            min_qty=data.get("min_qty"),
        )


@dataclass
class Catalog:
    """Products and finishing options, as loaded from the catalog store."""

    products: list[Product] = field(default_factory=list)
    finishings: list[FinishingOption] = field(default_factory=list)

    def product(self, product_id: str) -> Product | None:
        for product in self.products:
            if product.id == product_id:
                return product
        return None

    def finishing(self, finishing_id: str) -> FinishingOption | None:
        for option in self.finishings:
            if option.id == finishing_id:
                return option
        return None

    def finishing_by_name(self, name: str) -> FinishingOption | None:
        for option in self.finishings:
            if option.name == name:
                return option
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "products": [p.to_dict() for p in self.products],
            "finishings": [f.to_dict() for f in self.finishings],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Catalog":
        return cls(
            products=[Product.from_dict(p) for p in data.get("products", [])],
            finishings=[FinishingOption.from_dict(f) for f in data.get("finishings", [])],
        )


# Pricing inputs and results


@dataclass
class Selection:
    """What the cashier picked for one product."""

    quantity: int = 1
    length: Decimal | None = None
    width: Decimal | None = None
    variant: str | None = None
    material: str | None = None
    size: str | None = None
    finishings: list[FinishingOption] = field(default_factory=list)
    group_selections: dict[str, list[str]] = field(default_factory=dict)
    text_inputs: dict[str, str] = field(default_factory=dict)


@dataclass
class FinishingCharge:
    """Line-level cost of one add-on."""

    name: str
    unit_price: Decimal
    quantity: int
    amount: Decimal
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "unit_price": money_out(self.unit_price),
            "quantity": self.quantity,
            "amount": money_out(self.amount),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FinishingCharge":
        amount = to_decimal(data.get("amount", 0), "finishing amount")
        quantity = int(data.get("quantity", 1))
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            unit_price=to_decimal(data.get("unit_price", amount), "finishing unit price"),
            quantity=quantity,
            amount=amount,
        )


@dataclass
class PriceResolution:
    unit_price: Decimal
    breakdown: str
    charges: list[FinishingCharge] = field(default_factory=list)
    unit_price_final: Decimal = ZERO  # unit price plus per-unit add-ons, for display


@dataclass
class LineItem:
    """One priced cart line. subtotal == unit_price * quantity + sum(charges)."""

    id: str
    product_id: str | None
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    pricing_model: str | None = None
    length: Decimal | None = None
    width: Decimal | None = None
    variant: str | None = None
    finishings: list[FinishingCharge] = field(default_factory=list)
    notes: str = ""
    specs: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    @property
    def finishing_total(self) -> Decimal:
        return sum((c.amount for c in self.finishings), ZERO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "pricing_model": self.pricing_model,
            "qty": self.quantity,
            "unit_price": money_out(self.unit_price),
            "subtotal": money_out(self.subtotal),
            "variant": self.variant,
            "finishings": [c.to_dict() for c in self.finishings],
            "notes": self.notes,
            "dimensions": self.specs,
            "description": self.description,
        }


@dataclass
class OrderTotals:
    subtotal: Decimal
    discount: Decimal
    service_fee: Decimal
    grand_total: Decimal
    requested_discount: Decimal = field(default=ZERO, compare=False)

    @property
    def discount_clamped(self) -> bool:
        return self.requested_discount != self.discount

    def to_dict(self) -> dict[str, Any]:
        return {
            "subtotal": money_out(self.subtotal),
            "discount": money_out(self.discount),
            "service_fee": money_out(self.service_fee),
            "grand_total": money_out(self.grand_total),
        }


@dataclass
class PaymentResolution:
    grand_total: Decimal
    paid_amount: Decimal
    remaining: Decimal
    change: Decimal
    status: PaymentStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "grand_total": money_out(self.grand_total),
            "paid_amount": money_out(self.paid_amount),
            "remaining": money_out(self.remaining),
            "change": money_out(self.change),
            "status": self.status.value,
        }


@dataclass
class PaymentRecord:
    """One payment taken on an order: what the shop kept, when and how."""

    amount: Decimal
    paid_at: str = ""
    method: str = "CASH"

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": money_out(self.amount),
            "paid_at": self.paid_at,
            "method": self.method,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentRecord":
        return cls(
            amount=to_amount(data.get("amount"), "payment amount"),
            paid_at=str(data.get("paid_at") or data.get("created_at") or ""),
            method=str(data.get("method") or data.get("payment_method") or "CASH"),
        )


@dataclass
class PaymentCheck:
    """An order's stored paid/remaining amounts next to the ones its payment records add up to."""

    order_id: str
    order_number: str | None
    status: PaymentCheckStatus
    grand_total: Decimal
    recorded_paid: Decimal
    recalculated_paid: Decimal
    recorded_remaining: Decimal
    recalculated_remaining: Decimal
    payments_count: int

    @property
    def paid_diff(self) -> Decimal:
        return self.recalculated_paid - self.recorded_paid

    @property
    def remaining_diff(self) -> Decimal:
        return self.recalculated_remaining - self.recorded_remaining

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "status": self.status.value,
            "grand_total": money_out(self.grand_total),
            "recorded_paid": money_out(self.recorded_paid),
            "recalculated_paid": money_out(self.recalculated_paid),
            "recorded_remaining": money_out(self.recorded_remaining),
            "recalculated_remaining": money_out(self.recalculated_remaining),
            "paid_diff": money_out(self.paid_diff),
            "remaining_diff": money_out(self.remaining_diff),
            "payments_count": self.payments_count,
        }


@dataclass
class CustomerSnapshot:
    """Customer as captured at checkout, not a live reference."""

    name: str = ""
    phone: str = ""


@dataclass
class Order:
    """Canonical order, whichever legacy field names produced it.

    Status fields hold the stored strings verbatim; values outside the
    known enums are reported through ``warnings``.
    """

    id: str
    order_number: str | None
    items: list[LineItem]
    totals: OrderTotals
    paid_amount: Decimal
    remaining_amount: Decimal
    payment_status: str
    production_status: str = ProductionStatus.PENDING.value
    customer: CustomerSnapshot = field(default_factory=CustomerSnapshot)
    is_tempo: bool = False
    payment_method: str = "CASH"
    created_at: str = ""
    created_by: str = ""
    cancel_reason: str | None = None
    cancelled_at: str | None = None
    notes: str = ""
    payments: list[PaymentRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Persistence payload; normalizing it yields this order again."""
        return {
            "id": self.id,
            "order_number": self.order_number,
            "items": [item.to_dict() for item in self.items],
            "subtotal": money_out(self.totals.subtotal),
            "discount_amount": money_out(self.totals.discount),
            "service_fee": money_out(self.totals.service_fee),
            "grand_total": money_out(self.totals.grand_total),
            "total_amount": money_out(self.totals.grand_total),
            "paid_amount": money_out(self.paid_amount),
            "remaining_amount": money_out(self.remaining_amount),
            "payment_status": self.payment_status,
            "production_status": self.production_status,
            "customer_name": self.customer.name,
            "customer_phone": self.customer.phone,
            "is_tempo": self.is_tempo,
            "payment_method": self.payment_method,
            "created_at": self.created_at,
            "created_by": self.created_by,
            "cancel_reason": self.cancel_reason,
            "cancelled_at": self.cancelled_at,
            "notes": self.notes,
            "payments": [p.to_dict() for p in self.payments],
        }
