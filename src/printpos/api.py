"""FastAPI REST API for printpos pricing and orders."""

from decimal import Decimal
from typing import Any, Optional, Union

from fastapi import Body, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .aggregator import aggregate, priority_fee
from .catalog_store import CatalogStore
from .checkout import CartLine, CheckoutRequest, checkout
from .errors import (
    BelowMinimumOrderError,
    CatalogExistsError,
    CatalogNotFoundError,
    InvalidInputError,
    InvalidSchemaVersionError,
    MalformedRecordError,
    OrderNotFoundError,
    PriceNotFoundError,
    PrintposError,
    ProductNotFoundError,
)
from .line_items import build_line_item, rebuild_line_item
from .models import Catalog, CustomerSnapshot, Order, Selection
from .normalizer import normalize
from .order_store import OrderStore
from .payments import resolve_payment, validate_order_payments
from .utils import money_out, quantize_money

Amount = Union[int, float]


# --- Pydantic Schemas ---


class SelectionSchema(BaseModel):
    quantity: int = 1
    length: Optional[Decimal] = None
    width: Optional[Decimal] = None
    variant: Optional[str] = None
    material: Optional[str] = None
    size: Optional[str] = None
    finishing_ids: list[str] = Field(default_factory=list, description="Catalog finishing IDs")
    group_selections: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Advanced products: finishing group ID -> selected option labels",
    )
    text_inputs: dict[str, str] = Field(
        default_factory=dict,
        description="Advanced products: text_input group ID -> entered text",
    )


class QuoteRequest(BaseModel):
    product_id: str
    selection: SelectionSchema = Field(default_factory=SelectionSchema)
    notes: str = ""
    specs: dict[str, Any] = Field(default_factory=dict)


class FinishingChargeSchema(BaseModel):
    id: Optional[str] = None
    name: str
    unit_price: Amount
    quantity: int
    amount: Amount


class LineItemSchema(BaseModel):
    id: str
    product_id: Optional[str] = None
    product_name: str
    pricing_model: Optional[str] = None
    qty: int
    unit_price: Amount
    subtotal: Amount
    variant: Optional[str] = None
    finishings: list[FinishingChargeSchema] = Field(default_factory=list)
    notes: str = ""
    dimensions: dict[str, Any] = Field(default_factory=dict)
    description: str = ""


class QuoteResponse(BaseModel):
    item: LineItemSchema
    unit_price_final: Amount  # unit price with add-ons spread per unit, for display


class TotalsRequest(BaseModel):
    """Ad-hoc totals for raw cart lines, as a cart screen or an older client sends them."""

    items: list[dict[str, Any]]
    discount: Decimal = Decimal("0")
    service_fee: Optional[Decimal] = None
    priority: Optional[str] = None
    paid_amount: Decimal = Decimal("0")


class TotalsSchema(BaseModel):
    subtotal: Amount
    discount: Amount
    service_fee: Amount
    grand_total: Amount


class PaymentSchema(BaseModel):
    grand_total: Amount
    paid_amount: Amount
    remaining: Amount
    change: Amount
    status: str


class TotalsResponse(BaseModel):
    items: list[LineItemSchema]
    totals: TotalsSchema
    payment: PaymentSchema
    discount_clamped: bool


class CartLineSchema(BaseModel):
    product_id: str
    selection: SelectionSchema = Field(default_factory=SelectionSchema)
    notes: str = ""
    specs: dict[str, Any] = Field(default_factory=dict)


class CheckoutRequestSchema(BaseModel):
    lines: list[CartLineSchema]
    customer_name: str
    customer_phone: str = ""
    created_by: str
    discount: Decimal = Decimal("0")
    service_fee: Optional[Decimal] = None
    priority: Optional[str] = Field(None, description="STANDARD, EXPRESS or URGENT")
    paid_amount: Decimal = Decimal("0")
    is_tempo: bool = False
    payment_method: str = "CASH"
    notes: str = ""


class PaymentRecordSchema(BaseModel):
    amount: Amount
    paid_at: str = ""
    method: str = "CASH"


class OrderSchema(BaseModel):
    id: str
    order_number: Optional[str] = None
    items: list[LineItemSchema]
    subtotal: Amount
    discount_amount: Amount
    service_fee: Amount
    grand_total: Amount
    total_amount: Amount
    paid_amount: Amount
    remaining_amount: Amount
    payment_status: str
    production_status: str
    customer_name: str
    customer_phone: str
    is_tempo: bool
    payment_method: str
    created_at: str
    created_by: str
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[str] = None
    notes: str = ""
    payments: list[PaymentRecordSchema] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class OrderPaymentResponse(BaseModel):
    order: OrderSchema
    payment: PaymentSchema


class SkippedRecordSchema(BaseModel):
    record_id: Optional[str]
    reason: str


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    count: int
    skipped: list[SkippedRecordSchema]


class PaymentRequest(BaseModel):
    amount: Decimal = Field(..., description="Amount tendered for this payment")
    method: Optional[str] = Field(None, description="Payment method; defaults to the order's")


class PaymentCheckSchema(BaseModel):
    order_id: str
    order_number: Optional[str] = None
    status: str
    grand_total: Amount
    recorded_paid: Amount
    recalculated_paid: Amount
    recorded_remaining: Amount
    recalculated_remaining: Amount
    paid_diff: Amount
    remaining_diff: Amount
    payments_count: int


class CancelRequest(BaseModel):
    reason: str


class ProductListResponse(BaseModel):
    products: list[dict[str, Any]]
    count: int


# --- Helper Functions ---


def get_catalog_store() -> CatalogStore:
    """Get the global CatalogStore."""
    return CatalogStore()


def get_order_store() -> OrderStore:
    """Get the global OrderStore."""
    return OrderStore()


def selection_from_schema(schema: SelectionSchema, catalog: Catalog) -> Selection:
    """Convert a request selection, resolving finishing IDs against the catalog."""
    finishings = []
    for finishing_id in schema.finishing_ids:
        option = catalog.finishing(finishing_id)
        if option is None:
            raise InvalidInputError("finishing", finishing_id, "unknown finishing")
        finishings.append(option)
    return Selection(
        quantity=schema.quantity,
        length=schema.length,
        width=schema.width,
        variant=schema.variant,
        material=schema.material,
        size=schema.size,
        finishings=finishings,
        group_selections=schema.group_selections,
        text_inputs=schema.text_inputs,
    )


def order_to_schema(order: Order) -> OrderSchema:
    """Convert a canonical Order to its Pydantic schema."""
    return OrderSchema(**order.to_dict(), warnings=order.warnings)


# --- FastAPI App ---


app = FastAPI(
    title="printpos API",
    description="REST API for print shop pricing, checkout and orders",
    version="0.1.0",
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    InvalidInputError: 400,
    BelowMinimumOrderError: 400,
    ProductNotFoundError: 404,
    OrderNotFoundError: 404,
    CatalogNotFoundError: 409,
    CatalogExistsError: 409,
    PriceNotFoundError: 422,
    MalformedRecordError: 422,
    InvalidSchemaVersionError: 500,
}


@app.exception_handler(PrintposError)
async def printpos_error_handler(request: Request, exc: PrintposError) -> JSONResponse:
    """Map PrintposError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """
    Health check endpoint.

    Reports whether the catalog is initialized and how many orders are stored.
    """
    catalog_store = get_catalog_store()
    try:
        batch = get_order_store().list_orders()
        return {
            "status": "ok",
            "catalog_initialized": catalog_store.exists(),
            "order_count": len(batch.orders),
        }
    except PrintposError as e:
        return {
            "status": "error",
            "detail": str(e),
        }


@app.get("/api/products", response_model=ProductListResponse)
def list_products(include_inactive: bool = Query(default=False)):
    """List catalog products."""
    products = get_catalog_store().list_products(include_inactive=include_inactive)
    return ProductListResponse(products=[p.to_dict() for p in products], count=len(products))


@app.post("/api/quote", response_model=QuoteResponse)
def quote(request: QuoteRequest):
    """Price one product selection as a cart line."""
    catalog = get_catalog_store().load()
    product = catalog.product(request.product_id)
    if product is None:
        raise ProductNotFoundError(request.product_id)

    selection = selection_from_schema(request.selection, catalog)
    item = build_line_item(product, selection, {"notes": request.notes, "specs": request.specs})
    return QuoteResponse(
        item=LineItemSchema(**item.to_dict()),
        unit_price_final=money_out(quantize_money(item.subtotal / item.quantity)),
    )


@app.post("/api/totals", response_model=TotalsResponse)
def totals(request: TotalsRequest):
    """
    Rebuild raw cart lines and compute order totals and payment status.

    Cached line totals on the input are never trusted; every subtotal is
    recomputed.
    """
    items = [rebuild_line_item(raw) for raw in request.items]
    if request.service_fee is not None:
        fee = request.service_fee
    elif request.priority:
        fee = priority_fee(request.priority)
    else:
        fee = Decimal("0")
    order_totals = aggregate(items, request.discount, fee)
    payment = resolve_payment(order_totals.grand_total, request.paid_amount)
    return TotalsResponse(
        items=[LineItemSchema(**item.to_dict()) for item in items],
        totals=TotalsSchema(**order_totals.to_dict()),
        payment=PaymentSchema(**payment.to_dict()),
        discount_clamped=order_totals.discount_clamped,
    )


@app.post("/api/orders", response_model=OrderPaymentResponse, status_code=201)
def create_order(request: CheckoutRequestSchema):
    """Check out a cart and persist the resulting order."""
    catalog = get_catalog_store().load()
    checkout_request = CheckoutRequest(
        lines=[
            CartLine(
                product_id=line.product_id,
                selection=selection_from_schema(line.selection, catalog),
                notes=line.notes,
                specs=line.specs,
            )
            for line in request.lines
        ],
        customer=CustomerSnapshot(name=request.customer_name, phone=request.customer_phone),
        created_by=request.created_by,
        discount=request.discount,
        service_fee=request.service_fee,
        priority=request.priority,
        paid_amount=request.paid_amount,
        is_tempo=request.is_tempo,
        payment_method=request.payment_method,
        notes=request.notes,
    )
    result = checkout(checkout_request, catalog)
    order = get_order_store().create(result.order)
    return OrderPaymentResponse(
        order=order_to_schema(order),
        payment=PaymentSchema(**result.payment.to_dict()),
    )


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(
    payment_status: Optional[str] = Query(default=None),
    production_status: Optional[str] = Query(default=None),
):
    """List stored orders; unreadable records are reported, not fatal."""
    batch = get_order_store().list_orders(
        payment_status=payment_status, production_status=production_status
    )
    return OrderListResponse(
        orders=[order_to_schema(o) for o in batch.orders],
        count=len(batch.orders),
        skipped=[SkippedRecordSchema(record_id=s.record_id, reason=s.reason) for s in batch.skipped],
    )


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str):
    """Get a single order by ID or order number."""
    return order_to_schema(get_order_store().get(order_id))


@app.post("/api/orders/{order_id}/payments", response_model=OrderPaymentResponse)
def add_payment(order_id: str, request: PaymentRequest):
    """Record a payment against an order."""
    order, payment = get_order_store().record_payment(order_id, request.amount, request.method)
    return OrderPaymentResponse(
        order=order_to_schema(order),
        payment=PaymentSchema(**payment.to_dict()),
    )


@app.get("/api/orders/{order_id}/payment-check", response_model=PaymentCheckSchema)
def check_order_payments(order_id: str):
    """Reconcile an order's paid and remaining amounts with its payment records."""
    return PaymentCheckSchema(**validate_order_payments(get_order_store().get(order_id)).to_dict())


@app.post("/api/orders/{order_id}/cancel", response_model=OrderSchema)
def cancel_order(order_id: str, request: CancelRequest):
    """Cancel an order."""
    return order_to_schema(get_order_store().cancel(order_id, request.reason))


@app.post("/api/normalize", response_model=OrderSchema)
def normalize_record(record: dict[str, Any] = Body(...)):
    """Return the canonical form of a raw stored order record."""
    catalog_store = get_catalog_store()
    catalog = catalog_store.load() if catalog_store.exists() else None
    return order_to_schema(normalize(record, catalog))
