"""Command-line interface for printpos."""

import argparse
import json
import sys
from decimal import Decimal
from typing import Any

from . import __version__
from .catalog_store import CatalogStore
from .checkout import CartLine, CheckoutRequest, checkout
from .config import Settings, configure_logging
from .errors import InvalidInputError, PrintposError, ProductNotFoundError
from .line_items import build_line_item, resolve_quantity
from .models import (
    Catalog,
    CustomerSnapshot,
    FinishingOption,
    LineItem,
    Order,
    PaymentCheck,
    PaymentCheckStatus,
    Selection,
)
from .normalizer import normalize_orders
from .order_store import OrderStore
from .payments import validate_order_payments
from .utils import format_rupiah, to_decimal


def _read_json(path: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise InvalidInputError("file", path, str(e)) from None


def _parse_pairs(values: list[str] | None, name: str) -> list[tuple[str, str]]:
    """Split GROUP=VALUE arguments."""
    pairs = []
    for value in values or []:
        key, sep, rest = value.partition("=")
        if not sep or not key:
            raise InvalidInputError(name, value, "expected GROUP=VALUE")
        pairs.append((key, rest))
    return pairs


def _finishings(ids: list[str], catalog: Catalog) -> list[FinishingOption]:
    options = []
    for finishing_id in ids:
        option = catalog.finishing(finishing_id)
        if option is None:
            raise InvalidInputError("finishing", finishing_id, "unknown finishing")
        options.append(option)
    return options


def _optional_decimal(value: Any, name: str) -> Decimal | None:
    return None if value is None else to_decimal(value, name)


def selection_from_dict(data: dict[str, Any], catalog: Catalog) -> Selection:
    """Build a Selection from a cart file line."""
    return Selection(
        quantity=resolve_quantity(data),
        length=_optional_decimal(data.get("length"), "length"),
        width=_optional_decimal(data.get("width"), "width"),
        variant=data.get("variant"),
        material=data.get("material"),
        size=data.get("size"),
        finishings=_finishings(data.get("finishing_ids", []), catalog),
        group_selections=data.get("group_selections", {}),
        text_inputs=data.get("text_inputs", {}),
    )


def format_line_item(item: LineItem) -> str:
    lines = [f"  {item.product_name}  x{item.quantity}  @ {format_rupiah(item.unit_price)}"]
    if item.description:
        lines.append(f"    {item.description}")
    for charge in item.finishings:
        lines.append(f"    + {charge.name}: {format_rupiah(charge.amount)}")
    if item.notes:
        lines.append(f"    Note: {item.notes}")
    lines.append(f"    Subtotal: {format_rupiah(item.subtotal)}")
    return "\n".join(lines)


def format_order(order: Order, verbose: bool = False) -> str:
    header = (
        f"{order.order_number}  {order.customer.name or '-'}  "
        f"{format_rupiah(order.totals.grand_total)}  "
        f"{order.payment_status} / {order.production_status}"
    )
    if not verbose:
        return header
    lines = [header]
    for item in order.items:
        lines.append(format_line_item(item))
    lines.append(f"  Subtotal:  {format_rupiah(order.totals.subtotal)}")
    if order.totals.discount:
        lines.append(f"  Discount:  -{format_rupiah(order.totals.discount)}")
    if order.totals.service_fee:
        lines.append(f"  Fee:       {format_rupiah(order.totals.service_fee)}")
    lines.append(f"  Total:     {format_rupiah(order.totals.grand_total)}")
    lines.append(f"  Paid:      {format_rupiah(order.paid_amount)}")
    lines.append(f"  Remaining: {format_rupiah(order.remaining_amount)}")
    for payment in order.payments:
        lines.append(f"  Payment:   {format_rupiah(payment.amount)}  {payment.method}  {payment.paid_at}")
    if order.cancel_reason:
        lines.append(f"  Cancelled: {order.cancel_reason}")
    for warning in order.warnings:
        lines.append(f"  Warning: {warning}")
    return "\n".join(lines)


def _cart_line(line: Any, catalog: Catalog) -> CartLine:
    if not isinstance(line, dict):
        raise InvalidInputError("cart line", line, "expected a JSON object")
    return CartLine(
        product_id=line.get("product_id", ""),
        selection=selection_from_dict(line, catalog),
        notes=line.get("notes", ""),
        specs=line.get("specs", {}),
    )


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize the catalog."""
    try:
        store = CatalogStore()
        catalog = Catalog.from_dict(_read_json(args.catalog)) if args.catalog else None
        catalog = store.init(catalog, force=args.force)

        print(f"Initialized catalog at {store.catalog_path}")
        print(f"Products: {len(catalog.products)}, finishings: {len(catalog.finishings)}")
        return 0

    except PrintposError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_quote(args: argparse.Namespace) -> int:
    """Price one product selection."""
    try:
        catalog = CatalogStore().load()
        product = catalog.product(args.product_id)
        if product is None:
            raise ProductNotFoundError(args.product_id)

        group_selections: dict[str, list[str]] = {}
        for group_id, label in _parse_pairs(args.group, "group"):
            group_selections.setdefault(group_id, []).append(label)

        selection = Selection(
            quantity=resolve_quantity({"qty": args.qty}),
            length=_optional_decimal(args.length, "length"),
            width=_optional_decimal(args.width, "width"),
            variant=args.variant,
            material=args.material,
            size=args.size,
            finishings=_finishings(args.finishing or [], catalog),
            group_selections=group_selections,
            text_inputs=dict(_parse_pairs(args.text, "text")),
        )
        item = build_line_item(product, selection, {"notes": args.notes or ""})

        if args.json:
            print(json.dumps(item.to_dict(), indent=2))
        else:
            print(format_line_item(item))
            print(f"    {item.specs.get('breakdown', '')}")
        return 0

    except PrintposError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_checkout(args: argparse.Namespace) -> int:
    """Check out a cart file and save the order."""
    try:
        catalog = CatalogStore().load()
        cart = _read_json(args.cart)
        if not isinstance(cart, dict):
            raise InvalidInputError("cart", args.cart, "expected a JSON object")

        lines = cart.get("lines", [])
        if not isinstance(lines, list):
            raise InvalidInputError("lines", lines, "expected a JSON list")

        request = CheckoutRequest(
            lines=[_cart_line(line, catalog) for line in lines],
            customer=CustomerSnapshot(
                name=cart.get("customer_name", ""), phone=cart.get("customer_phone", "")
            ),
            created_by=cart.get("created_by", ""),
            discount=cart.get("discount", 0),
            service_fee=cart.get("service_fee"),
            priority=cart.get("priority"),
            paid_amount=cart.get("paid_amount", 0),
            is_tempo=bool(cart.get("is_tempo", False)),
            payment_method=cart.get("payment_method", "CASH"),
            notes=cart.get("notes", ""),
        )
        result = checkout(request, catalog)
        order = OrderStore(catalog=catalog).create(result.order)

        if args.json:
            print(json.dumps({"order": order.to_dict(), "payment": result.payment.to_dict()}, indent=2))
        else:
            print(f"Created order {order.order_number}")
            print(format_order(order, verbose=True))
            if result.payment.change:
                print(f"  Change:    {format_rupiah(result.payment.change)}")
        return 0

    except PrintposError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List stored orders."""
    try:
        batch = OrderStore().list_orders(
            payment_status=args.payment_status, production_status=args.production_status
        )

        if args.json:
            data = {
                "orders": [o.to_dict() for o in batch.orders],
                "skipped": [{"record_id": s.record_id, "reason": s.reason} for s in batch.skipped],
            }
            print(json.dumps(data, indent=2))
            return 0

        if not batch.orders:
            print("No orders found.")
        else:
            print(f"Orders ({len(batch.orders)}):")
            print()
            for order in batch.orders:
                print(f"  {format_order(order)}")
        for skipped in batch.skipped:
            print(f"Skipped {skipped.record_id}: {skipped.reason}", file=sys.stderr)
        return 0

    except PrintposError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_show(args: argparse.Namespace) -> int:
    """Show one order."""
    try:
        order = OrderStore().get(args.order_id)
        if args.json:
            print(json.dumps(order.to_dict(), indent=2))
        else:
            print(format_order(order, verbose=True))
        return 0

    except PrintposError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_pay(args: argparse.Namespace) -> int:
    """Record a payment against an order."""
    try:
        order, payment = OrderStore().record_payment(args.order_id, args.amount, args.method)

        print(f"Recorded payment on {order.order_number}: {payment.status.value}")
        print(f"  Remaining: {format_rupiah(payment.remaining)}")
        if payment.change:
            print(f"  Change:    {format_rupiah(payment.change)}")
        return 0

    except PrintposError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _print_check(check: PaymentCheck) -> None:
    print(f"{check.order_number}: {check.status.value}")
    print(f"  Total:      {format_rupiah(check.grand_total)}")
    print(
        f"  Paid:       {format_rupiah(check.recorded_paid)} "
        f"(records: {format_rupiah(check.recalculated_paid)})"
    )
    print(
        f"  Remaining:  {format_rupiah(check.recorded_remaining)} "
        f"(records: {format_rupiah(check.recalculated_remaining)})"
    )
    print(f"  Payments:   {check.payments_count}")


def cmd_orders_check(args: argparse.Namespace) -> int:
    """Reconcile an order's amounts with its payment records."""
    try:
        check = validate_order_payments(OrderStore().get(args.order_id))
        if args.json:
            print(json.dumps(check.to_dict(), indent=2))
        else:
            _print_check(check)
        return 0 if check.status is PaymentCheckStatus.OK else 1

    except PrintposError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_cancel(args: argparse.Namespace) -> int:
    """Cancel an order."""
    try:
        order = OrderStore().cancel(args.order_id, args.reason)
        print(f"Cancelled order {order.order_number}")
        print(f"  Reason: {order.cancel_reason}")
        return 0

    except PrintposError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_normalize(args: argparse.Namespace) -> int:
    """Normalize raw order records from a JSON file."""
    try:
        data = _read_json(args.path)
        records = data if isinstance(data, list) else [data]

        catalog = None
        if args.use_catalog:
            catalog = CatalogStore().load()

        batch = normalize_orders(records, catalog)
        output = [o.to_dict() for o in batch.orders]
        print(json.dumps(output if isinstance(data, list) else (output[0] if output else None), indent=2))

        for order in batch.orders:
            for warning in order.warnings:
                print(f"Warning ({order.order_number}): {warning}", file=sys.stderr)
        for skipped in batch.skipped:
            print(f"Skipped {skipped.record_id}: {skipped.reason}", file=sys.stderr)
        return 1 if batch.skipped else 0

    except PrintposError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        store = CatalogStore()
        if not store.exists():
            print("Warning: catalog not initialized. Run 'printpos init' first.", file=sys.stderr)
            print("Starting server anyway...", file=sys.stderr)

        print("Starting printpos API server...")
        print(f"Data directory: {store.data_dir}")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "printpos.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1,  # Single worker; the order file lock is per process group
        )
        return 0

    except (PrintposError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="printpos",
        description="Price print jobs, check out carts and track orders.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--log-level", help="Logging level (default: PRINTPOS_LOG_LEVEL or INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize the product catalog")
    init_parser.add_argument(
        "--catalog", "-c", help="JSON file with products and finishings to load"
    )
    init_parser.add_argument(
        "--force", "-f", action="store_true", help="Overwrite existing catalog"
    )

    # quote
    quote_parser = subparsers.add_parser("quote", help="Price a product selection")
    quote_parser.add_argument("product_id", help="Product ID")
    quote_parser.add_argument("--qty", "-q", type=int, default=1, help="Quantity (default: 1)")
    quote_parser.add_argument("--length", "-l", help="Length in meters")
    quote_parser.add_argument("--width", "-w", help="Width in meters")
    quote_parser.add_argument("--variant", help="Variant label")
    quote_parser.add_argument("--material", help="Material (matrix products)")
    quote_parser.add_argument("--size", help="Size (matrix products)")
    quote_parser.add_argument(
        "--finishing", action="append", help="Catalog finishing ID (repeatable)"
    )
    quote_parser.add_argument(
        "--group", action="append", help="Finishing group choice as GROUP=LABEL (repeatable)"
    )
    quote_parser.add_argument(
        "--text", action="append", help="Text input as GROUP=TEXT (repeatable)"
    )
    quote_parser.add_argument("--notes", "-n", help="Free-text note for the line")
    quote_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # checkout
    checkout_parser = subparsers.add_parser("checkout", help="Check out a cart file")
    checkout_parser.add_argument("cart", help="Path to cart JSON file")
    checkout_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders (subcommand group)
    orders_parser = subparsers.add_parser("orders", help="Manage stored orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    # orders list
    orders_list_parser = orders_subparsers.add_parser("list", help="List orders")
    orders_list_parser.add_argument("--payment-status", help="Filter by payment status")
    orders_list_parser.add_argument("--production-status", help="Filter by production status")
    orders_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders show
    orders_show_parser = orders_subparsers.add_parser("show", help="Show an order")
    orders_show_parser.add_argument("order_id", help="Order ID or order number")
    orders_show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders pay
    orders_pay_parser = orders_subparsers.add_parser("pay", help="Record a payment")
    orders_pay_parser.add_argument("order_id", help="Order ID or order number")
    orders_pay_parser.add_argument("amount", help="Amount tendered")
    orders_pay_parser.add_argument("--method", "-m", help="Payment method (default: the order's)")

    # orders check
    orders_check_parser = orders_subparsers.add_parser(
        "check", help="Reconcile an order's amounts with its payment records"
    )
    orders_check_parser.add_argument("order_id", help="Order ID or order number")
    orders_check_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders cancel
    orders_cancel_parser = orders_subparsers.add_parser("cancel", help="Cancel an order")
    orders_cancel_parser.add_argument("order_id", help="Order ID or order number")
    orders_cancel_parser.add_argument("--reason", "-r", required=True, help="Cancellation reason")

    # normalize
    normalize_parser = subparsers.add_parser(
        "normalize", help="Print the canonical form of raw order records"
    )
    normalize_parser.add_argument("path", help="JSON file with one record or a list of records")
    normalize_parser.add_argument(
        "--use-catalog", action="store_true", help="Check finishing references against the catalog"
    )

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    return parser


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    configure_logging(args.log_level or Settings.from_env().log_level)

    if not args.command:
        parser.print_help()
        return 0

    # Handle orders subcommands
    if args.command == "orders":
        if not getattr(args, "orders_command", None):
            parser.parse_args(["orders", "--help"])
            return 0
        orders_commands = {
            "list": cmd_orders_list,
            "show": cmd_orders_show,
            "pay": cmd_orders_pay,
            "check": cmd_orders_check,
            "cancel": cmd_orders_cancel,
        }
        return orders_commands[args.orders_command](args)

    commands = {
        "init": cmd_init,
        "quote": cmd_quote,
        "checkout": cmd_checkout,
        "normalize": cmd_normalize,
        "serve": cmd_serve,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
