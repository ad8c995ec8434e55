"""Order storage for printpos."""

import fcntl
import json
import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from .config import Settings
from .errors import InvalidInputError, InvalidSchemaVersionError, OrderNotFoundError
from .models import Catalog, Order, PaymentRecord, PaymentResolution, ProductionStatus, _utc_now
from .normalizer import NormalizedBatch, normalize, normalize_orders
from .payments import apply_payment, resolve_payment, retained_amount

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
ORDERS_FILE = "orders.json"


class OrderStore:
    """Manages persisted orders and their human-readable numbers."""

    def __init__(
        self,
        data_dir: Path | None = None,
        machine_id: str | None = None,
        order_prefix: str | None = None,
        catalog: Catalog | None = None,
    ):
        """
        Initialize OrderStore.

        Args:
            data_dir: Override data directory (for testing).
            machine_id: Till identifier embedded in order numbers.
            order_prefix: Shop prefix embedded in order numbers.
            catalog: When given, finishing references are checked against it
                on read.
        """
        settings = Settings.from_env()
        self.data_dir = data_dir or settings.data_dir
        self.machine_id = machine_id or settings.machine_id
        self.order_prefix = order_prefix or settings.order_prefix
        self.catalog = catalog
        self.orders_path = self.data_dir / ORDERS_FILE

    def _ensure_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _lock(self) -> Iterator[None]:
        """Acquire exclusive lock on the orders file for read-modify-write operations."""
        self._ensure_dir()
        lock_path = self.data_dir / ".orders.lock"
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _load_data(self) -> dict[str, Any]:
        """
        Load raw order records from disk.

        Raises:
            InvalidSchemaVersionError: If schema version is unsupported.
        """
        if not self.orders_path.exists():
            return {"schema_version": SCHEMA_VERSION, "orders": []}

        with open(self.orders_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        version = data.get("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(version, SCHEMA_VERSION)
        data.setdefault("orders", [])
        return data

    def _save_data(self, data: dict[str, Any]) -> None:
        """Save order records to disk atomically."""
        self._ensure_dir()

        fd, temp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".orders_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(temp_path, self.orders_path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    @staticmethod
    def _find(records: list[Any], order_id: str) -> int:
        """Index of the record with this id or order number."""
        for i, record in enumerate(records):
            if not isinstance(record, dict):
                continue
            if record.get("id") == order_id or record.get("order_number") == order_id:
                return i
        raise OrderNotFoundError(order_id)

    def next_order_number(self, records: list[Any], now: datetime | None = None) -> str:
        """
        Next number for today on this machine: PREFIX-MACHINE-YYYYMMDD-NNNN.

        The sequence restarts at 0001 every day.
        """
        day = (now or datetime.now()).strftime("%Y%m%d")
        stem = f"{self.order_prefix}-{self.machine_id}-{day}-"
        highest = 0
        for record in records:
            number = record.get("order_number") if isinstance(record, dict) else None
            if isinstance(number, str) and number.startswith(stem):
                suffix = number[len(stem):]
                if suffix.isdigit():
                    highest = max(highest, int(suffix))
        return f"{stem}{highest + 1:04d}"

    def create(self, order: Order, now: datetime | None = None) -> Order:
        """
        Persist a new order, assigning its order number.

        Saving an order whose id is already stored replaces that record
        and keeps its number.

        Returns:
            The persisted order, with its order number.
        """
        with self._lock():
            data = self._load_data()
            records = data["orders"]
            try:
                index = self._find(records, order.id)
            except OrderNotFoundError:
                index = None

            if index is not None:
                stored_number = records[index].get("order_number")
                order = replace(order, order_number=stored_number or order.order_number)
                records[index] = order.to_dict()
            else:
                if not order.order_number:
                    order = replace(order, order_number=self.next_order_number(records, now))
                records.append(order.to_dict())
            self._save_data(data)

        logger.info("Saved order %s (%s)", order.order_number, order.payment_status)
        return order

    def get(self, order_id: str) -> Order:
        """
        Get an order by id or order number.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
            MalformedRecordError: If the stored record can't be read.
        """
        records = self._load_data()["orders"]
        return normalize(records[self._find(records, order_id)], self.catalog)

    def list_orders(
        self,
        payment_status: str | None = None,
        production_status: str | None = None,
    ) -> NormalizedBatch:
        """
        List stored orders, optionally filtered by status.

        Records that can't be normalized are reported in ``skipped``.
        """
        batch = normalize_orders(self._load_data()["orders"], self.catalog)
        if payment_status is not None:
            batch.orders = [o for o in batch.orders if o.payment_status == payment_status]
        if production_status is not None:
            batch.orders = [o for o in batch.orders if o.production_status == production_status]
        return batch

    def record_payment(
        self, order_id: str, amount: Any, method: str | None = None
    ) -> tuple[Order, PaymentResolution]:
        """
        Add a payment to an order and re-resolve its status.

        The amount the shop keeps (the payment minus any change) is appended
        to the order's payment records.

        Returns:
            The updated order and the payment resolution (which carries any
            change due from this payment).

        Raises:
            OrderNotFoundError: If the order doesn't exist.
            InvalidInputError: If the amount is not positive, or the order
                was cancelled or is already paid.
        """
        with self._lock():
            data = self._load_data()
            records = data["orders"]
            index = self._find(records, order_id)
            order = normalize(records[index], self.catalog)
            if order.production_status == ProductionStatus.CANCELLED.value:
                raise InvalidInputError("order", order.order_number, "order is cancelled")

            current = resolve_payment(order.totals.grand_total, order.paid_amount)
            if current.remaining == 0:
                raise InvalidInputError("order", order.order_number, "order is already paid")
            payment = apply_payment(current, amount)
            kept = retained_amount(payment) - current.paid_amount
            order = replace(
                order,
                paid_amount=retained_amount(payment),
                remaining_amount=payment.remaining,
                payment_status=payment.status.value,
                payments=order.payments
                + [PaymentRecord(amount=kept, paid_at=_utc_now(), method=method or order.payment_method)],
            )
            records[index] = order.to_dict()
            self._save_data(data)

        logger.info(
            "Payment of %s on %s: %s, remaining %s",
            amount, order.order_number, payment.status.value, payment.remaining,
        )
        return order, payment

    def cancel(self, order_id: str, reason: str) -> Order:
        """
        Cancel an order, recording why and when.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
            InvalidInputError: If the reason is blank or the order is
                already cancelled.
        """
        if not reason or not reason.strip():
            raise InvalidInputError("cancel_reason", reason, "required")

        with self._lock():
            data = self._load_data()
            records = data["orders"]
            index = self._find(records, order_id)
            order = normalize(records[index], self.catalog)
            if order.production_status == ProductionStatus.CANCELLED.value:
                raise InvalidInputError("order", order.order_number, "already cancelled")

            order = replace(
                order,
                production_status=ProductionStatus.CANCELLED.value,
                cancel_reason=reason.strip(),
                cancelled_at=_utc_now(),
            )
            records[index] = order.to_dict()
            self._save_data(data)

        logger.info("Cancelled order %s: %s", order.order_number, order.cancel_reason)
        return order
