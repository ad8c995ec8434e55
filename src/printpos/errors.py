"""Custom exceptions for printpos."""


class PrintposError(Exception):
    """Base exception for all printpos errors."""

    pass


class InvalidInputError(PrintposError):
    """Raised when a quantity, dimension or amount is not usable."""

    def __init__(self, field: str, value: object, reason: str | None = None):
        self.field = field
        self.value = value
        msg = f"Invalid {field}: {value!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class PriceNotFoundError(PrintposError):
    """Raised when no price exists for the requested combination."""

    def __init__(self, product_id: str, key: str):
        self.product_id = product_id
        self.key = key
        super().__init__(f"No price for {key} on product {product_id}")


class BelowMinimumOrderError(PrintposError):
    """Raised when a quantity is under the product's minimum order."""

    def __init__(self, product_id: str, quantity: int, minimum: int):
        self.product_id = product_id
        self.quantity = quantity
        self.minimum = minimum
        super().__init__(
            f"Quantity {quantity} is below the minimum order of {minimum} "
            f"for product {product_id}"
        )


class DiscountOutOfRangeError(PrintposError):
    """Describes a discount that was clamped into [0, subtotal].

    The aggregator logs this instead of raising it.
    """

    def __init__(self, requested: object, applied: object, subtotal: object):
        self.requested = requested
        self.applied = applied
        self.subtotal = subtotal
        super().__init__(
            f"Discount {requested} outside [0, {subtotal}], clamped to {applied}"
        )


class MalformedRecordError(PrintposError):
    """Raised when a stored record lacks the fields that identify it."""

    def __init__(self, missing: str, record_id: str | None = None):
        self.missing = missing
        self.record_id = record_id
        msg = f"Malformed record: missing {missing}"
        if record_id:
            msg = f"{msg} (id {record_id})"
        super().__init__(msg)


class CatalogNotFoundError(PrintposError):
    """Raised when catalog.json doesn't exist."""

    def __init__(self, path: str | None = None):
        self.path = path
        msg = "Catalog not initialized. Run 'printpos init' first."
        if path:
            msg = f"Catalog not found at {path}. Run 'printpos init' first."
        super().__init__(msg)


class CatalogExistsError(PrintposError):
    """Raised when trying to init but the catalog already exists."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Catalog already exists at {path}. Use --force to overwrite.")


class InvalidSchemaVersionError(PrintposError):
    """Raised when a data file has an unsupported schema version."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported schema version {found}. This tool supports version {supported}."
        )


class ProductNotFoundError(PrintposError):
    """Raised when a product ID doesn't exist in the catalog."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class OrderNotFoundError(PrintposError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")
