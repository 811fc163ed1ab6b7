"""Business errors raised by the fulfillment engine.

Malformed input uses Protean's ``ValidationError`` and illegal order
transitions its ``InvalidOrderTransition`` subclass; unknown or foreign
orders use ``ObjectNotFoundError``.
"""

from protean.exceptions import ValidationError


class InsufficientStock(Exception):
    """Requested quantity exceeds what is available and backorders are off.

    This is the one error whose details are shown to the end user verbatim.
    """

    def __init__(self, variant_id, sku, available, requested, product_name=None):
        self.variant_id = str(variant_id)
        self.sku = sku
        self.available = available
        self.requested = requested
        self.product_name = product_name or "Unknown Product"
        super().__init__(
            f"Insufficient stock for product variant {self.product_name} (SKU: {sku}). "
            f"Available: {available}, Requested: {requested}. Backorders are not allowed."
        )

    def to_dict(self):
        return {
            "variant_id": self.variant_id,
            "sku": self.sku,
            "available": self.available,
            "requested": self.requested,
            "message": str(self),
        }


class ReferenceDataMissing(Exception):
    """A catalogue record the order depends on could not be found."""

    def __init__(self, kind, identifier):
        self.kind = kind
        self.identifier = str(identifier)
        super().__init__(f"{kind} not found: {identifier}")


class LockTimeout(Exception):
    """Row locks could not be acquired within the configured timeout."""

    def __init__(self, key, timeout):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for lock {key}")


class InvalidOrderTransition(ValidationError):
    """The order is no longer in a state that allows the requested change."""
