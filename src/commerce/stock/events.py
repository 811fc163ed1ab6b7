"""Domain events for the StockRecord aggregate.

Raised on every ledger mutation and persisted with the unit of work so that
downstream consumers (reporting, reconciliation) can follow stock movements.
"""

from protean.fields import DateTime, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="StockRecord")
class StockReserved:
    """Units were promised to a pending order."""

    __version__ = "v1"

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    location_id = Identifier(required=True)
    order_id = Identifier()
    quantity = Integer(required=True)
    new_reserved_quantity = Integer(required=True)
    new_available_quantity = Integer(required=True)
    reserved_at = DateTime(required=True)


@commerce.event(part_of="StockRecord")
class StockConsumed:
    """Units left the location because their order was completed."""

    __version__ = "v1"

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    location_id = Identifier(required=True)
    order_id = Identifier()
    quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    new_reserved_quantity = Integer(required=True)
    consumed_at = DateTime(required=True)


@commerce.event(part_of="StockRecord")
class StockReleased:
    """A reservation was returned to availability because its order was cancelled."""

    __version__ = "v1"

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    location_id = Identifier(required=True)
    order_id = Identifier()
    quantity = Integer(required=True)
    new_reserved_quantity = Integer(required=True)
    new_available_quantity = Integer(required=True)
    released_at = DateTime(required=True)


@commerce.event(part_of="StockRecord")
class StockAdjusted:
    """On-hand quantity changed outside the order lifecycle (purchase, return, count)."""

    __version__ = "v1"

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity_change = Integer(required=True)
    reason = String(required=True)
    reference_id = Identifier()
    new_quantity = Integer(required=True)
    adjusted_at = DateTime(required=True)


@commerce.event(part_of="StockRecord")
class StockDiscrepancyDetected:
    """A decrement would have taken a counter below zero and was floored.

    The shortfall is the amount that was silently absorbed; a non-zero value
    usually means a reservation was never recorded for the order.
    """

    __version__ = "v1"

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    location_id = Identifier(required=True)
    order_id = Identifier()
    operation = String(required=True)  # consume, release
    field_name = String(required=True)  # quantity, reserved_quantity
    shortfall = Integer(required=True)
    detected_at = DateTime(required=True)
