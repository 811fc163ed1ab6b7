"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Order")
class OrderPlaced:
    """A new order was accepted and its stock reserved."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    organization_id = Identifier(required=True)
    user_id = Identifier()
    subtotal = Float(required=True)
    total_amount = Float(required=True)
    currency = String(required=True)
    item_count = Integer(required=True)
    placed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderCompleted:
    """The order's reserved stock was consumed and its bonus confirmed."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    user_id = Identifier()
    total_amount = Float(required=True)
    completed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderCancelled:
    """The order's reservations were released and its pending bonus withdrawn."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    user_id = Identifier()
    reason = String()
    cancelled_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderStatusChanged:
    """The display status changed without any reservation effect."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    previous_status = String()
    new_status = String(required=True)
    notes = String()
    changed_at = DateTime(required=True)
