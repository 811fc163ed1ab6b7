"""Order aggregate (CQRS): an order header with its line items and status history.

Two separate state fields live on the order:

``fulfillment_state`` is the small state machine the reservation engine
governs. Only it decides whether stock and bonus may still move:

    PENDING → COMPLETED   (stock consumed, bonus confirmed)
    PENDING → CANCELLED   (reservations released, pending bonus withdrawn)

``status`` is the display status shown to staff and customers. Besides
``completed`` and ``cancelled`` (set together with the fulfillment state)
it carries labels such as shipped or delivered that other processes set
and that have no effect on stock or bonus.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from commerce.domain import commerce
from commerce.errors import InvalidOrderTransition
from commerce.order.events import OrderCancelled, OrderCompleted, OrderPlaced, OrderStatusChanged


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class FulfillmentState(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    PARTIALLY_SHIPPED = "partially_shipped"
    DELIVERED = "delivered"
    PARTIALLY_DELIVERED = "partially_delivered"
    AWAITING_PICKUP = "awaiting_pickup"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    RETURNED = "returned"
    EXCHANGED = "exchanged"
    FAILED = "failed"


# Display statuses owned by the fulfillment state machine
_LIFECYCLE_STATUSES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

_ADDRESS_FIELDS = ("street", "city", "state", "country", "postal_code")


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@commerce.value_object(part_of="Order")
class ShippingAddress:
    """Delivery address captured when the order is placed."""

    street = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    country = String(max_length=100)
    postal_code = String(max_length=20)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@commerce.entity(part_of="Order")
class OrderItem:
    """A priced order line. Quantities here are what was reserved against stock."""

    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    product_name = String(max_length=255)
    sku = String(max_length=50)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)


@commerce.entity(part_of="Order")
class StatusChange:
    status = String(required=True, max_length=50)
    previous_status = String(max_length=50)
    notes = String(max_length=500)
    changed_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@commerce.aggregate
class Order:
    order_number = String(required=True, max_length=50)
    organization_id = Identifier(required=True)
    user_id = Identifier()
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    fulfillment_state = String(choices=FulfillmentState, default=FulfillmentState.PENDING.value)
    subtotal = Float(default=0.0)
    total_amount = Float(default=0.0)
    currency = String(max_length=3, default="USD")
    location_id = Identifier()
    shipping_address = ValueObject(ShippingAddress)
    customer_email = String(max_length=255)
    customer_phone = String(max_length=50)
    customer_full_name = String(max_length=255)
    cancellation_reason = String(max_length=500)
    items = HasMany(OrderItem)
    status_history = HasMany(StatusChange)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        organization_id,
        order_number,
        items_data,
        subtotal,
        shipping_address,
        currency="USD",
        user_id=None,
        location_id=None,
        contact=None,
    ):
        """Create a pending order from priced line data.

        Args:
            items_data: List of dicts with variant_id, location_id, quantity,
                        sku, product_name, unit_price, total_price.
            subtotal: Sum of line totals; also used as the total amount since
                      tax, shipping and discounts are not applied here.
            shipping_address: Dict with city, state and optionally street,
                              country, postal_code.
            contact: Dict with customer_email, customer_phone, customer_full_name.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})
        if not isinstance(shipping_address, dict):
            raise ValidationError({"shipping_address": ["Shipping address is required"]})

        contact = contact or {}
        now = datetime.now(UTC)

        order = cls(
            order_number=order_number,
            organization_id=organization_id,
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            fulfillment_state=FulfillmentState.PENDING.value,
            subtotal=subtotal,
            total_amount=subtotal,
            currency=currency or "USD",
            location_id=location_id,
            shipping_address=ShippingAddress(**{k: v for k, v in shipping_address.items() if k in _ADDRESS_FIELDS}),
            customer_email=contact.get("customer_email"),
            customer_phone=contact.get("customer_phone"),
            customer_full_name=contact.get("customer_full_name"),
            created_at=now,
            updated_at=now,
        )
        order.add_items([OrderItem(**item) for item in items_data])
        order.add_status_history(StatusChange(status=OrderStatus.PENDING.value, changed_at=now))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                organization_id=str(organization_id),
                user_id=str(user_id) if user_id else None,
                subtotal=order.subtotal,
                total_amount=order.total_amount,
                currency=order.currency,
                item_count=len(items_data),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def is_pending(self):
        return FulfillmentState(self.fulfillment_state) == FulfillmentState.PENDING

    def _assert_pending(self, action):
        if not self.is_pending:
            raise InvalidOrderTransition(
                {"fulfillment_state": [f"Cannot {action} an order that is already {self.fulfillment_state}"]}
            )

    def _record_status(self, new_status, notes=None):
        previous = self.status
        now = datetime.now(UTC)
        self.status = new_status
        self.updated_at = now
        self.add_status_history(
            StatusChange(
                status=new_status,
                previous_status=previous if previous != new_status else None,
                notes=notes,
                changed_at=now,
            )
        )
        return previous, now

    def item_lines(self):
        """Order lines as plain dicts for the reservation service."""
        return [
            {
                "variant_id": str(item.variant_id),
                "location_id": str(item.location_id),
                "quantity": item.quantity,
                "unit_price": item.unit_price,
            }
            for item in self.items
        ]

    # -------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------
    def complete(self, notes=None):
        self._assert_pending("complete")
        self.fulfillment_state = FulfillmentState.COMPLETED.value
        _, now = self._record_status(OrderStatus.COMPLETED.value, notes)

        self.raise_(
            OrderCompleted(
                order_id=str(self.id),
                organization_id=str(self.organization_id),
                user_id=str(self.user_id) if self.user_id else None,
                total_amount=self.total_amount,
                completed_at=now,
            )
        )

    def cancel(self, reason=None):
        self._assert_pending("cancel")
        self.fulfillment_state = FulfillmentState.CANCELLED.value
        self.cancellation_reason = reason
        _, now = self._record_status(OrderStatus.CANCELLED.value, reason)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                organization_id=str(self.organization_id),
                user_id=str(self.user_id) if self.user_id else None,
                reason=reason,
                cancelled_at=now,
            )
        )

    def update_status(self, new_status, notes=None):
        """Set a display status that has no stock or bonus effect."""
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status: {new_status}"]}) from None

        if target in _LIFECYCLE_STATUSES:
            raise ValidationError({"status": [f"Use the {target.value} operation to set status {target.value}"]})
        if not self.is_pending:
            raise InvalidOrderTransition({"status": [f"Order is already {self.fulfillment_state}"]})

        previous, now = self._record_status(target.value, notes)
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target.value,
                notes=notes,
                changed_at=now,
            )
        )


@commerce.repository(part_of=Order)
class OrderRepository:
    def get_for_organization(self, order_id, organization_id) -> Order:
        """Fetch an order, treating an order of another organization as missing."""
        order = self.get(order_id)
        if str(order.organization_id) != str(organization_id):
            raise ObjectNotFoundError(f"Order with id {order_id} does not exist")
        return order
