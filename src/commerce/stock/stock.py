"""StockRecord aggregate (CQRS), the stock ledger for one variant at one location.

Stock Level Model:
    quantity:           Units physically present at the location
    reserved_quantity:  Units promised to orders that are not yet completed
    available_quantity: quantity - reserved_quantity (what can still be sold)

Records are keyed by (variant_id, organization_id, location_id), created
lazily on first use and never deleted. Only the reservation service and stock
adjustments mutate them, always under the row lock for that key.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer

from commerce.domain import commerce
from commerce.stock.events import (
    StockAdjusted,
    StockConsumed,
    StockDiscrepancyDetected,
    StockReleased,
    StockReserved,
)

logger = structlog.get_logger(__name__)


@commerce.aggregate
class StockRecord:
    variant_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity = Integer(default=0)
    reserved_quantity = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, variant_id, organization_id, location_id, quantity=0, reserved_quantity=0):
        now = datetime.now(UTC)
        return cls(
            variant_id=variant_id,
            organization_id=organization_id,
            location_id=location_id,
            quantity=quantity,
            reserved_quantity=reserved_quantity,
            created_at=now,
            updated_at=now,
        )

    @property
    def available_quantity(self):
        return (self.quantity or 0) - (self.reserved_quantity or 0)

    def _ids(self):
        return {
            "stock_record_id": str(self.id),
            "variant_id": str(self.variant_id),
            "organization_id": str(self.organization_id),
            "location_id": str(self.location_id),
        }

    def _floor(self, value, field_name, operation, order_id):
        """Floor ``value`` at zero, reporting any absorbed shortfall."""
        if value >= 0:
            return value

        logger.warning(
            "stock_clamped",
            operation=operation,
            field_name=field_name,
            shortfall=-value,
            order_id=str(order_id) if order_id else None,
            **self._ids(),
        )
        self.raise_(
            StockDiscrepancyDetected(
                **self._ids(),
                order_id=str(order_id) if order_id else None,
                operation=operation,
                field_name=field_name,
                shortfall=-value,
                detected_at=datetime.now(UTC),
            )
        )
        return 0

    # -------------------------------------------------------------------
    # Reservation lifecycle
    # -------------------------------------------------------------------
    def reserve(self, quantity, order_id=None):
        """Promise ``quantity`` units to a pending order.

        Availability is not re-checked here: backorders may push
        ``available_quantity`` below zero.
        """
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.reserved_quantity = (self.reserved_quantity or 0) + quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockReserved(
                **self._ids(),
                order_id=str(order_id) if order_id else None,
                quantity=quantity,
                new_reserved_quantity=self.reserved_quantity,
                new_available_quantity=self.available_quantity,
                reserved_at=self.updated_at,
            )
        )

    def consume(self, quantity, order_id=None):
        """Remove ``quantity`` units from the location and from the reservation."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.quantity = self._floor((self.quantity or 0) - quantity, "quantity", "consume", order_id)
        self.reserved_quantity = self._floor(
            (self.reserved_quantity or 0) - quantity, "reserved_quantity", "consume", order_id
        )
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockConsumed(
                **self._ids(),
                order_id=str(order_id) if order_id else None,
                quantity=quantity,
                new_quantity=self.quantity,
                new_reserved_quantity=self.reserved_quantity,
                consumed_at=self.updated_at,
            )
        )

    def release(self, quantity, order_id=None):
        """Return ``quantity`` reserved units to availability. On-hand is untouched."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.reserved_quantity = self._floor(
            (self.reserved_quantity or 0) - quantity, "reserved_quantity", "release", order_id
        )
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockReleased(
                **self._ids(),
                order_id=str(order_id) if order_id else None,
                quantity=quantity,
                new_reserved_quantity=self.reserved_quantity,
                new_available_quantity=self.available_quantity,
                released_at=self.updated_at,
            )
        )

    def record_untracked_consumption(self, quantity, order_id=None):
        """Book a consumption for which no record existed.

        Both counters start at the negative of the consumed amount so the
        record reconciles once the missing stock receipt is entered.
        """
        self.quantity = -quantity
        self.reserved_quantity = -quantity
        self.updated_at = datetime.now(UTC)

        logger.warning("stock_record_missing_on_consume", quantity=quantity, order_id=str(order_id), **self._ids())
        self.raise_(
            StockDiscrepancyDetected(
                **self._ids(),
                order_id=str(order_id) if order_id else None,
                operation="consume",
                field_name="quantity",
                shortfall=quantity,
                detected_at=self.updated_at,
            )
        )
        self.raise_(
            StockConsumed(
                **self._ids(),
                order_id=str(order_id) if order_id else None,
                quantity=quantity,
                new_quantity=self.quantity,
                new_reserved_quantity=self.reserved_quantity,
                consumed_at=self.updated_at,
            )
        )

    # -------------------------------------------------------------------
    # Adjustments
    # -------------------------------------------------------------------
    def adjust(self, quantity_change, reason, reference_id=None):
        """Apply a signed change to on-hand quantity."""
        if quantity_change == 0:
            raise ValidationError({"quantity_change": ["Quantity change must not be zero"]})

        new_quantity = (self.quantity or 0) + quantity_change
        if new_quantity < 0:
            raise ValidationError(
                {"quantity_change": [f"Insufficient stock: {self.quantity} on hand, change {quantity_change}"]}
            )

        self.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockAdjusted(
                **self._ids(),
                quantity_change=quantity_change,
                reason=reason,
                reference_id=str(reference_id) if reference_id else None,
                new_quantity=self.quantity,
                adjusted_at=self.updated_at,
            )
        )


@commerce.repository(part_of=StockRecord)
class StockRecordRepository:
    def find_for(self, variant_id, organization_id, location_id) -> StockRecord | None:
        """Find the record for a (variant, organization, location) key, if any."""
        records = self._dao.query.filter(
            variant_id=str(variant_id),
            organization_id=str(organization_id),
            location_id=str(location_id),
        ).all().items
        return records[0] if records else None
