"""Stock transaction ledger, manual adjustments and stock level queries.

Every change to on-hand quantity is also written as an append-only
StockTransaction row, so the current StockRecord snapshot can always be
reconciled against its history.
"""

from datetime import UTC, datetime
from enum import Enum

import structlog
from protean import UnitOfWork, handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.config import get_settings
from commerce.domain import commerce
from commerce.stock.stock import StockRecord
from commerce.utils.locks import row_locks, stock_key

logger = structlog.get_logger(__name__)


class StockTransactionReason(Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"


# Reasons accepted from manual adjustments; sales only come from order completion
_ADJUSTMENT_REASONS = {
    StockTransactionReason.PURCHASE.value,
    StockTransactionReason.RETURN.value,
    StockTransactionReason.ADJUSTMENT.value,
}


@commerce.aggregate
class StockTransaction:
    variant_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity_change = Integer(required=True)
    reason = String(required=True, choices=StockTransactionReason)
    reference_id = Identifier()  # order id, purchase order id, ...
    unit_cost = Float()
    created_at = DateTime()

    @classmethod
    def record(cls, variant_id, organization_id, location_id, quantity_change, reason, reference_id=None, unit_cost=None):
        return cls(
            variant_id=variant_id,
            organization_id=organization_id,
            location_id=location_id,
            quantity_change=quantity_change,
            reason=reason,
            reference_id=reference_id,
            unit_cost=unit_cost,
            created_at=datetime.now(UTC),
        )


@commerce.repository(part_of=StockTransaction)
class StockTransactionRepository:
    def history_for(self, variant_id, organization_id, location_id) -> list[StockTransaction]:
        return self._dao.query.filter(
            variant_id=str(variant_id),
            organization_id=str(organization_id),
            location_id=str(location_id),
        ).all().items

    def for_reference(self, reference_id) -> list[StockTransaction]:
        return self._dao.query.filter(reference_id=str(reference_id)).all().items


@commerce.command(part_of="StockRecord")
class AdjustStock:
    """Apply a signed change to on-hand stock (receipt, customer return, count correction)."""

    variant_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity_change = Integer(required=True)
    reason = String(required=True, max_length=50)
    reference_id = Identifier()
    unit_cost = Float()


@commerce.command_handler(part_of=StockRecord)
class AdjustStockHandler:
    @handle(AdjustStock)
    def adjust_stock(self, command):
        if command.reason not in _ADJUSTMENT_REASONS:
            raise ValidationError({"reason": [f"Unsupported adjustment reason: {command.reason}"]})

        key = stock_key(command.organization_id, command.variant_id, command.location_id)
        with row_locks.hold([key], timeout=get_settings().lock_timeout), UnitOfWork():
            repo = current_domain.repository_for(StockRecord)
            record = repo.find_for(command.variant_id, command.organization_id, command.location_id)
            if record is None:
                record = StockRecord.create(
                    variant_id=command.variant_id,
                    organization_id=command.organization_id,
                    location_id=command.location_id,
                )

            record.adjust(command.quantity_change, command.reason, command.reference_id)
            repo.add(record)

            current_domain.repository_for(StockTransaction).add(
                StockTransaction.record(
                    variant_id=command.variant_id,
                    organization_id=command.organization_id,
                    location_id=command.location_id,
                    quantity_change=command.quantity_change,
                    reason=command.reason,
                    reference_id=command.reference_id,
                    unit_cost=command.unit_cost,
                )
            )

        logger.info(
            "stock_adjusted",
            stock_record_id=str(record.id),
            quantity_change=command.quantity_change,
            reason=command.reason,
            new_quantity=record.quantity,
        )
        return str(record.id)


def get_stock_levels(variant_id, organization_id, location_id) -> dict:
    """Current levels for a key; zeros when no record exists yet."""
    record = current_domain.repository_for(StockRecord).find_for(variant_id, organization_id, location_id)
    if record is None:
        return {"quantity": 0, "reserved_quantity": 0, "available_quantity": 0}
    return {
        "quantity": record.quantity,
        "reserved_quantity": record.reserved_quantity,
        "available_quantity": record.available_quantity,
    }
