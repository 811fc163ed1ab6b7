"""Reservation service. Translates order lines into stock ledger mutations.

All four operations must run inside the caller's unit of work, after the
caller has taken the row locks for every (variant, location) they touch:
``check_and_price`` reads the same rows ``reserve`` later writes, and only
the lock keeps another order from reserving in between.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from commerce.catalogue.product import get_product, get_variant
from commerce.errors import InsufficientStock
from commerce.shared.money import ZERO, as_amount, quantize, to_decimal
from commerce.stock.stock import StockRecord
from commerce.stock.transactions import StockTransaction, StockTransactionReason
from commerce.utils.locks import stock_key

logger = structlog.get_logger(__name__)


@dataclass
class PricedLine:
    variant_id: str
    location_id: str
    quantity: int
    sku: str
    product_name: str
    unit_price: Decimal
    total_price: Decimal

    def as_item_data(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "location_id": self.location_id,
            "quantity": self.quantity,
            "sku": self.sku,
            "product_name": self.product_name,
            "unit_price": as_amount(self.unit_price),
            "total_price": as_amount(self.total_price),
        }


@dataclass
class PricedOrder:
    subtotal: Decimal = ZERO
    lines: list[PricedLine] = field(default_factory=list)


def normalize_lines(items, default_location_id=None) -> list[dict]:
    """Validate raw order lines before anything is read or written.

    A line without its own location falls back to ``default_location_id``.
    """
    if not items:
        raise ValidationError({"items": ["An order needs at least one item"]})

    lines = []
    for index, item in enumerate(items):
        variant_id = item.get("variant_id") or item.get("product_variant_id")
        location_id = item.get("location_id") or default_location_id
        quantity = item.get("quantity")

        if not variant_id:
            raise ValidationError({"items": [f"Item {index}: product variant is required"]})
        if not location_id:
            raise ValidationError({"items": [f"Location ID is required for product variant {variant_id}"]})
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError({"items": [f"Quantity must be a positive integer for product variant {variant_id}"]})

        lines.append({"variant_id": str(variant_id), "location_id": str(location_id), "quantity": quantity})
    return lines


def lock_keys_for(organization_id, lines) -> list[str]:
    return [stock_key(organization_id, line["variant_id"], line["location_id"]) for line in lines]


def _merge(lines) -> "OrderedDict[tuple[str, str], int]":
    """Sum quantities of lines that target the same (variant, location)."""
    merged = OrderedDict()
    for line in lines:
        key = (str(line["variant_id"]), str(line["location_id"]))
        merged[key] = merged.get(key, 0) + line["quantity"]
    return merged


class ReservationService:
    def __init__(self, organization_id):
        self.organization_id = str(organization_id)
        self.repo = current_domain.repository_for(StockRecord)

    def _record(self, variant_id, location_id):
        return self.repo.find_for(variant_id, self.organization_id, location_id)

    def check_and_price(self, lines) -> PricedOrder:
        """Price every line and enforce the oversell guard. Read-only.

        Availability is checked cumulatively: two lines for the same variant
        and location must fit into the available quantity together.
        """
        priced = PricedOrder()
        claimed: dict[tuple[str, str], int] = {}

        for line in lines:
            variant = get_variant(line["variant_id"])
            product = get_product(variant.product_id)
            product_name = product.name or "Unknown Product"

            key = (line["variant_id"], line["location_id"])
            record = self._record(*key)
            available = record.available_quantity if record else 0
            remaining = available - claimed.get(key, 0)

            if remaining < line["quantity"] and not product.allow_backorders:
                logger.info(
                    "insufficient_stock",
                    variant_id=line["variant_id"],
                    location_id=line["location_id"],
                    available=remaining,
                    requested=line["quantity"],
                )
                raise InsufficientStock(
                    variant_id=variant.id,
                    sku=variant.sku,
                    available=remaining,
                    requested=line["quantity"],
                    product_name=product_name,
                )
            claimed[key] = claimed.get(key, 0) + line["quantity"]

            unit_price = to_decimal(variant.price)
            total_price = quantize(unit_price * line["quantity"])
            priced.subtotal = quantize(priced.subtotal + total_price)
            priced.lines.append(
                PricedLine(
                    variant_id=str(variant.id),
                    location_id=line["location_id"],
                    quantity=line["quantity"],
                    sku=variant.sku,
                    product_name=product_name,
                    unit_price=unit_price,
                    total_price=total_price,
                )
            )

        return priced

    def reserve(self, items, order_id=None) -> None:
        """Add each line's quantity to ``reserved_quantity``, creating records as needed."""
        for (variant_id, location_id), quantity in _merge(items).items():
            record = self._record(variant_id, location_id)
            if record is None:
                record = StockRecord.create(
                    variant_id=variant_id,
                    organization_id=self.organization_id,
                    location_id=location_id,
                )
            record.reserve(quantity, order_id)
            self.repo.add(record)

    def consume(self, items, order_id=None) -> None:
        """Take completed lines out of both ``quantity`` and ``reserved_quantity``.

        Each line is also booked as a ``sale`` stock transaction at its
        selling price.
        """
        for (variant_id, location_id), quantity in _merge(items).items():
            record = self._record(variant_id, location_id)
            if record is None:
                record = StockRecord.create(
                    variant_id=variant_id,
                    organization_id=self.organization_id,
                    location_id=location_id,
                )
                record.record_untracked_consumption(quantity, order_id)
            else:
                record.consume(quantity, order_id)
            self.repo.add(record)

        transactions = current_domain.repository_for(StockTransaction)
        for item in items:
            transactions.add(
                StockTransaction.record(
                    variant_id=item["variant_id"],
                    organization_id=self.organization_id,
                    location_id=item["location_id"],
                    quantity_change=-item["quantity"],
                    reason=StockTransactionReason.SALE.value,
                    reference_id=order_id,
                    unit_cost=item.get("unit_price"),
                )
            )

    def release(self, items, order_id=None) -> None:
        """Return cancelled lines to availability; on-hand quantity is untouched."""
        for (variant_id, location_id), quantity in _merge(items).items():
            record = self._record(variant_id, location_id)
            if record is None:
                logger.warning(
                    "stock_record_missing_on_release",
                    variant_id=variant_id,
                    location_id=location_id,
                    organization_id=self.organization_id,
                    order_id=str(order_id) if order_id else None,
                )
                continue
            record.release(quantity, order_id)
            self.repo.add(record)
