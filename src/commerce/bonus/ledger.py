"""Bonus ledger: the per (user, organization) loyalty balance and its entries.

The BonusLedger keeps two running totals: ``bonus_pending`` for orders that
are not yet completed and ``bonus`` for confirmed, spendable value. Each
accrual is also recorded as a BonusEntry so completion and cancellation can
move exactly the amount that was credited.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String

from commerce.bonus.events import BonusAccrued, BonusConfirmed, BonusReversed
from commerce.domain import commerce
from commerce.shared.money import as_amount, to_decimal


class BonusEntryStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@commerce.aggregate
class BonusLedger:
    user_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    bonus = Float(default=0.0)
    bonus_pending = Float(default=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def open(cls, user_id, organization_id):
        now = datetime.now(UTC)
        return cls(
            user_id=user_id,
            organization_id=organization_id,
            bonus=0.0,
            bonus_pending=0.0,
            created_at=now,
            updated_at=now,
        )

    def _ids(self):
        return {
            "ledger_id": str(self.id),
            "user_id": str(self.user_id),
            "organization_id": str(self.organization_id),
        }

    def accrue_pending(self, amount, order_id=None):
        self.bonus_pending = as_amount(to_decimal(self.bonus_pending) + to_decimal(amount))
        self.updated_at = datetime.now(UTC)

        self.raise_(
            BonusAccrued(
                **self._ids(),
                order_id=str(order_id) if order_id else None,
                amount=as_amount(to_decimal(amount)),
                new_bonus_pending=self.bonus_pending,
                accrued_at=self.updated_at,
            )
        )

    def confirm(self, amount, order_id=None):
        """Move ``amount`` from pending to confirmed bonus."""
        self.bonus_pending = as_amount(to_decimal(self.bonus_pending) - to_decimal(amount))
        self.bonus = as_amount(to_decimal(self.bonus) + to_decimal(amount))
        self.updated_at = datetime.now(UTC)

        self.raise_(
            BonusConfirmed(
                **self._ids(),
                order_id=str(order_id) if order_id else None,
                amount=as_amount(to_decimal(amount)),
                new_bonus=self.bonus,
                new_bonus_pending=self.bonus_pending,
                confirmed_at=self.updated_at,
            )
        )

    def reverse_pending(self, amount, order_id=None):
        """Withdraw ``amount`` from pending bonus. Not floored at zero."""
        self.bonus_pending = as_amount(to_decimal(self.bonus_pending) - to_decimal(amount))
        self.updated_at = datetime.now(UTC)

        self.raise_(
            BonusReversed(
                **self._ids(),
                order_id=str(order_id) if order_id else None,
                amount=as_amount(to_decimal(amount)),
                new_bonus_pending=self.bonus_pending,
                reversed_at=self.updated_at,
            )
        )


@commerce.repository(part_of=BonusLedger)
class BonusLedgerRepository:
    def find_for(self, user_id, organization_id) -> BonusLedger | None:
        ledgers = self._dao.query.filter(user_id=str(user_id), organization_id=str(organization_id)).all().items
        return ledgers[0] if ledgers else None


@commerce.aggregate
class BonusEntry:
    """The bonus credited for one order, kept for exact reversal and audit."""

    ledger_id = Identifier(required=True)
    user_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    percentage = Integer(default=0)
    status = String(choices=BonusEntryStatus, default=BonusEntryStatus.PENDING.value)
    created_at = DateTime()
    settled_at = DateTime()

    def _settle(self, status):
        if BonusEntryStatus(self.status) != BonusEntryStatus.PENDING:
            raise ValidationError({"status": [f"Bonus entry for order {self.order_id} is already {self.status}"]})
        self.status = status.value
        self.settled_at = datetime.now(UTC)

    def confirm(self):
        self._settle(BonusEntryStatus.CONFIRMED)

    def cancel(self):
        self._settle(BonusEntryStatus.CANCELLED)


@commerce.repository(part_of=BonusEntry)
class BonusEntryRepository:
    def find_for_order(self, order_id) -> BonusEntry | None:
        entries = self._dao.query.filter(order_id=str(order_id)).all().items
        return entries[0] if entries else None
