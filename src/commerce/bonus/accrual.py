"""Bonus accrual service. Derives bonus amounts and applies ledger deltas.

Organizations configure an integer percentage (5 means 5%). Placing an order
credits ``subtotal x percentage`` to the user's pending bonus and records a
BonusEntry. Completion and cancellation then settle that entry:

- ``stored`` mode (default) moves exactly the recorded amount;
- ``recompute`` mode multiplies the order total by the percentage configured
  *now*, which drifts if the percentage changed while the order was pending.
"""

from datetime import UTC, datetime
from decimal import Decimal

import structlog
from protean.utils.globals import current_domain

from commerce.bonus.ledger import BonusEntry, BonusEntryStatus, BonusLedger
from commerce.config import BonusReversalMode, get_settings
from commerce.organization.settings import get_bonus_percentage
from commerce.shared.money import ZERO, as_amount, percentage_of, to_decimal

logger = structlog.get_logger(__name__)


class BonusAccrualService:
    def __init__(self, organization_id, reversal_mode: BonusReversalMode | None = None):
        self.organization_id = str(organization_id)
        self.reversal_mode = reversal_mode or get_settings().bonus_reversal
        self.ledgers = current_domain.repository_for(BonusLedger)
        self.entries = current_domain.repository_for(BonusEntry)

    def bonus_for(self, amount) -> Decimal:
        """Bonus earned on ``amount`` at the organization's current percentage."""
        return percentage_of(amount, get_bonus_percentage(self.organization_id))

    def accrue_pending(self, user_id, order_id, subtotal) -> Decimal:
        """Credit the pending bonus for a new order, opening the ledger if needed."""
        percentage = get_bonus_percentage(self.organization_id)
        amount = percentage_of(subtotal, percentage)

        ledger = self.ledgers.find_for(user_id, self.organization_id)
        if ledger is None:
            ledger = BonusLedger.open(user_id=user_id, organization_id=self.organization_id)
        ledger.accrue_pending(amount, order_id)
        self.ledgers.add(ledger)

        self.entries.add(
            BonusEntry(
                ledger_id=str(ledger.id),
                user_id=user_id,
                organization_id=self.organization_id,
                order_id=order_id,
                amount=as_amount(amount),
                percentage=percentage,
                status=BonusEntryStatus.PENDING.value,
                created_at=datetime.now(UTC),
            )
        )

        logger.info(
            "bonus_accrued",
            user_id=str(user_id),
            order_id=str(order_id),
            percentage=percentage,
            amount=str(amount),
        )
        return amount

    def _settlement_amount(self, entry, order_id, total_amount) -> Decimal:
        if self.reversal_mode == BonusReversalMode.RECOMPUTE:
            return self.bonus_for(total_amount)

        if entry is None:
            logger.warning("bonus_entry_missing", order_id=str(order_id), organization_id=self.organization_id)
            return self.bonus_for(total_amount)
        return to_decimal(entry.amount)

    def _pending_entry(self, order_id):
        entry = self.entries.find_for_order(order_id)
        if entry is not None and BonusEntryStatus(entry.status) != BonusEntryStatus.PENDING:
            logger.warning("bonus_entry_already_settled", order_id=str(order_id), status=entry.status)
            return None, True
        return entry, False

    def confirm(self, user_id, order_id, total_amount) -> Decimal:
        """Move an order's bonus from pending to confirmed. No-op without a ledger."""
        ledger = self.ledgers.find_for(user_id, self.organization_id)
        if ledger is None:
            logger.info("bonus_ledger_missing", user_id=str(user_id), order_id=str(order_id))
            return ZERO

        entry, settled = self._pending_entry(order_id)
        if settled:
            return ZERO

        amount = self._settlement_amount(entry, order_id, total_amount)
        ledger.confirm(amount, order_id)
        self.ledgers.add(ledger)

        if entry is not None:
            entry.confirm()
            self.entries.add(entry)

        logger.info("bonus_confirmed", user_id=str(user_id), order_id=str(order_id), amount=str(amount))
        return amount

    def reverse(self, user_id, order_id, total_amount) -> Decimal:
        """Withdraw an order's pending bonus. No-op without a ledger."""
        ledger = self.ledgers.find_for(user_id, self.organization_id)
        if ledger is None:
            logger.info("bonus_ledger_missing", user_id=str(user_id), order_id=str(order_id))
            return ZERO

        entry, settled = self._pending_entry(order_id)
        if settled:
            return ZERO

        amount = self._settlement_amount(entry, order_id, total_amount)
        ledger.reverse_pending(amount, order_id)
        self.ledgers.add(ledger)

        if entry is not None:
            entry.cancel()
            self.entries.add(entry)

        if ledger.bonus_pending < 0:
            logger.warning(
                "bonus_pending_negative",
                user_id=str(user_id),
                order_id=str(order_id),
                bonus_pending=ledger.bonus_pending,
            )

        logger.info("bonus_reversed", user_id=str(user_id), order_id=str(order_id), amount=str(amount))
        return amount
