"""Domain events for the BonusLedger aggregate."""

from protean.fields import DateTime, Float, Identifier

from commerce.domain import commerce


@commerce.event(part_of="BonusLedger")
class BonusAccrued:
    """Bonus was credited to ``bonus_pending`` for a newly placed order."""

    __version__ = "v1"

    ledger_id = Identifier(required=True)
    user_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    order_id = Identifier()
    amount = Float(required=True)
    new_bonus_pending = Float(required=True)
    accrued_at = DateTime(required=True)


@commerce.event(part_of="BonusLedger")
class BonusConfirmed:
    """Pending bonus became spendable because its order was completed."""

    __version__ = "v1"

    ledger_id = Identifier(required=True)
    user_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    order_id = Identifier()
    amount = Float(required=True)
    new_bonus = Float(required=True)
    new_bonus_pending = Float(required=True)
    confirmed_at = DateTime(required=True)


@commerce.event(part_of="BonusLedger")
class BonusReversed:
    """Pending bonus was withdrawn because its order was cancelled."""

    __version__ = "v1"

    ledger_id = Identifier(required=True)
    user_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    order_id = Identifier()
    amount = Float(required=True)
    new_bonus_pending = Float(required=True)
    reversed_at = DateTime(required=True)
