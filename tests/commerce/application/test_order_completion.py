"""Application tests for CompleteOrder."""

import pytest
import structlog
from commerce.bonus.ledger import BonusEntry, BonusEntryStatus, BonusLedger
from commerce.errors import InvalidOrderTransition
from commerce.order.completion import CompleteOrder, lifecycle_lock_keys
from commerce.order.order import Order
from commerce.stock.reservation import ReservationService
from commerce.stock.transactions import StockTransaction
from protean import current_domain
from protean.exceptions import ObjectNotFoundError

USER = {"id": "user-001", "email": "ada@example.com", "emailVerified": True}


def _complete(order_id, organization_id="org-001"):
    return current_domain.process(
        CompleteOrder(order_id=order_id, organization_id=organization_id),
        asynchronous=False,
    )


@pytest.fixture()
def pending_order(seed_variant, seed_stock, bonus_percentage, place_order):
    seed_variant("var-001", price=100.0)
    seed_stock("var-001", quantity=10)
    bonus_percentage(5)
    return place_order([{"variant_id": "var-001", "quantity": 2}], user=USER)


class TestCompleteOrder:
    def test_order_becomes_completed(self, pending_order):
        _complete(pending_order)

        order = current_domain.repository_for(Order).get(pending_order)
        assert order.status == "completed"
        assert order.fulfillment_state == "completed"
        assert [c.status for c in sorted(order.status_history, key=lambda c: c.changed_at)] == ["pending", "completed"]

    def test_reserved_stock_is_consumed(self, pending_order, stock_of):
        _complete(pending_order)

        record = stock_of("var-001")
        assert record.quantity == 8
        assert record.reserved_quantity == 0

    def test_sale_transaction_written(self, pending_order):
        _complete(pending_order)

        [sale] = current_domain.repository_for(StockTransaction).for_reference(pending_order)
        assert sale.reason == "sale"
        assert sale.quantity_change == -2
        assert sale.unit_cost == 100.0

    def test_bonus_confirmed(self, pending_order):
        _complete(pending_order)

        ledger = current_domain.repository_for(BonusLedger).find_for("user-001", "org-001")
        assert ledger.bonus_pending == 0.0
        assert ledger.bonus == 10.0
        entry = current_domain.repository_for(BonusEntry).find_for_order(pending_order)
        assert entry.status == BonusEntryStatus.CONFIRMED.value

    def test_second_completion_is_refused(self, pending_order, stock_of):
        _complete(pending_order)

        with pytest.raises(InvalidOrderTransition):
            _complete(pending_order)

        record = stock_of("var-001")
        assert record.quantity == 8
        ledger = current_domain.repository_for(BonusLedger).find_for("user-001", "org-001")
        assert ledger.bonus == 10.0

    def test_other_organization_sees_not_found(self, pending_order, stock_of):
        with pytest.raises(ObjectNotFoundError):
            _complete(pending_order, organization_id="org-002")

        assert stock_of("var-001").reserved_quantity == 2

    def test_unknown_order(self):
        with pytest.raises(ObjectNotFoundError):
            _complete("does-not-exist")

    def test_guest_order_completes_without_ledger(self, seed_variant, seed_stock, place_order, stock_of):
        seed_variant("var-002")
        seed_stock("var-002", quantity=3)
        order_id = place_order([{"variant_id": "var-002", "quantity": 1}])

        _complete(order_id)

        assert stock_of("var-002").quantity == 2
        assert current_domain.repository_for(BonusLedger)._dao.query.all().items == []


class TestLifecycleLockKeys:
    def test_keys_cover_order_stock_and_bonus(self, pending_order):
        keys = lifecycle_lock_keys(pending_order, "org-001")

        assert f"order:{pending_order}" in keys
        assert "stock:org-001:var-001:loc-001" in keys
        assert "bonus:org-001:user-001" in keys


class TestLogContext:
    def test_order_and_organization_bound_while_handling(self, pending_order, monkeypatch):
        seen = {}
        consume = ReservationService.consume

        def recording_consume(self, lines, order_id=None):
            seen.update(structlog.contextvars.get_contextvars())
            return consume(self, lines, order_id=order_id)

        monkeypatch.setattr(ReservationService, "consume", recording_consume)
        _complete(pending_order)

        assert seen["order_id"] == pending_order
        assert seen["organization_id"] == "org-001"

    def test_context_does_not_outlive_the_command(self, pending_order):
        _complete(pending_order)
        assert "order_id" not in structlog.contextvars.get_contextvars()

    def test_context_cleared_on_failure(self, pending_order):
        _complete(pending_order)
        with pytest.raises(InvalidOrderTransition):
            _complete(pending_order)
        assert "order_id" not in structlog.contextvars.get_contextvars()
