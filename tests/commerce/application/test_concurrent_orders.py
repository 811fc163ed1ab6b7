"""Concurrent CreateOrder, CompleteOrder and CancelOrder against shared stock and bonus rows."""

import threading

import pytest
from commerce.bonus.ledger import BonusLedger
from commerce.domain import commerce
from commerce.errors import InsufficientStock, InvalidOrderTransition
from commerce.order.cancellation import CancelOrder
from commerce.order.completion import CompleteOrder
from commerce.order.order import Order
from protean import current_domain

USER = {"id": "user-001"}


def _run_together(count, work):
    """Run ``work(index)`` on ``count`` threads released at the same moment.

    Returns the outcome of each call: ``"ok"`` or the name of the exception raised.
    """
    barrier = threading.Barrier(count)
    outcomes = []
    outcomes_lock = threading.Lock()

    def runner(index):
        with commerce.domain_context():
            barrier.wait()
            try:
                work(index)
                outcome = "ok"
            except Exception as exc:
                outcome = type(exc).__name__
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=runner, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(30)
    return outcomes


@pytest.mark.slow
class TestConcurrentCreateOrder:
    def test_no_oversell_on_one_stock_row(self, seed_variant, seed_stock, stock_of, place_order):
        seed_variant("var-001", price=10.0)
        seed_stock("var-001", quantity=10)

        outcomes = _run_together(12, lambda _: place_order([{"variant_id": "var-001", "quantity": 3}]))

        assert len(outcomes) == 12
        assert outcomes.count("ok") == 10 // 3
        assert outcomes.count(InsufficientStock.__name__) == 12 - 10 // 3

        record = stock_of("var-001")
        assert record.reserved_quantity == 9
        assert record.reserved_quantity <= record.quantity
        assert len(current_domain.repository_for(Order)._dao.query.all().items) == 3

    def test_same_user_orders_share_one_ledger(
        self, seed_variant, seed_stock, bonus_percentage, stock_of, place_order
    ):
        seed_variant("var-001", price=100.0)
        seed_stock("var-001", quantity=20)
        bonus_percentage(5)

        outcomes = _run_together(10, lambda _: place_order([{"variant_id": "var-001", "quantity": 1}], user=USER))

        assert outcomes == ["ok"] * 10
        ledgers = current_domain.repository_for(BonusLedger)._dao.query.filter(user_id="user-001").all().items
        assert len(ledgers) == 1
        assert ledgers[0].bonus_pending == 50.0
        assert stock_of("var-001").reserved_quantity == 10


@pytest.mark.slow
class TestConcurrentLifecycle:
    def test_complete_and_cancel_race_has_one_winner(
        self, seed_variant, seed_stock, bonus_percentage, stock_of, place_order
    ):
        seed_variant("var-001", price=100.0)
        seed_stock("var-001", quantity=10)
        bonus_percentage(5)
        order_id = place_order([{"variant_id": "var-001", "quantity": 2}], user=USER)

        commands = [
            CompleteOrder(order_id=order_id, organization_id="org-001"),
            CancelOrder(order_id=order_id, organization_id="org-001", reason="race"),
        ]
        outcomes = _run_together(2, lambda i: current_domain.process(commands[i], asynchronous=False))

        assert sorted(outcomes) == sorted(["ok", InvalidOrderTransition.__name__])

        order = current_domain.repository_for(Order).get(order_id)
        record = stock_of("var-001")
        ledger = current_domain.repository_for(BonusLedger).find_for("user-001", "org-001")
        assert record.reserved_quantity == 0
        assert ledger.bonus_pending == 0.0
        if order.fulfillment_state == "completed":
            assert record.quantity == 8
            assert ledger.bonus == 10.0
        else:
            assert order.fulfillment_state == "cancelled"
            assert record.quantity == 10
            assert ledger.bonus == 0.0
