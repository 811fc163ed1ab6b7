"""Application tests for AdjustStock and stock level queries."""

import pytest
from commerce.stock.transactions import AdjustStock, StockTransaction, get_stock_levels
from protean import current_domain
from protean.exceptions import ValidationError


def _adjust(quantity_change, reason="purchase", **extra):
    return current_domain.process(
        AdjustStock(
            variant_id="var-001",
            organization_id="org-001",
            location_id="loc-001",
            quantity_change=quantity_change,
            reason=reason,
            **extra,
        ),
        asynchronous=False,
    )


class TestAdjustStock:
    def test_purchase_creates_record(self, stock_of):
        record_id = _adjust(20, reference_id="po-001", unit_cost=4.5)

        record = stock_of("var-001")
        assert str(record.id) == record_id
        assert record.quantity == 20
        assert record.reserved_quantity == 0

    def test_transaction_is_recorded(self):
        _adjust(20, reference_id="po-001", unit_cost=4.5)

        [txn] = current_domain.repository_for(StockTransaction).history_for("var-001", "org-001", "loc-001")
        assert txn.reason == "purchase"
        assert txn.quantity_change == 20
        assert txn.unit_cost == 4.5
        assert txn.reference_id == "po-001"

    def test_negative_adjustment(self, seed_stock, stock_of):
        seed_stock("var-001", quantity=10, reserved_quantity=2)

        _adjust(-3, reason="adjustment")

        record = stock_of("var-001")
        assert record.quantity == 7
        assert record.reserved_quantity == 2

    def test_adjustment_below_zero_is_refused(self, seed_stock, stock_of):
        seed_stock("var-001", quantity=2)

        with pytest.raises(ValidationError):
            _adjust(-5, reason="adjustment")

        assert stock_of("var-001").quantity == 2
        assert current_domain.repository_for(StockTransaction).history_for("var-001", "org-001", "loc-001") == []

    def test_sale_reason_is_reserved_for_orders(self):
        with pytest.raises(ValidationError):
            _adjust(-1, reason="sale")

    def test_return_reason(self, seed_stock, stock_of):
        seed_stock("var-001", quantity=1)
        _adjust(2, reason="return", reference_id="ord-001")
        assert stock_of("var-001").quantity == 3


class TestStockLevels:
    def test_missing_record_reports_zeros(self):
        assert get_stock_levels("var-001", "org-001", "loc-001") == {
            "quantity": 0,
            "reserved_quantity": 0,
            "available_quantity": 0,
        }

    def test_levels(self, seed_stock):
        seed_stock("var-001", quantity=10, reserved_quantity=4)
        assert get_stock_levels("var-001", "org-001", "loc-001") == {
            "quantity": 10,
            "reserved_quantity": 4,
            "available_quantity": 6,
        }
