"""Shared BDD fixtures and step definitions for the Commerce domain."""

import json

import pytest
from commerce.bonus.ledger import BonusLedger
from commerce.catalogue.product import Product, ProductVariant
from commerce.errors import InsufficientStock, InvalidOrderTransition
from commerce.order.cancellation import CancelOrder
from commerce.order.completion import CompleteOrder
from commerce.order.creation import CreateOrder
from commerce.organization.settings import ConfigureBonusPercentage
from commerce.stock.stock import StockRecord
from protean import current_domain
from pytest_bdd import given, parsers, then, when

ORG = "org-001"
LOCATION = "loc-001"


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def outcome():
    """Container for the last placed order id and any captured error."""
    return {"order_id": None, "error": None}


def _place(outcome, variant_id, quantity, user_id=None):
    try:
        outcome["order_id"] = current_domain.process(
            CreateOrder(
                organization_id=ORG,
                items=json.dumps([{"variant_id": variant_id, "quantity": quantity}]),
                shipping_address=json.dumps({"city": "Springfield", "state": "IL"}),
                location_id=LOCATION,
                customer=json.dumps({"id": user_id}) if user_id else None,
            ),
            asynchronous=False,
        )
    except InsufficientStock as exc:
        outcome["error"] = exc


def _stock(variant_id):
    return current_domain.repository_for(StockRecord).find_for(variant_id, ORG, LOCATION)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('variant "{variant_id}" priced at {price:f} without backorders'))
def _(variant_id, price):
    _seed_variant(variant_id, price, allow_backorders=False)


@given(parsers.cfparse('variant "{variant_id}" priced at {price:f} with backorders'))
def _(variant_id, price):
    _seed_variant(variant_id, price, allow_backorders=True)


def _seed_variant(variant_id, price, allow_backorders):
    product = Product(name=f"Product {variant_id}", allow_backorders=allow_backorders)
    current_domain.repository_for(Product).add(product)
    current_domain.repository_for(ProductVariant).add(
        ProductVariant(id=variant_id, product_id=str(product.id), sku=f"SKU-{variant_id}", price=price)
    )


@given(parsers.cfparse('location "{location_id}" holds {quantity:d} units of "{variant_id}"'))
def _(location_id, quantity, variant_id):
    current_domain.repository_for(StockRecord).add(
        StockRecord.create(variant_id=variant_id, organization_id=ORG, location_id=location_id, quantity=quantity)
    )


@given(parsers.cfparse("the organization grants a {percentage:d} percent bonus"))
@when(parsers.cfparse("the organization grants a {percentage:d} percent bonus"))
def _(percentage):
    current_domain.process(
        ConfigureBonusPercentage(organization_id=ORG, bonus_percentage=percentage),
        asynchronous=False,
    )


@given(parsers.cfparse('bonus reversal mode is "{mode}"'))
def _(mode, monkeypatch):
    monkeypatch.setenv("COMMERCE_BONUS_REVERSAL", mode)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('an order for {quantity:d} units of "{variant_id}" is placed'))
def _(outcome, quantity, variant_id):
    _place(outcome, variant_id, quantity)


@when(parsers.cfparse('customer "{user_id}" places an order for {quantity:d} units of "{variant_id}"'))
def _(outcome, user_id, quantity, variant_id):
    _place(outcome, variant_id, quantity, user_id=user_id)


@when("the order is completed")
def _(outcome):
    current_domain.process(CompleteOrder(order_id=outcome["order_id"], organization_id=ORG), asynchronous=False)


@when("the order is cancelled")
def _(outcome):
    current_domain.process(CancelOrder(order_id=outcome["order_id"], organization_id=ORG), asynchronous=False)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{variant_id}" has {quantity:d} units on hand and {reserved:d} reserved'))
def _(variant_id, quantity, reserved):
    record = _stock(variant_id)
    assert record.quantity == quantity
    assert record.reserved_quantity == reserved


@then(parsers.cfparse('"{variant_id}" has {available:d} units available'))
def _(variant_id, available):
    assert _stock(variant_id).available_quantity == available


@then(parsers.cfparse('customer "{user_id}" has {pending:f} pending and {confirmed:f} confirmed bonus'))
def _(user_id, pending, confirmed):
    ledger = current_domain.repository_for(BonusLedger).find_for(user_id, ORG)
    assert ledger.bonus_pending == pytest.approx(pending)
    assert ledger.bonus == pytest.approx(confirmed)


@then("the transition is refused")
def _(outcome):
    assert isinstance(outcome["error"], InvalidOrderTransition)
