"""Shared fixtures: catalogue, stock and organization reference data."""

import json

import pytest
from commerce.catalogue.product import Product, ProductVariant
from commerce.organization.settings import ConfigureBonusPercentage
from commerce.stock.stock import StockRecord
from protean import current_domain

ORG = "org-001"
OTHER_ORG = "org-002"
LOCATION = "loc-001"

VERIFIED_USER = {
    "id": "user-001",
    "email": "ada@example.com",
    "emailVerified": True,
    "phoneNumber": "+15550100",
    "phoneNumberVerified": True,
    "firstName": "Ada",
    "lastName": "Lovelace",
    "name": "ada",
}

ADDRESS = {"street": "1 Main St", "city": "Springfield", "state": "IL", "postal_code": "62701", "country": "US"}


@pytest.fixture()
def seed_variant():
    """Factory: create a product with one variant and return the variant id."""

    def _seed(variant_id="var-001", price=10.0, sku=None, name="Widget", allow_backorders=False):
        product = Product(name=name, allow_backorders=allow_backorders)
        current_domain.repository_for(Product).add(product)
        variant = ProductVariant(id=variant_id, product_id=str(product.id), sku=sku or f"SKU-{variant_id}", price=price)
        current_domain.repository_for(ProductVariant).add(variant)
        return variant_id

    return _seed


@pytest.fixture()
def seed_stock():
    """Factory: create a stock record with the given levels."""

    def _seed(variant_id="var-001", quantity=10, reserved_quantity=0, location_id=LOCATION, organization_id=ORG):
        record = StockRecord.create(
            variant_id=variant_id,
            organization_id=organization_id,
            location_id=location_id,
            quantity=quantity,
            reserved_quantity=reserved_quantity,
        )
        current_domain.repository_for(StockRecord).add(record)
        return record

    return _seed


@pytest.fixture()
def bonus_percentage():
    """Factory: configure the organization's bonus percentage."""

    def _configure(percentage, organization_id=ORG):
        current_domain.process(
            ConfigureBonusPercentage(organization_id=organization_id, bonus_percentage=percentage),
            asynchronous=False,
        )

    return _configure


@pytest.fixture()
def stock_of():
    def _levels(variant_id="var-001", location_id=LOCATION, organization_id=ORG):
        return current_domain.repository_for(StockRecord).find_for(variant_id, organization_id, location_id)

    return _levels


@pytest.fixture()
def place_order():
    """Factory: process CreateOrder and return the order id."""
    from commerce.order.creation import CreateOrder

    def _place(items, user=None, organization_id=ORG, location_id=LOCATION, **fields):
        return current_domain.process(
            CreateOrder(
                organization_id=organization_id,
                items=json.dumps(items),
                shipping_address=json.dumps(ADDRESS),
                location_id=location_id,
                customer=json.dumps(user) if user else None,
                **fields,
            ),
            asynchronous=False,
        )

    return _place
