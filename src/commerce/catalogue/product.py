"""Catalogue reference data consumed by order creation.

Products and variants are maintained elsewhere; the fulfillment engine only
reads them to price order lines and to decide whether a product may be sold
beyond its available stock.
"""

from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Float, Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.errors import ReferenceDataMissing


@commerce.aggregate
class Product:
    name = String(max_length=255)
    allow_backorders = Boolean(default=False)


@commerce.aggregate
class ProductVariant:
    """A purchasable SKU of a product, e.g. one size/colour combination."""

    product_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    price = Float(default=0.0, min_value=0.0)


def get_variant(variant_id) -> ProductVariant:
    try:
        return current_domain.repository_for(ProductVariant).get(variant_id)
    except ObjectNotFoundError:
        raise ReferenceDataMissing("Product variant", variant_id) from None


def get_product(product_id) -> Product:
    try:
        return current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError:
        raise ReferenceDataMissing("Product", product_id) from None
