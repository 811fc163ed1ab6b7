"""Pydantic request/response schemas for the Commerce API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CamelModel(BaseModel):
    """Request body accepting camelCase keys as well as snake_case ones."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AddressRequest(CamelModel):
    street: str | None = None
    city: str
    state: str
    postal_code: str | None = None
    country: str | None = None


class AddressSchema(BaseModel):
    street: str | None = None
    city: str
    state: str
    postal_code: str | None = None
    country: str | None = None


class OrderItemRequest(CamelModel):
    product_variant_id: str | None = None
    variant_id: str | None = None
    quantity: int
    location_id: str | None = None


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(CamelModel):
    shipping_address: AddressRequest
    items: list[OrderItemRequest]
    currency: str = Field(default="USD", max_length=3)
    customer_email: str | None = None
    customer_phone: str | None = None
    customer_full_name: str | None = None
    location_id: str | None = None


class CancelOrderRequest(CamelModel):
    reason: str | None = None


class UpdateOrderStatusRequest(CamelModel):
    status: str
    notes: str | None = None


# ---------------------------------------------------------------------------
# Stock Request Schemas
# ---------------------------------------------------------------------------
class AdjustStockRequest(CamelModel):
    quantity_change: int
    reason: str = "adjustment"
    reference_id: str | None = None
    unit_cost: float | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderItemResponse(BaseModel):
    id: str
    variant_id: str
    location_id: str
    sku: str | None = None
    product_name: str | None = None
    quantity: int
    unit_price: float
    total_price: float


class StatusChangeResponse(BaseModel):
    status: str
    previous_status: str | None = None
    notes: str | None = None
    changed_at: datetime


class OrderResponse(BaseModel):
    id: str
    order_number: str
    organization_id: str
    user_id: str | None = None
    status: str
    fulfillment_state: str
    subtotal: float
    total_amount: float
    currency: str
    location_id: str | None = None
    shipping_address: AddressSchema | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    customer_full_name: str | None = None
    cancellation_reason: str | None = None
    items: list[OrderItemResponse]
    status_history: list[StatusChangeResponse]
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StockLevelsResponse(BaseModel):
    variant_id: str
    location_id: str
    quantity: int
    reserved_quantity: int
    available_quantity: int


class StockRecordIdResponse(BaseModel):
    stock_record_id: str
