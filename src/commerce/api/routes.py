"""FastAPI routes for the Commerce domain: orders and stock."""

import json

from fastapi import APIRouter, Header
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from commerce.api.schemas import (
    AddressSchema,
    AdjustStockRequest,
    CancelOrderRequest,
    CreateOrderRequest,
    OrderItemResponse,
    OrderResponse,
    StatusChangeResponse,
    StockLevelsResponse,
    StockRecordIdResponse,
    UpdateOrderStatusRequest,
)
from commerce.order.cancellation import CancelOrder
from commerce.order.completion import CompleteOrder
from commerce.order.creation import CreateOrder
from commerce.order.order import Order
from commerce.order.status import UpdateOrderStatus
from commerce.stock.transactions import AdjustStock, get_stock_levels


def _user_from_header(x_user: str | None) -> dict | None:
    """Identity forwarded by the session layer as a JSON header."""
    if not x_user:
        return None
    try:
        user = json.loads(x_user)
    except json.JSONDecodeError:
        raise ValidationError({"x_user": ["X-User header must be a JSON object"]}) from None
    if not isinstance(user, dict):
        raise ValidationError({"x_user": ["X-User header must be a JSON object"]})
    return user


def _order_response(order_id, organization_id) -> OrderResponse:
    order = current_domain.repository_for(Order).get_for_organization(order_id, organization_id)
    address = order.shipping_address
    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        organization_id=str(order.organization_id),
        user_id=str(order.user_id) if order.user_id else None,
        status=order.status,
        fulfillment_state=order.fulfillment_state,
        subtotal=order.subtotal,
        total_amount=order.total_amount,
        currency=order.currency,
        location_id=str(order.location_id) if order.location_id else None,
        shipping_address=AddressSchema(
            street=address.street,
            city=address.city,
            state=address.state,
            postal_code=address.postal_code,
            country=address.country,
        )
        if address
        else None,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        customer_full_name=order.customer_full_name,
        cancellation_reason=order.cancellation_reason,
        items=[
            OrderItemResponse(
                id=str(item.id),
                variant_id=str(item.variant_id),
                location_id=str(item.location_id),
                sku=item.sku,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
            )
            for item in order.items
        ],
        status_history=[
            StatusChangeResponse(
                status=change.status,
                previous_status=change.previous_status,
                notes=change.notes,
                changed_at=change.changed_at,
            )
            for change in sorted(order.status_history, key=lambda c: c.changed_at)
        ],
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


# ---------------------------------------------------------------------------
# Orders Router
# ---------------------------------------------------------------------------
orders_router = APIRouter(prefix="/orders", tags=["orders"])


@orders_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(
    body: CreateOrderRequest,
    x_organization_id: str = Header(...),
    x_user: str | None = Header(default=None),
) -> OrderResponse:
    user = _user_from_header(x_user)
    command = CreateOrder(
        organization_id=x_organization_id,
        items=json.dumps(
            [
                {
                    "variant_id": item.variant_id or item.product_variant_id,
                    "quantity": item.quantity,
                    "location_id": item.location_id,
                }
                for item in body.items
            ]
        ),
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        currency=body.currency,
        customer_email=body.customer_email,
        customer_phone=body.customer_phone,
        customer_full_name=body.customer_full_name,
        location_id=body.location_id,
        customer=json.dumps(user) if user else None,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return _order_response(order_id, x_organization_id)


@orders_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, x_organization_id: str = Header(...)) -> OrderResponse:
    return _order_response(order_id, x_organization_id)


@orders_router.patch("/{order_id}/complete", response_model=OrderResponse)
async def complete_order(order_id: str, x_organization_id: str = Header(...)) -> OrderResponse:
    command = CompleteOrder(order_id=order_id, organization_id=x_organization_id)
    current_domain.process(command, asynchronous=False)
    return _order_response(order_id, x_organization_id)


@orders_router.patch("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    x_organization_id: str = Header(...),
) -> OrderResponse:
    command = CancelOrder(
        order_id=order_id,
        organization_id=x_organization_id,
        reason=body.reason if body else None,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(order_id, x_organization_id)


@orders_router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    x_organization_id: str = Header(...),
) -> OrderResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        organization_id=x_organization_id,
        status=body.status,
        notes=body.notes,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(order_id, x_organization_id)


# ---------------------------------------------------------------------------
# Stock Router
# ---------------------------------------------------------------------------
stock_router = APIRouter(prefix="/stock", tags=["stock"])


@stock_router.get("/{variant_id}/{location_id}", response_model=StockLevelsResponse)
async def stock_levels(variant_id: str, location_id: str, x_organization_id: str = Header(...)) -> StockLevelsResponse:
    levels = get_stock_levels(variant_id, x_organization_id, location_id)
    return StockLevelsResponse(variant_id=variant_id, location_id=location_id, **levels)


@stock_router.post("/{variant_id}/{location_id}/adjust", response_model=StockRecordIdResponse)
async def adjust_stock(
    variant_id: str,
    location_id: str,
    body: AdjustStockRequest,
    x_organization_id: str = Header(...),
) -> StockRecordIdResponse:
    command = AdjustStock(
        variant_id=variant_id,
        organization_id=x_organization_id,
        location_id=location_id,
        quantity_change=body.quantity_change,
        reason=body.reason,
        reference_id=body.reference_id,
        unit_cost=body.unit_cost,
    )
    result = current_domain.process(command, asynchronous=False)
    return StockRecordIdResponse(stock_record_id=result)
