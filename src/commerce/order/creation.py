"""Order creation command and handler.

Creating an order prices its lines, reserves stock for them and, for a
known customer, accrues pending bonus. All of it commits together or not
at all.
"""

import json
import random
import time

import structlog
from protean import UnitOfWork, handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.bonus.accrual import BonusAccrualService
from commerce.config import get_settings
from commerce.domain import commerce
from commerce.order.customer import resolve_contact, user_id_of
from commerce.order.order import Order
from commerce.shared.money import as_amount
from commerce.stock.reservation import ReservationService, lock_keys_for, normalize_lines
from commerce.utils.locks import bonus_key, row_locks
from commerce.utils.logging import log_context

logger = structlog.get_logger(__name__)


def generate_order_number() -> str:
    return f"ORD-{int(time.time() * 1000)}-{random.randint(0, 999)}"


def _loads(value):
    return json.loads(value) if isinstance(value, str) else value


@commerce.command(part_of="Order")
class CreateOrder:
    organization_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{variant_id, quantity, location_id?}]
    shipping_address = Text(required=True)  # JSON: address dict
    currency = String(max_length=3, default="USD")
    customer_email = String(max_length=255)
    customer_phone = String(max_length=50)
    customer_full_name = String(max_length=255)
    location_id = Identifier()
    customer = Text()  # JSON: identity of the ordering user, if any


@commerce.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        organization_id = str(command.organization_id)
        with log_context(organization_id=organization_id):
            return self._create(command, organization_id)

    def _create(self, command, organization_id):
        customer = _loads(command.customer) if command.customer else None
        user_id = user_id_of(customer)

        lines = normalize_lines(_loads(command.items), command.location_id)
        keys = lock_keys_for(organization_id, lines)
        if user_id:
            keys.append(bonus_key(organization_id, user_id))

        with row_locks.hold(keys, timeout=get_settings().lock_timeout), UnitOfWork():
            reservations = ReservationService(organization_id)
            priced = reservations.check_and_price(lines)

            order = Order.create(
                organization_id=organization_id,
                order_number=generate_order_number(),
                items_data=[line.as_item_data() for line in priced.lines],
                subtotal=as_amount(priced.subtotal),
                shipping_address=_loads(command.shipping_address),
                currency=command.currency,
                user_id=user_id,
                location_id=command.location_id,
                contact=resolve_contact(
                    customer,
                    email=command.customer_email,
                    phone=command.customer_phone,
                    full_name=command.customer_full_name,
                ),
            )
            current_domain.repository_for(Order).add(order)

            reservations.reserve(lines, order_id=str(order.id))
            if user_id:
                BonusAccrualService(organization_id).accrue_pending(user_id, str(order.id), priced.subtotal)

        logger.info(
            "order_created",
            order_id=str(order.id),
            order_number=order.order_number,
            subtotal=order.subtotal,
            item_count=len(lines),
        )
        return str(order.id)
