"""Order cancellation: releases reservations and withdraws pending bonus."""

import structlog
from protean import UnitOfWork, handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.bonus.accrual import BonusAccrualService
from commerce.config import get_settings
from commerce.domain import commerce
from commerce.order.completion import lifecycle_lock_keys
from commerce.order.order import Order
from commerce.stock.reservation import ReservationService
from commerce.utils.locks import row_locks
from commerce.utils.logging import log_context

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    reason = String(max_length=500)


@commerce.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        with log_context(order_id=str(command.order_id), organization_id=str(command.organization_id)):
            repo = current_domain.repository_for(Order)
            keys = lifecycle_lock_keys(command.order_id, command.organization_id)

            with row_locks.hold(keys, timeout=get_settings().lock_timeout), UnitOfWork():
                order = repo.get_for_organization(command.order_id, command.organization_id)
                order.cancel(command.reason)
                repo.add(order)

                ReservationService(order.organization_id).release(order.item_lines(), order_id=str(order.id))
                if order.user_id:
                    BonusAccrualService(order.organization_id).reverse(
                        str(order.user_id), str(order.id), order.total_amount
                    )

            logger.info("order_cancelled", reason=command.reason)
            return str(order.id)
