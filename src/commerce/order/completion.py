"""Order completion: consumes reserved stock and confirms pending bonus."""

import structlog
from protean import UnitOfWork, handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from commerce.bonus.accrual import BonusAccrualService
from commerce.config import get_settings
from commerce.domain import commerce
from commerce.order.order import Order
from commerce.stock.reservation import ReservationService, lock_keys_for
from commerce.utils.locks import bonus_key, order_key, row_locks
from commerce.utils.logging import log_context

logger = structlog.get_logger(__name__)


def lifecycle_lock_keys(order_id, organization_id) -> list[str]:
    """Every row a complete or cancel of the order reads and writes.

    Order items never change after creation, so the keys are read in a
    short unit of work of their own, before any lock is taken.
    """
    with UnitOfWork():
        order = current_domain.repository_for(Order).get_for_organization(order_id, organization_id)

    keys = [order_key(order.id), *lock_keys_for(str(order.organization_id), order.item_lines())]
    if order.user_id:
        keys.append(bonus_key(str(order.organization_id), order.user_id))
    return keys


@commerce.command(part_of="Order")
class CompleteOrder:
    order_id = Identifier(required=True)
    organization_id = Identifier(required=True)


@commerce.command_handler(part_of=Order)
class CompleteOrderHandler:
    @handle(CompleteOrder)
    def complete_order(self, command):
        with log_context(order_id=str(command.order_id), organization_id=str(command.organization_id)):
            repo = current_domain.repository_for(Order)
            keys = lifecycle_lock_keys(command.order_id, command.organization_id)

            with row_locks.hold(keys, timeout=get_settings().lock_timeout), UnitOfWork():
                order = repo.get_for_organization(command.order_id, command.organization_id)
                order.complete()
                repo.add(order)

                ReservationService(order.organization_id).consume(order.item_lines(), order_id=str(order.id))
                if order.user_id:
                    BonusAccrualService(order.organization_id).confirm(
                        str(order.user_id), str(order.id), order.total_amount
                    )

            logger.info("order_completed", total_amount=order.total_amount)
            return str(order.id)
