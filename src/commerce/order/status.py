"""Display status updates (processing, shipped, delivered, ...).

These labels carry no stock or bonus effect. Completion and cancellation
go through their own commands.
"""

import structlog
from protean import UnitOfWork, handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.config import get_settings
from commerce.domain import commerce
from commerce.order.order import Order
from commerce.utils.locks import order_key, row_locks
from commerce.utils.logging import log_context

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    organization_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    notes = String(max_length=500)


@commerce.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        with log_context(order_id=str(command.order_id), organization_id=str(command.organization_id)):
            repo = current_domain.repository_for(Order)

            with row_locks.hold([order_key(command.order_id)], timeout=get_settings().lock_timeout), UnitOfWork():
                order = repo.get_for_organization(command.order_id, command.organization_id)
                order.update_status(command.status, command.notes)
                repo.add(order)

            logger.info("order_status_updated", status=order.status)
            return str(order.id)
