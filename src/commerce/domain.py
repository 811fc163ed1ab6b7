"""Commerce bounded context: order fulfillment and inventory reservation.

Handles the order lifecycle (create, complete, cancel) together with the two
shared ledgers it drives: per-location stock reservations and the per-user
loyalty bonus ledger. Every lifecycle operation runs as one unit of work.
"""

from protean.domain import Domain

from commerce.utils.logging import configure_logging

configure_logging()

commerce = Domain(name="commerce")
