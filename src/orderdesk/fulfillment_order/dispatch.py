"""Command surface for fulfillment orders.

Every caller (API routes, the bulk executor, pick sessions) goes through
``dispatch`` so that commands for one order never interleave.
"""

import structlog
from protean.utils.globals import current_domain

from orderdesk.fulfillment_order.locking import order_lock
from orderdesk.utils.logging import bound_context

logger = structlog.get_logger(__name__)


def dispatch(command):
    """Process ``command`` synchronously under its order's lock and return the handler result."""
    order_id = getattr(command, "order_id", None)
    if not order_id:
        return current_domain.process(command, asynchronous=False)

    with bound_context(order_id=str(order_id), command=type(command).__name__):
        with order_lock(order_id):
            result = current_domain.process(command, asynchronous=False)
        logger.debug("Command processed")
    return result
