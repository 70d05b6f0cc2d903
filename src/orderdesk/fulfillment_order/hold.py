"""Hold and release: commands and handler.

A hold blocks fulfillment until it is released. The status in effect when
the hold was placed is restored on release.
"""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder


@orderdesk.command(part_of="FulfillmentOrder")
class PlaceHold:
    """Put an order on hold. The reason is validated by the aggregate."""

    order_id = Identifier(required=True)
    reason = String(max_length=30)
    notes = Text()
    performed_by = String(max_length=100)


@orderdesk.command(part_of="FulfillmentOrder")
class ReleaseHold:
    order_id = Identifier(required=True)
    performed_by = String(max_length=100)


@orderdesk.command_handler(part_of=FulfillmentOrder)
class HoldHandler:
    @handle(PlaceHold)
    def place_hold(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.place_hold(command.reason, notes=command.notes, performed_by=command.performed_by)
        repo.add(order)

    @handle(ReleaseHold)
    def release_hold(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.release_hold(performed_by=command.performed_by)
        repo.add(order)
