"""Warehouse location reassignment: command and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder


@orderdesk.command(part_of="FulfillmentOrder")
class MoveToLocation:
    order_id = Identifier(required=True)
    location_id = String(max_length=100)
    location_name = String(max_length=200)
    performed_by = String(max_length=100)


@orderdesk.command_handler(part_of=FulfillmentOrder)
class MoveToLocationHandler:
    @handle(MoveToLocation)
    def move_to_location(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.move_to_location(
            command.location_id,
            location_name=command.location_name,
            performed_by=command.performed_by,
        )
        repo.add(order)
