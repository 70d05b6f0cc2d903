"""Status progression: command and handler."""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder


@orderdesk.command(part_of="FulfillmentOrder")
class ChangeStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    notes = Text()
    performed_by = String(max_length=100)


@orderdesk.command_handler(part_of=FulfillmentOrder)
class ChangeStatusHandler:
    @handle(ChangeStatus)
    def change_status(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.change_status(command.status, notes=command.notes, performed_by=command.performed_by)
        repo.add(order)
