"""Fulfillment creation: command and handler."""

from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder, decode_json


@orderdesk.command(part_of="FulfillmentOrder")
class CreateFulfillment:
    """Fulfill some or all remaining line items of an order."""

    order_id = Identifier(required=True)
    line_items = Text()  # JSON list of {id, quantity}; empty means all remaining
    tracking_number = String(max_length=255)
    carrier = String(max_length=50)
    tracking_url = String(max_length=500)
    notify_customer = Boolean(default=False)
    message = Text()
    performed_by = String(max_length=100)


@orderdesk.command_handler(part_of=FulfillmentOrder)
class CreateFulfillmentHandler:
    @handle(CreateFulfillment)
    def create_fulfillment(self, command):
        line_items = decode_json(command.line_items, "line_items")

        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        record = order.create_fulfillment(
            line_items=line_items,
            tracking_number=command.tracking_number or None,
            carrier=command.carrier or None,
            tracking_url=command.tracking_url or None,
            notify_customer=command.notify_customer,
            message=command.message,
            performed_by=command.performed_by,
        )
        repo.add(order)
        return {
            "fulfillment_id": str(record.id),
            "status": order.status,
            "tracking_number": command.tracking_number or None,
        }
