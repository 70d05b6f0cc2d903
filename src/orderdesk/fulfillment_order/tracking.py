"""Tracking: commands and handler."""

from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder


@orderdesk.command(part_of="FulfillmentOrder")
class AddTracking:
    """Append a tracking number to a fulfilled order."""

    order_id = Identifier(required=True)
    tracking_number = String(max_length=255)
    carrier = String(max_length=50)
    tracking_url = String(max_length=500)
    notify_customer = Boolean(default=False)
    fulfillment_id = Identifier()
    performed_by = String(max_length=100)


@orderdesk.command(part_of="FulfillmentOrder")
class UpdateTracking:
    """Replace the latest tracking number of a fulfilled order."""

    order_id = Identifier(required=True)
    tracking_number = String(max_length=255)
    carrier = String(max_length=50)
    tracking_url = String(max_length=500)
    notify_customer = Boolean(default=False)
    fulfillment_id = Identifier()
    performed_by = String(max_length=100)


@orderdesk.command_handler(part_of=FulfillmentOrder)
class TrackingHandler:
    @handle(AddTracking)
    def add_tracking(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.add_tracking(
            command.tracking_number,
            carrier=command.carrier or None,
            tracking_url=command.tracking_url or None,
            notify_customer=command.notify_customer,
            fulfillment_id=command.fulfillment_id or None,
            performed_by=command.performed_by,
        )
        repo.add(order)

    @handle(UpdateTracking)
    def update_tracking(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.update_tracking(
            command.tracking_number,
            carrier=command.carrier or None,
            tracking_url=command.tracking_url or None,
            notify_customer=command.notify_customer,
            fulfillment_id=command.fulfillment_id or None,
            performed_by=command.performed_by,
        )
        repo.add(order)
