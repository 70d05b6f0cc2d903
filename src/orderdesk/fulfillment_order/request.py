"""3PL fulfillment request handshake: commands and handler.

The merchant submits; the fulfiller accepts or rejects. A rejected
request may be submitted again.
"""

from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder


@orderdesk.command(part_of="FulfillmentOrder")
class SubmitFulfillmentRequest:
    order_id = Identifier(required=True)
    message = Text()
    notify_merchant = Boolean(default=False)
    performed_by = String(max_length=100)


@orderdesk.command(part_of="FulfillmentOrder")
class AcceptFulfillmentRequest:
    order_id = Identifier(required=True)
    message = Text()
    performed_by = String(max_length=100)


@orderdesk.command(part_of="FulfillmentOrder")
class RejectFulfillmentRequest:
    order_id = Identifier(required=True)
    reason = String(max_length=255)
    message = Text()
    performed_by = String(max_length=100)


@orderdesk.command_handler(part_of=FulfillmentOrder)
class FulfillmentRequestHandler:
    @handle(SubmitFulfillmentRequest)
    def submit(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.submit_request(
            message=command.message,
            notify_merchant=command.notify_merchant,
            performed_by=command.performed_by,
        )
        repo.add(order)

    @handle(AcceptFulfillmentRequest)
    def accept(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.accept_request(message=command.message, performed_by=command.performed_by)
        repo.add(order)

    @handle(RejectFulfillmentRequest)
    def reject(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.reject_request(command.reason, message=command.message, performed_by=command.performed_by)
        repo.add(order)
