"""3PL cancellation handshake: commands and handler.

Only an accepted fulfillment request can be cancelled. Accepting the
cancellation cancels the order.
"""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder


@orderdesk.command(part_of="FulfillmentOrder")
class RequestCancellation:
    order_id = Identifier(required=True)
    message = Text()
    performed_by = String(max_length=100)


@orderdesk.command(part_of="FulfillmentOrder")
class AcceptCancellation:
    order_id = Identifier(required=True)
    message = Text()
    performed_by = String(max_length=100)


@orderdesk.command(part_of="FulfillmentOrder")
class RejectCancellation:
    order_id = Identifier(required=True)
    reason = String(max_length=255)
    message = Text()
    performed_by = String(max_length=100)


@orderdesk.command_handler(part_of=FulfillmentOrder)
class CancellationHandler:
    @handle(RequestCancellation)
    def request_cancellation(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.request_cancellation(message=command.message, performed_by=command.performed_by)
        repo.add(order)

    @handle(AcceptCancellation)
    def accept_cancellation(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.accept_cancellation(message=command.message, performed_by=command.performed_by)
        repo.add(order)

    @handle(RejectCancellation)
    def reject_cancellation(self, command):
        repo = current_domain.repository_for(FulfillmentOrder)
        order = repo.get(command.order_id)
        order.reject_cancellation(command.reason, message=command.message, performed_by=command.performed_by)
        repo.add(order)
