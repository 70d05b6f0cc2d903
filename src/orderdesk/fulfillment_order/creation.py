"""Order ingestion: command and handler.

Upstream channel orders enter the engine here as OPEN, unsubmitted
fulfillment orders.
"""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder, decode_json


@orderdesk.command(part_of="FulfillmentOrder")
class IngestOrder:
    """Create a fulfillment order from an upstream channel order."""

    order_id = Identifier()
    order_number = String(required=True, max_length=50)
    external_order_id = String(max_length=100)
    customer_name = String(max_length=200)
    customer_email = String(max_length=254)
    channel_name = String(max_length=100)
    items = Text(required=True)  # JSON list of line item dicts
    shipping_address = Text()  # JSON dict


@orderdesk.command_handler(part_of=FulfillmentOrder)
class IngestOrderHandler:
    @handle(IngestOrder)
    def ingest_order(self, command):
        items_data = decode_json(command.items, "items")
        address = decode_json(command.shipping_address, "shipping_address")

        order = FulfillmentOrder.ingest(
            order_number=command.order_number,
            line_items_data=items_data,
            shipping_address=address,
            customer_name=command.customer_name,
            customer_email=command.customer_email,
            channel_name=command.channel_name,
            external_order_id=command.external_order_id,
            order_id=command.order_id,
        )
        current_domain.repository_for(FulfillmentOrder).add(order)
        return str(order.id)
