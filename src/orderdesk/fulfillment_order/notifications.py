"""Best-effort notifications triggered by fulfillment order events.

Runs after the transition is committed. Adapter errors are logged and
swallowed: a notification failure never undoes a fulfillment or a
request submission.
"""

import structlog
from protean.utils.mixins import handle

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.events import (
    FulfillmentCreated,
    FulfillmentRequestSubmitted,
    TrackingUpdated,
)
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder
from orderdesk.notifier import get_notifier

logger = structlog.get_logger(__name__)


@orderdesk.event_handler(part_of=FulfillmentOrder)
class OrderNotificationHandler:
    """Sends shipment and request notifications via the notifier adapter."""

    @handle(FulfillmentCreated)
    def on_fulfillment_created(self, event: FulfillmentCreated) -> None:
        if not event.notify_customer:
            return
        body = "Your order has been shipped."
        if event.tracking_number:
            body += f" Tracking number: {event.tracking_number}"
            if event.tracking_url:
                body += f" ({event.tracking_url})"
        self._send_customer(event.order_id, event.customer_email, "Your order is on its way", body)

    @handle(TrackingUpdated)
    def on_tracking_updated(self, event: TrackingUpdated) -> None:
        if not event.notify_customer:
            return
        body = f"Tracking number: {event.tracking_number}"
        if event.carrier_name:
            body += f" via {event.carrier_name}"
        if event.tracking_url:
            body += f" ({event.tracking_url})"
        self._send_customer(event.order_id, event.customer_email, "Shipment tracking updated", body)

    @handle(FulfillmentRequestSubmitted)
    def on_request_submitted(self, event: FulfillmentRequestSubmitted) -> None:
        if not event.notify_merchant:
            return
        try:
            result = get_notifier().notify_merchant(
                str(event.order_id),
                "Fulfillment request submitted",
                event.message or "A fulfillment request is awaiting review.",
            )
        except Exception as e:
            logger.warning("Merchant notification failed", order_id=str(event.order_id), error=str(e))
            return
        self._log_result("merchant", event.order_id, result)

    def _send_customer(self, order_id, email, subject, body):
        try:
            result = get_notifier().notify_customer(str(order_id), email, subject, body)
        except Exception as e:
            logger.warning("Customer notification failed", order_id=str(order_id), error=str(e))
            return
        self._log_result("customer", order_id, result)

    @staticmethod
    def _log_result(audience, order_id, result):
        if result.get("status") == "sent":
            logger.info("Notification sent", audience=audience, order_id=str(order_id))
        else:
            logger.warning(
                "Notification not delivered",
                audience=audience,
                order_id=str(order_id),
                error=result.get("error"),
            )
