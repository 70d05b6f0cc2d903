"""Fulfillment order domain events: immutable facts about order changes.

All events are past tense, versioned, and carry the resulting state so the
queue projection and the notification handler never need to reload the
aggregate.
"""

from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from orderdesk.domain import orderdesk


@orderdesk.event(part_of="FulfillmentOrder")
class FulfillmentOrderIngested:
    """An upstream channel order was ingested as a fulfillment order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String()
    customer_name = String()
    channel_name = String()
    status = String(required=True)
    request_status = String(required=True)
    item_count = Integer(required=True)
    created_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class FulfillmentOrderStatusChanged:
    """The order progressed to a new status."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class FulfillmentOrderHeld:
    """The order was placed on hold."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String(required=True)
    notes = Text()
    held_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class FulfillmentOrderReleased:
    """The hold was lifted and the prior status restored."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    restored_status = String(required=True)
    released_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class FulfillmentCreated:
    """Items of the order were fulfilled."""

    __version__ = 1

    order_id = Identifier(required=True)
    fulfillment_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    line_items = Text(required=True)  # JSON list of {line_item_id, quantity}
    tracking_number = String()
    carrier_name = String()
    tracking_url = String()
    notify_customer = Boolean(default=False)
    customer_email = String()
    fulfilled_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class TrackingUpdated:
    """Tracking details were added or replaced."""

    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    previous_tracking_number = String()
    carrier_name = String()
    tracking_url = String()
    notify_customer = Boolean(default=False)
    customer_email = String()
    updated_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class LocationChanged:
    """The order was moved to another warehouse location."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_location_id = String()
    location_id = String(required=True)
    location_name = String()
    changed_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class FulfillmentRequestSubmitted:
    """The merchant submitted the order to the 3PL."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_request_status = String(required=True)
    message = Text()
    notify_merchant = Boolean(default=False)
    submitted_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class FulfillmentRequestAccepted:
    """The 3PL accepted the fulfillment request."""

    __version__ = 1

    order_id = Identifier(required=True)
    message = Text()
    accepted_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class FulfillmentRequestRejected:
    """The 3PL rejected the fulfillment request."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    message = Text()
    rejected_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class CancellationRequested:
    """The merchant asked the 3PL to cancel an accepted request."""

    __version__ = 1

    order_id = Identifier(required=True)
    message = Text()
    requested_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class CancellationAccepted:
    """The 3PL accepted the cancellation; the order is cancelled."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    message = Text()
    accepted_at = DateTime(required=True)


@orderdesk.event(part_of="FulfillmentOrder")
class CancellationRejected:
    """The 3PL rejected the cancellation; processing continues."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    message = Text()
    rejected_at = DateTime(required=True)
