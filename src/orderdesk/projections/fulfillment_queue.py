"""Fulfillment queue: the order list operators work from.

One row per fulfillment order, kept current by every order event. The
query helpers implement the list screen's filters, free-text search and
pagination.
"""

import math

from protean.core.projector import on
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.events import (
    CancellationAccepted,
    CancellationRejected,
    CancellationRequested,
    FulfillmentCreated,
    FulfillmentOrderHeld,
    FulfillmentOrderIngested,
    FulfillmentOrderReleased,
    FulfillmentOrderStatusChanged,
    FulfillmentRequestAccepted,
    FulfillmentRequestRejected,
    FulfillmentRequestSubmitted,
    LocationChanged,
    TrackingUpdated,
)
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder, RequestStatus


@orderdesk.projection
class FulfillmentQueueView:
    order_id = Identifier(identifier=True, required=True)
    order_number = String()
    customer_name = String()
    channel_name = String()
    status = String(required=True)
    request_status = String(required=True)
    hold_reason = String()
    location_id = String()
    location_name = String()
    item_count = Integer(default=0)
    fulfillment_count = Integer(default=0)
    tracking_number = String()
    carrier_name = String()
    created_at = DateTime()
    updated_at = DateTime()
    fulfilled_at = DateTime()


def _update(order_id, timestamp, **changes):
    repo = current_domain.repository_for(FulfillmentQueueView)
    view = repo.get(order_id)
    for name, value in changes.items():
        setattr(view, name, value)
    view.updated_at = timestamp
    repo.add(view)


@orderdesk.projector(projector_for=FulfillmentQueueView, aggregates=[FulfillmentOrder])
class FulfillmentQueueProjector:
    @on(FulfillmentOrderIngested)
    def on_ingested(self, event):
        current_domain.repository_for(FulfillmentQueueView).add(
            FulfillmentQueueView(
                order_id=event.order_id,
                order_number=event.order_number,
                customer_name=event.customer_name,
                channel_name=event.channel_name,
                status=event.status,
                request_status=event.request_status,
                item_count=event.item_count,
                fulfillment_count=0,
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    @on(FulfillmentOrderStatusChanged)
    def on_status_changed(self, event):
        _update(event.order_id, event.changed_at, status=event.new_status)

    @on(FulfillmentOrderHeld)
    def on_held(self, event):
        _update(event.order_id, event.held_at, status="ON_HOLD", hold_reason=event.reason)

    @on(FulfillmentOrderReleased)
    def on_released(self, event):
        _update(event.order_id, event.released_at, status=event.restored_status, hold_reason=None)

    @on(FulfillmentCreated)
    def on_fulfillment_created(self, event):
        repo = current_domain.repository_for(FulfillmentQueueView)
        view = repo.get(event.order_id)
        view.status = event.new_status
        view.fulfillment_count = (view.fulfillment_count or 0) + 1
        view.fulfilled_at = event.fulfilled_at
        if event.tracking_number:
            view.tracking_number = event.tracking_number
            view.carrier_name = event.carrier_name
        view.updated_at = event.fulfilled_at
        repo.add(view)

    @on(TrackingUpdated)
    def on_tracking_updated(self, event):
        _update(
            event.order_id,
            event.updated_at,
            tracking_number=event.tracking_number,
            carrier_name=event.carrier_name,
        )

    @on(LocationChanged)
    def on_location_changed(self, event):
        _update(
            event.order_id,
            event.changed_at,
            location_id=event.location_id,
            location_name=event.location_name,
        )

    @on(FulfillmentRequestSubmitted)
    def on_request_submitted(self, event):
        _update(event.order_id, event.submitted_at, request_status=RequestStatus.SUBMITTED.value)

    @on(FulfillmentRequestAccepted)
    def on_request_accepted(self, event):
        _update(event.order_id, event.accepted_at, request_status=RequestStatus.ACCEPTED.value)

    @on(FulfillmentRequestRejected)
    def on_request_rejected(self, event):
        _update(event.order_id, event.rejected_at, request_status=RequestStatus.REJECTED.value)

    @on(CancellationRequested)
    def on_cancellation_requested(self, event):
        _update(
            event.order_id,
            event.requested_at,
            request_status=RequestStatus.CANCELLATION_REQUESTED.value,
        )

    @on(CancellationAccepted)
    def on_cancellation_accepted(self, event):
        _update(
            event.order_id,
            event.accepted_at,
            request_status=RequestStatus.CANCELLATION_ACCEPTED.value,
            status="CANCELLED",
            hold_reason=None,
        )

    @on(CancellationRejected)
    def on_cancellation_rejected(self, event):
        _update(
            event.order_id,
            event.rejected_at,
            request_status=RequestStatus.CANCELLATION_REJECTED.value,
        )


def _matches(view, search: str) -> bool:
    needle = search.strip().lower()
    haystack = (
        view.order_number,
        view.customer_name,
        view.channel_name,
        view.tracking_number,
        str(view.order_id),
    )
    return any(needle in (value or "").lower() for value in haystack)


def list_queue(
    status: str | None = None,
    request_status: str | None = None,
    location_id: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """Filter, search and paginate the queue, newest orders first."""
    filters = {}
    if status:
        filters["status"] = status
    if request_status:
        filters["request_status"] = request_status
    if location_id:
        filters["location_id"] = location_id

    query = current_domain.repository_for(FulfillmentQueueView)._dao.query
    if filters:
        query = query.filter(**filters)
    rows = list(query.limit(None).all().items)

    if search and search.strip():
        rows = [row for row in rows if _matches(row, search)]
    rows.sort(key=lambda row: (row.created_at is not None, row.created_at), reverse=True)

    page = max(1, page)
    limit = max(1, limit)
    total = len(rows)
    start = (page - 1) * limit
    return {
        "orders": rows[start : start + limit],
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / limit) if total else 0,
    }
