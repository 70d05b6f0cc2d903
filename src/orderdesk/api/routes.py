"""FastAPI routes for fulfillment orders."""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from orderdesk.api.schemas import (
    AuditEntryResponse,
    BulkFulfillRequest,
    BulkHoldRequest,
    BulkOperationResponse,
    BulkReleaseRequest,
    BulkTrackingRequest,
    CarrierResponse,
    ChangeStatusRequest,
    CreateFulfillmentRequest,
    DashboardStatsResponse,
    FulfillmentResponse,
    HoldRequest,
    IngestOrderRequest,
    MessageBody,
    MoveToLocationRequest,
    OrderIdResponse,
    OrderListResponse,
    OrderResponse,
    QueueRowResponse,
    RejectBody,
    StatusResponse,
    SubmitRequestBody,
    TrackingRequest,
)
from orderdesk.bulk.executor import BulkOperation, execute_bulk
from orderdesk.fulfillment_order.cancellation import (
    AcceptCancellation,
    RejectCancellation,
    RequestCancellation,
)
from orderdesk.fulfillment_order.creation import IngestOrder
from orderdesk.fulfillment_order.dispatch import dispatch
from orderdesk.fulfillment_order.fulfillment import CreateFulfillment
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder
from orderdesk.fulfillment_order.hold import PlaceHold, ReleaseHold
from orderdesk.fulfillment_order.location import MoveToLocation
from orderdesk.fulfillment_order.request import (
    AcceptFulfillmentRequest,
    RejectFulfillmentRequest,
    SubmitFulfillmentRequest,
)
from orderdesk.fulfillment_order.status import ChangeStatus
from orderdesk.fulfillment_order.tracking import AddTracking, UpdateTracking
from orderdesk.projections.dashboard_stats import dashboard_stats
from orderdesk.projections.fulfillment_queue import list_queue
from orderdesk.shared.carriers import CARRIERS

router = APIRouter(prefix="/fulfillment", tags=["fulfillment"])


def _order_response(order: FulfillmentOrder) -> OrderResponse:
    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        external_order_id=order.external_order_id,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        channel_name=order.channel_name,
        status=order.status,
        request_status=order.request_status,
        hold_reason=order.hold_reason,
        hold_notes=order.hold_notes,
        assigned_location_id=order.assigned_location_id,
        assigned_location_name=order.assigned_location_name,
        shipping_address=order.shipping_address.to_dict() if order.shipping_address else None,
        line_items=[
            {
                "id": str(item.id),
                "sku": item.sku,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "fulfilled_quantity": item.fulfilled_quantity or 0,
                "remaining_quantity": item.remaining_quantity,
                "requires_shipping": item.requires_shipping,
            }
            for item in order.line_items or []
        ],
        tracking=[
            {
                "id": str(entry.id),
                "fulfillment_id": str(entry.fulfillment_id) if entry.fulfillment_id else None,
                "tracking_number": entry.tracking_number,
                "carrier_name": entry.carrier_name,
                "tracking_url": entry.tracking_url,
                "notified_customer": entry.notified_customer,
                "recorded_at": entry.recorded_at,
            }
            for entry in sorted(order.tracking_entries or [], key=lambda e: e.sequence)
        ],
        fulfillment_count=len(order.fulfillments or []),
        created_at=order.created_at,
        updated_at=order.updated_at,
        fulfilled_at=order.fulfilled_at,
    )


def _reload(order_id: str) -> OrderResponse:
    return _order_response(current_domain.repository_for(FulfillmentOrder).get(order_id))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    status: str | None = None,
    request_status: str | None = None,
    location_id: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> OrderListResponse:
    """List the fulfillment queue with filters, search and pagination."""
    result = list_queue(
        status=status,
        request_status=request_status,
        location_id=location_id,
        search=search,
        page=page,
        limit=limit,
    )
    return OrderListResponse(
        orders=[QueueRowResponse(**row.to_dict()) for row in result["orders"]],
        total=result["total"],
        page=result["page"],
        total_pages=result["total_pages"],
    )


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return _reload(order_id)


@router.get("/orders/{order_id}/audit", response_model=list[AuditEntryResponse])
async def get_audit_trail(order_id: str) -> list[AuditEntryResponse]:
    """Audit trail of the order, oldest first."""
    order = current_domain.repository_for(FulfillmentOrder).get(order_id)
    return [
        AuditEntryResponse(
            id=str(entry.id),
            order_id=str(entry.order_id),
            action_type=entry.action_type,
            action=entry.action,
            previous_value=entry.previous_value,
            new_value=entry.new_value,
            notes=entry.notes,
            performed_by=entry.performed_by,
            performed_at=entry.performed_at,
        )
        for entry in order.audit_trail()
    ]


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats() -> DashboardStatsResponse:
    return DashboardStatsResponse(**dashboard_stats())


@router.get("/carriers", response_model=list[CarrierResponse])
async def list_carriers() -> list[CarrierResponse]:
    return [
        CarrierResponse(id=c.id, name=c.name, tracking_url_template=c.tracking_url_template)
        for c in CARRIERS.values()
    ]


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------
@router.post("/orders", status_code=201, response_model=OrderIdResponse)
async def ingest_order(body: IngestOrderRequest) -> OrderIdResponse:
    """Ingest an upstream channel order."""
    command = IngestOrder(
        order_id=body.order_id,
        order_number=body.order_number,
        external_order_id=body.external_order_id,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        channel_name=body.channel_name,
        items=json.dumps([item.model_dump() for item in body.items]),
        shipping_address=json.dumps(body.shipping_address.model_dump()) if body.shipping_address else None,
    )
    result = dispatch(command)
    return OrderIdResponse(order_id=result)


@router.put("/orders/{order_id}/status", response_model=OrderResponse)
async def change_status(order_id: str, body: ChangeStatusRequest) -> OrderResponse:
    dispatch(ChangeStatus(order_id=order_id, status=body.status, notes=body.notes))
    return _reload(order_id)


@router.post("/orders/{order_id}/hold", response_model=OrderResponse)
async def hold_order(order_id: str, body: HoldRequest) -> OrderResponse:
    """Place the order on hold. A reason is mandatory."""
    dispatch(PlaceHold(order_id=order_id, reason=body.reason, notes=body.notes))
    return _reload(order_id)


@router.post("/orders/{order_id}/release", response_model=OrderResponse)
async def release_order(order_id: str) -> OrderResponse:
    dispatch(ReleaseHold(order_id=order_id))
    return _reload(order_id)


@router.post("/orders/{order_id}/move", response_model=OrderResponse)
async def move_order(order_id: str, body: MoveToLocationRequest) -> OrderResponse:
    dispatch(
        MoveToLocation(
            order_id=order_id,
            location_id=body.location_id,
            location_name=body.location_name,
        )
    )
    return _reload(order_id)


@router.post("/orders/{order_id}/fulfill", status_code=201, response_model=FulfillmentResponse)
async def create_fulfillment(order_id: str, body: CreateFulfillmentRequest) -> FulfillmentResponse:
    """Fulfill the given lines, or every remaining line when none are listed."""
    line_items = json.dumps([line.model_dump() for line in body.line_items]) if body.line_items else None
    result = dispatch(
        CreateFulfillment(
            order_id=order_id,
            line_items=line_items,
            tracking_number=body.tracking_number,
            carrier=body.carrier,
            tracking_url=body.tracking_url,
            notify_customer=body.notify_customer,
            message=body.message,
        )
    )
    return FulfillmentResponse(**result)


@router.post("/orders/{order_id}/tracking", response_model=OrderResponse)
async def add_tracking(order_id: str, body: TrackingRequest) -> OrderResponse:
    dispatch(AddTracking(order_id=order_id, **body.model_dump()))
    return _reload(order_id)


@router.put("/orders/{order_id}/tracking", response_model=OrderResponse)
async def update_tracking(order_id: str, body: TrackingRequest) -> OrderResponse:
    dispatch(UpdateTracking(order_id=order_id, **body.model_dump()))
    return _reload(order_id)


# ---------------------------------------------------------------------------
# 3PL handshake
# ---------------------------------------------------------------------------
@router.post("/orders/{order_id}/request/submit", response_model=StatusResponse)
async def submit_request(order_id: str, body: SubmitRequestBody) -> StatusResponse:
    dispatch(
        SubmitFulfillmentRequest(
            order_id=order_id,
            message=body.message,
            notify_merchant=body.notify_merchant,
        )
    )
    return StatusResponse(status="SUBMITTED")


@router.post("/orders/{order_id}/request/accept", response_model=StatusResponse)
async def accept_request(order_id: str, body: MessageBody) -> StatusResponse:
    dispatch(AcceptFulfillmentRequest(order_id=order_id, message=body.message))
    return StatusResponse(status="ACCEPTED")


@router.post("/orders/{order_id}/request/reject", response_model=StatusResponse)
async def reject_request(order_id: str, body: RejectBody) -> StatusResponse:
    dispatch(RejectFulfillmentRequest(order_id=order_id, reason=body.reason, message=body.message))
    return StatusResponse(status="REJECTED")


@router.post("/orders/{order_id}/cancellation/request", response_model=StatusResponse)
async def request_cancellation(order_id: str, body: MessageBody) -> StatusResponse:
    dispatch(RequestCancellation(order_id=order_id, message=body.message))
    return StatusResponse(status="CANCELLATION_REQUESTED")


@router.post("/orders/{order_id}/cancellation/accept", response_model=StatusResponse)
async def accept_cancellation(order_id: str, body: MessageBody) -> StatusResponse:
    dispatch(AcceptCancellation(order_id=order_id, message=body.message))
    return StatusResponse(status="CANCELLATION_ACCEPTED")


@router.post("/orders/{order_id}/cancellation/reject", response_model=StatusResponse)
async def reject_cancellation(order_id: str, body: RejectBody) -> StatusResponse:
    dispatch(RejectCancellation(order_id=order_id, reason=body.reason, message=body.message))
    return StatusResponse(status="CANCELLATION_REJECTED")


# ---------------------------------------------------------------------------
# Bulk operations (always 200; per-order failures are in the body)
# ---------------------------------------------------------------------------
@router.post("/bulk/fulfill", response_model=BulkOperationResponse)
async def bulk_fulfill(body: BulkFulfillRequest) -> BulkOperationResponse:
    result = execute_bulk(BulkOperation.FULFILL, body.order_ids, {"notify_customer": body.notify_customer})
    return BulkOperationResponse(**result.to_dict())


@router.post("/bulk/hold", response_model=BulkOperationResponse)
async def bulk_hold(body: BulkHoldRequest) -> BulkOperationResponse:
    result = execute_bulk(BulkOperation.HOLD, body.order_ids, {"reason": body.reason, "notes": body.notes})
    return BulkOperationResponse(**result.to_dict())


@router.post("/bulk/release", response_model=BulkOperationResponse)
async def bulk_release(body: BulkReleaseRequest) -> BulkOperationResponse:
    result = execute_bulk(BulkOperation.RELEASE, body.order_ids)
    return BulkOperationResponse(**result.to_dict())


@router.post("/bulk/tracking", response_model=BulkOperationResponse)
async def bulk_tracking(body: BulkTrackingRequest) -> BulkOperationResponse:
    """Update tracking per order; each entry carries its own number and carrier."""
    result = execute_bulk(
        BulkOperation.TRACKING,
        [entry.order_id for entry in body.updates],
        {
            "tracking": [entry.model_dump() for entry in body.updates],
            "notify_customer": body.notify_customer,
        },
    )
    return BulkOperationResponse(**result.to_dict())
