"""Pydantic API schemas for fulfillment orders.

These are the external API contracts, kept separate from domain commands.
The routes translate between the two.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class LineItemRequest(BaseModel):
    sku: str | None = None
    product_name: str
    quantity: int
    requires_shipping: bool = True


class ShippingAddressRequest(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    zip_code: str | None = None
    country: str | None = None
    country_code: str | None = None


class IngestOrderRequest(BaseModel):
    order_id: str | None = None
    order_number: str
    external_order_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    channel_name: str | None = None
    items: list[LineItemRequest]
    shipping_address: ShippingAddressRequest | None = None


class ChangeStatusRequest(BaseModel):
    status: str
    notes: str | None = None


class HoldRequest(BaseModel):
    reason: str | None = None
    notes: str | None = None


class MoveToLocationRequest(BaseModel):
    location_id: str
    location_name: str | None = None


class FulfillmentLineRequest(BaseModel):
    id: str
    quantity: int


class CreateFulfillmentRequest(BaseModel):
    line_items: list[FulfillmentLineRequest] | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    tracking_url: str | None = None
    notify_customer: bool = False
    message: str | None = None


class TrackingRequest(BaseModel):
    tracking_number: str | None = None
    carrier: str | None = None
    tracking_url: str | None = None
    notify_customer: bool = False
    fulfillment_id: str | None = None


class SubmitRequestBody(BaseModel):
    message: str | None = None
    notify_merchant: bool = False


class MessageBody(BaseModel):
    message: str | None = None


class RejectBody(BaseModel):
    reason: str | None = None
    message: str | None = None


class BulkFulfillRequest(BaseModel):
    order_ids: list[str]
    notify_customer: bool = False


class BulkHoldRequest(BaseModel):
    order_ids: list[str]
    reason: str | None = None
    notes: str | None = None


class BulkReleaseRequest(BaseModel):
    order_ids: list[str]


class BulkTrackingEntry(BaseModel):
    order_id: str
    tracking_number: str | None = None
    carrier: str | None = None
    tracking_url: str | None = None


class BulkTrackingRequest(BaseModel):
    updates: list[BulkTrackingEntry]
    notify_customer: bool = False


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class StatusResponse(BaseModel):
    status: str


class FulfillmentResponse(BaseModel):
    fulfillment_id: str
    status: str
    tracking_number: str | None = None


class LineItemResponse(BaseModel):
    id: str
    sku: str | None = None
    product_name: str
    quantity: int
    fulfilled_quantity: int
    remaining_quantity: int
    requires_shipping: bool = True


class TrackingEntryResponse(BaseModel):
    id: str
    fulfillment_id: str | None = None
    tracking_number: str
    carrier_name: str | None = None
    tracking_url: str | None = None
    notified_customer: bool = False
    recorded_at: datetime | None = None


class OrderResponse(BaseModel):
    id: str
    order_number: str | None = None
    external_order_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    channel_name: str | None = None
    status: str
    request_status: str
    hold_reason: str | None = None
    hold_notes: str | None = None
    assigned_location_id: str | None = None
    assigned_location_name: str | None = None
    shipping_address: ShippingAddressRequest | None = None
    line_items: list[LineItemResponse] = Field(default_factory=list)
    tracking: list[TrackingEntryResponse] = Field(default_factory=list)
    fulfillment_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    fulfilled_at: datetime | None = None


class QueueRowResponse(BaseModel):
    order_id: str
    order_number: str | None = None
    customer_name: str | None = None
    channel_name: str | None = None
    status: str
    request_status: str
    hold_reason: str | None = None
    location_id: str | None = None
    location_name: str | None = None
    item_count: int = 0
    fulfillment_count: int = 0
    tracking_number: str | None = None
    carrier_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    fulfilled_at: datetime | None = None


class OrderListResponse(BaseModel):
    orders: list[QueueRowResponse]
    total: int
    page: int
    total_pages: int


class AuditEntryResponse(BaseModel):
    id: str
    order_id: str
    action_type: str
    action: str
    previous_value: str | None = None
    new_value: str | None = None
    notes: str | None = None
    performed_by: str
    performed_at: datetime


class BulkErrorResponse(BaseModel):
    order_id: str
    error: str
    message: str


class BulkOperationResponse(BaseModel):
    success: bool
    processed: int
    failed: int
    errors: list[BulkErrorResponse]


class DashboardStatsResponse(BaseModel):
    total_orders: int
    pending_fulfillment: int
    in_progress: int
    on_hold: int
    shipped: int
    cancelled: int
    avg_fulfillment_time: float
    today_shipments: int
    by_status: dict[str, int]


class CarrierResponse(BaseModel):
    id: str
    name: str
    tracking_url_template: str
