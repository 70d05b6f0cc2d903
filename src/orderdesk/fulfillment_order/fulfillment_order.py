"""FulfillmentOrder aggregate (CQRS): the fulfillment order lifecycle.

The aggregate owns two state machines and an append-only audit trail. Every
accepted change appends exactly one AuditEntry in the same unit of work, so
the trail and the state can never disagree. Rejected changes raise before
any attribute is touched.

Order status:
    OPEN → IN_PROGRESS ⇄ SCHEDULED → CLOSED
    {OPEN, IN_PROGRESS, SCHEDULED} → ON_HOLD → status held before the hold
    any non-terminal status → CANCELLED (accepted cancellation request)
    CLOSED and CANCELLED are terminal.

3PL request status:
    UNSUBMITTED → SUBMITTED → ACCEPTED | REJECTED
    REJECTED → SUBMITTED (re-submission)
    ACCEPTED → CANCELLATION_REQUESTED → CANCELLATION_ACCEPTED | CANCELLATION_REJECTED
    CANCELLATION_REJECTED → CANCELLATION_REQUESTED
"""

import json
import os
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.errors import (
    AlreadyTerminal,
    HeldOrder,
    InvalidTransition,
    NotOnHold,
)
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
from orderdesk.shared.carriers import resolve_carrier


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class FulfillmentOrderStatus(Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    SCHEDULED = "SCHEDULED"
    ON_HOLD = "ON_HOLD"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class RequestStatus(Enum):
    UNSUBMITTED = "UNSUBMITTED"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLATION_REQUESTED = "CANCELLATION_REQUESTED"
    CANCELLATION_ACCEPTED = "CANCELLATION_ACCEPTED"
    CANCELLATION_REJECTED = "CANCELLATION_REJECTED"


class HoldReason(Enum):
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    HIGH_RISK_OF_FRAUD = "HIGH_RISK_OF_FRAUD"
    INCORRECT_ADDRESS = "INCORRECT_ADDRESS"
    INVENTORY_OUT_OF_STOCK = "INVENTORY_OUT_OF_STOCK"
    OTHER = "OTHER"


class AuditActionType(Enum):
    STATUS_CHANGE = "STATUS_CHANGE"
    HOLD = "HOLD"
    RELEASE = "RELEASE"
    TRACKING_UPDATE = "TRACKING_UPDATE"
    FULFILLMENT_CREATED = "FULFILLMENT_CREATED"
    REQUEST_SUBMITTED = "REQUEST_SUBMITTED"
    REQUEST_ACCEPTED = "REQUEST_ACCEPTED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    CANCELLATION = "CANCELLATION"
    LOCATION_CHANGE = "LOCATION_CHANGE"


_VALID_TRANSITIONS = {
    FulfillmentOrderStatus.OPEN: {
        FulfillmentOrderStatus.IN_PROGRESS,
        FulfillmentOrderStatus.SCHEDULED,
        FulfillmentOrderStatus.ON_HOLD,
        FulfillmentOrderStatus.CANCELLED,
    },
    FulfillmentOrderStatus.IN_PROGRESS: {
        FulfillmentOrderStatus.SCHEDULED,
        FulfillmentOrderStatus.CLOSED,
        FulfillmentOrderStatus.ON_HOLD,
        FulfillmentOrderStatus.CANCELLED,
    },
    FulfillmentOrderStatus.SCHEDULED: {
        FulfillmentOrderStatus.IN_PROGRESS,
        FulfillmentOrderStatus.CLOSED,
        FulfillmentOrderStatus.ON_HOLD,
        FulfillmentOrderStatus.CANCELLED,
    },
    FulfillmentOrderStatus.ON_HOLD: {
        FulfillmentOrderStatus.OPEN,
        FulfillmentOrderStatus.IN_PROGRESS,
        FulfillmentOrderStatus.SCHEDULED,
        FulfillmentOrderStatus.CANCELLED,
    },
    FulfillmentOrderStatus.CLOSED: set(),  # terminal
    FulfillmentOrderStatus.CANCELLED: set(),  # terminal
}

_TERMINAL_STATUSES = {FulfillmentOrderStatus.CLOSED, FulfillmentOrderStatus.CANCELLED}

# Statuses reachable through a plain status change (no reason, no handshake)
_PROGRESS_STATUSES = {
    FulfillmentOrderStatus.IN_PROGRESS,
    FulfillmentOrderStatus.SCHEDULED,
    FulfillmentOrderStatus.CLOSED,
}

# Statuses in which a fulfillment exists and tracking can be recorded
_SHIPPABLE_STATUSES = {
    FulfillmentOrderStatus.IN_PROGRESS,
    FulfillmentOrderStatus.SCHEDULED,
    FulfillmentOrderStatus.CLOSED,
}

_REQUEST_TRANSITIONS = {
    RequestStatus.UNSUBMITTED: {RequestStatus.SUBMITTED},
    RequestStatus.SUBMITTED: {RequestStatus.ACCEPTED, RequestStatus.REJECTED},
    RequestStatus.ACCEPTED: {RequestStatus.CANCELLATION_REQUESTED},
    RequestStatus.REJECTED: {RequestStatus.SUBMITTED},
    RequestStatus.CANCELLATION_REQUESTED: {
        RequestStatus.CANCELLATION_ACCEPTED,
        RequestStatus.CANCELLATION_REJECTED,
    },
    RequestStatus.CANCELLATION_ACCEPTED: set(),
    RequestStatus.CANCELLATION_REJECTED: {RequestStatus.CANCELLATION_REQUESTED},
}


def default_operator() -> str:
    """Name recorded as ``performed_by`` when the caller supplies none."""
    return os.environ.get("ORDERDESK_OPERATOR", "system")


def _parse(enum_cls, value, field_name):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError({field_name: [f"Unknown value: {value!r}"]}) from None


def decode_json(raw, field_name):
    """Decode a JSON-encoded command field; an empty value decodes to None."""
    if not isinstance(raw, str):
        return raw
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError({field_name: [f"Malformed JSON: {exc.msg}"]}) from None


def _entries(value, field_name) -> list[dict]:
    if not isinstance(value, list) or not all(isinstance(entry, dict) for entry in value):
        raise ValidationError({field_name: ["Expected a list of objects"]})
    return value


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@orderdesk.value_object(part_of="FulfillmentOrder")
class ShippingAddress:
    """Destination copied from the channel order."""

    first_name = String(max_length=100)
    last_name = String(max_length=100)
    company = String(max_length=200)
    address1 = String(max_length=255)
    address2 = String(max_length=255)
    city = String(max_length=100)
    zip_code = String(max_length=20)
    country = String(max_length=100)
    country_code = String(max_length=2)

    def is_complete(self) -> bool:
        return bool(self.address1 and self.city and (self.country or self.country_code))


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@orderdesk.entity(part_of="FulfillmentOrder")
class LineItem:
    """An ordered product line. ``quantity`` never changes after ingestion."""

    sku = String(max_length=100)
    product_name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    fulfilled_quantity = Integer(default=0, min_value=0)
    requires_shipping = Boolean(default=True)

    @property
    def remaining_quantity(self) -> int:
        return self.quantity - (self.fulfilled_quantity or 0)


@orderdesk.entity(part_of="FulfillmentOrder")
class FulfillmentRecord:
    """One fulfillment (shipment) created against the order."""

    line_items = Text(required=True)  # JSON list of {line_item_id, quantity}
    notify_customer = Boolean(default=False)
    created_at = DateTime(required=True)


@orderdesk.entity(part_of="FulfillmentOrder")
class TrackingEntry:
    fulfillment_id = Identifier()
    tracking_number = String(required=True, max_length=255)
    carrier_name = String(max_length=100)
    tracking_url = String(max_length=500)
    notified_customer = Boolean(default=False)
    sequence = Integer(required=True)
    recorded_at = DateTime()


@orderdesk.entity(part_of="FulfillmentOrder")
class AuditEntry:
    """Immutable record of one state-changing action."""

    order_id = Identifier(required=True)
    action_type = String(required=True, max_length=50, choices=AuditActionType)
    action = String(required=True, max_length=255)
    previous_value = String(max_length=255)
    new_value = String(max_length=255)
    notes = Text()
    performed_by = String(required=True, max_length=100)
    performed_at = DateTime(required=True)
    sequence = Integer(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@orderdesk.aggregate
class FulfillmentOrder:
    order_number = String(max_length=50)
    external_order_id = String(max_length=100)
    customer_name = String(max_length=200)
    customer_email = String(max_length=254)
    channel_name = String(max_length=100)
    status = String(
        max_length=20,
        choices=FulfillmentOrderStatus,
        default=FulfillmentOrderStatus.OPEN.value,
    )
    request_status = String(
        max_length=30,
        choices=RequestStatus,
        default=RequestStatus.UNSUBMITTED.value,
    )
    hold_reason = String(max_length=30, choices=HoldReason)
    hold_notes = Text()
    status_before_hold = String(max_length=20, choices=FulfillmentOrderStatus)
    assigned_location_id = String(max_length=100)
    assigned_location_name = String(max_length=200)
    shipping_address = ValueObject(ShippingAddress)
    line_items = HasMany(LineItem)
    fulfillments = HasMany(FulfillmentRecord)
    tracking_entries = HasMany(TrackingEntry)
    audit_entries = HasMany(AuditEntry)
    created_at = DateTime()
    updated_at = DateTime()
    fulfilled_at = DateTime()

    @invariant.post
    def hold_reason_present_only_while_on_hold(self):
        on_hold = self.status == FulfillmentOrderStatus.ON_HOLD.value
        if on_hold and not self.hold_reason:
            raise ValidationError({"hold_reason": ["An order on hold must carry a hold reason"]})
        if not on_hold and (self.hold_reason or self.hold_notes):
            raise ValidationError({"hold_reason": ["Hold reason and notes are only allowed while on hold"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def ingest(
        cls,
        order_number: str,
        line_items_data: list[dict],
        shipping_address: dict | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        channel_name: str | None = None,
        external_order_id: str | None = None,
        order_id: str | None = None,
    ):
        """Create an OPEN, unsubmitted fulfillment order from a channel order."""
        if not line_items_data:
            raise ValidationError({"line_items": ["An order needs at least one line item"]})
        line_items_data = _entries(line_items_data, "line_items")
        if shipping_address is not None and not isinstance(shipping_address, dict):
            raise ValidationError({"shipping_address": ["Expected an object"]})

        now = datetime.now(UTC)
        attributes = dict(
            order_number=order_number,
            external_order_id=external_order_id,
            customer_name=customer_name,
            customer_email=customer_email,
            channel_name=channel_name,
            status=FulfillmentOrderStatus.OPEN.value,
            request_status=RequestStatus.UNSUBMITTED.value,
            shipping_address=ShippingAddress(**shipping_address) if shipping_address else None,
            created_at=now,
            updated_at=now,
        )
        if order_id:
            attributes["id"] = order_id
        order = cls(**attributes)
        for item_data in line_items_data:
            order.add_line_items(LineItem(**item_data))

        order.raise_(
            FulfillmentOrderIngested(
                order_id=str(order.id),
                order_number=order_number,
                customer_name=customer_name,
                channel_name=channel_name,
                status=order.status,
                request_status=order.request_status,
                item_count=len(line_items_data),
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def audit_trail(self) -> list[AuditEntry]:
        """Audit entries ordered by time, ties broken by insertion order."""
        return sorted(self.audit_entries or [], key=lambda e: (e.performed_at, e.sequence))

    @property
    def latest_tracking(self) -> TrackingEntry | None:
        entries = sorted(self.tracking_entries or [], key=lambda e: e.sequence)
        return entries[-1] if entries else None

    @property
    def is_terminal(self) -> bool:
        return FulfillmentOrderStatus(self.status) in _TERMINAL_STATUSES

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_not_terminal(self, requested: str) -> None:
        current = FulfillmentOrderStatus(self.status)
        if current in _TERMINAL_STATUSES:
            raise AlreadyTerminal(current.value, requested, order_id=str(self.id))

    def _assert_request_transition(self, target: RequestStatus) -> None:
        self._assert_not_terminal(target.value)
        current = RequestStatus(self.request_status)
        if target not in _REQUEST_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value, order_id=str(self.id))

    def _record(
        self,
        action_type: AuditActionType,
        action: str,
        previous_value: str | None,
        new_value: str | None,
        performed_at: datetime,
        notes: str | None = None,
        performed_by: str | None = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            order_id=str(self.id),
            action_type=action_type.value,
            action=action,
            previous_value=previous_value,
            new_value=new_value,
            notes=notes,
            performed_by=performed_by or default_operator(),
            performed_at=performed_at,
            sequence=len(self.audit_entries or []) + 1,
        )
        self.add_audit_entries(entry)
        return entry

    def _tracking_details(self, tracking_number, carrier, tracking_url):
        carrier_name = None
        if carrier:
            resolved = resolve_carrier(carrier)
            carrier_name = resolved.name
            tracking_url = tracking_url or resolved.tracking_url(tracking_number)
        return carrier_name, tracking_url or None

    def _append_tracking(self, tracking_number, carrier_name, tracking_url, notify_customer, fulfillment_id, now):
        entry = TrackingEntry(
            fulfillment_id=fulfillment_id,
            tracking_number=tracking_number,
            carrier_name=carrier_name,
            tracking_url=tracking_url,
            notified_customer=bool(notify_customer),
            sequence=len(self.tracking_entries or []) + 1,
            recorded_at=now,
        )
        self.add_tracking_entries(entry)
        return entry

    # -------------------------------------------------------------------
    # Status progression
    # -------------------------------------------------------------------
    def change_status(self, target: str, notes: str | None = None, performed_by: str | None = None) -> None:
        """Move the order along OPEN → IN_PROGRESS ⇄ SCHEDULED → CLOSED."""
        target_status = _parse(FulfillmentOrderStatus, target, "status")
        current = FulfillmentOrderStatus(self.status)
        self._assert_not_terminal(target_status.value)

        if current == FulfillmentOrderStatus.ON_HOLD:
            raise HeldOrder(str(self.id), f"change status to {target_status.value}")
        if target_status == FulfillmentOrderStatus.ON_HOLD:
            raise ValidationError({"reason": ["Placing an order on hold requires a hold reason"]})
        if target_status not in _PROGRESS_STATUSES or target_status not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target_status.value, order_id=str(self.id))

        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        self._record(
            AuditActionType.STATUS_CHANGE,
            f"Status changed to {target_status.value}",
            current.value,
            target_status.value,
            now,
            notes=notes,
            performed_by=performed_by,
        )
        self.raise_(
            FulfillmentOrderStatusChanged(
                order_id=str(self.id),
                previous_status=current.value,
                new_status=target_status.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Hold / Release
    # -------------------------------------------------------------------
    def place_hold(self, reason: str, notes: str | None = None, performed_by: str | None = None) -> None:
        """Block fulfillment until released. A hold always carries a reason."""
        current = FulfillmentOrderStatus(self.status)
        self._assert_not_terminal(FulfillmentOrderStatus.ON_HOLD.value)
        if not reason:
            raise ValidationError({"reason": ["A hold reason is required"]})
        hold_reason = _parse(HoldReason, reason, "reason")
        if current == FulfillmentOrderStatus.ON_HOLD:
            raise InvalidTransition(
                current.value,
                FulfillmentOrderStatus.ON_HOLD.value,
                order_id=str(self.id),
                message="Order is already on hold",
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status_before_hold = current.value
            self.status = FulfillmentOrderStatus.ON_HOLD.value
            self.hold_reason = hold_reason.value
            self.hold_notes = notes or None
            self.updated_at = now

        self._record(
            AuditActionType.HOLD,
            "Order placed on hold",
            current.value,
            hold_reason.value,
            now,
            notes=notes,
            performed_by=performed_by,
        )
        self.raise_(
            FulfillmentOrderHeld(
                order_id=str(self.id),
                previous_status=current.value,
                reason=hold_reason.value,
                notes=notes,
                held_at=now,
            )
        )

    def release_hold(self, performed_by: str | None = None) -> None:
        """Lift the hold and restore the status the order had before it."""
        current = FulfillmentOrderStatus(self.status)
        if current != FulfillmentOrderStatus.ON_HOLD:
            raise NotOnHold(str(self.id), current.value)

        restored = (
            FulfillmentOrderStatus(self.status_before_hold)
            if self.status_before_hold
            else FulfillmentOrderStatus.OPEN
        )
        reason = self.hold_reason
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = restored.value
            self.hold_reason = None
            self.hold_notes = None
            self.status_before_hold = None
            self.updated_at = now

        self._record(
            AuditActionType.RELEASE,
            "Hold released",
            reason,
            restored.value,
            now,
            performed_by=performed_by,
        )
        self.raise_(
            FulfillmentOrderReleased(
                order_id=str(self.id),
                reason=reason,
                restored_status=restored.value,
                released_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def _resolve_fulfillment_lines(self, line_items: list[dict] | None) -> list[tuple]:
        items_by_id = {str(item.id): item for item in self.line_items or []}

        if not line_items:
            lines = [(item, item.remaining_quantity) for item in self.line_items or [] if item.remaining_quantity > 0]
            if not lines:
                raise ValidationError({"line_items": ["Nothing left to fulfill"]})
            return lines

        lines = []
        seen = set()
        for entry in _entries(line_items, "line_items"):
            item_id = str(entry.get("id") or entry.get("line_item_id") or "")
            item = items_by_id.get(item_id)
            if item is None:
                raise ValidationError({"line_items": [f"Line item {item_id!r} not found in this order"]})
            if item_id in seen:
                raise ValidationError({"line_items": [f"Line item {item_id!r} listed more than once"]})
            seen.add(item_id)

            try:
                quantity = int(entry.get("quantity") or 0)
            except (TypeError, ValueError):
                raise ValidationError(
                    {"line_items": [f"Quantity for {item_id!r} must be a whole number, got {entry.get('quantity')!r}"]}
                ) from None
            if quantity < 1 or quantity > item.remaining_quantity:
                raise ValidationError(
                    {
                        "line_items": [
                            f"Quantity for {item_id!r} must be between 1 and {item.remaining_quantity}, got {quantity}"
                        ]
                    }
                )
            lines.append((item, quantity))
        return lines

    def create_fulfillment(
        self,
        line_items: list[dict] | None = None,
        tracking_number: str | None = None,
        carrier: str | None = None,
        tracking_url: str | None = None,
        notify_customer: bool = False,
        message: str | None = None,
        performed_by: str | None = None,
    ) -> FulfillmentRecord:
        """Fulfill the given lines (all remaining lines when omitted).

        The order closes once nothing remains to fulfill, and is otherwise
        IN_PROGRESS. Held and terminal orders are rejected.
        """
        current = FulfillmentOrderStatus(self.status)
        if current == FulfillmentOrderStatus.ON_HOLD:
            raise HeldOrder(str(self.id), "create a fulfillment")
        self._assert_not_terminal(FulfillmentOrderStatus.IN_PROGRESS.value)

        lines = self._resolve_fulfillment_lines(line_items)
        carrier_name, tracking_url = self._tracking_details(tracking_number, carrier, tracking_url)

        now = datetime.now(UTC)
        fulfilled_lines = [{"line_item_id": str(item.id), "quantity": quantity} for item, quantity in lines]
        record = FulfillmentRecord(
            line_items=json.dumps(fulfilled_lines),
            notify_customer=bool(notify_customer),
            created_at=now,
        )

        for item, quantity in lines:
            item.fulfilled_quantity = (item.fulfilled_quantity or 0) + quantity
        self.add_fulfillments(record)

        remaining = sum(item.remaining_quantity for item in self.line_items or [])
        new_status = FulfillmentOrderStatus.CLOSED if remaining == 0 else FulfillmentOrderStatus.IN_PROGRESS
        self.status = new_status.value
        self.fulfilled_at = now
        self.updated_at = now

        if tracking_number:
            self._append_tracking(tracking_number, carrier_name, tracking_url, notify_customer, str(record.id), now)

        summary = f"{sum(q for _, q in lines)} unit(s) across {len(lines)} line(s)"
        if tracking_number:
            summary += f"; tracking {tracking_number}"
            if carrier_name:
                summary += f" via {carrier_name}"
        self._record(
            AuditActionType.FULFILLMENT_CREATED,
            "Fulfillment created",
            current.value,
            new_status.value,
            now,
            notes=message or summary,
            performed_by=performed_by,
        )
        self.raise_(
            FulfillmentCreated(
                order_id=str(self.id),
                fulfillment_id=str(record.id),
                previous_status=current.value,
                new_status=new_status.value,
                line_items=json.dumps(fulfilled_lines),
                tracking_number=tracking_number,
                carrier_name=carrier_name,
                tracking_url=tracking_url,
                notify_customer=bool(notify_customer),
                customer_email=self.customer_email,
                fulfilled_at=now,
            )
        )
        return record

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    def _assert_trackable(self, tracking_number: str | None, fulfillment_id: str | None) -> None:
        if not tracking_number or not tracking_number.strip():
            raise ValidationError({"tracking_number": ["A tracking number is required"]})
        current = FulfillmentOrderStatus(self.status)
        shipped_before_hold = current == FulfillmentOrderStatus.ON_HOLD and bool(self.fulfillments)
        if current not in _SHIPPABLE_STATUSES and not shipped_before_hold:
            raise InvalidTransition(
                current.value,
                AuditActionType.TRACKING_UPDATE.value,
                order_id=str(self.id),
                message=f"Tracking can only be recorded once the order is fulfilled (status is {current.value})",
            )
        if fulfillment_id and fulfillment_id not in {str(f.id) for f in self.fulfillments or []}:
            raise ValidationError({"fulfillment_id": [f"Fulfillment {fulfillment_id!r} not found in this order"]})

    def add_tracking(
        self,
        tracking_number: str,
        carrier: str | None = None,
        tracking_url: str | None = None,
        notify_customer: bool = False,
        fulfillment_id: str | None = None,
        performed_by: str | None = None,
    ) -> TrackingEntry:
        """Append a new tracking entry to a fulfilled order."""
        self._assert_trackable(tracking_number, fulfillment_id)
        tracking_number = tracking_number.strip()
        carrier_name, tracking_url = self._tracking_details(tracking_number, carrier, tracking_url)

        now = datetime.now(UTC)
        entry = self._append_tracking(tracking_number, carrier_name, tracking_url, notify_customer, fulfillment_id, now)
        self.updated_at = now
        self._record(
            AuditActionType.TRACKING_UPDATE,
            "Tracking added",
            None,
            tracking_number,
            now,
            notes=carrier_name,
            performed_by=performed_by,
        )
        self._raise_tracking_updated(entry, None, notify_customer, now)
        return entry

    def update_tracking(
        self,
        tracking_number: str,
        carrier: str | None = None,
        tracking_url: str | None = None,
        notify_customer: bool = False,
        fulfillment_id: str | None = None,
        performed_by: str | None = None,
    ) -> TrackingEntry:
        """Replace the latest tracking entry, or add one when none exists."""
        self._assert_trackable(tracking_number, fulfillment_id)
        tracking_number = tracking_number.strip()
        carrier_name, tracking_url = self._tracking_details(tracking_number, carrier, tracking_url)

        candidates = [
            e for e in self.tracking_entries or [] if not fulfillment_id or str(e.fulfillment_id) == fulfillment_id
        ]
        latest = max(candidates, key=lambda e: e.sequence) if candidates else None

        now = datetime.now(UTC)
        previous_number = None
        if latest is None:
            entry = self._append_tracking(
                tracking_number, carrier_name, tracking_url, notify_customer, fulfillment_id, now
            )
        else:
            entry = latest
            previous_number = entry.tracking_number
            entry.tracking_number = tracking_number
            entry.carrier_name = carrier_name or entry.carrier_name
            entry.tracking_url = tracking_url
            entry.notified_customer = bool(notify_customer)
            entry.recorded_at = now
        self.updated_at = now

        self._record(
            AuditActionType.TRACKING_UPDATE,
            "Tracking updated",
            previous_number,
            tracking_number,
            now,
            notes=entry.carrier_name,
            performed_by=performed_by,
        )
        self._raise_tracking_updated(entry, previous_number, notify_customer, now)
        return entry

    def _raise_tracking_updated(self, entry, previous_number, notify_customer, now):
        self.raise_(
            TrackingUpdated(
                order_id=str(self.id),
                tracking_number=entry.tracking_number,
                previous_tracking_number=previous_number,
                carrier_name=entry.carrier_name,
                tracking_url=entry.tracking_url,
                notify_customer=bool(notify_customer),
                customer_email=self.customer_email,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Location
    # -------------------------------------------------------------------
    def move_to_location(
        self,
        location_id: str,
        location_name: str | None = None,
        performed_by: str | None = None,
    ) -> None:
        """Reassign the order to another warehouse location."""
        self._assert_not_terminal("LOCATION_CHANGE")
        if not location_id:
            raise ValidationError({"location_id": ["A location is required"]})
        if location_id == self.assigned_location_id:
            raise ValidationError({"location_id": ["Order is already assigned to this location"]})

        previous = self.assigned_location_id
        previous_label = self.assigned_location_name or previous
        now = datetime.now(UTC)
        self.assigned_location_id = location_id
        self.assigned_location_name = location_name
        self.updated_at = now

        self._record(
            AuditActionType.LOCATION_CHANGE,
            "Moved to another location",
            previous_label,
            location_name or location_id,
            now,
            performed_by=performed_by,
        )
        self.raise_(
            LocationChanged(
                order_id=str(self.id),
                previous_location_id=previous,
                location_id=location_id,
                location_name=location_name,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # 3PL request handshake
    # -------------------------------------------------------------------
    def _change_request_status(self, target: RequestStatus, now: datetime) -> RequestStatus:
        previous = RequestStatus(self.request_status)
        self.request_status = target.value
        self.updated_at = now
        return previous

    def submit_request(
        self,
        message: str | None = None,
        notify_merchant: bool = False,
        performed_by: str | None = None,
    ) -> None:
        """Merchant submits the order to the fulfiller (re-submission allowed after rejection)."""
        self._assert_not_terminal(RequestStatus.SUBMITTED.value)
        if RequestStatus(self.request_status) == RequestStatus.SUBMITTED:
            raise ValidationError({"request_status": ["Fulfillment request has already been submitted"]})
        self._assert_request_transition(RequestStatus.SUBMITTED)

        now = datetime.now(UTC)
        previous = self._change_request_status(RequestStatus.SUBMITTED, now)
        self._record(
            AuditActionType.REQUEST_SUBMITTED,
            "Fulfillment request submitted",
            previous.value,
            RequestStatus.SUBMITTED.value,
            now,
            notes=message,
            performed_by=performed_by,
        )
        self.raise_(
            FulfillmentRequestSubmitted(
                order_id=str(self.id),
                previous_request_status=previous.value,
                message=message,
                notify_merchant=bool(notify_merchant),
                submitted_at=now,
            )
        )

    def accept_request(self, message: str | None = None, performed_by: str | None = None) -> None:
        self._assert_request_transition(RequestStatus.ACCEPTED)

        now = datetime.now(UTC)
        previous = self._change_request_status(RequestStatus.ACCEPTED, now)
        self._record(
            AuditActionType.REQUEST_ACCEPTED,
            "Fulfillment request accepted",
            previous.value,
            RequestStatus.ACCEPTED.value,
            now,
            notes=message,
            performed_by=performed_by,
        )
        self.raise_(FulfillmentRequestAccepted(order_id=str(self.id), message=message, accepted_at=now))

    def reject_request(self, reason: str, message: str | None = None, performed_by: str | None = None) -> None:
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A reason is required to reject a fulfillment request"]})
        self._assert_request_transition(RequestStatus.REJECTED)

        now = datetime.now(UTC)
        previous = self._change_request_status(RequestStatus.REJECTED, now)
        self._record(
            AuditActionType.REQUEST_REJECTED,
            "Fulfillment request rejected",
            previous.value,
            RequestStatus.REJECTED.value,
            now,
            notes=f"{reason}: {message}" if message else reason,
            performed_by=performed_by,
        )
        self.raise_(
            FulfillmentRequestRejected(
                order_id=str(self.id),
                reason=reason,
                message=message,
                rejected_at=now,
            )
        )

    def request_cancellation(self, message: str | None = None, performed_by: str | None = None) -> None:
        self._assert_request_transition(RequestStatus.CANCELLATION_REQUESTED)

        now = datetime.now(UTC)
        previous = self._change_request_status(RequestStatus.CANCELLATION_REQUESTED, now)
        self._record(
            AuditActionType.CANCELLATION,
            "Cancellation requested",
            previous.value,
            RequestStatus.CANCELLATION_REQUESTED.value,
            now,
            notes=message,
            performed_by=performed_by,
        )
        self.raise_(CancellationRequested(order_id=str(self.id), message=message, requested_at=now))

    def accept_cancellation(self, message: str | None = None, performed_by: str | None = None) -> None:
        """Fulfiller accepts the cancellation; the order becomes CANCELLED."""
        self._assert_request_transition(RequestStatus.CANCELLATION_ACCEPTED)

        current = FulfillmentOrderStatus(self.status)
        now = datetime.now(UTC)
        with atomic_change(self):
            self._change_request_status(RequestStatus.CANCELLATION_ACCEPTED, now)
            self.status = FulfillmentOrderStatus.CANCELLED.value
            self.hold_reason = None
            self.hold_notes = None
            self.status_before_hold = None

        request_change = f"{RequestStatus.CANCELLATION_REQUESTED.value} → {RequestStatus.CANCELLATION_ACCEPTED.value}"
        self._record(
            AuditActionType.CANCELLATION,
            "Cancellation accepted",
            current.value,
            FulfillmentOrderStatus.CANCELLED.value,
            now,
            notes=f"{request_change}: {message}" if message else request_change,
            performed_by=performed_by,
        )
        self.raise_(
            CancellationAccepted(
                order_id=str(self.id),
                previous_status=current.value,
                message=message,
                accepted_at=now,
            )
        )

    def reject_cancellation(self, reason: str, message: str | None = None, performed_by: str | None = None) -> None:
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A reason is required to reject a cancellation"]})
        self._assert_request_transition(RequestStatus.CANCELLATION_REJECTED)

        now = datetime.now(UTC)
        previous = self._change_request_status(RequestStatus.CANCELLATION_REJECTED, now)
        self._record(
            AuditActionType.CANCELLATION,
            "Cancellation rejected",
            previous.value,
            RequestStatus.CANCELLATION_REJECTED.value,
            now,
            notes=f"{reason}: {message}" if message else reason,
            performed_by=performed_by,
        )
        self.raise_(
            CancellationRejected(
                order_id=str(self.id),
                reason=reason,
                message=message,
                rejected_at=now,
            )
        )
