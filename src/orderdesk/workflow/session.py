"""Pick → Pack → Ship operator session for a single fulfillment order.

A PickSession is a caller-owned working copy of an order's open lines. It
is never persisted: the only durable effect is the single CreateFulfillment
command issued by ``confirm_shipment``. Abandoning the session discards
everything picked so far.
"""

import json
import time
from dataclasses import dataclass, field
from enum import Enum

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from orderdesk.fulfillment_order.dispatch import dispatch
from orderdesk.fulfillment_order.errors import describe_error
from orderdesk.fulfillment_order.fulfillment import CreateFulfillment
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder
from orderdesk.shared.carriers import resolve_carrier

logger = structlog.get_logger(__name__)

SCAN_ERROR_TTL_SECONDS = 3.0
DEFAULT_CARRIER = "dhl"

PACKING_TASKS = (
    "Verify all items are correct",
    "Add packing slip / invoice",
    "Use appropriate box size",
    "Add protective packaging if needed",
    "Seal package securely",
)


class WizardPhase(Enum):
    PICK = "PICK"
    PACK = "PACK"
    SHIP = "SHIP"
    COMPLETE = "COMPLETE"


_PHASE_ORDER = [WizardPhase.PICK, WizardPhase.PACK, WizardPhase.SHIP, WizardPhase.COMPLETE]


class SessionClosed(Exception):
    """Raised when a completed or cancelled session is mutated."""


@dataclass
class PickedItem:
    line_item_id: str
    sku: str | None
    product_name: str
    quantity: int
    picked_quantity: int = 0

    @property
    def verified(self) -> bool:
        return self.picked_quantity == self.quantity

    def set_picked(self, value: int) -> None:
        self.picked_quantity = max(0, min(self.quantity, value))


@dataclass
class PackingTask:
    label: str
    done: bool = False


@dataclass
class ScanError:
    message: str
    raised_at: float


@dataclass
class PickSession:
    order_id: str
    order_number: str | None
    items: list[PickedItem]
    shipping_address: dict | None = None
    phase: WizardPhase = WizardPhase.PICK
    packing_tasks: list[PackingTask] = field(default_factory=lambda: [PackingTask(t) for t in PACKING_TASKS])
    packing_notes: str = ""
    carrier: str = DEFAULT_CARRIER
    tracking_number: str = ""
    notify_customer: bool = True
    error: tuple[str, str] | None = None
    result: dict | None = None
    cancelled: bool = False
    clock: object = time.monotonic
    _scan_error: ScanError | None = None

    # -------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------
    @classmethod
    def start(cls, order: FulfillmentOrder, clock=None) -> "PickSession":
        """Open a session over every line that still has units to ship."""
        items = [
            PickedItem(
                line_item_id=str(item.id),
                sku=item.sku,
                product_name=item.product_name,
                quantity=item.remaining_quantity,
            )
            for item in order.line_items or []
            if item.remaining_quantity > 0
        ]
        if not items:
            raise ValidationError({"line_items": ["Order has nothing left to pick"]})

        address = order.shipping_address.to_dict() if order.shipping_address else None
        session = cls(
            order_id=str(order.id),
            order_number=order.order_number,
            items=items,
            shipping_address=address,
        )
        if clock is not None:
            session.clock = clock
        return session

    @classmethod
    def for_order(cls, order_id: str, clock=None) -> "PickSession":
        order = current_domain.repository_for(FulfillmentOrder).get(order_id)
        return cls.start(order, clock=clock)

    # -------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------
    def _require(self, phase: WizardPhase) -> None:
        if self.cancelled or self.phase == WizardPhase.COMPLETE:
            raise SessionClosed("Session is closed")
        if self.phase != phase:
            raise ValidationError({"phase": [f"Not allowed in {self.phase.value} (needs {phase.value})"]})

    def _item(self, line_item_id: str) -> PickedItem:
        for item in self.items:
            if item.line_item_id == str(line_item_id):
                return item
        raise ValidationError({"line_item_id": [f"Unknown line item: {line_item_id!r}"]})

    # -------------------------------------------------------------------
    # PICK
    # -------------------------------------------------------------------
    @property
    def all_items_picked(self) -> bool:
        return all(item.verified for item in self.items)

    @property
    def scan_error(self) -> str | None:
        """The last scan error, until it expires."""
        if self._scan_error is None:
            return None
        if self.clock() - self._scan_error.raised_at >= SCAN_ERROR_TTL_SECONDS:
            self._scan_error = None
            return None
        return self._scan_error.message

    def dismiss_scan_error(self) -> None:
        self._scan_error = None

    def scan(self, sku: str) -> bool:
        """Pick one unit of the line matching ``sku``.

        Returns False and sets a transient error when nothing matches.
        Scanning a line that is already complete changes nothing.
        """
        self._require(WizardPhase.PICK)
        code = (sku or "").strip().upper()
        if not code:
            return False

        for item in self.items:
            if item.sku and item.sku.strip().upper() == code:
                item.set_picked(item.picked_quantity + 1)
                self._scan_error = None
                return True

        self._scan_error = ScanError(f"SKU {code} not found in this order", self.clock())
        logger.info("Unknown SKU scanned", order_id=self.order_id, sku=code)
        return False

    def increment(self, line_item_id: str) -> int:
        return self.adjust(line_item_id, 1)

    def decrement(self, line_item_id: str) -> int:
        return self.adjust(line_item_id, -1)

    def adjust(self, line_item_id: str, delta: int) -> int:
        self._require(WizardPhase.PICK)
        item = self._item(line_item_id)
        item.set_picked(item.picked_quantity + int(delta))
        return item.picked_quantity

    def set_quantity(self, line_item_id: str, quantity: int) -> int:
        self._require(WizardPhase.PICK)
        item = self._item(line_item_id)
        item.set_picked(int(quantity))
        return item.picked_quantity

    # -------------------------------------------------------------------
    # PACK
    # -------------------------------------------------------------------
    def toggle_task(self, index: int) -> bool:
        self._require(WizardPhase.PACK)
        try:
            task = self.packing_tasks[index]
        except IndexError:
            raise ValidationError({"task": [f"Unknown packing task: {index}"]}) from None
        task.done = not task.done
        return task.done

    def set_packing_notes(self, notes: str) -> None:
        self._require(WizardPhase.PACK)
        self.packing_notes = notes or ""

    @property
    def packing_complete(self) -> bool:
        return all(task.done for task in self.packing_tasks)

    # -------------------------------------------------------------------
    # SHIP
    # -------------------------------------------------------------------
    def set_carrier(self, carrier: str) -> None:
        self._require(WizardPhase.SHIP)
        self.carrier = resolve_carrier(carrier).id

    def set_tracking_number(self, tracking_number: str) -> None:
        self._require(WizardPhase.SHIP)
        self.tracking_number = (tracking_number or "").strip()

    def set_notify_customer(self, notify: bool) -> None:
        self._require(WizardPhase.SHIP)
        self.notify_customer = bool(notify)

    @property
    def has_shipping_address(self) -> bool:
        address = self.shipping_address or {}
        return bool(
            address.get("address1") and address.get("city") and (address.get("country") or address.get("country_code"))
        )

    def fulfillment_lines(self) -> list[dict]:
        return [
            {"id": item.line_item_id, "quantity": item.picked_quantity} for item in self.items if item.picked_quantity > 0
        ]

    def confirm_shipment(self, submit=dispatch) -> bool:
        """Issue the CreateFulfillment command for the picked lines.

        On success the session moves to COMPLETE. On failure it stays on
        SHIP with ``error`` set and every picked quantity intact.
        """
        self._require(WizardPhase.SHIP)
        self.error = None
        if not self.has_shipping_address:
            self.error = ("ValidationError", "Order has no shipping address")
            return False

        try:
            carrier = resolve_carrier(self.carrier)
            command = CreateFulfillment(
                order_id=self.order_id,
                line_items=json.dumps(self.fulfillment_lines()),
                tracking_number=self.tracking_number or None,
                carrier=carrier.id,
                notify_customer=self.notify_customer,
                message=self.packing_notes or None,
            )
            result = submit(command)
        except Exception as exc:
            self.error = describe_error(exc)
            logger.warning(
                "Shipment confirmation failed",
                order_id=self.order_id,
                error=self.error[0],
                message=self.error[1],
            )
            return False

        self.result = result
        self.phase = WizardPhase.COMPLETE
        logger.info("Shipment confirmed", order_id=self.order_id, result=result)
        return True

    # -------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------
    def next(self) -> WizardPhase:
        """Advance one phase. SHIP is left only through ``confirm_shipment``."""
        if self.cancelled or self.phase == WizardPhase.COMPLETE:
            raise SessionClosed("Session is closed")
        if self.phase == WizardPhase.PICK and not self.all_items_picked:
            raise ValidationError({"items": ["All items must be picked before packing"]})
        if self.phase == WizardPhase.SHIP:
            raise ValidationError({"phase": ["Confirm the shipment to complete the session"]})
        self.phase = _PHASE_ORDER[_PHASE_ORDER.index(self.phase) + 1]
        return self.phase

    def back(self) -> WizardPhase:
        if self.cancelled or self.phase == WizardPhase.COMPLETE:
            raise SessionClosed("Session is closed")
        if self.phase == WizardPhase.PICK:
            raise ValidationError({"phase": ["Already at the first phase"]})
        self.phase = _PHASE_ORDER[_PHASE_ORDER.index(self.phase) - 1]
        self.error = None
        return self.phase

    def cancel(self) -> None:
        """Abandon the session. Nothing is persisted."""
        self.cancelled = True
        logger.info("Pick session abandoned", order_id=self.order_id)

    def summary(self) -> dict:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "phase": self.phase.value,
            "items": [
                {
                    "line_item_id": item.line_item_id,
                    "sku": item.sku,
                    "product_name": item.product_name,
                    "quantity": item.quantity,
                    "picked_quantity": item.picked_quantity,
                    "verified": item.verified,
                }
                for item in self.items
            ],
            "packing_notes": self.packing_notes,
            "carrier": self.carrier,
            "tracking_number": self.tracking_number or None,
            "notify_customer": self.notify_customer,
            "result": self.result,
        }
