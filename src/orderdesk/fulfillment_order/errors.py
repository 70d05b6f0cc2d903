"""Typed errors raised by fulfillment order operations.

Every error carries the order id, a machine-readable ``kind`` and a human
message so callers can render it inline or collect it into a bulk result.
Missing or malformed input is reported with Protean's ``ValidationError``
and unknown order ids with ``ObjectNotFoundError``; ``describe_error``
normalises all of them into the same ``(kind, message)`` shape.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class FulfillmentOrderError(Exception):
    """Base class for state-machine violations on a fulfillment order."""

    kind = "FulfillmentOrderError"

    def __init__(self, message: str, order_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.order_id = order_id

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, "order_id": self.order_id}


class InvalidTransition(FulfillmentOrderError):
    """The requested change is not legal from the current state."""

    kind = "InvalidTransition"

    def __init__(
        self,
        current: str,
        requested: str,
        order_id: str | None = None,
        message: str | None = None,
    ):
        self.current = current
        self.requested = requested
        super().__init__(message or f"Cannot transition from {current} to {requested}", order_id)


class AlreadyTerminal(InvalidTransition):
    """The order is CLOSED or CANCELLED and accepts no further changes.

    Reported with the ``InvalidTransition`` kind; ``to_dict`` flags it as
    terminal so callers can tell it apart without a separate kind.
    """

    def __init__(self, current: str, requested: str, order_id: str | None = None):
        super().__init__(
            current,
            requested,
            order_id,
            message=f"Order is {current} and cannot transition to {requested}",
        )

    def to_dict(self) -> dict:
        return {**super().to_dict(), "terminal": True}


class HeldOrder(FulfillmentOrderError):
    """The operation is blocked because the order is ON_HOLD."""

    kind = "HeldOrder"

    def __init__(self, order_id: str | None, operation: str):
        self.operation = operation
        super().__init__(f"Order is on hold; cannot {operation}", order_id)


class NotOnHold(FulfillmentOrderError):
    """A release was attempted on an order that is not ON_HOLD."""

    kind = "NotOnHold"

    def __init__(self, order_id: str | None, current: str):
        self.current = current
        super().__init__(f"Order is not on hold (status is {current})", order_id)


def _flatten_messages(messages) -> str:
    if isinstance(messages, dict):
        parts = []
        for field, errors in messages.items():
            errors = errors if isinstance(errors, (list, tuple)) else [errors]
            parts.append(f"{field}: {', '.join(str(e) for e in errors)}")
        return "; ".join(parts)
    return str(messages)


def describe_error(exc: Exception) -> tuple[str, str]:
    """Return ``(kind, message)`` for any error an order operation can raise."""
    if isinstance(exc, FulfillmentOrderError):
        return exc.kind, exc.message
    if isinstance(exc, ValidationError):
        return "ValidationError", _flatten_messages(getattr(exc, "messages", str(exc)))
    if isinstance(exc, ObjectNotFoundError):
        return "NotFound", str(exc) or "Order not found"
    return type(exc).__name__, str(exc)
