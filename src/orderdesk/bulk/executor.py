"""Bulk operations over many fulfillment orders.

Each order is an isolated unit: it goes through the same command and
dispatcher as a single-order call, and any error it raises is recorded
against that order instead of stopping the batch. Earlier successes are
never rolled back. Results are assembled in input order whether units
ran sequentially or on a thread pool.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

import structlog
from protean.exceptions import ValidationError

from orderdesk.domain import orderdesk
from orderdesk.fulfillment_order.dispatch import dispatch
from orderdesk.fulfillment_order.errors import describe_error
from orderdesk.fulfillment_order.fulfillment import CreateFulfillment
from orderdesk.fulfillment_order.hold import PlaceHold, ReleaseHold
from orderdesk.fulfillment_order.tracking import UpdateTracking

logger = structlog.get_logger(__name__)


class BulkOperation(Enum):
    FULFILL = "fulfill"
    HOLD = "hold"
    RELEASE = "release"
    TRACKING = "tracking"


@dataclass(frozen=True)
class BulkError:
    order_id: str
    error: str
    message: str

    def to_dict(self) -> dict:
        return {"order_id": self.order_id, "error": self.error, "message": self.message}


@dataclass(frozen=True)
class BulkOperationResult:
    processed: int
    failed: int
    errors: list[BulkError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "processed": self.processed,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
        }


def _max_workers() -> int:
    try:
        return max(1, int(os.environ.get("BULK_MAX_WORKERS", "1")))
    except ValueError:
        return 1


def _build_command(operation: BulkOperation, order_id: str, params: dict, index: int):
    performed_by = params.get("performed_by")

    if operation == BulkOperation.FULFILL:
        return CreateFulfillment(
            order_id=order_id,
            notify_customer=bool(params.get("notify_customer", False)),
            performed_by=performed_by,
        )
    if operation == BulkOperation.HOLD:
        return PlaceHold(
            order_id=order_id,
            reason=params.get("reason"),
            notes=params.get("notes"),
            performed_by=performed_by,
        )
    if operation == BulkOperation.RELEASE:
        return ReleaseHold(order_id=order_id, performed_by=performed_by)

    entry = params["tracking"][index] or {}
    entry_order_id = entry.get("order_id")
    if entry_order_id and str(entry_order_id) != str(order_id):
        raise ValidationError({"tracking": [f"Tracking entry {index} belongs to {entry_order_id}, not {order_id}"]})
    return UpdateTracking(
        order_id=order_id,
        tracking_number=entry.get("tracking_number"),
        carrier=entry.get("carrier") or None,
        tracking_url=entry.get("tracking_url") or None,
        notify_customer=bool(entry.get("notify_customer", params.get("notify_customer", False))),
        performed_by=performed_by,
    )


def _run_unit(operation: BulkOperation, order_id: str, params: dict, index: int) -> BulkError | None:
    try:
        dispatch(_build_command(operation, order_id, params, index))
    except Exception as exc:
        kind, message = describe_error(exc)
        logger.warning(
            "Bulk operation failed for order",
            operation=operation.value,
            order_id=order_id,
            error=kind,
            message=message,
        )
        return BulkError(order_id=order_id, error=kind, message=message)
    return None


def _run_unit_in_context(operation, order_id, params, index):
    with orderdesk.domain_context():
        return _run_unit(operation, order_id, params, index)


def execute_bulk(
    operation: BulkOperation | str,
    order_ids: list[str],
    params: dict | None = None,
    max_workers: int | None = None,
) -> BulkOperationResult:
    """Apply ``operation`` to every order in ``order_ids``.

    Per-order problems (held orders, illegal transitions, bad reasons,
    unknown ids) become entries in ``errors``. Only a request that cannot
    be applied to any order at all raises ``ValidationError``.
    """
    try:
        operation = BulkOperation(operation)
    except ValueError:
        raise ValidationError({"operation": [f"Unknown bulk operation: {operation!r}"]}) from None
    if not order_ids:
        raise ValidationError({"order_ids": ["At least one order id is required"]})

    params = dict(params or {})
    if operation == BulkOperation.TRACKING:
        tracking = params.get("tracking") or []
        if len(tracking) != len(order_ids):
            raise ValidationError({"tracking": ["One tracking entry is required per order id"]})

    order_ids = [str(order_id) for order_id in order_ids]
    workers = min(max_workers or _max_workers(), len(order_ids))

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(_run_unit_in_context, operation, order_id, params, index)
                for index, order_id in enumerate(order_ids)
            ]
            outcomes = [future.result() for future in futures]
    else:
        outcomes = [_run_unit(operation, order_id, params, index) for index, order_id in enumerate(order_ids)]

    errors = [outcome for outcome in outcomes if outcome is not None]
    result = BulkOperationResult(
        processed=len(order_ids) - len(errors),
        failed=len(errors),
        errors=errors,
    )
    logger.info(
        "Bulk operation complete",
        operation=operation.value,
        processed=result.processed,
        failed=result.failed,
    )
    return result
