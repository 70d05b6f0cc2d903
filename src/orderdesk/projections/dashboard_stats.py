"""Dashboard statistics computed from the fulfillment queue."""

from datetime import UTC, datetime

from protean.utils.globals import current_domain

from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrderStatus
from orderdesk.projections.fulfillment_queue import FulfillmentQueueView


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def dashboard_stats(as_of: datetime | None = None) -> dict:
    """Counts per status, shipments today and mean hours from ingestion to fulfillment."""
    now = _as_utc(as_of) or datetime.now(UTC)
    rows = current_domain.repository_for(FulfillmentQueueView)._dao.query.limit(None).all().items

    counts = {status.value: 0 for status in FulfillmentOrderStatus}
    today_shipments = 0
    durations = []
    for row in rows:
        counts[row.status] = counts.get(row.status, 0) + 1
        fulfilled_at = _as_utc(row.fulfilled_at)
        created_at = _as_utc(row.created_at)
        if fulfilled_at is None:
            continue
        if fulfilled_at.date() == now.date():
            today_shipments += 1
        if created_at is not None:
            durations.append((fulfilled_at - created_at).total_seconds() / 3600)

    return {
        "total_orders": len(rows),
        "pending_fulfillment": counts[FulfillmentOrderStatus.OPEN.value],
        "in_progress": counts[FulfillmentOrderStatus.IN_PROGRESS.value]
        + counts[FulfillmentOrderStatus.SCHEDULED.value],
        "on_hold": counts[FulfillmentOrderStatus.ON_HOLD.value],
        "shipped": counts[FulfillmentOrderStatus.CLOSED.value],
        "cancelled": counts[FulfillmentOrderStatus.CANCELLED.value],
        "avg_fulfillment_time": round(sum(durations) / len(durations), 2) if durations else 0.0,
        "today_shipments": today_shipments,
        "by_status": counts,
    }
