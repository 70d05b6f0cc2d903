"""Every accepted change leaves exactly one audit entry."""

from datetime import UTC, datetime

import pytest

from orderdesk.fulfillment_order.errors import FulfillmentOrderError
from orderdesk.fulfillment_order.fulfillment_order import default_operator


def _steps(order):
    return [
        (lambda: order.move_to_location("wh-1", "Main"), "Main"),
        (lambda: order.change_status("IN_PROGRESS"), "IN_PROGRESS"),
        (lambda: order.place_hold("AWAITING_PAYMENT"), "AWAITING_PAYMENT"),
        (lambda: order.release_hold(), "IN_PROGRESS"),
        (lambda: order.submit_request(), "SUBMITTED"),
        (lambda: order.accept_request(), "ACCEPTED"),
        (lambda: order.create_fulfillment(line_items=[{"id": str(order.line_items[0].id), "quantity": 1}]), "IN_PROGRESS"),
        (lambda: order.add_tracking("T-1", carrier="dhl"), "T-1"),
        (lambda: order.update_tracking("T-2", carrier="dhl"), "T-2"),
        (lambda: order.create_fulfillment(), "CLOSED"),
    ]


class TestAuditTrail:
    def test_one_entry_per_accepted_change_with_matching_new_value(self, make_order):
        order = make_order()
        for count, (step, expected) in enumerate(_steps(order), start=1):
            step()
            assert len(order.audit_entries) == count
            assert order.audit_trail()[-1].new_value == expected

    def test_rejected_changes_leave_no_entry(self, make_order):
        order = make_order()
        attempts = [
            lambda: order.release_hold(),
            lambda: order.change_status("CLOSED"),
            lambda: order.accept_request(),
            lambda: order.add_tracking("T-1"),
        ]
        for attempt in attempts:
            with pytest.raises(FulfillmentOrderError):
                attempt()
        assert order.audit_entries == []

    def test_trail_is_ordered_by_time_then_sequence(self, make_order):
        order = make_order()
        order.change_status("IN_PROGRESS")
        order.change_status("SCHEDULED")
        order.change_status("IN_PROGRESS")
        same_instant = datetime(2026, 1, 1, tzinfo=UTC)
        for entry in order.audit_entries:
            entry.performed_at = same_instant
        assert [e.new_value for e in order.audit_trail()] == ["IN_PROGRESS", "SCHEDULED", "IN_PROGRESS"]
        assert [e.sequence for e in order.audit_trail()] == [1, 2, 3]

    def test_entries_reference_the_order(self, make_order):
        order = make_order()
        order.change_status("IN_PROGRESS")
        assert order.audit_entries[0].order_id == str(order.id)

    def test_default_operator_comes_from_environment(self, make_order, monkeypatch):
        monkeypatch.setenv("ORDERDESK_OPERATOR", "night-shift")
        assert default_operator() == "night-shift"
        order = make_order()
        order.change_status("IN_PROGRESS")
        assert order.audit_entries[0].performed_by == "night-shift"

    def test_default_operator_is_system(self, monkeypatch):
        monkeypatch.delenv("ORDERDESK_OPERATOR", raising=False)
        assert default_operator() == "system"
