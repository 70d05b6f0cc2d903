"""Fulfillment creation, tracking and location moves on the aggregate."""

import json

import pytest
from protean.exceptions import ValidationError

from orderdesk.fulfillment_order.errors import AlreadyTerminal, HeldOrder, InvalidTransition
from orderdesk.fulfillment_order.events import FulfillmentCreated, LocationChanged, TrackingUpdated
from orderdesk.fulfillment_order.fulfillment_order import AuditActionType


def _line(order, index=0, quantity=None):
    item = order.line_items[index]
    return {"id": str(item.id), "quantity": item.quantity if quantity is None else quantity}


class TestCreateFulfillment:
    def test_fulfilling_everything_closes_the_order(self, make_order):
        order = make_order()
        order.create_fulfillment()
        assert order.status == "CLOSED"
        assert all(item.remaining_quantity == 0 for item in order.line_items)
        assert order.fulfilled_at is not None

    def test_partial_fulfillment_moves_to_in_progress(self, make_order):
        order = make_order()
        order.create_fulfillment(line_items=[_line(order, 0, 2)])
        assert order.status == "IN_PROGRESS"
        assert order.line_items[0].fulfilled_quantity == 2
        assert order.line_items[0].remaining_quantity == 1

    def test_second_fulfillment_completes_the_rest(self, make_order):
        order = make_order()
        order.create_fulfillment(line_items=[_line(order, 0, 2)])
        order.create_fulfillment()
        assert order.status == "CLOSED"
        assert len(order.fulfillments) == 2
        lines = json.loads(order.fulfillments[1].line_items)
        assert {line["quantity"] for line in lines} == {1}

    def test_from_scheduled(self, make_order):
        order = make_order()
        order.change_status("SCHEDULED")
        order.create_fulfillment(line_items=[_line(order, 1)])
        assert order.status == "IN_PROGRESS"

    @pytest.mark.parametrize("quantity", [0, -1, 4])
    def test_quantity_outside_remaining_is_rejected(self, make_order, quantity):
        order = make_order()
        with pytest.raises(ValidationError):
            order.create_fulfillment(line_items=[_line(order, 0, quantity)])
        assert order.status == "OPEN"
        assert order.audit_entries == []

    def test_unknown_line_item(self, make_order):
        order = make_order()
        with pytest.raises(ValidationError):
            order.create_fulfillment(line_items=[{"id": "nope", "quantity": 1}])

    @pytest.mark.parametrize(
        "line_items",
        [
            ["not-an-object"],
            {"id": "x", "quantity": 1},
        ],
    )
    def test_malformed_line_items(self, make_order, line_items):
        order = make_order()
        with pytest.raises(ValidationError) as exc:
            order.create_fulfillment(line_items=line_items)
        assert "line_items" in exc.value.messages
        assert order.audit_entries == []

    def test_non_numeric_quantity(self, make_order):
        order = make_order()
        with pytest.raises(ValidationError) as exc:
            order.create_fulfillment(line_items=[{"id": str(order.line_items[0].id), "quantity": "two"}])
        assert "whole number" in exc.value.messages["line_items"][0]
        assert order.status == "OPEN"

    def test_duplicate_line_item(self, make_order):
        order = make_order()
        with pytest.raises(ValidationError):
            order.create_fulfillment(line_items=[_line(order, 0, 1), _line(order, 0, 1)])

    def test_held_order(self, make_order):
        order = make_order()
        order.place_hold("AWAITING_PAYMENT")
        with pytest.raises(HeldOrder) as exc:
            order.create_fulfillment()
        assert exc.value.kind == "HeldOrder"

    def test_closed_order(self, make_order):
        order = make_order()
        order.create_fulfillment()
        with pytest.raises(AlreadyTerminal):
            order.create_fulfillment()

    def test_one_audit_entry_even_with_tracking(self, make_order):
        order = make_order()
        order.create_fulfillment(tracking_number="00340434", carrier="dhl")
        assert len(order.audit_entries) == 1
        entry = order.audit_entries[0]
        assert entry.action_type == AuditActionType.FULFILLMENT_CREATED.value
        assert entry.previous_value == "OPEN"
        assert entry.new_value == "CLOSED"

    def test_tracking_is_recorded_with_carrier_url(self, make_order):
        order = make_order()
        record = order.create_fulfillment(tracking_number="00340434", carrier="dhl", notify_customer=True)
        tracking = order.latest_tracking
        assert tracking.tracking_number == "00340434"
        assert tracking.carrier_name == "DHL"
        assert tracking.tracking_url == "https://www.dhl.com/track?trackingNumber=00340434"
        assert tracking.notified_customer is True
        assert str(tracking.fulfillment_id) == str(record.id)

    def test_unknown_carrier_rejected_before_any_change(self, make_order):
        order = make_order()
        with pytest.raises(ValidationError):
            order.create_fulfillment(tracking_number="1", carrier="pigeon")
        assert order.status == "OPEN"
        assert order.fulfillments == []

    def test_raises_fulfillment_created(self, make_order):
        order = make_order()
        order.create_fulfillment(notify_customer=True)
        event = order._events[-1]
        assert isinstance(event, FulfillmentCreated)
        assert event.new_status == "CLOSED"
        assert event.notify_customer is True
        assert event.customer_email == "ada@example.com"
        assert len(json.loads(event.line_items)) == 2


class TestTracking:
    def _fulfilled(self, make_order, **kwargs):
        order = make_order()
        order.create_fulfillment(**kwargs)
        return order

    def test_add_tracking_appends(self, make_order):
        order = self._fulfilled(make_order, tracking_number="T-1", carrier="ups")
        order.add_tracking("T-2", carrier="fedex")
        assert [t.tracking_number for t in order.tracking_entries] == ["T-1", "T-2"]
        assert order.latest_tracking.carrier_name == "FedEx"

    def test_update_replaces_latest_entry(self, make_order):
        order = self._fulfilled(make_order, tracking_number="T-1", carrier="ups")
        order.update_tracking("T-9", carrier="gls")
        assert len(order.tracking_entries) == 1
        assert order.latest_tracking.tracking_number == "T-9"
        assert order.latest_tracking.carrier_name == "GLS"
        entry = order.audit_trail()[-1]
        assert entry.action_type == AuditActionType.TRACKING_UPDATE.value
        assert entry.previous_value == "T-1"
        assert entry.new_value == "T-9"

    def test_update_without_existing_entry_appends(self, make_order):
        order = self._fulfilled(make_order)
        order.update_tracking("T-1", carrier="dpd")
        assert len(order.tracking_entries) == 1
        assert order.audit_trail()[-1].previous_value is None

    def test_custom_url_wins_over_template(self, make_order):
        order = self._fulfilled(make_order)
        order.add_tracking("X1", carrier="other", tracking_url="https://track.example.com/X1")
        assert order.latest_tracking.tracking_url == "https://track.example.com/X1"

    @pytest.mark.parametrize("number", [None, "", "   "])
    def test_tracking_number_required(self, make_order, number):
        order = self._fulfilled(make_order)
        with pytest.raises(ValidationError):
            order.update_tracking(number, carrier="dhl")

    def test_open_order_is_not_shippable(self, make_order):
        order = make_order()
        with pytest.raises(InvalidTransition):
            order.add_tracking("T-1", carrier="dhl")
        assert order.audit_entries == []

    def test_held_order_with_a_fulfillment_accepts_tracking(self, make_order):
        order = make_order()
        order.create_fulfillment(line_items=[_line(order, 0, 1)])
        order.place_hold("INCORRECT_ADDRESS")
        order.add_tracking("T-1", carrier="dhl")
        assert order.status == "ON_HOLD"
        assert order.latest_tracking.tracking_number == "T-1"

    def test_held_order_without_a_fulfillment_rejects_tracking(self, make_order):
        order = make_order()
        order.place_hold("OTHER")
        with pytest.raises(InvalidTransition):
            order.update_tracking("T-1", carrier="dhl")

    def test_in_progress_order_accepts_tracking(self, make_order):
        order = make_order()
        order.change_status("IN_PROGRESS")
        order.add_tracking("T-1")
        assert order.latest_tracking.carrier_name is None

    def test_unknown_fulfillment_id(self, make_order):
        order = self._fulfilled(make_order)
        with pytest.raises(ValidationError):
            order.add_tracking("T-1", fulfillment_id="missing")

    def test_raises_tracking_updated(self, make_order):
        order = self._fulfilled(make_order, tracking_number="T-1")
        order._events.clear()
        order.update_tracking("T-2", carrier="dhl", notify_customer=True)
        event = order._events[-1]
        assert isinstance(event, TrackingUpdated)
        assert event.previous_tracking_number == "T-1"
        assert event.notify_customer is True


class TestMoveToLocation:
    def test_move(self, make_order):
        order = make_order()
        order.move_to_location("wh-berlin", "Berlin")
        assert order.assigned_location_id == "wh-berlin"
        assert order.assigned_location_name == "Berlin"
        entry = order.audit_entries[0]
        assert entry.action_type == AuditActionType.LOCATION_CHANGE.value
        assert entry.previous_value is None
        assert entry.new_value == "Berlin"
        assert isinstance(order._events[-1], LocationChanged)

    def test_move_to_current_location(self, make_order):
        order = make_order()
        order.move_to_location("wh-berlin")
        with pytest.raises(ValidationError):
            order.move_to_location("wh-berlin")
        assert len(order.audit_entries) == 1

    def test_location_required(self, make_order):
        with pytest.raises(ValidationError):
            make_order().move_to_location("")
