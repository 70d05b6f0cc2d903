"""Shared BDD fixtures and step definitions for fulfillment orders."""

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

from orderdesk.fulfillment_order import events as order_events
from orderdesk.fulfillment_order.errors import describe_error


@pytest.fixture()
def error():
    """Container for the error raised by an attempted action."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an open order", target_fixture="order")
def open_order(make_order):
    return make_order(order_number="ORD-BDD-001")


@given(parsers.cfparse('an order on hold with reason "{reason}"'), target_fixture="order")
def held_order(make_order, reason):
    order = make_order(order_number="ORD-BDD-002")
    order.place_hold(reason)
    order._events.clear()
    return order


@given("an accepted order", target_fixture="order")
def accepted_order(make_order):
    order = make_order(order_number="ORD-BDD-003")
    order.submit_request()
    order.accept_request()
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then(parsers.cfparse('the request status is "{status}"'))
def request_status_is(order, status):
    assert order.request_status == status


@then(parsers.cfparse('the audit trail is "{actions}"'))
def audit_trail_is(order, actions):
    expected = [action.strip() for action in actions.split(",")]
    assert [entry.action_type for entry in order.audit_trail()] == expected


@then("the action fails with a validation error")
def action_fails_with_validation_error(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse('the action fails with "{kind}"'))
def action_fails_with(error, kind):
    assert error["exc"] is not None, f"Expected {kind} but nothing was raised"
    assert describe_error(error["exc"])[0] == kind


@then(parsers.cfparse("a {event_type} event is raised"))
def event_raised(order, event_type):
    event_cls = getattr(order_events, event_type)
    assert any(
        isinstance(e, event_cls) for e in order._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in order._events]}"


@then("the audit trail is empty")
def audit_trail_is_empty(order):
    assert order.audit_trail() == []
