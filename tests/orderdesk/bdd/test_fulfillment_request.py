"""BDD tests for the fulfillment request handshake."""

from protean.exceptions import ValidationError
from pytest_bdd import parsers, scenarios, when

from orderdesk.fulfillment_order.errors import FulfillmentOrderError

scenarios("features/request_handshake.feature")


@when("the fulfillment request is submitted", target_fixture="order")
def submit_request(order):
    order.submit_request()
    return order


@when(
    parsers.cfparse('the fulfillment request is rejected with reason "{reason}"'),
    target_fixture="order",
)
def reject_request(order, reason):
    order.reject_request(reason)
    return order


@when("a rejection is attempted without a reason", target_fixture="order")
def attempt_rejection_without_reason(order, error):
    try:
        order.reject_request("")
    except ValidationError as exc:
        error["exc"] = exc
    return order


@when("an acceptance is attempted", target_fixture="order")
def attempt_acceptance(order, error):
    try:
        order.accept_request()
    except FulfillmentOrderError as exc:
        error["exc"] = exc
    return order


@when(
    parsers.cfparse('cancellation is requested with message "{message}"'),
    target_fixture="order",
)
def request_cancellation(order, message):
    order.request_cancellation(message)
    return order


@when("the cancellation is accepted", target_fixture="order")
def accept_cancellation(order):
    order.accept_cancellation()
    return order


@when(
    parsers.cfparse('the cancellation is rejected with reason "{reason}"'),
    target_fixture="order",
)
def reject_cancellation(order, reason):
    order.reject_cancellation(reason)
    return order
