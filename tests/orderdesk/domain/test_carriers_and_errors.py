"""Carrier catalogue, typed errors and the fake notifier."""

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError

from orderdesk.fulfillment_order.errors import (
    AlreadyTerminal,
    HeldOrder,
    InvalidTransition,
    NotOnHold,
    describe_error,
)
from orderdesk.notifier.fake_adapter import FakeNotifier
from orderdesk.shared.carriers import CARRIERS, resolve_carrier


class TestCarriers:
    @pytest.mark.parametrize("value", ["dhl", "DHL", " dhl ", "Deutsche Post", "deutsche_post"])
    def test_resolve_by_id_or_name(self, value):
        assert resolve_carrier(value).id in CARRIERS

    def test_unknown_carrier(self):
        with pytest.raises(ValidationError):
            resolve_carrier("pigeon")

    def test_tracking_url(self):
        assert resolve_carrier("gls").tracking_url("123") == "https://gls-group.eu/track/123"

    def test_other_has_no_template(self):
        assert resolve_carrier("other").tracking_url("123") is None


class TestErrors:
    def test_already_terminal_is_invalid_transition(self):
        exc = AlreadyTerminal("CLOSED", "ON_HOLD", order_id="fo-1")
        assert isinstance(exc, InvalidTransition)
        assert exc.to_dict() == {
            "error": "InvalidTransition",
            "message": "Order is CLOSED and cannot transition to ON_HOLD",
            "order_id": "fo-1",
            "terminal": True,
        }

    @pytest.mark.parametrize(
        "exc, kind",
        [
            (InvalidTransition("OPEN", "CLOSED"), "InvalidTransition"),
            (HeldOrder("fo-1", "create a fulfillment"), "HeldOrder"),
            (NotOnHold("fo-1", "OPEN"), "NotOnHold"),
            (ValidationError({"reason": ["A hold reason is required"]}), "ValidationError"),
            (ObjectNotFoundError("FulfillmentOrder with id fo-x not found"), "NotFound"),
        ],
    )
    def test_describe_error(self, exc, kind):
        described_kind, message = describe_error(exc)
        assert described_kind == kind
        assert message

    def test_validation_message_is_flattened(self):
        _, message = describe_error(ValidationError({"reason": ["A hold reason is required"]}))
        assert message == "reason: A hold reason is required"


class TestFakeNotifier:
    def test_records_customer_messages(self):
        notifier = FakeNotifier()
        result = notifier.notify_customer("fo-1", "a@example.com", "Shipped", "Body")
        assert result["status"] == "sent"
        assert notifier.messages_for("customer")[0]["to"] == "a@example.com"

    def test_failure_mode(self):
        notifier = FakeNotifier()
        notifier.configure(should_succeed=False, failure_reason="SMTP down")
        result = notifier.notify_merchant("fo-1", "Subject", "Body")
        assert result == {"message_id": None, "status": "failed", "error": "SMTP down"}
        assert notifier.sent == []

    def test_raise_mode(self):
        notifier = FakeNotifier()
        notifier.configure(raise_error=True)
        with pytest.raises(ConnectionError):
            notifier.notify_customer("fo-1", None, "s", "b")

    def test_reset(self):
        notifier = FakeNotifier()
        notifier.notify_merchant("fo-1", "s", "b")
        notifier.configure(should_succeed=False)
        notifier.reset()
        assert notifier.sent == []
        assert notifier.should_succeed is True
