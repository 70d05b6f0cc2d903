"""Best-effort notifications fired by order events."""

import pytest
from protean.exceptions import ConfigurationError

from orderdesk.fulfillment_order.dispatch import dispatch
from orderdesk.fulfillment_order.fulfillment import CreateFulfillment
from orderdesk.fulfillment_order.request import SubmitFulfillmentRequest
from orderdesk.fulfillment_order.tracking import UpdateTracking
from orderdesk.notifier import get_notifier, reset_notifier
from orderdesk.notifier.fake_adapter import FakeNotifier


class TestCustomerNotifications:
    def test_fulfillment_with_notify_sends_customer_message(self, ingest, notifier):
        order_id = ingest()
        dispatch(CreateFulfillment(order_id=order_id, tracking_number="T-1", carrier="dhl", notify_customer=True))
        messages = notifier.messages_for("customer")
        assert len(messages) == 1
        assert messages[0]["to"] == "ada@example.com"
        assert "T-1" in messages[0]["body"]

    def test_no_message_without_notify(self, ingest, notifier):
        order_id = ingest()
        dispatch(CreateFulfillment(order_id=order_id))
        assert notifier.sent == []

    def test_tracking_update_notifies(self, ingest, notifier):
        order_id = ingest()
        dispatch(CreateFulfillment(order_id=order_id))
        dispatch(UpdateTracking(order_id=order_id, tracking_number="T-2", carrier="ups", notify_customer=True))
        assert notifier.messages_for("customer")[0]["subject"] == "Shipment tracking updated"

    def test_notifier_failure_does_not_fail_the_transition(self, ingest, load, notifier):
        notifier.configure(raise_error=True)
        order_id = ingest()
        result = dispatch(CreateFulfillment(order_id=order_id, notify_customer=True))
        assert result["status"] == "CLOSED"
        assert load(order_id).status == "CLOSED"

    def test_undelivered_notification_does_not_fail_the_transition(self, ingest, load, notifier):
        notifier.configure(should_succeed=False)
        order_id = ingest()
        dispatch(CreateFulfillment(order_id=order_id, notify_customer=True))
        assert load(order_id).status == "CLOSED"


class TestMerchantNotifications:
    def test_submit_with_notify_merchant(self, ingest, notifier):
        order_id = ingest()
        dispatch(SubmitFulfillmentRequest(order_id=order_id, message="rush", notify_merchant=True))
        messages = notifier.messages_for("merchant")
        assert len(messages) == 1
        assert messages[0]["body"] == "rush"

    def test_submit_without_notify_merchant(self, ingest, notifier):
        order_id = ingest()
        dispatch(SubmitFulfillmentRequest(order_id=order_id))
        assert notifier.sent == []

    def test_merchant_failure_keeps_submission(self, ingest, load, notifier):
        notifier.configure(raise_error=True)
        order_id = ingest()
        dispatch(SubmitFulfillmentRequest(order_id=order_id, notify_merchant=True))
        assert load(order_id).request_status == "SUBMITTED"


class TestAdapterSelection:
    def test_fake_adapter_is_a_singleton(self, monkeypatch):
        monkeypatch.setenv("NOTIFIER_ADAPTER", "fake")
        reset_notifier()
        assert isinstance(get_notifier(), FakeNotifier)
        assert get_notifier() is get_notifier()

    def test_unknown_adapter(self, monkeypatch):
        monkeypatch.setenv("NOTIFIER_ADAPTER", "carrier-pigeon")
        reset_notifier()
        with pytest.raises(ConfigurationError):
            get_notifier()
