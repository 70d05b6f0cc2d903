import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from orderdesk.fulfillment_order.creation import IngestOrder
from orderdesk.fulfillment_order.dispatch import dispatch
from orderdesk.fulfillment_order.fulfillment_order import FulfillmentOrder
from orderdesk.fulfillment_order.locking import reset_locks
from orderdesk.notifier import get_notifier, reset_notifier

DEFAULT_ITEMS = [
    {"sku": "KB-MECH-001", "product_name": "Mechanical Keyboard", "quantity": 3},
    {"sku": "MP-XL-BLK", "product_name": "Mouse Pad XL", "quantity": 1},
]

DEFAULT_ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "address1": "Hauptstrasse 1",
    "city": "Berlin",
    "zip_code": "10115",
    "country": "Germany",
    "country_code": "DE",
}


@pytest.fixture(scope="session")
def orderdesk_bed():
    from orderdesk.domain import orderdesk

    bed = DomainFixture(orderdesk)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(orderdesk_bed):
    with orderdesk_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()

    reset_notifier()
    reset_locks()


@pytest.fixture()
def notifier():
    return get_notifier()


@pytest.fixture()
def make_order():
    """Build an OPEN order directly on the aggregate, with its events cleared."""

    def _make(items=None, address=DEFAULT_ADDRESS, **overrides):
        attributes = dict(
            order_number="ORD-1001",
            line_items_data=items or DEFAULT_ITEMS,
            shipping_address=address,
            customer_name="Ada Lovelace",
            customer_email="ada@example.com",
            channel_name="Shopify DE",
        )
        attributes.update(overrides)
        order = FulfillmentOrder.ingest(**attributes)
        order._events.clear()
        return order

    return _make


@pytest.fixture()
def ingest():
    """Ingest an order through the command surface and return its id."""

    def _ingest(order_number="ORD-1001", items=None, address=DEFAULT_ADDRESS, **overrides):
        attributes = dict(
            customer_name="Ada Lovelace",
            customer_email="ada@example.com",
            channel_name="Shopify DE",
        )
        attributes.update(overrides)
        return dispatch(
            IngestOrder(
                order_number=order_number,
                items=json.dumps(items or DEFAULT_ITEMS),
                shipping_address=json.dumps(address) if address else None,
                **attributes,
            )
        )

    return _ingest


@pytest.fixture()
def load():
    def _load(order_id) -> FulfillmentOrder:
        return current_domain.repository_for(FulfillmentOrder).get(order_id)

    return _load
