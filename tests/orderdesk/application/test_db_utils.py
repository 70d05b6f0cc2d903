from unittest.mock import MagicMock, patch

from orderdesk.domain import orderdesk
from orderdesk.utils.db import drop_db, setup_db


class _OutboxRepository:
    def __init__(self):
        self.dao_requests = 0

    @property
    def _dao(self):
        self.dao_requests += 1
        return MagicMock()


def _sqlite_domain(outbox_repos):
    provider = MagicMock()
    provider.name = "default"
    provider.conn_info = {"provider": "sqlite", "database_uri": "sqlite://"}
    domain = MagicMock()
    domain.providers = {"default": provider}
    domain.registry.aggregates = {}
    domain.registry.entities = {}
    domain.registry.projections = {}
    domain._outbox_repos = outbox_repos
    return domain, provider


def test_setup_db_skips_memory_provider():
    assert setup_db(orderdesk) == []


def test_drop_db_skips_memory_provider():
    assert drop_db(orderdesk) == []


def test_setup_db_registers_outbox_table_when_outbox_is_active():
    outbox = _OutboxRepository()
    domain, provider = _sqlite_domain({"default": outbox})

    with patch("orderdesk.utils.db.create_engine") as create_engine:
        assert setup_db(domain) == ["default"]

    assert outbox.dao_requests == 1
    provider._metadata.create_all.assert_called_once_with(create_engine.return_value)


def test_setup_db_without_outbox():
    domain, provider = _sqlite_domain({})

    with patch("orderdesk.utils.db.create_engine"):
        assert setup_db(domain) == ["default"]

    provider._metadata.create_all.assert_called_once()
