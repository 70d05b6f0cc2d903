import os
from pathlib import PurePosixPath

import pytest

# Directory under tests/orderdesk -> marker applied to every test in it
_LAYER_MARKERS = {
    "domain": "domain",
    "application": "application",
    "integration": "integration",
    "bdd": "bdd",
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="domain.toml overlay to run the suite against",
    )


def pytest_sessionstart(session):
    """Select the config overlay and the notifier before the domain initialises."""
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ.setdefault("NOTIFIER_ADAPTER", "fake")


def pytest_collection_modifyitems(config, items):
    for item in items:
        parts = PurePosixPath(item.path.as_posix()).parts
        layer = next((_LAYER_MARKERS[p] for p in parts if p in _LAYER_MARKERS), None)
        if layer is None:
            continue
        item.add_marker(getattr(pytest.mark, layer))
        if layer == "integration" and item.get_closest_marker("fast") is None:
            item.add_marker(pytest.mark.slow)
