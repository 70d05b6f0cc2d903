"""Outbound customer and merchant notifications.

Domain code asks ``get_notifier()`` for the process-wide adapter and never
imports an adapter directly. ``NOTIFIER_ADAPTER`` names the adapter; it is
read once, on first use, so tests that change it call ``reset_notifier()``.
"""

import importlib
import os

from protean.exceptions import ConfigurationError

from orderdesk.notifier.port import NotifierPort

# Adapter name -> "module:class", imported lazily
_ADAPTERS = {
    "fake": "orderdesk.notifier.fake_adapter:FakeNotifier",
}

_notifier: NotifierPort | None = None


def _load(name: str) -> NotifierPort:
    try:
        target = _ADAPTERS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown notifier adapter: {name!r}") from None
    module_name, class_name = target.split(":")
    return getattr(importlib.import_module(module_name), class_name)()


def get_notifier() -> NotifierPort:
    global _notifier
    if _notifier is None:
        _notifier = _load(os.environ.get("NOTIFIER_ADAPTER", "fake"))
    return _notifier


def reset_notifier() -> None:
    global _notifier
    _notifier = None
