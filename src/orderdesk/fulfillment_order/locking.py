"""Per-order lock registry.

Commands against the same order id are serialised for their whole
duration, commit included. Locks for different orders never contend.
Entries are reference counted and dropped once no caller holds or waits
on them.
"""

import threading
from contextlib import contextmanager

_registry_lock = threading.Lock()
_locks: dict[str, list] = {}  # order_id -> [lock, holders]


@contextmanager
def order_lock(order_id: str):
    key = str(order_id)
    with _registry_lock:
        entry = _locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1

    entry[0].acquire()
    try:
        yield
    finally:
        entry[0].release()
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0 and _locks.get(key) is entry:
                del _locks[key]


def active_locks() -> int:
    with _registry_lock:
        return len(_locks)


def reset_locks():
    """Forget all lock entries (useful for testing)."""
    with _registry_lock:
        _locks.clear()
