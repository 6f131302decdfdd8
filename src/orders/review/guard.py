"""Per-order critical section around command processing.

Every status-changing command goes through ``process_for_order`` so that
"load the order, check its status, append the event, commit" happens under
one lock per order id. Two commands on the same order therefore see each
other's writes; commands on different orders never wait on each other.

The lock lives in-process. Multi-process deployments rely on the event
store's per-stream version check for the same guarantee.
"""

import threading
from contextlib import contextmanager

import structlog
from protean.utils.globals import current_domain

logger = structlog.get_logger(__name__)

_registry_lock = threading.Lock()
_order_locks: dict[str, list] = {}  # order id -> [RLock, holders]


@contextmanager
def order_guard(order_id):
    key = str(order_id)
    with _registry_lock:
        entry = _order_locks.setdefault(key, [threading.RLock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                _order_locks.pop(key, None)


def process_for_order(order_id, command):
    """Process ``command`` synchronously while holding ``order_id``'s lock."""
    with order_guard(order_id):
        logger.debug("order_command_processing", order_review_id=str(order_id), command=type(command).__name__)
        return current_domain.process(command, asynchronous=False)


def active_guards() -> int:
    with _registry_lock:
        return len(_order_locks)
