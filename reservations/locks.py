"""In-process mutual exclusion per key, e.g. ``(court_id, date)`` or ``user_id``."""

from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Hashable, Iterator

logger = logging.getLogger(__name__)


class KeyedLocks:
    """Hands out one lock per key.

    Locks live in a ``WeakValueDictionary``: a key's lock is dropped once no
    caller holds a reference to it, so the registry does not grow with every
    key ever seen. Requests for different keys never block each other.

    These locks only order threads inside one process. Across processes the
    store's row locks and overlap constraint apply.
    """

    def __init__(self, name: str = "lock") -> None:
        self.name = name
        self._registry_lock = threading.Lock()
        self._locks: weakref.WeakValueDictionary[tuple[Hashable, ...], threading.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, key: tuple[Hashable, ...]) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *key: Hashable) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            logger.debug("%s_acquired key=%s", self.name, key)
            yield
