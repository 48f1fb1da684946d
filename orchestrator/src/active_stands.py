"""
Registry of stands currently held by an executor.
"""

import threading
from typing import Iterator, Set


class ActiveStands:
    """Concurrency-safe set of stand names; at most one holder per name."""

    def __init__(self):
        self._lock = threading.Lock()
        self._names: Set[str] = set()

    def try_acquire(self, name: str) -> bool:
        """Register the name unless it is already held. Returns True on success."""
        with self._lock:
            if name in self._names:
                return False
            self._names.add(name)
            return True

    def release(self, name: str):
        with self._lock:
            self._names.discard(name)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._names

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(sorted(self._names))
