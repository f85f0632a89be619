"""Caches shared by every runtime provider in the process."""

from __future__ import annotations

import threading
from typing import Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


class ConcurrentCache(Generic[K, V]):
    """Lock-free reads, insert-if-absent writes.

    Two threads may race to compute the same entry; the first stored value
    wins and both callers get it, so a key never maps to two values.
    """

    def __init__(self) -> None:
        self._items: dict[K, V] = {}
        self._lock = threading.Lock()

    def get_or_add(self, key: K, factory: Callable[[K], V]) -> V:
        found = self._items.get(key, _MISSING)
        if found is not _MISSING:
            return found
        value = factory(key)
        with self._lock:
            return self._items.setdefault(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
