"""Stable priority queue for page assets.

Items come out ordered by priority (ascending or descending) and, for equal
priorities, in the order they were inserted. Ordering is driven by a
composite ``QueueKey(priority, sequence)`` so that no two keys ever compare
equal, which keeps the order total and deterministic.
"""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar

import structlog

log = structlog.get_logger()

T = TypeVar("T")


class Order(StrEnum):
    ASCENDING = "ascending"  # Lower priority values render first
    DESCENDING = "descending"  # Higher priority values render first


@dataclass(frozen=True, slots=True)
class QueueKey:
    priority: int
    sequence: int
    owner: object  # token of the queue that produced the key


def _direct_compare(a: Any, b: Any) -> int:
    try:
        return (a > b) - (a < b)
    except TypeError:
        log.debug("queue_compare_incomparable", left=repr(a), right=repr(b))
        return 0


class _Slot(Generic[T]):
    __slots__ = ("key", "value", "_queue")

    def __init__(self, key: QueueKey, value: T, queue: AssetQueue[T]) -> None:
        self.key = key
        self.value = value
        self._queue = queue

    def __lt__(self, other: _Slot[T]) -> bool:
        return self._queue.compare(self.key, other.key) < 0


class AssetQueue(Generic[T]):
    """Priority queue with FIFO tie-break.

    ``__iter__`` and ``items()`` walk a sorted snapshot and leave the queue
    untouched, so rendering a queue twice gives the same result. ``pop()``
    and ``drain()`` consume it.
    """

    def __init__(self, order: Order | str = Order.ASCENDING) -> None:
        self.order = Order(order)
        self._heap: list[_Slot[T]] = []
        self._sequence = itertools.count()
        self._token = object()

    def insert(self, value: T, priority: int) -> QueueKey:
        key = QueueKey(priority=priority, sequence=next(self._sequence), owner=self._token)
        heapq.heappush(self._heap, _Slot(key, value, self))
        return key

    def compare(self, a: Any, b: Any) -> int:
        """Return <0 if ``a`` comes out first, >0 if ``b`` does.

        Only keys produced by this queue are compared on (priority, sequence).
        Anything else falls back to comparing the raw values directly.
        """
        if not (self._owns(a) and self._owns(b)):
            return _direct_compare(a, b)
        if a.priority != b.priority:
            result = _direct_compare(a.priority, b.priority)
            return result if self.order is Order.ASCENDING else -result
        return _direct_compare(a.sequence, b.sequence)

    def _owns(self, key: Any) -> bool:
        return isinstance(key, QueueKey) and key.owner is self._token

    def pop(self) -> T:
        if not self._heap:
            raise IndexError("pop from an empty AssetQueue")
        return heapq.heappop(self._heap).value

    def peek(self) -> T:
        if not self._heap:
            raise IndexError("peek at an empty AssetQueue")
        return self._heap[0].value

    def drain(self) -> list[T]:
        """Remove and return every value in order."""
        values = [slot.value for slot in sorted(self._heap)]
        self._heap.clear()
        return values

    def items(self) -> Iterator[tuple[QueueKey, T]]:
        for slot in sorted(self._heap):
            yield slot.key, slot.value

    def __iter__(self) -> Iterator[T]:
        for _, value in self.items():
            yield value

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)
