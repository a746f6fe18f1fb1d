from __future__ import annotations
import heapq
from itertools import count
from typing import Any, Callable, Generic, Iterator, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class BoundedMaxHeap(Generic[T]):
    """
    Keeps the ``capacity`` largest items by ``key``; ``pop`` yields the largest first.

    ``capacity=None`` keeps everything.
    """

    def __init__(self, key: Callable[[T], Any], capacity: Optional[int] = None):
        if capacity is not None and capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.key, self.capacity = key, capacity
        # min-heap of the retained items, so the weakest is evicted first
        self._items: List[Tuple[Any, int, T]] = []
        self._counter = count()

    def push(self, item: T) -> Optional[T]:
        """Add ``item``; returns whichever item was evicted, if any."""
        if self.capacity == 0:
            return item
        entry = (self.key(item), next(self._counter), item)
        if self.capacity is None or len(self._items) < self.capacity:
            heapq.heappush(self._items, entry)
            return None
        if entry[0] <= self._items[0][0]:
            return item
        return heapq.heapreplace(self._items, entry)[2]

    def peek(self) -> Optional[T]:
        return max(self._items)[2] if self._items else None

    def pop(self) -> T:
        if not self._items:
            raise IndexError("pop from an empty BoundedMaxHeap")
        best = max(range(len(self._items)), key=lambda i: self._items[i][:2])
        entry = self._items[best]
        self._items[best] = self._items[-1]
        self._items.pop()
        heapq.heapify(self._items)
        return entry[2]

    def to_list(self) -> List[T]:
        """Retained items, largest first."""
        return [entry[2] for entry in sorted(self._items, key=lambda e: e[:2], reverse=True)]

    def __iter__(self) -> Iterator[T]:
        return iter(self.to_list())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"BoundedMaxHeap(size={len(self)}, capacity={self.capacity})"
