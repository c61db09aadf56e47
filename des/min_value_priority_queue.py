import heapq
from typing import Any, List


class MinValuePriorityQueue:
    """Binary-heap priority queue returning the smallest item first.

    Items must be mutually comparable; `DESEvent` orders by (time, seq) so
    equal-time events come out in scheduling order.
    """

    def __init__(self):
        self._heap: List[Any] = []

    def enqueue(self, item: Any) -> None:
        heapq.heappush(self._heap, item)

    def dequeue(self) -> Any:
        return heapq.heappop(self._heap)

    def peek(self) -> Any:
        return self._heap[0]

    def clear(self) -> None:
        self._heap.clear()

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)
