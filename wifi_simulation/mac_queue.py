from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, List, TYPE_CHECKING

from wifi_simulation.frames import WifiMacQueueItem
from wifi_simulation.trace import TraceSource

if TYPE_CHECKING:
    from des.des import DiscreteEventSimulator

_logger = logging.getLogger(__name__)


class WifiMacQueue:
    """The AP's best-effort EDCA queue.

    MSDUs are kept FIFO per receiver. An MSDU that stays longer than
    `max_delay` is expired lazily, the next time the queue is touched; expired
    MSDUs fire both `Expired` and `Dequeue`, so `Dequeue` observers must check
    the MSDU lifetime themselves.
    """

    def __init__(self, scheduler: DiscreteEventSimulator, max_size: int, max_delay: float):
        assert max_size > 0 and max_delay > 0
        self.scheduler = scheduler
        self.max_size = max_size
        self.max_delay = max_delay
        self._queues: Dict[str, Deque[WifiMacQueueItem]] = {}
        self._n_items = 0
        self.peak_queue_len = 0
        self.dropped_count = 0

        self.enqueue_trace = TraceSource("Enqueue")
        self.dequeue_trace = TraceSource("Dequeue")
        self.expired_trace = TraceSource("Expired")

    def enqueue(self, item: WifiMacQueueItem) -> bool:
        """Append an MSDU; returns False (and drops it) if the queue is full."""
        if self._n_items >= self.max_size:
            self.remove_expired()
        if self._n_items >= self.max_size:
            self.dropped_count += 1
            return False
        self._queues.setdefault(item.header.addr1, deque()).append(item)
        self._n_items += 1
        if self._n_items > self.peak_queue_len:
            self.peak_queue_len = self._n_items
        self.enqueue_trace(item)
        return True

    def remove_expired(self) -> None:
        now = self.scheduler.get_current_time()
        for queue in self._queues.values():
            while queue and now > queue[0].timestamp + self.max_delay:
                item = queue.popleft()
                self._n_items -= 1
                if _logger.isEnabledFor(logging.DEBUG):
                    _logger.debug(f"[sim_t={now:012.6f}s] MSDU expired       dst={item.header.addr1} uid={item.packet.uid}")
                self.expired_trace(item)
                self.dequeue_trace(item)

    def has_frames_for(self, address: str) -> bool:
        self.remove_expired()
        return bool(self._queues.get(address))

    def peek(self, address: str) -> WifiMacQueueItem | None:
        self.remove_expired()
        queue = self._queues.get(address)
        return queue[0] if queue else None

    def dequeue(self, address: str) -> WifiMacQueueItem | None:
        """Remove the head MSDU for `address` (after purging expired MSDUs)."""
        self.remove_expired()
        queue = self._queues.get(address)
        if not queue:
            return None
        item = queue.popleft()
        self._n_items -= 1
        self.dequeue_trace(item)
        return item

    def addresses_with_frames(self) -> List[str]:
        self.remove_expired()
        return [addr for addr, queue in self._queues.items() if queue]

    def size(self, address: str | None = None) -> int:
        if address is None:
            return self._n_items
        return len(self._queues.get(address, ()))

    def __len__(self) -> int:
        return self._n_items
