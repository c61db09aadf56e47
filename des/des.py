import itertools
from dataclasses import field, dataclass
from typing import Callable

from des.min_value_priority_queue import MinValuePriorityQueue


@dataclass(order=True)
class DESEvent:
    time: float
    seq: int
    action: Callable[[], None] = field(compare=False)


class DiscreteEventSimulator:

    def __init__(self):
        self.current_time = 0.0
        self.event_queue: MinValuePriorityQueue = MinValuePriorityQueue()
        self.scheduling_counter = itertools.count()
        self.stop_time: float | None = None
        self.end_time: float | None = None

    def schedule_event(self, delay: float, action: Callable[[], None]) -> None:
        """Schedule an event to occur after a certain delay."""
        assert delay >= 0
        self.schedule_at(self.current_time + delay, action)

    def schedule_at(self, time: float, action: Callable[[], None]) -> None:
        """Schedule an event at an absolute simulation time (never in the past)."""
        assert time >= self.current_time, f"cannot schedule at {time} before now={self.current_time}"
        event = DESEvent(time, next(self.scheduling_counter), action)
        self.event_queue.enqueue(event)

    def stop(self, at: float) -> None:
        """Stop the run once the clock would pass `at` (absolute time)."""
        self.stop_time = at

    def run(self) -> None:
        """Run the simulation until there are no more events or the stop time is reached."""
        while self.event_queue:
            if self.stop_time is not None and self.event_queue.peek().time > self.stop_time:
                self.current_time = self.stop_time
                break
            event = self.event_queue.dequeue()
            self.current_time = event.time
            event.action()
        self.end_time = self.current_time

    def get_current_time(self) -> float:
        return self.current_time
