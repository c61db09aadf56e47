from __future__ import annotations

from typing import Any, Callable, List


class TraceSource:
    """A named event stream that lower layers fire and observers connect to.

    Callbacks run synchronously, in connection order. A callback disconnected
    while an event is being dispatched does not receive that event either.
    """

    def __init__(self, name: str):
        self.name = name
        self._sinks: List[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]) -> None:
        assert callback not in self._sinks, f"callback already connected to trace {self.name}"
        self._sinks.append(callback)

    def disconnect(self, callback: Callable[..., Any]) -> None:
        self._sinks.remove(callback)

    def is_connected(self, callback: Callable[..., Any]) -> bool:
        return callback in self._sinks

    def __call__(self, *args: Any) -> None:
        for sink in list(self._sinks):
            if sink in self._sinks:
                sink(*args)

    def __len__(self) -> int:
        return len(self._sinks)

    def __repr__(self) -> str:
        return f"TraceSource({self.name!r}, sinks={len(self._sinks)})"
