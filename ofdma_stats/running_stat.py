from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass
class RunningStat:
    """Streaming min/max/mean of a sample stream, updated in O(1) without storing samples.

    `min`/`max` are None until the first sample. With `legacy_zero_sentinel`
    they start at 0.0 and a min of 0.0 means "unset", so a real 0.0 sample is
    overwritten by the next one; use it only to reproduce reference numbers.
    """

    count: int = 0
    min: Optional[float] = None
    max: Optional[float] = None
    mean: float = 0.0
    legacy_zero_sentinel: bool = False

    def __post_init__(self) -> None:
        if self.legacy_zero_sentinel and self.count == 0:
            self.min = 0.0
            self.max = 0.0

    def observe(self, x: float) -> None:
        if self.legacy_zero_sentinel:
            if self.min == 0.0 or x < self.min:
                self.min = x
            if x > self.max:
                self.max = x
        else:
            if self.min is None or x < self.min:
                self.min = x
            if self.max is None or x > self.max:
                self.max = x
        self.mean = (self.mean * self.count + x) / (self.count + 1)
        self.count += 1

    def snapshot(self) -> Tuple[Optional[float], Optional[float], float, int]:
        return self.min, self.max, self.mean, self.count

    def as_dict(self) -> dict:
        return {"min": self.min, "max": self.max, "avg": self.mean, "count": self.count}
