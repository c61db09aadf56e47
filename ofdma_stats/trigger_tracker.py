from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence, Tuple

from ofdma_stats.errors import UnknownStationError
from ofdma_stats.records import GlobalAggregate, PerStationRecord

_logger = logging.getLogger(__name__)


class TrackerState(Enum):
    IDLE = 1  # no basic trigger frame seen yet
    WINDOW_OPEN = 2


@dataclass
class TrigWindow:
    """Accounting window of one basic trigger frame, open until the next one is sent."""

    ul_granted_duration: float  # per addressed station, seconds
    granted_stations: Tuple[str, ...]
    responded_duration: float = 0.0
    n_responses: int = 0

    @property
    def overall_granted_duration(self) -> float:
        return self.ul_granted_duration * len(self.granted_stations)


class TriggerFrameTracker:
    """Scores each basic trigger frame by the HE TB PPDUs sent in response to it.

    A window is scored when the next basic trigger frame is sent, so the last
    window of a run is never scored.
    """

    def __init__(self, stations: Mapping[str, PerStationRecord], global_stats: GlobalAggregate):
        self._stations = stations
        self._global = global_stats
        self.state = TrackerState.IDLE
        self.window: Optional[TrigWindow] = None

    def on_basic_trigger(self, ul_granted_duration: float, addressed: Sequence[str]) -> None:
        records = []
        for station in addressed:
            record = self._stations.get(station)
            if record is None:
                raise UnknownStationError(station, "trigger frame user info")
            records.append(record)

        if self.window is not None:
            self._close(self.window)

        self._global.n_basic_trigger_frames_sent += 1
        self.window = TrigWindow(ul_granted_duration=ul_granted_duration, granted_stations=tuple(addressed))
        self.state = TrackerState.WINDOW_OPEN
        for record in records:
            record.n_soliciting_trigger_frames += 1

    def on_response(self, station: str, duration: float) -> Optional[float]:
        """Attribute an HE TB PPDU to the open window; returns its duration / UL Length ratio."""
        record = self._stations.get(station)
        if record is None:
            raise UnknownStationError(station, "HE TB PPDU")
        if self.window is None:
            _logger.debug(f"HE TB PPDU from {station} before any basic trigger frame, ignored")
            return None
        self.window.responded_duration += duration
        self.window.n_responses += 1
        ratio = duration / self.window.ul_granted_duration
        record.ul_length_ratio.observe(ratio)
        return ratio

    def _close(self, window: TrigWindow) -> None:
        g = self._global
        if window.responded_duration == 0.0:
            g.n_failed_trigger_frames += 1
            return
        # every earlier window that did not fail has been scored exactly once
        samples = g.n_basic_trigger_frames_sent - 1 - g.n_failed_trigger_frames
        assert g.ul_completeness.count == samples, (g.ul_completeness.count, samples)
        g.ul_completeness.observe(window.responded_duration / window.overall_granted_duration)
