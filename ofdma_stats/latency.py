from __future__ import annotations

import logging
from typing import Dict, List, Mapping

from ofdma_stats.errors import UnknownStationError
from ofdma_stats.records import GlobalAggregate, PerStationRecord
from ofdma_stats.running_stat import RunningStat

_logger = logging.getLogger(__name__)


class LatencyCorrelator:
    """End-to-end latency by packet id, and head-of-line delay from queue dequeues.

    A send is remembered until the matching receive consumes it. Sends that are
    never received (expired, dropped) simply never produce a sample.
    """

    def __init__(self, stations: Mapping[str, PerStationRecord], global_stats: GlobalAggregate,
                 min_payload_size: int):
        self._stations = stations
        self._global = global_stats
        self.min_payload_size = min_payload_size
        self.pending: Dict[int, float] = {}
        self.latencies: Dict[str, List[float]] = {station: [] for station in stations}

    def _record(self, station: str, context: str) -> PerStationRecord:
        record = self._stations.get(station)
        if record is None:
            raise UnknownStationError(station, context)
        return record

    def on_send(self, packet_id: int, size_bytes: int, now: float) -> None:
        if size_bytes < self.min_payload_size:
            return
        self.pending[packet_id] = now

    def on_receive(self, packet_id: int, size_bytes: int, now: float, station: str) -> None:
        if size_bytes < self.min_payload_size:
            return
        sent_at = self.pending.get(packet_id)
        if sent_at is None:
            return
        if station not in self.latencies:
            raise UnknownStationError(station, "application receive")
        self.latencies[station].append(now - sent_at)
        del self.pending[packet_id]

    def on_dequeue(self, station: str, now: float, enqueue_time: float, max_delay: float) -> None:
        """Account a head-of-line dequeue of an MSDU addressed to `station`."""
        if now > enqueue_time + max_delay:
            # discarded for exceeding its lifetime, not transmitted
            return
        record = self._record(station, "dequeue")
        self._observe_gap(self._global.hol_delay, self._global.last_dequeue_time, now)
        self._global.last_dequeue_time = now
        self._observe_gap(record.hol_delay, record.last_dequeue_time, now)
        record.last_dequeue_time = now

    @staticmethod
    def _observe_gap(stat: RunningStat, last: float | None, now: float) -> None:
        if last is None:
            return
        gap_ms = (now - last) * 1e3
        # zero gap: MSDU aggregated to the burst whose head was already counted
        if gap_ms > 0.0:
            stat.observe(gap_ms)

    def average_latency(self, station: str) -> float | None:
        samples = self.latencies[station]
        if not samples:
            return None
        return sum(samples) / len(samples)
