from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TYPE_CHECKING

from ofdma_stats.aggregation import AggregationEventHandler
from ofdma_stats.errors import UnknownStationError
from ofdma_stats.latency import LatencyCorrelator
from ofdma_stats.records import GlobalAggregate, PerStationRecord
from ofdma_stats.trigger_tracker import TriggerFrameTracker
from wifi_simulation.frames import Packet, TxVector, WifiMacHeader, WifiMacQueueItem, WifiPsduMap
from wifi_simulation.trace import TraceSource

if TYPE_CHECKING:
    from des.des import DiscreteEventSimulator
    from wifi_simulation.cell import WifiCell
    from wifi_simulation.devices import WifiDevice
    from wifi_simulation.traffic import PacketSink

_logger = logging.getLogger(__name__)


class StatisticsEngine:
    """Owns every record of a run and gates which events reach the handlers.

    Handlers are connected to the cell's trace sources by `start()` and
    disconnected by `stop()`; nothing fired outside that window is counted.
    """

    def __init__(self, station_addresses: Iterable[str], *, payload_size: int, legacy_zero_sentinel: bool = False):
        self.records: Dict[str, PerStationRecord] = {
            address: PerStationRecord(address, legacy_zero_sentinel=legacy_zero_sentinel)
            for address in station_addresses
        }
        self.global_stats = GlobalAggregate(legacy_zero_sentinel=legacy_zero_sentinel)
        self.correlator = LatencyCorrelator(self.records, self.global_stats, min_payload_size=payload_size)
        self.tracker = TriggerFrameTracker(self.records, self.global_stats)
        self.aggregation: Optional[AggregationEventHandler] = None

        self.collecting = False
        self.start_time: Optional[float] = None
        self.stop_time: Optional[float] = None
        self.rx_bytes_start: Dict[str, int] = {}
        self.rx_bytes_stop: Dict[str, int] = {}

        self._sim: Optional[DiscreteEventSimulator] = None
        self._max_delay = 0.0
        self._sinks: Mapping[str, PacketSink] = {}
        self._connections: List[Tuple[TraceSource, Callable]] = []

    def _record(self, station: str, context: str) -> PerStationRecord:
        record = self.records.get(station)
        if record is None:
            raise UnknownStationError(station, context)
        return record

    def _now(self) -> float:
        assert self._sim is not None
        return self._sim.get_current_time()

    # --- collection window -------------------------------------------------

    def start(self, cell: WifiCell, sinks: Optional[Mapping[str, PacketSink]] = None) -> None:
        assert not self.collecting, "statistics collection already started"
        self._sim = cell.simulator
        self._max_delay = cell.ap.edca_queue.max_delay
        self._sinks = sinks or {}
        if self.aggregation is None:
            self.aggregation = AggregationEventHandler(cell.ap.address, cell.ap.sta_list, self.records,
                                                       self.global_stats, self.tracker)

        for trace in cell.forward_down_traces():
            self._connect(trace, self.on_psdu_forwarded)
        self._connect(cell.ap.edca_queue.dequeue_trace, self.on_dequeue)
        self._connect(cell.ap.edca_queue.expired_trace, self.on_msdu_expired)
        self._connect(cell.ap.tx_err_header_trace, self.on_tx_failed)
        self._connect(cell.ap.txop_trace, self.on_txop)
        for trace in cell.mac_tx_traces():
            self._connect(trace, self.on_mac_tx)
        for trace in cell.mac_rx_traces():
            self._connect(trace, self.on_mac_rx)

        self.rx_bytes_start = {address: sink.total_rx for address, sink in self._sinks.items()}
        self.start_time = self._now()
        self.collecting = True
        _logger.info(f"[sim_t={self.start_time:012.6f}s] Statistics collection started ({len(self._connections)} trace connections)")

    def stop(self, cell: WifiCell) -> None:
        assert self.collecting, "statistics collection not started"
        assert cell.simulator is self._sim
        for trace, callback in self._connections:
            trace.disconnect(callback)
        self._connections.clear()
        self.rx_bytes_stop = {address: sink.total_rx for address, sink in self._sinks.items()}
        self.stop_time = self._now()
        self.collecting = False
        _logger.info(f"[sim_t={self.stop_time:012.6f}s] Statistics collection stopped")

    def _connect(self, trace: TraceSource, callback: Callable) -> None:
        trace.connect(callback)
        self._connections.append((trace, callback))

    @property
    def duration(self) -> float:
        if self.start_time is None or self.stop_time is None:
            return 0.0
        return self.stop_time - self.start_time

    # --- trace sinks -------------------------------------------------------

    def on_psdu_forwarded(self, psdu_map: WifiPsduMap, tx_vector: TxVector) -> None:
        assert self.aggregation is not None
        self.aggregation.on_psdu_forwarded(psdu_map, tx_vector)

    def on_dequeue(self, item: WifiMacQueueItem) -> None:
        self.correlator.on_dequeue(item.header.addr1, self._now(), item.timestamp, self._max_delay)

    def on_msdu_expired(self, item: WifiMacQueueItem) -> None:
        self._record(item.header.addr1, "expired MSDU").expired += 1

    def on_tx_failed(self, header: WifiMacHeader) -> None:
        self._record(header.addr1, "failed transmission").failed += 1

    def on_txop(self, start_time: float, duration: float) -> None:
        if duration > self.global_stats.max_txop:
            self.global_stats.max_txop = duration

    def on_mac_tx(self, device: WifiDevice, packet: Packet) -> None:
        self.correlator.on_send(packet.uid, packet.size_bytes, self._now())

    def on_mac_rx(self, device: WifiDevice, packet: Packet) -> None:
        self.correlator.on_receive(packet.uid, packet.size_bytes, self._now(), device.address)

    # --- results -----------------------------------------------------------

    def throughput_mbps(self, station: str) -> float:
        """Application throughput of `station` over the collection window, Mb/s."""
        if self.duration <= 0 or station not in self.rx_bytes_stop:
            return 0.0
        rx_bytes = self.rx_bytes_stop[station] - self.rx_bytes_start.get(station, 0)
        return rx_bytes * 8 / (self.duration * 1e6)
