"""Traffic applications: sinks on the stations, clients and the reachability probe on the AP.

Clients are installed quiet and only generate packets after `start()`;
`dispose()` tears them down for good.
"""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

from wifi_simulation.devices import AccessPoint, Station
from wifi_simulation.frames import Packet

_logger = logging.getLogger(__name__)

STEADY_RATE_PORT = 50000
BULK_TRANSFER_PORT = 50001
ECHO_PORT = 7


class PacketSink:
    """Counts bytes received on one port of a station."""

    def __init__(self, station: Station, port: int):
        self.station = station
        self.port = port
        self.total_rx = 0
        self.rx_packets = 0
        station.install_application(port, self)

    def receive(self, packet: Packet) -> None:
        self.total_rx += packet.size_bytes
        self.rx_packets += 1


class ReachabilityProbe:
    """Echo requests from the AP to one station, `interval` apart, until `duration` elapses.

    Establishes the queue/Block Ack state for the station before any traffic runs.
    """

    def __init__(self, ap: AccessPoint, station: Station, *, interval: float = 0.050,
                 duration: float = 0.125, size_bytes: int = 64):
        self.ap = ap
        self.station = station
        self.interval = interval
        self.duration = duration
        self.size_bytes = size_bytes
        self.requests_sent = 0
        self.replies = 0
        self._stop_time = 0.0
        station.install_application(ECHO_PORT, self)

    def start(self) -> None:
        self._stop_time = self.ap.scheduler.get_current_time() + self.duration
        self._send_request()

    def _send_request(self) -> None:
        if self.ap.scheduler.get_current_time() >= self._stop_time:
            return
        self.ap.send(self.size_bytes, self.station.address, ECHO_PORT, protocol="Icmp")
        self.requests_sent += 1
        self.ap.scheduler.schedule_event(self.interval, self._send_request)

    def receive(self, packet: Packet) -> None:
        self.replies += 1


class TrafficClient(ABC):
    """An AP-side generator addressed to one station."""

    def __init__(self, ap: AccessPoint, station: Station, port: int):
        self.ap = ap
        self.station = station
        self.port = port
        self.running = False
        self.disposed = False
        self.bytes_sent = 0
        self.packets_sent = 0

    def start(self) -> None:
        assert not self.disposed
        if self.running:
            return
        self.running = True
        self._on_start()

    def dispose(self) -> None:
        self.running = False
        self.disposed = True

    def _send(self, size_bytes: int, protocol: str) -> None:
        self.ap.send(size_bytes, self.station.address, self.port, protocol=protocol)
        self.bytes_sent += size_bytes
        self.packets_sent += 1

    @abstractmethod
    def _on_start(self) -> None:
        raise NotImplementedError


class OnOffClient(TrafficClient):
    def __init__(self, ap: AccessPoint, station: Station, profile: SteadyRateProfile):
        super().__init__(ap, station, profile.port)
        self.profile = profile
        self.interval = profile.packet_size * 8.0 / profile.data_rate_bps

    def _on_start(self) -> None:
        self._on_until = self.ap.scheduler.get_current_time() + self.profile.on_time
        self._tick()

    def _tick(self) -> None:
        if not self.running:
            return
        sched = self.ap.scheduler
        now = sched.get_current_time()
        if now >= self._on_until:
            # off period, then a new on period
            sched.schedule_event(self.profile.off_time, self._on_start_period)
            return
        self._send(self.profile.packet_size, self.profile.protocol)
        sched.schedule_event(self.interval, self._tick)

    def _on_start_period(self) -> None:
        if self.running:
            self._on_start()


class BulkSendClient(TrafficClient):
    """Keeps a backlog of `window` segments queued at the AP until `max_bytes` are sent."""

    def __init__(self, ap: AccessPoint, station: Station, profile: BulkTransferProfile):
        super().__init__(ap, station, profile.port)
        self.profile = profile

    def _on_start(self) -> None:
        self._top_up()

    def _top_up(self) -> None:
        if not self.running:
            return
        queue = self.ap.edca_queue
        while (queue.size(self.station.address) < self.profile.window_segments
               and (self.profile.max_bytes == 0 or self.bytes_sent < self.profile.max_bytes)
               and len(queue) < queue.max_size):
            self._send(self.profile.send_size, "Tcp")
        if self.profile.max_bytes and self.bytes_sent >= self.profile.max_bytes:
            _logger.debug(f"Bulk transfer to {self.station.name} completed ({self.bytes_sent} bytes)")
            return
        self.ap.scheduler.schedule_event(self.profile.poll_interval, self._top_up)


class TrafficProfile(ABC):
    """How the AP generates downlink traffic towards one station."""

    name: str
    port: int

    @abstractmethod
    def create_client(self, ap: AccessPoint, station: Station) -> TrafficClient:
        raise NotImplementedError

    @abstractmethod
    def install_delay(self, now: float) -> float:
        """Delay, from `now`, at which the client is installed during onboarding."""
        raise NotImplementedError


@dataclass(frozen=True)
class SteadyRateProfile(TrafficProfile):
    """Constant bit rate (OnOff) traffic with fixed-size packets."""

    data_rate_bps: float
    packet_size: int
    protocol: str = "Udp"
    on_time: float = 1.0
    off_time: float = 1.0
    start_granularity: float = 0.010
    start_offset: float = 0.110
    name: str = "steady-rate"
    port: int = STEADY_RATE_PORT

    def create_client(self, ap: AccessPoint, station: Station) -> TrafficClient:
        return OnOffClient(ap, station, self)

    def install_delay(self, now: float) -> float:
        # Aligned to the granularity so that all steady-rate clients tick together.
        ms = round(now * 1e3, 6)
        granularity_ms = self.start_granularity * 1e3
        aligned = math.ceil(ms / granularity_ms) * granularity_ms
        return (aligned + self.start_offset * 1e3 - ms) / 1e3


@dataclass(frozen=True)
class BulkTransferProfile(TrafficProfile):
    """Backlogged TCP-like transfer of up to `max_bytes` in `send_size` segments."""

    send_size: int = 2048
    max_bytes: int = 10240000
    window_segments: int = 16
    poll_interval: float = 0.001
    start_offset: float = 0.047
    name: str = "bulk-transfer"
    port: int = BULK_TRANSFER_PORT

    def create_client(self, ap: AccessPoint, station: Station) -> TrafficClient:
        return BulkSendClient(ap, station, self)

    def install_delay(self, now: float) -> float:
        return self.start_offset
