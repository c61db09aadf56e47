from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Sequence

from ofdma_stats.engine import StatisticsEngine
from wifi_simulation.cell import WifiCell
from wifi_simulation.devices import Station
from wifi_simulation.traffic import PacketSink, ReachabilityProbe, TrafficClient, TrafficProfile

_logger = logging.getLogger(__name__)


class StationPhase(Enum):
    UNASSOCIATED = 0
    ASSOCIATING = 1
    VERIFYING = 2
    TRAFFIC_CLIENT_INSTALLED = 3
    TRAFFIC_STARTED = 4
    STATS_COLLECTING = 5
    STATS_STOPPED = 6


class OnboardingOrchestrator:
    """Brings the stations of a cell up one at a time, then runs the collection window.

    Station i+1 starts associating only when station i's reachability
    verification window has elapsed. Each station gets a traffic client while it
    is verifying; clients start sending together once the last station is
    onboarded. The statistics engine is started `warmup` seconds later and
    stopped `duration` seconds after that, when all clients are disposed.
    """

    def __init__(self, cell: WifiCell, engine: StatisticsEngine, profiles: Sequence[TrafficProfile], *,
                 warmup: float, duration: float, probe_interval: float = 0.050, probe_duration: float = 0.125,
                 stop_simulation: bool = True):
        assert len(profiles) == 2, "one traffic profile per station index parity"
        assert warmup >= 0 and duration > 0
        self.cell = cell
        self.engine = engine
        self.profiles = tuple(profiles)
        self.warmup = warmup
        self.duration = duration
        self.probe_interval = probe_interval
        self.probe_duration = probe_duration
        self.stop_simulation = stop_simulation

        self.phases: Dict[str, StationPhase] = {s.address: StationPhase.UNASSOCIATED for s in cell.stations}
        self.association_started_at: Dict[str, float] = {}
        self.associated_at: Dict[str, float] = {}
        self.verified_at: Dict[str, float] = {}
        self.probes: Dict[str, ReachabilityProbe] = {}
        self.clients: Dict[str, TrafficClient] = {}
        self.sinks: Dict[str, PacketSink] = {
            station.address: PacketSink(station, self.profile_for(i).port)
            for i, station in enumerate(cell.stations)
        }

        self._queue: Deque[Station] = deque(cell.stations)
        self._current: Optional[Station] = None
        self._assoc_callbacks: Dict[str, Callable[[str], None]] = {}

        self.traffic_start_time: Optional[float] = None
        self.stats_start_time: Optional[float] = None
        self.stats_stop_time: Optional[float] = None

    def profile_for(self, index: int) -> TrafficProfile:
        """Even station indices get the first profile, odd ones the second."""
        return self.profiles[index % 2]

    @property
    def _now(self) -> float:
        return self.cell.simulator.get_current_time()

    def _set_phase(self, stations: Sequence[Station], phase: StationPhase) -> None:
        for station in stations:
            self.phases[station.address] = phase

    def start(self) -> None:
        """Schedule onboarding of the first station at the current time."""
        assert self._current is None and len(self._queue) == len(self.cell.stations), "onboarding already started"
        self.cell.simulator.schedule_event(0.0, self._advance)

    # --- onboarding --------------------------------------------------------

    def _advance(self) -> None:
        if self._current is not None:
            self.verified_at[self._current.address] = self._now
            self._current = None
        if not self._queue:
            self._start_traffic()
            return

        station = self._queue.popleft()
        self._current = station
        callback = lambda bssid, st=station: self._on_associated(st, bssid)
        self._assoc_callbacks[station.address] = callback
        station.assoc_trace.connect(callback)
        self._set_phase([station], StationPhase.ASSOCIATING)
        self.association_started_at[station.address] = self._now
        _logger.info(f"[sim_t={self._now:012.6f}s] Onboarding {station.name} ({len(self._queue)} left)")
        self.cell.associate(station)

    def _on_associated(self, station: Station, bssid: str) -> None:
        station.assoc_trace.disconnect(self._assoc_callbacks.pop(station.address))
        assert bssid == self.cell.ap.address
        now = self._now
        self.associated_at[station.address] = now
        self._set_phase([station], StationPhase.VERIFYING)

        probe = ReachabilityProbe(self.cell.ap, station, interval=self.probe_interval, duration=self.probe_duration)
        self.probes[station.address] = probe
        probe.start()

        profile = self.profile_for(self.cell.stations.index(station))
        install_delay = profile.install_delay(now)
        assert install_delay < self.probe_duration, f"{profile.name} client would be installed after verification"
        self.cell.simulator.schedule_event(install_delay, lambda: self._install_client(station, profile))
        self.cell.simulator.schedule_event(self.probe_duration, self._advance)

    def _install_client(self, station: Station, profile: TrafficProfile) -> None:
        self.clients[station.address] = profile.create_client(self.cell.ap, station)
        self._set_phase([station], StationPhase.TRAFFIC_CLIENT_INSTALLED)
        _logger.debug(f"[sim_t={self._now:012.6f}s] {profile.name} client installed for {station.name}")

    # --- traffic and collection window -------------------------------------

    def _start_traffic(self) -> None:
        stations = self.cell.stations
        assert all(self.phases[s.address] == StationPhase.TRAFFIC_CLIENT_INSTALLED for s in stations)
        for station in stations:
            self.clients[station.address].start()
        self._set_phase(stations, StationPhase.TRAFFIC_STARTED)
        self.traffic_start_time = self._now
        _logger.info(f"[sim_t={self._now:012.6f}s] All {len(stations)} stations onboarded, traffic started")

        self.cell.simulator.schedule_event(self.warmup, self._start_statistics)
        self.cell.simulator.schedule_event(self.warmup + self.duration, self._stop_statistics)

    def _start_statistics(self) -> None:
        self.stats_start_time = self._now
        self.engine.start(self.cell, self.sinks)
        self._set_phase(self.cell.stations, StationPhase.STATS_COLLECTING)

    def _stop_statistics(self) -> None:
        self.engine.stop(self.cell)
        self.stats_stop_time = self._now
        for client in self.clients.values():
            client.dispose()
        self._set_phase(self.cell.stations, StationPhase.STATS_STOPPED)
        if self.stop_simulation:
            self.cell.simulator.stop(self._now)

    @property
    def onboarding_order(self) -> List[str]:
        return sorted(self.association_started_at, key=self.association_started_at.get)
