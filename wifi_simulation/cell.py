import logging
import random
from typing import Dict, List

from des.des import DiscreteEventSimulator
from wifi_simulation.devices import AccessPoint, Station, mac_address
from wifi_simulation.trace import TraceSource

_logger = logging.getLogger(__name__)


class WifiCell:
    """One BSS: an AP and `n_stations` non-AP stations sharing a channel.

    Stations are created with a non-matching SSID so that none of them
    associates until told to (see `Station.set_ssid`).
    """

    def __init__(self, *, n_stations: int, ssid: str = "network-A", channel_width: int = 20,
                 guard_interval: int = 3200, mcs: int = 0, queue_size: int = 1000,
                 msdu_lifetime: float = 0.5, max_n_rus: int = 4, enable_dl_ofdma: bool = True,
                 force_dl_ofdma: bool = True, enable_ul_ofdma: bool = False, ul_psdu_size: int = 500,
                 max_ampdu_size: int = 8388607, txop_limit: float = 5.44e-3, psdu_error_rate: float = 0.0,
                 response_probability: float = 0.9, association_delay: float = 0.002, seed: int = 1,
                 message_verbose: bool = False):
        assert n_stations >= 1
        self.simulator = DiscreteEventSimulator()
        self.ssid = ssid
        self.n_stations = n_stations
        self._rng = random.Random(seed)

        self.ap = AccessPoint(
            "AP",
            node_id=n_stations,
            address=mac_address(n_stations + 1),
            scheduler=self.simulator,
            ssid=ssid,
            channel_width=channel_width,
            guard_interval=guard_interval,
            mcs=mcs,
            message_verbose=message_verbose,
            queue_size=queue_size,
            msdu_lifetime=msdu_lifetime,
            max_n_rus=max_n_rus,
            enable_dl_ofdma=enable_dl_ofdma,
            force_dl_ofdma=force_dl_ofdma,
            enable_ul_ofdma=enable_ul_ofdma,
            ul_psdu_size=ul_psdu_size,
            max_ampdu_size=max_ampdu_size,
            txop_limit=txop_limit,
            psdu_error_rate=psdu_error_rate,
            rng=random.Random(self._rng.getrandbits(31)),
        )

        self.stations: List[Station] = []
        for i in range(n_stations):
            self.stations.append(Station(
                f"STA_{i}",
                node_id=i,
                address=mac_address(i + 1),
                scheduler=self.simulator,
                channel_width=channel_width,
                guard_interval=guard_interval,
                mcs=mcs,
                message_verbose=message_verbose,
                association_delay=association_delay,
                ul_psdu_size=ul_psdu_size,
                response_probability=response_probability,
                rng=random.Random(self._rng.getrandbits(31)),
            ))
        self.station_by_address: Dict[str, Station] = {s.address: s for s in self.stations}
        _logger.debug(f"Cell created: ap={self.ap.address} stations={n_stations} ssid={ssid}")

    @property
    def station_addresses(self) -> List[str]:
        return [s.address for s in self.stations]

    def forward_down_traces(self) -> List[TraceSource]:
        """`ForwardDown` of the AP followed by every station, in node order."""
        return [self.ap.forward_down_trace] + [s.forward_down_trace for s in self.stations]

    def mac_tx_traces(self) -> List[TraceSource]:
        return [s.mac_tx_trace for s in self.stations] + [self.ap.mac_tx_trace]

    def mac_rx_traces(self) -> List[TraceSource]:
        return [s.mac_rx_trace for s in self.stations] + [self.ap.mac_rx_trace]

    def associate(self, station: Station) -> None:
        station.set_ssid(self.ssid, self.ap)

    def run(self, stop_time: float | None = None) -> None:
        if stop_time is not None:
            self.simulator.stop(stop_time)
        self.simulator.run()
