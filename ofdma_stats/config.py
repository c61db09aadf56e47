from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Tuple

from ofdma_stats.errors import ConfigurationError
from wifi_simulation import phy
from wifi_simulation.cell import WifiCell
from wifi_simulation.traffic import BulkTransferProfile, SteadyRateProfile, TrafficProfile

_logger = logging.getLogger(__name__)

VALID_DL_ACK_SEQ_TYPES = (1, 2, 3)
VALID_TRANSPORTS = ("Udp", "Tcp")


@dataclass(frozen=True)
class SimulationConfig:
    """Parameters of one DL/UL OFDMA run.

    `queue_size`, `msdu_lifetime_ms` and `data_rate_mbps` left at 0 are derived
    from the PHY rate by `with_derived_defaults()`.
    """

    n_stations: int = 10
    payload_size: int = 160  # bytes
    simulation_time: float = 2.0  # length of the collection window, seconds
    warmup: float = 1.0  # seconds between traffic start and collection start
    enable_dl_ofdma: bool = True
    force_dl_ofdma: bool = True
    enable_ul_ofdma: bool = False
    ul_psdu_size: int = 500  # bytes
    channel_width: int = 20  # MHz
    guard_interval: int = 3200  # ns
    max_n_rus: int = 4
    mcs: int = 0
    max_ampdu_size: int = 8388607
    txop_limit_us: float = 5440.0
    queue_size: int = 0  # MSDUs
    msdu_lifetime_ms: int = 0
    data_rate_mbps: float = 0.0  # per station
    dl_ack_seq_type: int = 1  # reported only; the cell always acknowledges with a single sequence
    transport: str = "Udp"
    psdu_error_rate: float = 0.0
    response_probability: float = 0.9
    seed: int = 1
    legacy_zero_sentinel: bool = False
    message_verbose: bool = False

    @staticmethod
    def from_mapping(d: Mapping[str, Any] | None) -> "SimulationConfig":
        if d is None:
            d = {}
        if not isinstance(d, Mapping):
            raise ConfigurationError("Expected mapping for simulation")

        fields = {f.name: f for f in dataclasses.fields(SimulationConfig)}
        unknown = sorted(k for k in d if k not in fields)
        if unknown:
            raise ConfigurationError("Unknown simulation keys: " + ", ".join(unknown))

        kwargs = {}
        for key, value in d.items():
            default = fields[key].default
            try:
                if isinstance(default, bool):
                    kwargs[key] = _as_bool(value, key)
                elif isinstance(default, (int, float, str)):
                    kwargs[key] = type(default)(value)
                else:
                    kwargs[key] = value
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid value for simulation.{key}: {value!r}") from e
        return SimulationConfig(**kwargs)

    @property
    def channel_number(self) -> int:
        return phy.CHANNEL_NUMBERS[self.channel_width]

    @property
    def phy_rate(self) -> int:
        """HE PHY rate of the configured MCS on the full channel with one spatial stream, bit/s."""
        return int(round(phy.he_data_rate(self.mcs, self.channel_width, self.guard_interval, 1)))

    def validate(self) -> None:
        if self.channel_width not in phy.VALID_CHANNEL_WIDTHS:
            raise ConfigurationError(f"Invalid channel bandwidth {self.channel_width} (must be 20, 40, 80 or 160)")
        if self.dl_ack_seq_type not in VALID_DL_ACK_SEQ_TYPES:
            raise ConfigurationError(f"Invalid DL ack sequence type {self.dl_ack_seq_type} (must be 1, 2 or 3)")
        if self.guard_interval not in phy.VALID_GUARD_INTERVALS:
            raise ConfigurationError(f"Invalid guard interval {self.guard_interval} ns (must be 800, 1600 or 3200)")
        if self.mcs not in phy.HE_MCS:
            raise ConfigurationError(f"Invalid HE MCS {self.mcs} (must be 0-11)")
        if self.transport not in VALID_TRANSPORTS:
            raise ConfigurationError(f"Invalid transport {self.transport!r} (must be Udp or Tcp)")
        if self.n_stations < 1:
            raise ConfigurationError("n_stations must be at least 1")
        if self.max_n_rus < 1:
            raise ConfigurationError("max_n_rus must be at least 1")
        if self.max_n_rus > phy.max_n_rus(self.channel_width):
            raise ConfigurationError(
                f"max_n_rus {self.max_n_rus} does not fit in a {self.channel_width} MHz channel "
                f"(at most {phy.max_n_rus(self.channel_width)})"
            )
        if self.payload_size < 1 or self.ul_psdu_size < 1:
            raise ConfigurationError("payload_size and ul_psdu_size must be positive")
        if self.simulation_time <= 0 or self.warmup < 0:
            raise ConfigurationError("simulation_time must be positive and warmup non-negative")
        if self.queue_size < 0 or self.msdu_lifetime_ms < 0 or self.data_rate_mbps < 0:
            raise ConfigurationError("queue_size, msdu_lifetime_ms and data_rate_mbps must not be negative")
        if not 0.0 <= self.psdu_error_rate <= 1.0 or not 0.0 <= self.response_probability <= 1.0:
            raise ConfigurationError("psdu_error_rate and response_probability must be in [0, 1]")

    def with_derived_defaults(self) -> "SimulationConfig":
        """Validate, then fill in queue size, MSDU lifetime and data rate left at 0."""
        self.validate()
        phy_rate = self.phy_rate
        # bytes sent at the PHY rate during the longest PPDU
        ampdu_size = int(phy_rate * phy.PPDU_MAX_TIME / 8)
        n_msdus = ampdu_size // self.payload_size
        queue_size = n_msdus * self.n_stations * 2
        # long enough for the AP to empty a full queue at the PHY rate, twice over
        msdu_lifetime_ms = int(queue_size * self.payload_size * 8 * 1000.0 / phy_rate * 2)

        changes = {}
        if self.queue_size == 0:
            changes["queue_size"] = queue_size
        if self.msdu_lifetime_ms == 0:
            changes["msdu_lifetime_ms"] = msdu_lifetime_ms
        if self.data_rate_mbps == 0:
            changes["data_rate_mbps"] = phy_rate * 1.2 / 1e6 / self.n_stations * 2
        derived = dataclasses.replace(self, **changes)

        if derived.queue_size < 1 or derived.msdu_lifetime_ms < 1:
            raise ConfigurationError(
                f"payload_size {self.payload_size} is too large for the PHY rate to derive a queue size "
                "and MSDU lifetime; set queue_size and msdu_lifetime_ms explicitly"
            )
        return derived

    def summary(self) -> dict:
        return {
            "Channel bw (MHz)": self.channel_width,
            "Channel number": self.channel_number,
            "MCS": self.mcs,
            "Number of stations": self.n_stations,
            "Data rate (Mbps)": round(self.data_rate_mbps, 6),
            "EDCA queue max size (MSDUs)": self.queue_size,
            "MSDU lifetime (ms)": self.msdu_lifetime_ms,
            "Ack sequence": self.dl_ack_seq_type if self.enable_dl_ofdma else "No OFDMA",
            "UL OFDMA": self.enable_ul_ofdma,
            "Transport": self.transport,
        }

    def build_cell(self) -> WifiCell:
        return WifiCell(
            n_stations=self.n_stations,
            channel_width=self.channel_width,
            guard_interval=self.guard_interval,
            mcs=self.mcs,
            queue_size=self.queue_size,
            msdu_lifetime=self.msdu_lifetime_ms / 1e3,
            max_n_rus=self.max_n_rus,
            enable_dl_ofdma=self.enable_dl_ofdma,
            force_dl_ofdma=self.force_dl_ofdma,
            enable_ul_ofdma=self.enable_ul_ofdma,
            ul_psdu_size=self.ul_psdu_size,
            max_ampdu_size=self.max_ampdu_size,
            txop_limit=self.txop_limit_us * 1e-6,
            psdu_error_rate=self.psdu_error_rate,
            response_probability=self.response_probability,
            seed=self.seed,
            message_verbose=self.message_verbose,
        )

    def build_profiles(self) -> Tuple[TrafficProfile, TrafficProfile]:
        """Profiles for even and odd station indices."""
        assert self.data_rate_mbps > 0, "call with_derived_defaults() first"
        return (
            BulkTransferProfile(),
            SteadyRateProfile(data_rate_bps=self.data_rate_mbps * 1e6, packet_size=self.payload_size,
                              protocol=self.transport),
        )


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "yes", "1", "false", "no", "0"}:
        return value.strip().lower() in {"true", "yes", "1"}
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValueError(f"expected a boolean for {key}")
