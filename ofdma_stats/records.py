from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ofdma_stats.running_stat import RunningStat


@dataclass
class PerStationRecord:
    """Everything measured about one station during the collection window."""

    station: str
    legacy_zero_sentinel: bool = False

    ampdu_size: RunningStat = field(init=False)  # bytes per DL PSDU
    ampdu_ratio: RunningStat = field(init=False)  # PSDU size / largest PSDU of the DL MU PPDU
    hol_delay: RunningStat = field(init=False)  # ms between head-of-line dequeues
    ul_length_ratio: RunningStat = field(init=False)  # HE TB PPDU duration / UL Length granted

    failed: int = 0
    expired: int = 0
    n_soliciting_trigger_frames: int = 0
    last_dequeue_time: Optional[float] = None

    def __post_init__(self) -> None:
        legacy = self.legacy_zero_sentinel
        self.ampdu_size = RunningStat(legacy_zero_sentinel=legacy)
        self.ampdu_ratio = RunningStat(legacy_zero_sentinel=legacy)
        self.hol_delay = RunningStat(legacy_zero_sentinel=legacy)
        self.ul_length_ratio = RunningStat(legacy_zero_sentinel=legacy)

    @property
    def n_ampdus(self) -> int:
        return self.ampdu_size.count

    @property
    def n_he_tb_ppdus(self) -> int:
        return self.ul_length_ratio.count

    @property
    def unresponded_tf_ratio(self) -> float:
        """Share of soliciting trigger frames this station did not answer."""
        if self.n_soliciting_trigger_frames == 0:
            return 0.0
        return (self.n_soliciting_trigger_frames - self.n_he_tb_ppdus) / self.n_soliciting_trigger_frames


@dataclass
class GlobalAggregate:
    """BSS-wide counterparts of the per-station statistics; one per run."""

    legacy_zero_sentinel: bool = False

    dl_mu_completeness: RunningStat = field(init=False)  # sum of PSDU sizes / (largest PSDU * RUs)
    hol_delay: RunningStat = field(init=False)  # ms
    ul_completeness: RunningStat = field(init=False)  # responded duration / (UL Length * addressed stations)

    n_basic_trigger_frames_sent: int = 0
    n_failed_trigger_frames: int = 0  # no station responded
    last_dequeue_time: Optional[float] = None
    max_txop: float = 0.0  # seconds

    def __post_init__(self) -> None:
        legacy = self.legacy_zero_sentinel
        self.dl_mu_completeness = RunningStat(legacy_zero_sentinel=legacy)
        self.hol_delay = RunningStat(legacy_zero_sentinel=legacy)
        self.ul_completeness = RunningStat(legacy_zero_sentinel=legacy)
