from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


# STA-ID used as the PSDU map key of single-user transmissions.
SU_STA_ID = 65535


class PreambleType(Enum):
    HE_SU = 1
    HE_MU = 2
    HE_TB = 3


class FrameType(Enum):
    QOS_DATA = 1
    TRIGGER = 2
    BLOCK_ACK = 3
    MGMT = 4


class TriggerType(Enum):
    BASIC = 0
    BFRP = 1
    MU_BAR = 2
    MU_RTS = 3
    BSRP = 4


@dataclass(frozen=True)
class Packet:
    """Application payload carried through the cell. `uid` is unique per run."""
    uid: int
    size_bytes: int
    protocol: str = "Udp"
    port: int = 0


@dataclass(frozen=True)
class WifiMacHeader:
    frame_type: FrameType
    addr1: str  # receiver
    addr2: str  # transmitter

    def is_qos_data(self) -> bool:
        return self.frame_type == FrameType.QOS_DATA

    def is_trigger(self) -> bool:
        return self.frame_type == FrameType.TRIGGER


@dataclass
class WifiMacQueueItem:
    """An MSDU sitting in an EDCA queue; `timestamp` is the enqueue time."""
    packet: Packet
    header: WifiMacHeader
    timestamp: float

    @property
    def size_bytes(self) -> int:
        return self.packet.size_bytes + MAC_HEADER_BYTES


MAC_HEADER_BYTES = 30
MPDU_DELIMITER_BYTES = 4


@dataclass(frozen=True)
class HeMuUserInfo:
    ru_index: int
    mcs: int
    nss: int = 1


@dataclass
class TxVector:
    preamble: PreambleType
    channel_width: int  # MHz
    guard_interval: int  # ns
    mcs: int
    nss: int = 1
    ru_data_subcarriers: Optional[int] = None  # per-user RU size for HE TB / HE MU
    he_mu_user_info: Dict[int, HeMuUserInfo] = field(default_factory=dict)

    def is_dl_mu(self) -> bool:
        return self.preamble == PreambleType.HE_MU

    def is_ul_mu(self) -> bool:
        return self.preamble == PreambleType.HE_TB


@dataclass(frozen=True)
class TriggerUserInfo:
    aid12: int
    ru_index: int
    mcs: int
    nss: int = 1


@dataclass
class CtrlTriggerHeader:
    """Trigger frame payload: common info (type, UL Length) plus one user info per addressed station."""
    trigger_type: TriggerType
    ul_length: int
    channel_width: int
    guard_interval: int
    ru_data_subcarriers: int
    user_info: List[TriggerUserInfo] = field(default_factory=list)

    def is_basic(self) -> bool:
        return self.trigger_type == TriggerType.BASIC

    def n_user_info_fields(self) -> int:
        return len(self.user_info)

    def he_tb_tx_vector(self, aid12: int) -> TxVector:
        """TXVECTOR a solicited station must use for its HE TB PPDU."""
        for info in self.user_info:
            if info.aid12 == aid12:
                return TxVector(
                    preamble=PreambleType.HE_TB,
                    channel_width=self.channel_width,
                    guard_interval=self.guard_interval,
                    mcs=info.mcs,
                    nss=info.nss,
                    ru_data_subcarriers=self.ru_data_subcarriers,
                )
        raise KeyError(f"AID {aid12} not addressed by this trigger frame")

    def __iter__(self):
        return iter(self.user_info)


@dataclass
class Psdu:
    """A (possibly aggregated) PSDU for a single receiver."""
    mpdus: List[WifiMacQueueItem] = field(default_factory=list)
    header: Optional[WifiMacHeader] = None
    trigger: Optional[CtrlTriggerHeader] = None
    control_size_bytes: int = 0

    def __post_init__(self) -> None:
        if self.header is None:
            assert self.mpdus, "a PSDU needs either MPDUs or an explicit header"
            self.header = self.mpdus[0].header

    @property
    def addr1(self) -> str:
        return self.header.addr1

    @property
    def addr2(self) -> str:
        return self.header.addr2

    def get_header(self, index: int = 0) -> WifiMacHeader:
        if self.mpdus:
            return self.mpdus[index].header
        assert index == 0
        return self.header

    def get_size(self) -> int:
        if not self.mpdus:
            return self.control_size_bytes
        if len(self.mpdus) == 1:
            return self.mpdus[0].size_bytes
        return sum(item.size_bytes + MPDU_DELIMITER_BYTES for item in self.mpdus)


WifiPsduMap = Dict[int, Psdu]
