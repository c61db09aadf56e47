from __future__ import annotations

import itertools
import logging
import random
from typing import Dict, List, Optional

from des.des import DiscreteEventSimulator
from wifi_simulation import phy
from wifi_simulation.frames import (
    SU_STA_ID,
    CtrlTriggerHeader,
    FrameType,
    HeMuUserInfo,
    Packet,
    PreambleType,
    Psdu,
    TriggerType,
    TriggerUserInfo,
    TxVector,
    WifiMacHeader,
    WifiMacQueueItem,
    WifiPsduMap,
)
from wifi_simulation.mac_queue import WifiMacQueue
from wifi_simulation.trace import TraceSource

_logger = logging.getLogger(__name__)

SIFS = 16e-6
SLOT = 9e-6
AIFS_BE = SIFS + 3 * SLOT
CW_MIN_BE = 15
# legacy Block Ack / ack response: 20 us preamble + 12 symbols at 6 Mb/s
BLOCK_ACK_DURATION = 68e-6
BROADCAST = "ff:ff:ff:ff:ff:ff"
TRIGGER_FRAME_BYTES = 48


def _sim_time_prefix(sim: DiscreteEventSimulator) -> str:
    return f"[sim_t={sim.get_current_time():012.6f}s]"


def mac_address(index: int) -> str:
    return ":".join(f"{b:02x}" for b in index.to_bytes(6, "big"))


class WifiDevice:
    """Common part of the AP and station devices: address, MAC and PHY traces."""

    def __init__(self, name: str, node_id: int, address: str, scheduler: DiscreteEventSimulator, *,
                 channel_width: int, guard_interval: int, mcs: int, message_verbose: bool):
        self.name = name
        self.node_id = node_id
        self.address = address
        self.scheduler = scheduler
        self.channel_width = channel_width
        self.guard_interval = guard_interval
        self.mcs = mcs
        self.message_verbose = message_verbose
        self.applications: Dict[int, object] = {}

        # PSDUs handed to the PHY, application packets entering / leaving the MAC
        self.forward_down_trace = TraceSource("ForwardDown")
        self.mac_tx_trace = TraceSource("MacTx")
        self.mac_rx_trace = TraceSource("MacRx")

    def install_application(self, port: int, app) -> None:
        assert port not in self.applications, f"{self.name}: port {port} already bound"
        self.applications[port] = app

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name}, {self.address})"


class Station(WifiDevice):
    def __init__(self, name: str, node_id: int, address: str, scheduler: DiscreteEventSimulator, *,
                 channel_width: int, guard_interval: int, mcs: int, message_verbose: bool,
                 association_delay: float, ul_psdu_size: int, response_probability: float,
                 rng: random.Random):
        super().__init__(name, node_id, address, scheduler, channel_width=channel_width,
                         guard_interval=guard_interval, mcs=mcs, message_verbose=message_verbose)
        self.ssid: Optional[str] = None
        self.aid: Optional[int] = None
        self.bssid: Optional[str] = None
        self.association_delay = association_delay
        self.ul_psdu_size = ul_psdu_size
        self.response_probability = response_probability
        self._rng = rng
        self._ul_uids = itertools.count()
        self._ap: Optional[AccessPoint] = None
        self.received_count = 0

        self.assoc_trace = TraceSource("Assoc")

    @property
    def is_associated(self) -> bool:
        return self.aid is not None

    def set_ssid(self, ssid: str, ap: AccessPoint) -> None:
        """Configure the SSID; the station then scans and associates with the AP advertising it."""
        self.ssid = ssid
        if ap.ssid != ssid:
            return
        self._ap = ap
        self.scheduler.schedule_event(self.association_delay, self._complete_association)

    def _complete_association(self) -> None:
        assert self._ap is not None
        self.aid = self._ap.associate(self)
        self.bssid = self._ap.address
        _logger.info(f"{_sim_time_prefix(self.scheduler)} Station associated  sta={self.name} aid={self.aid}")
        self.assoc_trace(self.bssid)

    def receive(self, packet: Packet) -> None:
        self.received_count += 1
        self.mac_rx_trace(self, packet)
        app = self.applications.get(packet.port)
        if app is not None:
            app.receive(packet)

    def respond_to_trigger(self, trigger: CtrlTriggerHeader) -> Optional[float]:
        """Send an HE TB PPDU solicited by a basic trigger; returns its duration or None if silent."""
        assert self._ap is not None and self.aid is not None
        if self._rng.random() >= self.response_probability:
            return None
        tx_vector = trigger.he_tb_tx_vector(self.aid)
        granted = phy.lsig_length_to_he_tb_duration(trigger.ul_length, tx_vector)
        size = self._rng.randint(max(1, self.ul_psdu_size // 4), self.ul_psdu_size)
        header = WifiMacHeader(FrameType.QOS_DATA, addr1=self._ap.address, addr2=self.address)
        item = WifiMacQueueItem(Packet(uid=next(self._ul_uids), size_bytes=size), header,
                                self.scheduler.get_current_time())
        psdu_map: WifiPsduMap = {self.aid: Psdu(mpdus=[item])}
        duration = phy.calculate_tx_duration(psdu_map, tx_vector)
        assert duration <= granted + 1e-12, "HE TB PPDU longer than the UL Length granted by the trigger"
        self.forward_down_trace(psdu_map, tx_vector)
        return duration


class AccessPoint(WifiDevice):
    """AP with a single BE EDCA queue and a round-robin OFDMA scheduler.

    This is only a deterministic traffic source for the statistics; it is not an
    accurate model of channel access.
    """

    def __init__(self, name: str, node_id: int, address: str, scheduler: DiscreteEventSimulator, *,
                 ssid: str, channel_width: int, guard_interval: int, mcs: int, message_verbose: bool,
                 queue_size: int, msdu_lifetime: float, max_n_rus: int, enable_dl_ofdma: bool,
                 force_dl_ofdma: bool, enable_ul_ofdma: bool, ul_psdu_size: int, max_ampdu_size: int,
                 txop_limit: float, psdu_error_rate: float, rng: random.Random):
        super().__init__(name, node_id, address, scheduler, channel_width=channel_width,
                         guard_interval=guard_interval, mcs=mcs, message_verbose=message_verbose)
        self.ssid = ssid
        self.edca_queue = WifiMacQueue(scheduler, max_size=queue_size, max_delay=msdu_lifetime)
        self.max_n_rus = max_n_rus
        self.enable_dl_ofdma = enable_dl_ofdma
        self.force_dl_ofdma = force_dl_ofdma
        self.enable_ul_ofdma = enable_ul_ofdma
        self.ul_psdu_size = ul_psdu_size
        self.max_ampdu_size = max_ampdu_size
        self.txop_limit = txop_limit
        self.psdu_error_rate = psdu_error_rate
        self._rng = rng

        self.sta_list: Dict[int, str] = {}
        self.stations: Dict[str, Station] = {}
        self._aids = itertools.count(1)
        self._packet_uids = itertools.count()
        self._dl_rr: List[int] = []
        self._ul_rr: List[int] = []
        self._busy_until = 0.0
        self._access_scheduled = False

        self.txop_trace = TraceSource("TxopTrace")
        self.tx_err_header_trace = TraceSource("TxErrHeader")

    # --- association -------------------------------------------------------

    def associate(self, station: Station) -> int:
        aid = next(self._aids)
        self.sta_list[aid] = station.address
        self.stations[station.address] = station
        self._dl_rr.append(aid)
        self._ul_rr.append(aid)
        return aid

    def aid_of(self, address: str) -> int:
        for aid, addr in self.sta_list.items():
            if addr == address:
                return aid
        raise KeyError(address)

    # --- upper layer -------------------------------------------------------

    def send(self, size_bytes: int, dst_address: str, port: int, protocol: str = "Udp") -> Packet:
        """Hand an application packet to the MAC for transmission to `dst_address`."""
        assert dst_address in self.stations, f"{dst_address} is not associated with {self.name}"
        packet = Packet(uid=next(self._packet_uids), size_bytes=size_bytes, protocol=protocol, port=port)
        self.mac_tx_trace(self, packet)
        header = WifiMacHeader(FrameType.QOS_DATA, addr1=dst_address, addr2=self.address)
        item = WifiMacQueueItem(packet, header, self.scheduler.get_current_time())
        if self.edca_queue.enqueue(item):
            self._ensure_access_scheduled()
        elif self.message_verbose:
            _logger.debug(f"{_sim_time_prefix(self.scheduler)} MSDU dropped       dst={dst_address} uid={packet.uid} (queue full)")
        return packet

    # --- channel access ----------------------------------------------------

    def _ensure_access_scheduled(self) -> None:
        if self._access_scheduled:
            return
        self._access_scheduled = True
        now = self.scheduler.get_current_time()
        backoff = AIFS_BE + self._rng.randint(0, CW_MIN_BE) * SLOT
        self.scheduler.schedule_at(max(now, self._busy_until) + backoff, self._access_channel)

    def _access_channel(self) -> None:
        self._access_scheduled = False
        if not self.edca_queue.addresses_with_frames():
            return
        now = self.scheduler.get_current_time()
        txop_end = self._transmit_dl()
        if self.enable_ul_ofdma and self.sta_list:
            txop_end = self._transmit_basic_trigger(txop_end + SIFS)
        self.txop_trace(now, txop_end - now)
        self._busy_until = txop_end
        if len(self.edca_queue):
            self._ensure_access_scheduled()

    def _select_dl_stations(self) -> List[int]:
        with_frames = {self.aid_of(addr) for addr in self.edca_queue.addresses_with_frames()
                       if addr in self.stations}
        n_rus = self.max_n_rus if self.enable_dl_ofdma else 1
        selected: List[int] = []
        for aid in list(self._dl_rr):
            if len(selected) == n_rus:
                break
            if aid in with_frames:
                selected.append(aid)
        if self.enable_dl_ofdma and self.force_dl_ofdma:
            # RUs left over are still allocated, in round-robin order
            for aid in list(self._dl_rr):
                if len(selected) >= min(n_rus, len(self._dl_rr)):
                    break
                if aid not in selected:
                    selected.append(aid)
        for aid in selected:
            if aid in with_frames:
                self._dl_rr.remove(aid)
                self._dl_rr.append(aid)
        return selected

    def _aggregate(self, address: str, tx_vector: TxVector, n_sd: int) -> List[WifiMacQueueItem]:
        max_duration = min(self.txop_limit, phy.PPDU_MAX_TIME) if self.txop_limit > 0 else phy.PPDU_MAX_TIME
        items: List[WifiMacQueueItem] = []
        size = 0
        while True:
            head = self.edca_queue.peek(address)
            if head is None:
                break
            new_size = size + head.size_bytes + 4
            if items and (new_size > self.max_ampdu_size
                          or phy.data_duration(new_size, tx_vector, n_sd) > max_duration):
                break
            items.append(self.edca_queue.dequeue(address))
            size = new_size
        return items

    def _transmit_dl(self) -> float:
        now = self.scheduler.get_current_time()
        selected = self._select_dl_stations()
        mu = self.enable_dl_ofdma and (len(selected) > 1 or self.force_dl_ofdma)
        n_sd = phy.ru_data_subcarriers(self.channel_width, len(selected)) if mu else None
        tx_vector = TxVector(
            preamble=PreambleType.HE_MU if mu else PreambleType.HE_SU,
            channel_width=self.channel_width,
            guard_interval=self.guard_interval,
            mcs=self.mcs,
            ru_data_subcarriers=n_sd,
        )
        psdu_map: WifiPsduMap = {}
        for ru_index, aid in enumerate(selected):
            if mu:
                tx_vector.he_mu_user_info[aid] = HeMuUserInfo(ru_index=ru_index, mcs=self.mcs)
            items = self._aggregate(self.sta_list[aid], tx_vector, n_sd or phy.data_subcarriers(tx_vector))
            if items:
                psdu_map[aid if mu else SU_STA_ID] = Psdu(mpdus=items)

        if not psdu_map:
            return now

        self.forward_down_trace(psdu_map, tx_vector)
        duration = phy.calculate_tx_duration(psdu_map, tx_vector)
        end = now + duration + SIFS + BLOCK_ACK_DURATION
        for psdu in psdu_map.values():
            if self._rng.random() < self.psdu_error_rate:
                self.tx_err_header_trace(psdu.get_header(0))
                continue
            station = self.stations[psdu.addr1]
            for item in psdu.mpdus:
                self.scheduler.schedule_at(now + duration, lambda st=station, p=item.packet: st.receive(p))
        if self.message_verbose and _logger.isEnabledFor(logging.DEBUG):
            _logger.debug(f"{_sim_time_prefix(self.scheduler)} DL PPDU            users={len(psdu_map)} "
                          f"preamble={tx_vector.preamble.name} duration={duration * 1e3:.3f}ms")
        return end

    def _ul_tx_vector(self, n_users: int) -> TxVector:
        return TxVector(PreambleType.HE_TB, self.channel_width, self.guard_interval, self.mcs,
                        ru_data_subcarriers=phy.ru_data_subcarriers(self.channel_width, n_users))

    def _transmit_basic_trigger(self, start: float) -> float:
        """Solicit up to `max_n_rus` stations at `start`; returns the end of the UL exchange."""
        n_users = min(self.max_n_rus, len(self._ul_rr))
        addressed = self._ul_rr[:n_users]
        self._ul_rr = self._ul_rr[n_users:] + addressed
        tb_vector = self._ul_tx_vector(n_users)
        granted = phy.preamble_and_header_duration(tb_vector) + phy.data_duration(self.ul_psdu_size, tb_vector)
        su_vector = TxVector(PreambleType.HE_SU, self.channel_width, self.guard_interval, 0)
        trigger_duration = phy.preamble_and_header_duration(su_vector) + phy.data_duration(TRIGGER_FRAME_BYTES, su_vector)
        self.scheduler.schedule_at(start, lambda: self._send_basic_trigger(addressed, granted))
        return start + trigger_duration + SIFS + granted + SIFS + BLOCK_ACK_DURATION

    def _send_basic_trigger(self, addressed: List[int], granted: float) -> None:
        tb_vector = self._ul_tx_vector(len(addressed))
        trigger = CtrlTriggerHeader(
            trigger_type=TriggerType.BASIC,
            ul_length=phy.he_tb_duration_to_lsig_length(granted, tb_vector),
            channel_width=self.channel_width,
            guard_interval=self.guard_interval,
            ru_data_subcarriers=tb_vector.ru_data_subcarriers,
            user_info=[TriggerUserInfo(aid12=aid, ru_index=i, mcs=self.mcs) for i, aid in enumerate(addressed)],
        )
        header = WifiMacHeader(FrameType.TRIGGER, addr1=BROADCAST, addr2=self.address)
        psdu_map: WifiPsduMap = {SU_STA_ID: Psdu(header=header, trigger=trigger, control_size_bytes=TRIGGER_FRAME_BYTES)}
        su_vector = TxVector(PreambleType.HE_SU, self.channel_width, self.guard_interval, 0)
        self.forward_down_trace(psdu_map, su_vector)
        response_time = self.scheduler.get_current_time() + phy.calculate_tx_duration(psdu_map, su_vector) + SIFS

        for aid in addressed:
            station = self.stations[self.sta_list[aid]]
            self.scheduler.schedule_at(response_time, lambda st=station: st.respond_to_trigger(trigger))
