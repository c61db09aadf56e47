from __future__ import annotations

import logging
from typing import Mapping

from ofdma_stats.errors import UnknownStationError
from ofdma_stats.records import GlobalAggregate, PerStationRecord
from ofdma_stats.trigger_tracker import TriggerFrameTracker
from wifi_simulation import phy
from wifi_simulation.frames import CtrlTriggerHeader, Psdu, TxVector, WifiPsduMap

_logger = logging.getLogger(__name__)


class AggregationEventHandler:
    """Classifies PSDUs forwarded to the PHY and updates the aggregation statistics.

    Classification (first match wins):
      1. a single QoS data PSDU addressed to the AP: uplink; only HE TB PPDUs are accounted
      2. QoS data otherwise: downlink A-MPDU sizes, plus RU utilisation of DL MU PPDUs
      3. a single trigger frame: basic triggers go to the TriggerFrameTracker
    """

    def __init__(self, ap_address: str, sta_list: Mapping[int, str], stations: Mapping[str, PerStationRecord],
                 global_stats: GlobalAggregate, tracker: TriggerFrameTracker):
        self.ap_address = ap_address
        self._sta_list = sta_list  # AID -> station address, owned by the AP
        self._stations = stations
        self._global = global_stats
        self.tracker = tracker

    def _record(self, station: str, context: str) -> PerStationRecord:
        record = self._stations.get(station)
        if record is None:
            raise UnknownStationError(station, context)
        return record

    def _address_of(self, aid: int) -> str:
        address = self._sta_list.get(aid)
        if address is None:
            raise UnknownStationError(f"AID {aid}", "not in the AP station list")
        return address

    def on_psdu_forwarded(self, psdu_map: WifiPsduMap, tx_vector: TxVector) -> None:
        assert psdu_map, "empty PSDU map forwarded down"
        first = next(iter(psdu_map.values()))
        header = first.get_header(0)

        if len(psdu_map) == 1 and first.addr1 == self.ap_address and header.is_qos_data():
            if tx_vector.is_ul_mu():
                self._on_he_tb_ppdu(first, psdu_map, tx_vector)
        elif header.is_qos_data():
            self._on_downlink(psdu_map, tx_vector)
        elif len(psdu_map) == 1 and header.is_trigger():
            assert first.trigger is not None
            self._on_trigger(first.trigger)

    def _on_he_tb_ppdu(self, psdu: Psdu, psdu_map: WifiPsduMap, tx_vector: TxVector) -> None:
        duration = phy.calculate_tx_duration(psdu_map, tx_vector)
        self.tracker.on_response(psdu.addr2, duration)

    def _on_downlink(self, psdu_map: WifiPsduMap, tx_vector: TxVector) -> None:
        max_size = 0
        size_sum = 0
        for psdu in psdu_map.values():
            size = psdu.get_size()
            max_size = max(max_size, size)
            size_sum += size
            self._record(psdu.addr1, "DL PSDU").ampdu_size.observe(size)

        if not tx_vector.is_dl_mu():
            return

        n_rus = len(tx_vector.he_mu_user_info)
        max_bytes = max_size * n_rus
        assert max_bytes > 0, "DL MU PPDU without payload"
        self._global.dl_mu_completeness.observe(size_sum / max_bytes)

        # every station allocated an RU is charged, a silent one with 0
        for sta_id in tx_vector.he_mu_user_info:
            psdu = psdu_map.get(sta_id)
            ratio = psdu.get_size() / max_size if psdu is not None else 0.0
            self._record(self._address_of(sta_id), "DL MU user info").ampdu_ratio.observe(ratio)

    def _on_trigger(self, trigger: CtrlTriggerHeader) -> None:
        if not trigger.is_basic():
            return
        assert trigger.user_info, "basic trigger frame without user info"
        # all addressed stations are granted the same UL Length; any user info gives the TXVECTOR
        tb_vector = trigger.he_tb_tx_vector(trigger.user_info[0].aid12)
        ul_duration = phy.lsig_length_to_he_tb_duration(trigger.ul_length, tb_vector)
        addressed = [self._address_of(info.aid12) for info in trigger]
        self.tracker.on_basic_trigger(ul_duration, addressed)
