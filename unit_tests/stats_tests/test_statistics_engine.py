import pytest

from ofdma_stats.engine import StatisticsEngine
from ofdma_stats.errors import UnknownStationError
from wifi_simulation.cell import WifiCell
from wifi_simulation.frames import FrameType, Packet, WifiMacHeader, WifiMacQueueItem


def _cell_and_engine(n_stations=2):
    cell = WifiCell(n_stations=n_stations, enable_ul_ofdma=True, seed=5)
    engine = StatisticsEngine(cell.station_addresses, payload_size=100)
    return cell, engine


def _all_traces(cell):
    traces = cell.forward_down_traces() + cell.mac_tx_traces() + cell.mac_rx_traces()
    queue = cell.ap.edca_queue
    return traces + [queue.dequeue_trace, queue.expired_trace, cell.ap.tx_err_header_trace, cell.ap.txop_trace]


def test_events_reach_the_engine_only_between_start_and_stop():
    cell, engine = _cell_and_engine()
    sta0 = cell.station_addresses[0]
    header = WifiMacHeader(FrameType.QOS_DATA, sta0, cell.ap.address)

    cell.ap.txop_trace(0.0, 3e-3)
    cell.ap.tx_err_header_trace(header)
    assert engine.global_stats.max_txop == 0.0
    assert engine.records[sta0].failed == 0

    engine.start(cell)
    assert engine.collecting
    cell.ap.txop_trace(0.0, 2e-3)
    cell.ap.tx_err_header_trace(header)
    assert engine.global_stats.max_txop == 2e-3
    assert engine.records[sta0].failed == 1

    engine.stop(cell)
    assert not engine.collecting
    assert all(len(trace) == 0 for trace in _all_traces(cell))
    cell.ap.txop_trace(0.0, 4e-3)
    cell.ap.tx_err_header_trace(header)
    assert engine.global_stats.max_txop == 2e-3
    assert engine.records[sta0].failed == 1


def test_expired_msdu_counts_for_its_receiver_and_is_not_a_hol_sample():
    cell, engine = _cell_and_engine()
    sta1 = cell.station_addresses[1]
    engine.start(cell)
    item = WifiMacQueueItem(Packet(uid=1, size_bytes=500), WifiMacHeader(FrameType.QOS_DATA, sta1, cell.ap.address),
                            timestamp=-1.0)
    # an expired MSDU fires Expired, then Dequeue
    cell.ap.edca_queue.expired_trace(item)
    cell.ap.edca_queue.dequeue_trace(item)
    assert engine.records[sta1].expired == 1
    assert engine.global_stats.last_dequeue_time is None


def test_unknown_station_in_failure_trace_is_fatal():
    cell, engine = _cell_and_engine()
    engine.start(cell)
    with pytest.raises(UnknownStationError):
        cell.ap.tx_err_header_trace(WifiMacHeader(FrameType.QOS_DATA, "00:00:00:00:00:63", cell.ap.address))


def test_live_cell_traffic_is_accounted():
    cell, engine = _cell_and_engine(n_stations=2)
    for station in cell.stations:
        cell.associate(station)
    cell.run(0.01)

    engine.start(cell)

    def send_to_all():
        for address in cell.station_addresses:
            cell.ap.send(400, address, 0)

    for i in range(20):
        cell.simulator.schedule_event(i * 1e-3, send_to_all)
    cell.run(0.2)
    engine.stop(cell)

    for address in cell.station_addresses:
        record = engine.records[address]
        assert record.n_ampdus > 0
        assert record.ampdu_ratio.count > 0
        assert len(engine.correlator.latencies[address]) > 0
        assert all(latency > 0 for latency in engine.correlator.latencies[address])
    assert engine.global_stats.dl_mu_completeness.count > 0
    assert 0.0 < engine.global_stats.dl_mu_completeness.max <= 1.0
    assert engine.global_stats.n_basic_trigger_frames_sent > 0
    assert engine.global_stats.max_txop > 0.0
    assert engine.duration > 0.019


def test_start_twice_is_rejected():
    cell, engine = _cell_and_engine()
    engine.start(cell)
    with pytest.raises(AssertionError):
        engine.start(cell)
