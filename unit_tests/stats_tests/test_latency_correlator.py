import pytest

from ofdma_stats.errors import UnknownStationError
from ofdma_stats.latency import LatencyCorrelator
from ofdma_stats.records import GlobalAggregate, PerStationRecord

STA_1 = "00:00:00:00:00:01"
STA_2 = "00:00:00:00:00:02"


def _correlator(min_payload_size=100):
    records = {s: PerStationRecord(s) for s in (STA_1, STA_2)}
    g = GlobalAggregate()
    return LatencyCorrelator(records, g, min_payload_size), records, g


def test_send_then_receive_yields_one_sample_and_duplicate_is_noop():
    corr, _, _ = _correlator()
    corr.on_send(7, 500, 10.0)
    corr.on_receive(7, 500, 15.0, STA_2)
    assert corr.latencies[STA_2] == [5.0]
    assert 7 not in corr.pending

    corr.on_receive(7, 500, 16.0, STA_2)
    assert corr.latencies[STA_2] == [5.0]
    assert corr.latencies[STA_1] == []
    assert corr.average_latency(STA_2) == pytest.approx(5.0)
    assert corr.average_latency(STA_1) is None


def test_small_packets_are_not_correlated():
    corr, _, _ = _correlator(min_payload_size=100)
    corr.on_send(1, 64, 1.0)
    assert corr.pending == {}
    corr.on_send(2, 100, 1.0)
    corr.on_receive(2, 99, 2.0, STA_1)
    assert corr.latencies[STA_1] == []
    assert 2 in corr.pending


def test_receive_without_send_is_ignored():
    corr, _, _ = _correlator()
    corr.on_receive(42, 500, 3.0, STA_1)
    assert corr.latencies[STA_1] == []


def test_receive_on_unknown_station_is_fatal():
    corr, _, _ = _correlator()
    corr.on_send(3, 500, 1.0)
    with pytest.raises(UnknownStationError):
        corr.on_receive(3, 500, 2.0, "00:00:00:00:00:63")
    with pytest.raises(AssertionError):
        corr.on_dequeue("00:00:00:00:00:63", 2.0, 1.9, 0.5)


def test_hol_gaps_are_recorded_in_ms_bss_wide_and_per_station():
    corr, records, g = _correlator()
    corr.on_dequeue(STA_1, 1.000, 0.990, 0.5)
    assert g.hol_delay.count == 0
    assert g.last_dequeue_time == 1.000

    corr.on_dequeue(STA_2, 1.004, 0.990, 0.5)
    assert g.hol_delay.count == 1
    assert g.hol_delay.mean == pytest.approx(4.0)
    # first dequeue for STA_2: no per-station gap yet
    assert records[STA_2].hol_delay.count == 0

    corr.on_dequeue(STA_1, 1.010, 1.0, 0.5)
    assert records[STA_1].hol_delay.count == 1
    assert records[STA_1].hol_delay.mean == pytest.approx(10.0)
    assert g.hol_delay.count == 2


def test_zero_gap_updates_last_dequeue_but_not_the_stat():
    corr, records, g = _correlator()
    corr.on_dequeue(STA_1, 2.0, 1.9, 0.5)
    corr.on_dequeue(STA_1, 2.5, 2.4, 0.5)
    before = (g.hol_delay.snapshot(), records[STA_1].hol_delay.snapshot())

    # aggregated with the head MSDU: same dequeue time
    corr.on_dequeue(STA_1, 2.5, 2.45, 0.5)
    assert (g.hol_delay.snapshot(), records[STA_1].hol_delay.snapshot()) == before
    assert g.last_dequeue_time == 2.5
    assert records[STA_1].last_dequeue_time == 2.5


def test_expired_dequeue_is_ignored_entirely():
    corr, records, g = _correlator()
    corr.on_dequeue(STA_1, 1.0, 0.9, 0.5)
    corr.on_dequeue(STA_1, 2.0, 1.0, 0.5)  # waited 1 s > 0.5 s lifetime
    assert g.hol_delay.count == 0
    assert g.last_dequeue_time == 1.0
    assert records[STA_1].last_dequeue_time == 1.0

    # exactly at the lifetime is still a transmission
    corr.on_dequeue(STA_1, 2.0, 1.5, 0.5)
    assert g.hol_delay.count == 1
    assert g.hol_delay.mean == pytest.approx(1000.0)


def test_dequeue_at_queue_lifetime_boundary_counts_as_transmission():
    # same float expression the EDCA queue uses to decide expiry
    corr, records, g = _correlator()
    enqueued_at, max_delay = 0.1, 0.2
    now = 0.1 + 0.2
    assert not now > enqueued_at + max_delay
    corr.on_dequeue(STA_1, now, enqueued_at, max_delay)
    assert records[STA_1].last_dequeue_time == now
    assert g.last_dequeue_time == now
