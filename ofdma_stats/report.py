"""Final results of a run: a plain dict for callers and charts, and the text summary logged at the end."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ofdma_stats.engine import StatisticsEngine

_logger = logging.getLogger(__name__)


def _avg_latency_ms(samples: Sequence[float]) -> Optional[float]:
    if not samples:
        return None
    return float(np.mean(samples)) * 1e3


def build_results(engine: StatisticsEngine, station_names: Dict[str, str]) -> Dict[str, Any]:
    """Collect every statistic of `engine` into a JSON-friendly dict.

    `station_names` maps station address -> display name (e.g. STA_0), in report order.
    """
    g = engine.global_stats
    per_station: Dict[str, Dict[str, Any]] = {}
    total_tput = 0.0
    he_tb_total = 0
    solicited_total = 0
    for address, name in station_names.items():
        r = engine.records[address]
        tput = engine.throughput_mbps(address)
        total_tput += tput
        he_tb_total += r.n_he_tb_ppdus
        solicited_total += r.n_soliciting_trigger_frames
        per_station[name] = {
            "address": address,
            "throughput_mbps": tput,
            "failed": r.failed,
            "expired": r.expired,
            "ampdu_size": r.ampdu_size.as_dict(),
            "ampdu_ratio": r.ampdu_ratio.as_dict(),
            "hol_delay_ms": r.hol_delay.as_dict(),
            "avg_latency_ms": _avg_latency_ms(engine.correlator.latencies[address]),
            "n_latency_samples": len(engine.correlator.latencies[address]),
            "n_soliciting_trigger_frames": r.n_soliciting_trigger_frames,
            "n_he_tb_ppdus": r.n_he_tb_ppdus,
            "unresponded_tf_ratio": r.unresponded_tf_ratio,
            "ul_length_ratio": r.ul_length_ratio.as_dict(),
        }

    missing_he_tb_ratio = 0.0
    if solicited_total > 0:
        missing_he_tb_ratio = (solicited_total - he_tb_total) / solicited_total

    return {
        "collection window": {
            "start (s)": engine.start_time,
            "stop (s)": engine.stop_time,
            "duration (s)": engine.duration,
        },
        "stations": per_station,
        "global": {
            "total_throughput_mbps": total_tput,
            "total_failed": sum(s["failed"] for s in per_station.values()),
            "total_expired": sum(s["expired"] for s in per_station.values()),
            "max_txop_ms": g.max_txop * 1e3,
            "dl_mu_completeness": g.dl_mu_completeness.as_dict(),
            "hol_delay_ms": g.hol_delay.as_dict(),
            "n_basic_trigger_frames_sent": g.n_basic_trigger_frames_sent,
            "n_failed_trigger_frames": g.n_failed_trigger_frames,
            "missing_he_tb_ppdu_ratio": missing_he_tb_ratio,
            "he_tb_ppdu_completeness": g.ul_completeness.as_dict(),
        },
    }


def _fmt(x: Optional[float]) -> str:
    return "-" if x is None else f"{x:.3f}"


def _fmt_stat(stat: Dict[str, Any], keys=("min", "max", "avg")) -> str:
    return "(" + ", ".join(_fmt(stat[k]) if k != "count" else str(stat[k]) for k in keys) + ")"


def _section(title: str, rows: List[str], footer: Optional[str] = None) -> str:
    text = f"{title}\n{'-' * len(title)}\n" + " ".join(rows)
    if footer:
        text += f"\n\n{footer}"
    return text


def format_report(results: Dict[str, Any]) -> List[str]:
    """Text blocks of the results summary, one per statistic."""
    stations = results["stations"]
    g = results["global"]
    names = list(stations)
    return [
        _section("Throughput (Mbps)", [f"{n}: {_fmt(stations[n]['throughput_mbps'])}" for n in names],
                 f"Total throughput: {_fmt(g['total_throughput_mbps'])}"),
        _section("TX failures", [f"{n}: {stations[n]['failed']}" for n in names],
                 f"Total failed: {g['total_failed']}"),
        _section("Expired MSDUs", [f"{n}: {stations[n]['expired']}" for n in names],
                 f"Total expired: {g['total_expired']}"),
        _section("(Min,Max,Count) A-MPDU size",
                 [f"{n}: {_fmt_stat(stations[n]['ampdu_size'], ('min', 'max', 'count'))}" for n in names],
                 f"Maximum TXOP duration: {_fmt(g['max_txop_ms'])}ms"),
        _section("(Min,Max,Avg) A-MPDU size to max A-MPDU size in DL MU PPDU ratio",
                 [f"{n}: {_fmt_stat(stations[n]['ampdu_ratio'])}" for n in names],
                 f"DL MU PPDU completeness: {_fmt_stat(g['dl_mu_completeness'])}"),
        _section("(Min,Max,Avg) Pairwise head-of-line delay (ms)",
                 [f"{n}: {_fmt_stat(stations[n]['hol_delay_ms'])}" for n in names],
                 f"Head-of-line delay (ms): {_fmt_stat(g['hol_delay_ms'])}"),
        _section("Average latency (ms)", [f"{n}: {_fmt(stations[n]['avg_latency_ms'])}" for n in names]),
        _section("Unresponded TFs ratio/(Min,Max,Avg) HE TB PPDU duration to UL Length ratio",
                 [f"{n}: {_fmt(stations[n]['unresponded_tf_ratio'])}/{_fmt_stat(stations[n]['ul_length_ratio'])}"
                  for n in names],
                 f"(Failed, Sent) Basic Trigger Frames: ({g['n_failed_trigger_frames']}, "
                 f"{g['n_basic_trigger_frames_sent']})\n\n"
                 f"Missing HE TB PPDUs ratio: {_fmt(g['missing_he_tb_ppdu_ratio'])}\n\n"
                 f"HE TB PPDU completeness: {_fmt_stat(g['he_tb_ppdu_completeness'])}"),
    ]


def log_report(results: Dict[str, Any]) -> None:
    for block in format_report(results):
        _logger.info("Results summary - %s", block)
