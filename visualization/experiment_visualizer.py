import datetime
import logging
import os
from typing import Any, Dict, List, Optional


def visualize_station_metrics(results: Dict[str, Any], out_dir: str = "results", tag: str = "") -> Optional[str]:
    """Bar charts of the per-station results of one run.

    Three panels: throughput (Mb/s), average latency (ms) and average
    head-of-line delay (ms), one bar per station, with the BSS-wide value as a
    dashed line where one exists.

    Args:
        results: run results as built by `ofdma_stats.report.build_results`.
        out_dir: output directory for the PNG file.
        tag: optional label added to the title and file name.

    Returns:
        Path to saved file, or None if visualization failed.
    """
    stations = results.get("stations", {})
    if not stations:
        logging.warning("No station results to visualize")
        return None

    try:
        import matplotlib
        matplotlib.use('Agg')
        import matplotlib.pyplot as plt
        import numpy as np
    except ImportError:
        logging.warning("matplotlib not available, skipping station metrics visualization")
        return None

    try:
        names = list(stations)
        x = np.arange(len(names))
        tput = np.array([stations[n]["throughput_mbps"] for n in names], dtype=float)
        # stations without samples are drawn as empty bars
        latency = np.array([stations[n]["avg_latency_ms"] or 0.0 for n in names], dtype=float)
        hol = np.array([stations[n]["hol_delay_ms"]["avg"] if stations[n]["hol_delay_ms"]["count"] else 0.0
                        for n in names], dtype=float)
        g = results.get("global", {})

        fig, (ax1, ax2, ax3) = plt.subplots(3, 1, figsize=(max(8, len(names) * 0.8), 10), sharex=True)

        colors = plt.cm.Blues(np.linspace(0.4, 0.9, len(names)))
        ax1.bar(x, tput, color=colors, edgecolor='navy', linewidth=0.5)
        ax1.set_ylabel('Throughput (Mb/s)', fontsize=11)
        ax1.set_title(f'Per-station results{" (" + tag + ")" if tag else ""}', fontsize=14, fontweight='bold')
        ax1.axhline(y=float(np.mean(tput)), color='red', linestyle='--', linewidth=1.5,
                    label=f'Avg: {np.mean(tput):.3f} Mb/s')
        ax1.legend(loc='upper right')
        ax1.grid(axis='y', alpha=0.3)

        ax2.bar(x, latency, color=plt.cm.Greens(np.linspace(0.4, 0.9, len(names))), edgecolor='darkgreen',
                linewidth=0.5)
        ax2.set_ylabel('Avg latency (ms)', fontsize=11)
        ax2.grid(axis='y', alpha=0.3)

        ax3.bar(x, hol, color=plt.cm.Oranges(np.linspace(0.4, 0.9, len(names))), edgecolor='darkorange',
                linewidth=0.5)
        global_hol = g.get("hol_delay_ms", {})
        if global_hol.get("count"):
            ax3.axhline(y=global_hol["avg"], color='red', linestyle='--', linewidth=1.5,
                        label=f'BSS: {global_hol["avg"]:.3f} ms')
            ax3.legend(loc='upper right')
        ax3.set_ylabel('Avg HOL delay (ms)', fontsize=11)
        ax3.set_xticks(x)
        ax3.set_xticklabels(names, rotation=45, ha='right')
        ax3.grid(axis='y', alpha=0.3)

        window = results.get("collection window", {})
        stats_text = (f"Total: {g.get('total_throughput_mbps', 0.0):.3f} Mb/s | "
                      f"Window: {window.get('duration (s)', 0.0):.3f} s | "
                      f"Max TXOP: {g.get('max_txop_ms', 0.0):.3f} ms")
        fig.text(0.5, 0.01, stats_text, ha='center', fontsize=10, style='italic')

        plt.tight_layout()
        plt.subplots_adjust(bottom=0.12)

        os.makedirs(out_dir, exist_ok=True)
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"station_metrics_{tag}_{timestamp}.png" if tag else f"station_metrics_{timestamp}.png"
        filepath = os.path.join(out_dir, filename)
        plt.savefig(filepath, dpi=150, bbox_inches='tight')
        plt.close(fig)

        logging.info(f"Station metrics graph saved to: {filepath}")
        return filepath

    except Exception as e:
        logging.exception(f"Failed to create station metrics visualization: {e}")
        return None


def visualize_experiment_results(results: List[Dict[str, Any]], out_dir: str = "results") -> List[str]:
    """Visualize a list of run results; returns the paths of the files written."""
    paths = []
    for i, result in enumerate(results):
        tag = f"run{i}" if len(results) > 1 else ""
        path = visualize_station_metrics(result, out_dir, tag)
        if path:
            paths.append(path)
    return paths


__all__ = ["visualize_experiment_results", "visualize_station_metrics"]
