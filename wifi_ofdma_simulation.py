"""WiFi DL/UL OFDMA statistics run (YAML-driven).

Usage:
    python wifi_ofdma_simulation.py <path-to-config.yaml> [--n-stations N] [--simulation-time S]

Onboards the stations of one cell sequentially, runs the traffic, collects the
OFDMA statistics over [warmup, warmup + simulation_time] and logs the results.
"""

import argparse
import dataclasses
import logging
import os
import sys
import time
from typing import Any, Dict

import yaml

from log_setup import configure_run_logging
from ofdma_stats.config import SimulationConfig
from ofdma_stats.engine import StatisticsEngine
from ofdma_stats.onboarding import OnboardingOrchestrator
from ofdma_stats.report import build_results, log_report


def _require_dict(d: Any, path: str) -> Dict[str, Any]:
    if not isinstance(d, dict):
        raise ValueError(f"Expected mapping at '{path}', got {type(d).__name__}")
    return d


def _load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    return _require_dict(data, "/")


def _configure_logging(file_debug: bool, *, run_tag: str) -> str:
    """Console at INFO; the per-run file at DEBUG if file_debug, else INFO."""
    return configure_run_logging(
        run_tag,
        console_level=logging.INFO,
        file_level=logging.DEBUG if file_debug else logging.INFO,
        force=True,
    )


def _resolve_yaml_arg(arg: str) -> str:
    if not isinstance(arg, str) or not arg:
        raise ValueError("config argument must be a non-empty string")
    if not arg.lower().endswith((".yaml", ".yml")):
        raise ValueError("Config argument must be a YAML file path")

    candidate = os.path.abspath(arg)
    if not os.path.exists(candidate):
        raise FileNotFoundError(f"YAML configuration file not found: {candidate}")
    return candidate


def build_config(cfg: Dict[str, Any], args: argparse.Namespace | None = None) -> SimulationConfig:
    sim_cfg = _require_dict(cfg.get("simulation", {}) or {}, "simulation")
    config = SimulationConfig.from_mapping(sim_cfg)
    if args is not None:
        overrides = {}
        if args.n_stations is not None:
            overrides["n_stations"] = args.n_stations
        if args.simulation_time is not None:
            overrides["simulation_time"] = args.simulation_time
        config = dataclasses.replace(config, **overrides)
    return config.with_derived_defaults()


def run_simulation(config: SimulationConfig) -> Dict[str, Any]:
    """Build the cell, onboard every station and run until the collection window closes."""
    cell = config.build_cell()
    engine = StatisticsEngine(cell.station_addresses, payload_size=config.payload_size,
                              legacy_zero_sentinel=config.legacy_zero_sentinel)
    orchestrator = OnboardingOrchestrator(cell, engine, config.build_profiles(),
                                          warmup=config.warmup, duration=config.simulation_time)
    orchestrator.start()
    cell.run()

    results = build_results(engine, {s.address: s.name for s in cell.stations})
    results["parameters summary"] = config.summary()
    results["run statistics"] = {
        "onboarding order": [cell.station_by_address[a].name for a in orchestrator.onboarding_order],
        "traffic start (s)": orchestrator.traffic_start_time,
        "peak EDCA queue length": cell.ap.edca_queue.peak_queue_len,
        "dropped MSDUs (queue full)": cell.ap.edca_queue.dropped_count,
        "total run time (simulator time in seconds)": cell.simulator.end_time,
    }
    return results


def parse_args(argv):
    p = argparse.ArgumentParser(description="WiFi DL/UL OFDMA statistics simulation (YAML-driven)")
    p.add_argument("config", help="Path to YAML configuration file")
    p.add_argument("--n-stations", type=int, default=None, help="Override simulation.n_stations")
    p.add_argument("--simulation-time", type=float, default=None,
                   help="Override simulation.simulation_time (seconds)")
    return p.parse_args(argv)


def main(argv) -> int:
    args = parse_args(argv)
    yaml_path = _resolve_yaml_arg(args.config)
    cfg = _load_yaml(yaml_path)

    run_cfg = _require_dict(cfg.get("run", {}) or {}, "run")
    file_debug = bool(run_cfg.get("file_debug", False))
    visualize = bool(run_cfg.get("visualize", False))

    config = build_config(cfg, args)
    run_tag = str(run_cfg.get("name", f"wifi-ofdma.{config.n_stations}sta"))
    logfile_path = _configure_logging(file_debug=file_debug, run_tag=run_tag)
    logging.info("Logging to console and file: %s", logfile_path)
    logging.info(f"Loaded configuration from: {yaml_path}")
    logging.info("Parameters:\n%s", "\n".join(f"{k}: {v}" for k, v in config.summary().items()))

    logging.info("Starting WiFi OFDMA simulation")
    start = time.perf_counter()
    results = run_simulation(config)
    elapsed = time.perf_counter() - start
    logging.info("Simulation run time: %.3f seconds", elapsed)

    log_report(results)
    logging.info("Results summary - Run statistics:\n%s",
                 "\n".join(f"{k}: {v}" for k, v in results["run statistics"].items()))

    if visualize:
        from visualization.experiment_visualizer import visualize_experiment_results
        visualize_experiment_results([results], out_dir=str(run_cfg.get("out_dir", "results")))

    return 0


def _cli() -> int:
    return main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(_cli())
