import argparse

import pytest

from ofdma_stats.errors import ConfigurationError
from wifi_ofdma_simulation import _load_yaml, _resolve_yaml_arg, build_config, run_simulation

CONFIG = """
run:
  name: test
simulation:
  n_stations: 2
  simulation_time: 0.1
  warmup: 0.05
  enable_ul_ofdma: true
"""


def test_yaml_config_with_cli_overrides(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    cfg = _load_yaml(_resolve_yaml_arg(str(path)))
    config = build_config(cfg, argparse.Namespace(n_stations=3, simulation_time=None))
    assert config.n_stations == 3
    assert config.simulation_time == 0.1
    assert config.queue_size == 31 * 3 * 2


def test_invalid_yaml_values_fail_before_running(tmp_path):
    with pytest.raises(ConfigurationError):
        build_config({"simulation": {"channel_width": 25}})
    with pytest.raises(ValueError):
        build_config({"simulation": ["not", "a", "mapping"]})
    with pytest.raises(ValueError):
        _resolve_yaml_arg(str(tmp_path / "run.json"))
    with pytest.raises(FileNotFoundError):
        _resolve_yaml_arg(str(tmp_path / "missing.yaml"))


def test_run_simulation_reports_every_station():
    config = build_config({"simulation": {"n_stations": 2, "simulation_time": 0.1, "warmup": 0.05}})
    results = run_simulation(config)
    assert list(results["stations"]) == ["STA_0", "STA_1"]
    assert results["run statistics"]["onboarding order"] == ["STA_0", "STA_1"]
    assert results["collection window"]["duration (s)"] == pytest.approx(0.1)
    assert results["parameters summary"]["Number of stations"] == 2
