"""Online DL/UL OFDMA statistics for an 802.11ax cell.

`StatisticsEngine` owns the per-station and BSS-wide records and connects the
aggregation, latency and trigger-frame handlers to a cell for the collection
window; `OnboardingOrchestrator` brings the stations up one at a time and
drives that window.
"""
from ofdma_stats.config import SimulationConfig
from ofdma_stats.engine import StatisticsEngine
from ofdma_stats.errors import ConfigurationError, UnknownStationError
from ofdma_stats.onboarding import OnboardingOrchestrator, StationPhase
from ofdma_stats.running_stat import RunningStat

__all__ = [
    "SimulationConfig",
    "StatisticsEngine",
    "ConfigurationError",
    "UnknownStationError",
    "OnboardingOrchestrator",
    "StationPhase",
    "RunningStat",
]
