"""Minimal 802.11ax cell used to drive the statistics engine.

Frames, PHY timing, trace sources and the AP/station devices. The MAC here only
exists to produce a realistic stream of events; it is not a scheduler model.
"""
from wifi_simulation.cell import WifiCell
from wifi_simulation.trace import TraceSource
from wifi_simulation.traffic import BulkTransferProfile, SteadyRateProfile, TrafficProfile

__all__ = [
    "WifiCell",
    "TraceSource",
    "TrafficProfile",
    "SteadyRateProfile",
    "BulkTransferProfile",
]
