"""Signal pipelines."""

from .orchestrator import SignalOrchestrator
from .swaps import SwapIngestor
from .volume_trigger import VolumeTriggerMonitor

__all__ = [
    "SignalOrchestrator",
    "SwapIngestor",
    "VolumeTriggerMonitor",
]
