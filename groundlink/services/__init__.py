"""Telemetry services: port lifecycle, monitor engine and simulator."""

from .lifecycle import LifecycleManager
from .monitor import MonitorEngine
from .runtime import TelemetryService
from .simulator import TelemetryGenerator, TelemetrySimulator
from .stream import CancellationToken, LoopOutcome, TelemetryStream

__all__ = [
    "CancellationToken",
    "LifecycleManager",
    "LoopOutcome",
    "MonitorEngine",
    "TelemetryGenerator",
    "TelemetryService",
    "TelemetrySimulator",
    "TelemetryStream",
]
