"""Scan orchestration.

This package runs the selected probes against a target and aggregates
their findings into a ScanResult.
"""

from apiprobe.scanner.engine import REGISTRY, ScanOrchestrator, run_scan
from apiprobe.scanner.events import ScanEvent

__all__ = [
    "REGISTRY",
    "ScanEvent",
    "ScanOrchestrator",
    "run_scan",
]
