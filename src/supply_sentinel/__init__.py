"""Supply Sentinel: anomaly detection and resolution workflow for supply-chain operations."""

from supply_sentinel.anomaly.detector import (
    ANOMALY_TYPES,
    SEVERITIES,
    classify_severity,
    lookup_resolution,
)
from supply_sentinel.anomaly.workflow import TERMINAL_STATUSES, allowed_actions

__all__ = [
    "ANOMALY_TYPES",
    "SEVERITIES",
    "TERMINAL_STATUSES",
    "allowed_actions",
    "classify_severity",
    "lookup_resolution",
]
__version__ = "0.1.0"
