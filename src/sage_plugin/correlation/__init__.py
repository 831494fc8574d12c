"""Correlation — scoring prompts against suggestions and parsing usage markers."""

from sage_plugin.correlation.analyzer import (
    CorrelationResult,
    CorrelationType,
    analyze_prompt,
    correlate,
)
from sage_plugin.correlation.markers import (
    MarkerOutcome,
    MarkerScan,
    extract_markers,
    scan_markers,
)

__all__ = [
    "CorrelationResult",
    "CorrelationType",
    "analyze_prompt",
    "correlate",
    "MarkerOutcome",
    "MarkerScan",
    "extract_markers",
    "scan_markers",
]
