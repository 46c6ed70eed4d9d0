"""Prometheus SLO recording and alert rule generation from SLO specs."""

__version__ = "0.1.0"

__all__ = [
    "alert_rules",
    "helpers",
    "model",
    "openslo",
    "promql",
    "recording_rules",
    "spec",
    "storage",
    "templating",
]