"""Telemetry utilities for exporting service metrics."""

from .metrics import (
    configure_metrics,
    increment_api_request,
    record_fetch_failure,
    record_stats_duration,
    shutdown_metrics,
    collect_prometheus_metrics,
)

__all__ = [
    "configure_metrics",
    "increment_api_request",
    "record_fetch_failure",
    "record_stats_duration",
    "shutdown_metrics",
    "collect_prometheus_metrics",
]
