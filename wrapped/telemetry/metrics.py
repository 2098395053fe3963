"""OpenTelemetry metrics instrumentation helpers."""

from __future__ import annotations

import logging

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from wrapped.core.config import settings

_logger = logging.getLogger(__name__)

_metrics_enabled = False
_meter = None
_provider: MeterProvider | None = None
_api_request_counter = None
_fetch_failure_counter = None
_stats_duration_hist = None


def configure_metrics() -> None:
    """Initialise the metrics provider if enabled via settings."""

    global _metrics_enabled, _meter, _api_request_counter, _fetch_failure_counter, _stats_duration_hist, _provider

    if not settings.otel_enabled:
        return
    if _metrics_enabled:
        return

    exporter_name = settings.otel_exporter.lower().strip()
    metric_readers = []

    if exporter_name == "console":
        metric_readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter()))
    elif exporter_name == "prometheus":
        try:
            from opentelemetry.exporter.prometheus import PrometheusMetricReader  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "Prometheus exporter selected but opentelemetry-exporter-prometheus is not installed."
            ) from exc
        metric_readers.append(PrometheusMetricReader())
    elif exporter_name == "otlp":
        try:
            from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "OTLP exporter selected but opentelemetry-exporter-otlp is not installed."
            ) from exc
        endpoint = settings.otel_otlp_endpoint
        exporter = OTLPMetricExporter(endpoint=endpoint) if endpoint else OTLPMetricExporter()
        metric_readers.append(PeriodicExportingMetricReader(exporter))
    else:
        _logger.warning("Unsupported OTEL exporter '%s'; defaulting to console", exporter_name)
        metric_readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter()))

    _provider = MeterProvider(metric_readers=metric_readers, resource=Resource.create({"service.name": "devops-wrapped"}))
    metrics.set_meter_provider(_provider)
    _meter = metrics.get_meter("devops-wrapped")
    _api_request_counter = _meter.create_counter(
        name="wrapped.devops.requests",
        unit="1",
        description="Requests sent to the Azure DevOps REST API",
    )
    _fetch_failure_counter = _meter.create_counter(
        name="wrapped.fetch.failures",
        unit="1",
        description="Per-project fetch failures by kind",
    )
    _stats_duration_hist = _meter.create_histogram(
        name="wrapped.stats.duration",
        unit="s",
        description="End-to-end stats generation duration in seconds",
    )
    _metrics_enabled = True


def increment_api_request(method: str, status: int) -> None:
    if _metrics_enabled and _api_request_counter is not None:
        _api_request_counter.add(1, {"method": method, "status": status})


def record_fetch_failure(kind: str) -> None:
    if _metrics_enabled and _fetch_failure_counter is not None:
        _fetch_failure_counter.add(1, {"kind": kind})


def record_stats_duration(seconds: float) -> None:
    if _metrics_enabled and _stats_duration_hist is not None:
        _stats_duration_hist.record(max(seconds, 0.0))


def collect_prometheus_metrics() -> tuple[bytes, str]:
    """Render the default prometheus registry for the /metrics endpoint."""
    try:
        from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError("Prometheus exporter selected but prometheus-client is not installed.") from exc
    return generate_latest(), CONTENT_TYPE_LATEST


def shutdown_metrics() -> None:
    global _metrics_enabled, _provider
    if _metrics_enabled and _provider is not None:
        try:
            _provider.shutdown()
        except Exception:  # pragma: no cover
            _logger.exception("Failed to shutdown metrics provider")
        finally:
            _metrics_enabled = False
            _provider = None
