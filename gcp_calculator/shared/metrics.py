"""OpenTelemetry metrics for the GCP calculator link generator.

This module provides metrics counters for monitoring automation runs:
- estimates_total: Count of estimate requests by outcome
- instances_committed_total: Count of instances added to an estimate
- errors_total: Count of errors by type

Metrics are exported to OTLP endpoint when ENABLE_OTEL=true.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

logger = logging.getLogger(__name__)

_METRICS_CONFIGURED = False
_meter: Optional[metrics.Meter] = None
_estimates_counter = None
_instances_counter = None
_errors_counter = None


def configure_metrics() -> None:
    """Configure OpenTelemetry metrics with OTLP exporter."""
    global _METRICS_CONFIGURED, _meter, _estimates_counter, _instances_counter, _errors_counter

    if _METRICS_CONFIGURED:
        return

    enable_otel = os.getenv("ENABLE_OTEL", "").lower() == "true"
    if not enable_otel:
        logger.debug("Metrics disabled (ENABLE_OTEL not set to true)")
        _METRICS_CONFIGURED = True
        return

    try:
        otlp_endpoint = os.getenv("OTLP_ENDPOINT") or os.getenv(
            "OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317"
        )

        # Strip trailing slash and ensure proper format
        otlp_endpoint = otlp_endpoint.rstrip("/")
        if not otlp_endpoint.startswith("http://") and not otlp_endpoint.startswith("https://"):
            otlp_endpoint = f"http://{otlp_endpoint}"

        logger.info(f"Configuring metrics export to OTLP endpoint: {otlp_endpoint}")

        exporter = OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True)
        reader = PeriodicExportingMetricReader(exporter, export_interval_millis=5000)
        provider = MeterProvider(metric_readers=[reader])
        metrics.set_meter_provider(provider)

        _meter = metrics.get_meter("gcp_calculator")

        _estimates_counter = _meter.create_counter(
            name="estimates_total",
            description="Total number of estimate requests processed",
            unit="1",
        )

        _instances_counter = _meter.create_counter(
            name="instances_committed_total",
            description="Total number of instances committed to an estimate",
            unit="1",
        )

        _errors_counter = _meter.create_counter(
            name="errors_total",
            description="Total number of errors by type",
            unit="1",
        )

        logger.info("OpenTelemetry metrics configured successfully")
        _METRICS_CONFIGURED = True

    except Exception as e:
        logger.warning(f"Failed to configure metrics: {e}")
        _METRICS_CONFIGURED = True


def increment_estimates(success: bool, service: str = "Compute Engine") -> None:
    """
    Increment estimates counter.

    Args:
        success: Whether the run produced a share URL
        service: Calculator product the estimate was built for
    """
    if _estimates_counter:
        _estimates_counter.add(1, {"success": str(success), "service": service})


def increment_instances_committed(count: int = 1) -> None:
    """Increment the committed instances counter."""
    if _instances_counter and count > 0:
        _instances_counter.add(count)


def increment_errors(error_type: str, stage: Optional[str] = None) -> None:
    """
    Increment errors counter.

    Args:
        error_type: Type/category of error (e.g., 'ValidationError', 'ExtractionFailed')
        stage: Optional session stage the error was raised in
    """
    if _errors_counter:
        attributes = {"error_type": error_type}
        if stage:
            attributes["stage"] = stage
        _errors_counter.add(1, attributes)
