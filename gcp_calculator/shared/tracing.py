"""Tracing/observability setup utilities.

Each automation stage runs inside its own span so a slow or failing stage can be
found in the trace view. Spans are exported over OTLP/gRPC when
``ENABLE_OTEL=true``; otherwise the OpenTelemetry API hands out no-op spans and
``stage_span`` costs nothing.

We still keep our own console/file logging handlers for local readability.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind

logger = logging.getLogger(__name__)

_OBSERVABILITY_CONFIGURED = False

TRACER_NAME = "gcp_calculator.stages"


def configure_tracing(service_name: str) -> None:
    """Install an OTLP span exporter when ENABLE_OTEL=true."""

    global _OBSERVABILITY_CONFIGURED
    if _OBSERVABILITY_CONFIGURED:
        return

    # Ensure the service name is set for OTel Resource.
    if not os.getenv("OTEL_SERVICE_NAME"):
        os.environ["OTEL_SERVICE_NAME"] = service_name

    if os.getenv("ENABLE_OTEL", "").lower() != "true":
        logger.debug("Tracing disabled (ENABLE_OTEL not set to true)")
        _OBSERVABILITY_CONFIGURED = True
        return

    endpoint = os.getenv("OTLP_ENDPOINT") or os.getenv(
        "OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317"
    )

    try:
        provider = TracerProvider(
            resource=Resource.create({"service.name": service_name})
        )
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
        )
        trace.set_tracer_provider(provider)
        logger.info(f"Configured trace export to OTLP endpoint: {endpoint}")
    except Exception as e:
        logger.warning(f"Failed to configure tracing: {e}")

    _OBSERVABILITY_CONFIGURED = True


def stage_span(stage_name: str, *, request_id: Optional[str] = None, **attrs: Any):
    """Create a traced span for an automation stage with shared attributes."""
    tracer = trace.get_tracer(TRACER_NAME)
    attributes: Dict[str, Any] = {
        "automation.stage": stage_name,
        **attrs,
    }
    if request_id:
        attributes["estimate.request_id"] = request_id
    return tracer.start_as_current_span(
        name=f"stage.{stage_name}",
        kind=SpanKind.INTERNAL,
        attributes=attributes,
    )
