"""Logging setup shared by the CLI, the web route and the automation engine.

Records go to a console stream (stdout unless told otherwise), an optional log
file and, when an OTLP endpoint is configured, the OpenTelemetry log exporter.
Every record carries the ids of the span it was emitted in, so a failed stage
can be found in both the log and the trace view.
"""

import logging
import os
import sys
from typing import Dict, Optional, TextIO

from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.trace import get_current_span

_LOGGING_CONFIGURED = False

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s "
    "[trace_id=%(trace_id)s span_id=%(span_id)s]"
)

# Third-party loggers that flood INFO during a browser session
NOISY_LOGGERS = ("asyncio", "urllib3", "werkzeug", "opentelemetry")


class TraceContextFilter(logging.Filter):
    """Stamp trace/span ids on records ("-" outside a span)."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.trace_id = "-"
        record.span_id = "-"
        span_context = get_current_span().get_span_context()
        if span_context is not None and span_context.is_valid:
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")
        return True


def _otlp_endpoint() -> Optional[str]:
    return os.getenv("OTLP_ENDPOINT") or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")


def _parse_headers(raw_headers: Optional[str]) -> Dict[str, str]:
    """Parse "key=value,key2=value2" exporter headers."""
    headers: Dict[str, str] = {}
    for pair in (raw_headers or "").split(","):
        key, sep, value = pair.partition("=")
        if sep:
            headers[key.strip()] = value.strip()
    return headers


def _build_otel_handler(service_name: str, level: int) -> Optional[logging.Handler]:
    """Create an OTLP logging handler when an endpoint is configured."""
    endpoint = _otlp_endpoint()
    if not endpoint:
        return None

    headers = _parse_headers(os.getenv("OTLP_HEADERS") or os.getenv("OTEL_EXPORTER_OTLP_HEADERS"))
    try:
        provider = LoggerProvider(resource=Resource.create({"service.name": service_name}))
        provider.add_log_record_processor(
            BatchLogRecordProcessor(
                OTLPLogExporter(endpoint=endpoint, headers=headers, insecure=endpoint.startswith("http://"))
            )
        )
        set_logger_provider(provider)
    except Exception as exc:  # pragma: no cover - exporter misconfiguration
        sys.stderr.write(f"Failed to initialize OpenTelemetry logging exporter: {exc}\n")
        return None

    handler = LoggingHandler(logger_provider=provider, level=level)
    handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))
    return handler


def resolve_log_level(level_name: Optional[str] = None) -> int:
    """Translate a level name (default from APP_LOG_LEVEL) into a logging level."""
    name = (level_name or os.getenv("APP_LOG_LEVEL", "INFO")).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    name: str = "gcp_calculator",
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    service_name: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure root logging once per process.

    Args:
        name: Logger returned to the caller
        level: Level for the root logger and all handlers
        log_file: Optional file that receives the same records as the console
        service_name: OpenTelemetry service name (defaults to ``name``)
        stream: Console stream; stdout by default. The CLI passes stderr when
            stdout carries machine-readable output.

    Returns:
        The logger named ``name``
    """
    global _LOGGING_CONFIGURED

    logger = logging.getLogger(name)
    logger.setLevel(level)
    if _LOGGING_CONFIGURED:
        return logger

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    trace_filter = TraceContextFilter()
    formatter = logging.Formatter(LOG_FORMAT)

    handlers = [logging.StreamHandler(stream or sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    otel_handler = _build_otel_handler(service_name or name, level)
    if otel_handler:
        handlers.append(otel_handler)

    for handler in handlers:
        handler.addFilter(trace_filter)
        root_logger.addHandler(handler)

    if level > logging.DEBUG:
        for noisy in NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    _LOGGING_CONFIGURED = True
    return logger
