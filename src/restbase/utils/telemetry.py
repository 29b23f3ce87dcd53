"""Telemetry utilities for logging, metrics, and tracing.

This module provides centralized observability infrastructure including:
- Structured logging with credential and PII redaction
- Prometheus metrics for HTTP requests, auth operations and polling
- OpenTelemetry tracing setup
"""

import logging
import re
import time
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from prometheus_client import Counter, Histogram, start_http_server
from structlog.processors import JSONRenderer

# Prometheus metrics
HTTP_REQUESTS = Counter(
    "restbase_http_requests_total",
    "Total number of HTTP requests sent to the backend",
    ["method", "status"],
)

HTTP_REQUEST_LATENCY = Histogram(
    "restbase_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

AUTH_OPERATIONS = Counter(
    "restbase_auth_operations_total",
    "Total number of auth operations",
    ["operation", "status"],
)

POLL_CYCLES = Counter(
    "restbase_poll_cycles_total",
    "Total number of change poll cycles",
    ["table", "status"],
)

CHANGE_EVENTS = Counter(
    "restbase_change_events_total",
    "Total number of change events published by pollers",
    ["table", "kind"],
)

# Credential and PII patterns for redaction; order matters, JWTs first
SENSITIVE_PATTERNS = {
    "jwt": re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"),
    "bearer": re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/=-]+"),
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b"),
    "token": re.compile(r"\b[A-Za-z0-9_-]{32,}\b"),
}

SENSITIVE_KEYS = frozenset(
    {"access_token", "refresh_token", "password", "apikey", "authorization"}
)


def redact_sensitive(text: Any) -> Any:
    """Redact credentials and personally identifiable information from text.

    Args:
        text: Input text that may contain tokens or PII

    Returns:
        Text with matches replaced with [REDACTED_<type>], or original input
        if not a string

    Example:
        >>> redact_sensitive("user ann@example.com logged in")
        'user [REDACTED_EMAIL] logged in'
    """
    if not isinstance(text, str):
        return text

    result = text
    for kind, pattern in SENSITIVE_PATTERNS.items():
        result = pattern.sub(f"[REDACTED_{kind.upper()}]", result)
    return result


def redaction_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor to redact credentials from log events.

    Values stored under well-known credential keys are dropped entirely;
    every other string value is pattern-redacted.
    """

    def redact_value(key: str | None, value: Any) -> Any:
        if key is not None and key.lower() in SENSITIVE_KEYS:
            return "[REDACTED]"
        if isinstance(value, str):
            return redact_sensitive(value)
        elif isinstance(value, dict):
            return {k: redact_value(k, v) for k, v in value.items()}
        elif isinstance(value, list):
            return [redact_value(None, item) for item in value]
        return value

    return {key: redact_value(key, value) for key, value in event_dict.items()}


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    enable_pii_redaction: bool = True,
) -> None:
    """Initialize structured logging with credential redaction.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "json" for machine-readable output, "text" for console
        enable_pii_redaction: Whether to enable the redaction processor
    """
    logging.basicConfig(format="%(message)s", level=log_level.upper())

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if enable_pii_redaction:
        processors.append(redaction_processor)

    if log_format == "text":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_tracing(
    service_name: str = "restbase",
    otlp_endpoint: str | None = None,
) -> None:
    """Initialize OpenTelemetry tracing.

    Args:
        service_name: Name of the service for tracing
        otlp_endpoint: OTLP endpoint URL (if None, uses console exporter)
    """
    from restbase import __version__

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
        }
    )

    tracer_provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(tracer_provider)

    exporter: OTLPSpanExporter | ConsoleSpanExporter
    if otlp_endpoint:
        exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
    else:
        exporter = ConsoleSpanExporter()

    tracer_provider.add_span_processor(BatchSpanProcessor(exporter))


def get_tracer(name: str) -> trace.Tracer:
    """Get OpenTelemetry tracer for a component.

    Args:
        name: Tracer name (typically module name)

    Returns:
        Tracer instance
    """
    return trace.get_tracer(name)


def get_logger(name: str, **context: Any) -> Any:
    """Get a structured logger with optional context.

    Args:
        name: Logger name
        **context: Additional context to bind to logger

    Returns:
        Bound logger with context
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger


class RequestTimer:
    """Context manager recording latency and outcome of one HTTP request."""

    def __init__(self, method: str):
        self.method = method
        self.status = "error"
        self.start_time: float | None = None
        self.elapsed_ms: float = 0.0

    def __enter__(self) -> "RequestTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        duration = time.perf_counter() - (self.start_time or 0)
        self.elapsed_ms = duration * 1000
        HTTP_REQUEST_LATENCY.labels(method=self.method).observe(duration)
        HTTP_REQUESTS.labels(method=self.method, status=self.status).inc()


def record_auth_operation(operation: str, status: str) -> None:
    """Record an auth operation outcome.

    Args:
        operation: Operation name (sign_in, refresh, ...)
        status: "success", "error" or "abandoned"
    """
    AUTH_OPERATIONS.labels(operation=operation, status=status).inc()


def record_poll_cycle(table: str, status: str) -> None:
    """Record the outcome of one poll cycle."""
    POLL_CYCLES.labels(table=table, status=status).inc()


def record_change_event(table: str, kind: str) -> None:
    """Record one published change event."""
    CHANGE_EVENTS.labels(table=table, kind=kind).inc()


def start_metrics_server(port: int = 8000) -> None:
    """Start Prometheus metrics HTTP server.

    Args:
        port: Port to serve metrics on
    """
    start_http_server(port)
    get_logger("restbase.telemetry").info(
        "Metrics server started", port=port, endpoint=f"http://localhost:{port}/metrics"
    )
