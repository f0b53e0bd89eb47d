"""
Telemetry service for structured logging and observability.

This module provides structured JSON logging with request correlation,
optional OpenTelemetry tracing, and lightweight metric recording for the
session backend.
"""

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional, Dict

# Set per request by the session middleware
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def fingerprint(session_id: str) -> str:
    """Short stable digest of a session id, safe to put in logs."""
    return hashlib.sha256(session_id.encode("utf-8")).hexdigest()[:12]


class JSONFormatter(logging.Formatter):
    """
    Log formatter that outputs one JSON object per record.

    Each entry contains timestamp, level, message, logger and request_id.
    Extra fields can be attached through the 'extra_data' attribute on the
    log record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": request_id_var.get(""),
        }

        if record.module:
            log_data["module"] = record.module
        if record.funcName and record.funcName != "<module>":
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        if hasattr(record, "extra_data") and record.extra_data:
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_trace"] = record.stack_info

        return json.dumps(log_data, default=str)


class TelemetryService:
    """
    Centralized telemetry service for logging, metrics, and tracing.

    Attributes:
        settings: Settings providing log_level, otel_endpoint and otel_service_name
        tracer: OpenTelemetry tracer, or None when tracing is disabled
        metrics: In-process counters accumulated by record_metric()
    """

    def __init__(self, settings: Optional[Any] = None):
        self.settings = settings
        self.tracer = None
        self.metrics: Dict[str, float] = {}
        self._logger = None
        self._setup_logging()
        self._setup_tracing()

    def _setup_logging(self) -> None:
        """Install a JSON stdout handler on the root logger."""
        log_level_str = "INFO"
        if self.settings and hasattr(self.settings, "log_level"):
            log_level_str = self.settings.log_level

        log_level = getattr(logging, log_level_str.upper(), logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        # Remove existing handlers to avoid duplicate logs
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(log_level)
        stdout_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(stdout_handler)

        self._logger = logging.getLogger("telemetry")
        self._logger.info("Telemetry service initialized", extra={
            "extra_data": {"log_level": log_level_str}
        })

    def _setup_tracing(self) -> None:
        """Configure OpenTelemetry tracing when an OTEL endpoint is set."""
        if not self.settings:
            return

        otel_endpoint = getattr(self.settings, "otel_endpoint", None)
        if not otel_endpoint:
            self._logger.debug("OpenTelemetry endpoint not configured, tracing disabled")
            return

        try:
            from opentelemetry import trace
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
            from opentelemetry.sdk.resources import Resource, SERVICE_NAME
        except ImportError as e:
            self._logger.warning(
                "OpenTelemetry packages not installed, tracing disabled",
                extra={"extra_data": {"error": str(e)}}
            )
            return

        service_name = getattr(self.settings, "otel_service_name", "redis-session")
        provider = TracerProvider(resource=Resource(attributes={SERVICE_NAME: service_name}))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otel_endpoint)))
        trace.set_tracer_provider(provider)
        self.tracer = trace.get_tracer(service_name)

        self._logger.info("OpenTelemetry tracing configured", extra={
            "extra_data": {
                "otel_endpoint": otel_endpoint,
                "service_name": service_name
            }
        })

    def record_metric(
        self,
        name: str,
        value: float = 1.0,
        tags: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Record a counter-style metric.

        The value is added to the in-process counter for ``name`` and the
        observation is logged at debug level.
        """
        self.metrics[name] = self.metrics.get(name, 0.0) + value

        metric_data: Dict[str, Any] = {
            "metric_name": name,
            "metric_value": value,
        }
        if tags:
            metric_data["tags"] = tags

        self._logger.debug(
            f"Metric: {name}={value}",
            extra={"extra_data": metric_data}
        )

    def create_span(self, name: str, attributes: Optional[Dict[str, Any]] = None):
        """
        Create a span for tracing, or a no-op context manager when tracing is off.
        """
        if self.tracer:
            return self.tracer.start_as_current_span(name, attributes=attributes)
        return _NoOpSpanContextManager()


class _NoOpSpanContextManager:
    """Stands in for a span when tracing is not configured."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def record_exception(self, exception: Exception) -> None:
        pass


_telemetry_service: Optional[TelemetryService] = None


def get_telemetry_service() -> Optional[TelemetryService]:
    """Return the global telemetry service, or None if not initialized."""
    return _telemetry_service


def initialize_telemetry(settings: Optional[Any] = None) -> TelemetryService:
    """
    Initialize the global telemetry service.

    Args:
        settings: Application settings for configuration

    Returns:
        The initialized telemetry service
    """
    global _telemetry_service
    _telemetry_service = TelemetryService(settings)
    return _telemetry_service


def reset_telemetry() -> None:
    """Drop the global telemetry service (used between tests)."""
    global _telemetry_service
    _telemetry_service = None


def record_metric(name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None) -> None:
    """Record a metric on the global service if one is initialized."""
    service = get_telemetry_service()
    if service is not None:
        service.record_metric(name, value, tags)


def create_span(name: str, attributes: Optional[Dict[str, Any]] = None):
    """Open a span on the global service, or a no-op span if none is initialized."""
    service = get_telemetry_service()
    if service is not None:
        return service.create_span(name, attributes)
    return _NoOpSpanContextManager()
