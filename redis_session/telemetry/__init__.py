"""
Telemetry module for structured logging and observability.

- JSONFormatter for structured JSON log output
- TelemetryService for centralized logging, metrics and tracing
- request_id_var for per-request log correlation
"""

from redis_session.telemetry.service import (
    JSONFormatter,
    TelemetryService,
    fingerprint,
    create_span,
    get_telemetry_service,
    initialize_telemetry,
    record_metric,
    request_id_var,
    reset_telemetry,
)

__all__ = [
    "JSONFormatter",
    "TelemetryService",
    "fingerprint",
    "create_span",
    "get_telemetry_service",
    "initialize_telemetry",
    "record_metric",
    "request_id_var",
    "reset_telemetry",
]
