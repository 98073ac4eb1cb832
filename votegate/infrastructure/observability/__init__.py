"""Observability: structured logging and the per-request log context."""

from votegate.infrastructure.observability.correlation import (
    CallerContext,
    accept_correlation_id,
    clear_request_context,
    correlation_id_processor,
    generate_correlation_id,
    get_caller,
    get_correlation_id,
    request_context_processor,
    set_caller,
    set_correlation_id,
)
from votegate.infrastructure.observability.logging import (
    configure_structlog,
    deployment_processor,
    get_logger_for_service,
)

__all__ = [
    "CallerContext",
    "accept_correlation_id",
    "clear_request_context",
    "configure_structlog",
    "correlation_id_processor",
    "deployment_processor",
    "generate_correlation_id",
    "get_caller",
    "get_correlation_id",
    "get_logger_for_service",
    "request_context_processor",
    "set_caller",
    "set_correlation_id",
]
