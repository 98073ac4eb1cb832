"""Structured logging configuration with structlog.

Production renders JSON, anything else renders for the console; LOG_FORMAT
(``json`` or ``console``) overrides the choice, e.g. to get JSON from a
staging box. Every entry carries the deployment it came from and the
request context bound by the API middleware.

Log Entry Format (production):
    {
        "timestamp": "2024-01-01T00:00:00.000000Z",
        "level": "info",
        "event": "vote_toggled",
        "app": "votegate",
        "version": "0.1.0",
        "environment": "production",
        "correlation_id": "uuid",
        "user_id": "u-123",
        "feature_id": "uuid",
        ...additional context
    }

Usage:
    from votegate.infrastructure.observability import configure_structlog

    configure_structlog(environment="production")
"""

import logging
import os
from typing import Any, cast

import structlog
from structlog.typing import Processor

from votegate import __version__
from votegate.infrastructure.observability.correlation import request_context_processor

LOG_LEVEL_ENV = "LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT_ENV = "LOG_FORMAT"

APP_NAME = "votegate"


def _get_log_level() -> int:
    level_name = os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper()
    return getattr(logging, level_name, logging.INFO)


def _use_json(environment: str) -> bool:
    log_format = os.getenv(LOG_FORMAT_ENV, "").strip().lower()
    if log_format in ("json", "console"):
        return log_format == "json"
    return environment == "production"


def deployment_processor(environment: str) -> Processor:
    """Build a processor stamping app, version and environment on each entry."""

    def add_deployment(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.setdefault("app", APP_NAME)
        event_dict.setdefault("version", __version__)
        event_dict.setdefault("environment", environment)
        return event_dict

    return cast(Processor, add_deployment)


def configure_structlog(environment: str = "production") -> None:
    """Configure structlog for the application.

    Should be called once at application startup.

    Args:
        environment: Deployment name; 'production' selects JSON output
            unless LOG_FORMAT says otherwise.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        deployment_processor(environment),
        cast(Processor, request_context_processor),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if _use_json(environment):
        final_processors: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=shared_processors + final_processors,
        wrapper_class=structlog.make_filtering_bound_logger(_get_log_level()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger_for_service(
    service_name: str, component: str = "pipeline"
) -> structlog.BoundLogger:
    """Logger with the pipeline stage bound as ``service``/``component``."""
    return structlog.get_logger().bind(
        service=service_name,
        component=component,
    )
