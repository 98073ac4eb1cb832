"""Request logging middleware.

Each request gets a correlation id (taken from X-Correlation-ID when the
inbound value is safe, generated otherwise) and the caller identity from
X-User-Id / X-Operator-Id. Both are placed in the request log context so
pipeline log lines can be traced back to who asked.

Feature-scoped routes also bind the feature id parsed from the path, and
health or metrics polls are logged at debug level to keep them out of the
default INFO stream.

Usage:
    from fastapi import FastAPI
    from votegate.api.middleware.logging_middleware import LoggingMiddleware

    app = FastAPI()
    app.add_middleware(LoggingMiddleware)
"""

import re
import time
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from votegate.api.auth.caller_identity import USER_ID_HEADER, normalize_user_id
from votegate.api.auth.operator_auth import OPERATOR_ID_HEADER
from votegate.infrastructure.observability.correlation import (
    accept_correlation_id,
    clear_request_context,
    set_caller,
    set_correlation_id,
)

CORRELATION_HEADER = "X-Correlation-ID"

QUIET_PATHS = frozenset({"/v1/health", "/v1/metrics"})

_FEATURE_PATH = re.compile(r"^/v1/features/(?P<feature_id>[0-9a-fA-F-]{36})(?:/|$)")


def feature_id_from_path(path: str) -> str | None:
    """Return the feature id of a /v1/features/{id}/... path, if any."""
    match = _FEATURE_PATH.match(path)
    return match.group("feature_id").lower() if match else None


def _operator_id(request: Request) -> str | None:
    value = (request.headers.get(OPERATOR_ID_HEADER) or "").strip()
    return value or None


class LoggingMiddleware(BaseHTTPMiddleware):
    """Binds the request context and logs request start and end."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = accept_correlation_id(request.headers.get(CORRELATION_HEADER))
        set_correlation_id(correlation_id)
        set_caller(
            user_id=normalize_user_id(request.headers.get(USER_ID_HEADER)),
            operator_id=_operator_id(request),
        )

        path = request.url.path
        log = structlog.get_logger().bind(
            method=request.method,
            path=path,
            client_host=request.client.host if request.client else None,
        )
        feature_id = feature_id_from_path(path)
        if feature_id is not None:
            log = log.bind(feature_id=feature_id)
        emit = log.debug if path in QUIET_PATHS else log.info

        emit("request_started")
        start_time = time.perf_counter()

        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                duration_ms = (time.perf_counter() - start_time) * 1000
                log.exception(
                    "request_failed",
                    duration_ms=round(duration_ms, 2),
                    error_type=type(exc).__name__,
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            emit(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
        finally:
            clear_request_context()

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
