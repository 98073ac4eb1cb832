"""FastAPI application entry point for Votegate."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from votegate import __version__
from votegate.api.dependencies.pipeline import get_broadcaster, get_feature_store
from votegate.api.middleware.logging_middleware import LoggingMiddleware
from votegate.api.models.errors import (
    ProblemResponse,
    internal_error_detail,
    validation_error_detail,
)
from votegate.api.routes import (
    features_router,
    health_router,
    live_router,
    metrics_router,
    operator_router,
    webhooks_router,
)
from votegate.bootstrap.database import close_database_engine
from votegate.infrastructure.adapters.persistence.postgres_feature_store import (
    PostgresFeatureStore,
)
from votegate.infrastructure.observability.logging import (
    configure_structlog,
    get_logger_for_service,
)

logger = get_logger_for_service("votegate-api", component="api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    environment = os.environ.get("ENVIRONMENT", "development")
    configure_structlog(environment)
    logger.info("votegate_api_starting", environment=environment, version=__version__)

    store = get_feature_store()
    if isinstance(store, PostgresFeatureStore):
        await store.create_schema()

    yield

    get_broadcaster().close_all()
    await close_database_engine()
    logger.info("votegate_api_stopped")


async def problem_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> Response:
    """Render problem-document details as the whole response body."""
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return ProblemResponse.from_detail(
            exc.detail, exc.status_code, headers=exc.headers
        )
    return await http_exception_handler(request, exc)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> Response:
    """Render request validation failures as a 422 problem document."""
    errors = jsonable_encoder(exc.errors())
    logger.info(
        "request_validation_failed",
        method=request.method,
        path=request.url.path,
        error_count=len(errors),
    )
    return ProblemResponse.from_detail(
        validation_error_detail(errors, str(request.url)), 422
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    """Log unexpected failures and answer a generic 500."""
    logger.exception(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    return ProblemResponse.from_detail(internal_error_detail(str(request.url)), 500)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Votegate API",
        description="Feature voting with automatic implementation dispatch",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(StarletteHTTPException, problem_http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(features_router)
    app.include_router(operator_router)
    app.include_router(webhooks_router)
    app.include_router(live_router)
    return app


app = create_app()
