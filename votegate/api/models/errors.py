"""RFC 7807 problem documents for API errors.

Every error body carries a stable top-level ``error`` code next to the
RFC 7807 fields:

    {"error": "invalid_state", "type": "urn:votegate:error:invalid_state",
     "title": "Invalid Feature State", "status": 409, "detail": "...",
     "instance": "http://.../v1/features/.../vote"}

Routes translate domain errors with ``problem_exception`` and raise the
result; the application's HTTPException handler renders the detail dict
as the whole body.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from votegate.domain.errors.feature import (
    FeatureNotFoundError,
    InvalidFeatureStateError,
    ParentFeatureImplementedError,
    ParentFeatureNotFoundError,
)
from votegate.domain.errors.gates import (
    CaptchaVerificationError,
    RateLimitExceededError,
)
from votegate.domain.exceptions import VotegateError

# Domain error -> (HTTP status, title). First match wins.
ERROR_STATUS_MAP: tuple[tuple[type[VotegateError], int, str], ...] = (
    (FeatureNotFoundError, 404, "Feature Not Found"),
    (ParentFeatureNotFoundError, 404, "Parent Feature Not Found"),
    (ParentFeatureImplementedError, 409, "Parent Feature Implemented"),
    (InvalidFeatureStateError, 409, "Invalid Feature State"),
    (RateLimitExceededError, 429, "Rate Limit Exceeded"),
    (CaptchaVerificationError, 400, "CAPTCHA Verification Failed"),
)


class ErrorResponse(BaseModel):
    """Problem document schema (for OpenAPI)."""

    error: str = Field(..., description="Stable machine-readable error code")
    type: str = Field(..., description="URN identifying the problem type")
    title: str
    status: int
    detail: str
    instance: str | None = None


def problem_detail(
    error: str,
    title: str,
    status_code: int,
    detail: str,
    instance: str | None = None,
    **extensions: Any,
) -> dict[str, Any]:
    """Build a problem document dict."""
    body: dict[str, Any] = {
        "error": error,
        "type": f"urn:votegate:error:{error}",
        "title": title,
        "status": status_code,
        "detail": detail,
        "instance": instance,
    }
    body.update(extensions)
    return body


def problem_exception(error: VotegateError, request: Request) -> HTTPException:
    """Translate a domain error into an HTTPException carrying a problem body.

    Unmapped domain errors become 500 internal_error without leaking the
    message.
    """
    for error_type, status_code, title in ERROR_STATUS_MAP:
        if isinstance(error, error_type):
            break
    else:
        return HTTPException(
            status_code=500,
            detail=internal_error_detail(str(request.url)),
        )

    extensions: dict[str, Any] = {}
    headers: dict[str, str] | None = None
    if isinstance(error, RateLimitExceededError):
        extensions = {
            "action": error.action,
            "rate_limit_limit": error.limit,
            "rate_limit_remaining": 0,
        }
        headers = {"Retry-After": str(error.retry_after_seconds)}
    elif isinstance(error, InvalidFeatureStateError):
        extensions = {"current_status": error.current_status.value}

    return HTTPException(
        status_code=status_code,
        detail=problem_detail(
            error=getattr(error, "error_code", "error"),
            title=title,
            status_code=status_code,
            detail=str(error),
            instance=str(request.url),
            **extensions,
        ),
        headers=headers,
    )


def internal_error_detail(instance: str | None = None) -> dict[str, Any]:
    return problem_detail(
        error="internal_error",
        title="Internal Server Error",
        status_code=500,
        detail="An unexpected error occurred",
        instance=instance,
    )


def validation_error_detail(
    errors: list[dict[str, Any]],
    instance: str | None = None,
) -> dict[str, Any]:
    """Problem document for a request that failed schema validation.

    The pydantic error list is kept under ``errors`` so clients can point
    at the offending fields.
    """
    return problem_detail(
        error="validation_error",
        title="Request Validation Failed",
        status_code=422,
        detail="The request did not match the expected schema",
        instance=instance,
        errors=errors,
    )


class ProblemResponse(JSONResponse):
    """JSON response rendering a problem document as the whole body.

    Usage:
        return ProblemResponse.from_detail(exc.detail, exc.status_code)
    """

    media_type = "application/problem+json"

    @classmethod
    def from_detail(
        cls,
        detail: dict[str, Any],
        status_code: int,
        headers: dict[str, str] | None = None,
    ) -> ProblemResponse:
        return cls(content=detail, status_code=status_code, headers=headers)
