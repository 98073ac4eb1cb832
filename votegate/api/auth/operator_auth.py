"""Operator authorization.

Operator endpoints (manual trigger, force-complete) take a bearer token
distinct from end-user identity. The token is compared in constant time.
When no OPERATOR_TOKEN is configured every operator call is refused.
"""

import hmac
from dataclasses import dataclass
from typing import Annotated

import structlog
from fastapi import Depends, Header, HTTPException, Request, status

from votegate.api.dependencies.pipeline import get_security_config
from votegate.config.pipeline_config import SecurityConfig

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "bearer "
OPERATOR_ID_HEADER = "X-Operator-Id"
DEFAULT_OPERATOR_ID = "operator"


@dataclass(frozen=True)
class OperatorActor:
    """Authenticated operator.

    Attributes:
        operator_id: Name recorded in audit logs (X-Operator-Id, optional).
    """

    operator_id: str


def _problem(
    request: Request, status_code: int, error: str, title: str, detail: str
) -> HTTPException:
    headers = (
        {"WWW-Authenticate": "Bearer"}
        if status_code == status.HTTP_401_UNAUTHORIZED
        else None
    )
    return HTTPException(
        status_code=status_code,
        detail={
            "error": error,
            "type": f"urn:votegate:error:{error}",
            "title": title,
            "status": status_code,
            "detail": detail,
            "instance": str(request.url),
        },
        headers=headers,
    )


def require_operator(
    request: Request,
    security: Annotated[SecurityConfig, Depends(get_security_config)],
    authorization: Annotated[str | None, Header()] = None,
    x_operator_id: Annotated[
        str | None,
        Header(description="Operator name for the audit log."),
    ] = None,
) -> OperatorActor:
    """Validate the operator bearer token.

    Raises:
        HTTPException 401: Missing or malformed Authorization header.
        HTTPException 403: Operator access disabled or token mismatch.
    """
    log = logger.bind(
        component="operator_auth",
        path=request.url.path,
        request_ip=request.client.host if request.client else "unknown",
    )

    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        log.warning("operator_auth_failed", reason="missing_bearer_token")
        raise _problem(
            request,
            status.HTTP_401_UNAUTHORIZED,
            "operator_auth_required",
            "Operator Authentication Required",
            "Authorization: Bearer <token> header is required",
        )

    if not security.operator_token:
        log.warning("operator_auth_failed", reason="operator_access_disabled")
        raise _problem(
            request,
            status.HTTP_403_FORBIDDEN,
            "operator_forbidden",
            "Operator Access Disabled",
            "Operator access is not configured",
        )

    presented = authorization[len(BEARER_PREFIX):].strip()
    if not hmac.compare_digest(
        presented.encode("utf-8"), security.operator_token.encode("utf-8")
    ):
        log.warning("operator_auth_failed", reason="token_mismatch")
        raise _problem(
            request,
            status.HTTP_403_FORBIDDEN,
            "operator_forbidden",
            "Operator Access Denied",
            "Operator token is invalid",
        )

    operator_id = (x_operator_id or "").strip() or DEFAULT_OPERATOR_ID
    log.info("operator_authenticated", operator_id=operator_id)
    return OperatorActor(operator_id=operator_id)
