"""End-user identity.

Authentication itself is performed upstream; the authenticated user id
arrives in the X-User-Id header and is treated as an opaque string.
"""

from typing import Annotated

import structlog
from fastapi import Header, HTTPException, Request, status

logger = structlog.get_logger(__name__)

USER_ID_HEADER = "X-User-Id"
MAX_USER_ID_LENGTH = 255


def normalize_user_id(user_id: str | None) -> str | None:
    """Strip the header value; blank or oversized ids count as absent."""
    if user_id is None:
        return None
    user_id = user_id.strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        return None
    return user_id


def get_optional_user_id(
    x_user_id: Annotated[
        str | None,
        Header(description="Authenticated user id, when signed in."),
    ] = None,
) -> str | None:
    """Return the caller's user id, or None for anonymous readers."""
    return normalize_user_id(x_user_id)


def get_current_user_id(
    request: Request,
    x_user_id: Annotated[
        str | None,
        Header(description="Authenticated user id. Required for writes."),
    ] = None,
) -> str:
    """Require an authenticated caller.

    Raises:
        HTTPException 401: If the X-User-Id header is missing or blank.
    """
    user_id = normalize_user_id(x_user_id)
    if user_id is None:
        logger.warning(
            "auth_failed",
            reason="missing_user_id",
            path=request.url.path,
            request_ip=request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "authentication_required",
                "type": "urn:votegate:error:authentication_required",
                "title": "Authentication Required",
                "status": 401,
                "detail": f"{USER_ID_HEADER} header is required",
                "instance": str(request.url),
            },
        )
    return user_id
