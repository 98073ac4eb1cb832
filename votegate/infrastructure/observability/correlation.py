"""Per-request log context: correlation id and caller identity.

Every request handled by the API runs with a correlation id and, when the
caller identified itself, the end-user or operator id. All three live in
ContextVars so they follow the request across awaits, down to the claim
and the dispatch, and are stamped onto each log line by
``request_context_processor``.

Inbound correlation ids come from untrusted clients and webhook senders;
only short ids made of URL-safe characters are accepted, anything else is
replaced by a fresh one.
"""

import re
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

MAX_CORRELATION_ID_LENGTH = 128
_CORRELATION_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:\-]+$")

# Empty string means "not set"
_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_caller: ContextVar["CallerContext | None"] = ContextVar("caller", default=None)


@dataclass(frozen=True)
class CallerContext:
    """Who made the current request, as far as the headers say."""

    user_id: str | None = None
    operator_id: str | None = None


def generate_correlation_id() -> str:
    return str(uuid4())


def accept_correlation_id(candidate: str | None) -> str:
    """Return the inbound id if it is safe to log, otherwise a new one."""
    if (
        candidate
        and len(candidate) <= MAX_CORRELATION_ID_LENGTH
        and _CORRELATION_ID_PATTERN.match(candidate)
    ):
        return candidate
    return generate_correlation_id()


def get_correlation_id() -> str:
    """Get the current correlation ID, or an empty string if none is set."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def get_caller() -> CallerContext | None:
    return _caller.get()


def set_caller(user_id: str | None = None, operator_id: str | None = None) -> None:
    """Record the caller for the current request.

    Args:
        user_id: End-user id from X-User-Id.
        operator_id: Operator name from X-Operator-Id.
    """
    if user_id is None and operator_id is None:
        _caller.set(None)
    else:
        _caller.set(CallerContext(user_id=user_id, operator_id=operator_id))


def clear_request_context() -> None:
    """Forget the correlation id and caller (end of request)."""
    _correlation_id.set("")
    _caller.set(None)


def correlation_id_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor adding correlation_id when one is set."""
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def request_context_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor adding correlation_id, user_id and operator_id.

    Values bound explicitly on the logger win over the request context, so
    a service logging on behalf of another user keeps its own user_id.
    """
    event_dict = correlation_id_processor(logger, method_name, event_dict)
    caller = get_caller()
    if caller is not None:
        if caller.user_id is not None:
            event_dict.setdefault("user_id", caller.user_id)
        if caller.operator_id is not None:
            event_dict.setdefault("operator_id", caller.operator_id)
    return event_dict
