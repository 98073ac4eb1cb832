"""Caller identity and operator authorization dependencies."""

from votegate.api.auth.caller_identity import (
    get_current_user_id,
    get_optional_user_id,
)
from votegate.api.auth.operator_auth import OperatorActor, require_operator

__all__ = [
    "OperatorActor",
    "get_current_user_id",
    "get_optional_user_id",
    "require_operator",
]
