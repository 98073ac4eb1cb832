"""External dispatch errors.

Dispatch failures never roll back the implementing transition. They are
caught by the lifecycle service and folded into a partial-success result.
"""

from __future__ import annotations

from uuid import UUID

from votegate.domain.exceptions import VotegateError


class DispatchError(VotegateError):
    """Base error for implementation dispatch failures."""

    error_code: str = "dispatch_failed"


class DispatchConfigurationError(DispatchError):
    """Raised when required dispatcher settings are absent.

    Attributes:
        missing: Names of the missing settings.
    """

    error_code = "dispatch_not_configured"

    def __init__(self, missing: tuple[str, ...]) -> None:
        self.missing = missing
        super().__init__(
            f"Implementation dispatcher is not configured: missing {', '.join(missing)}"
        )


class DispatchRemoteError(DispatchError):
    """Raised when the external call fails, is rejected, or times out.

    Attributes:
        feature_id: Feature whose dispatch failed.
        status_code: HTTP status returned by the remote, if any.
        reason: Short description of the failure.
    """

    error_code = "dispatch_remote_error"

    def __init__(
        self,
        feature_id: UUID,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        self.feature_id = feature_id
        self.reason = reason
        self.status_code = status_code
        detail = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Dispatch for feature {feature_id} failed{detail}: {reason}")
