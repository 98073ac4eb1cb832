"""Feature domain errors.

These errors represent failures when looking up or mutating feature
requests. Each error carries a stable machine-readable ``error_code`` that
the API layer exposes as the top-level ``error`` field.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from votegate.domain.exceptions import VotegateError

if TYPE_CHECKING:
    from votegate.domain.models.feature import FeatureStatus


class FeatureError(VotegateError):
    """Base error for feature operations."""

    error_code: str = "feature_error"


class FeatureNotFoundError(FeatureError):
    """Raised when a feature does not exist.

    HTTP Status: 404 Not Found

    Attributes:
        feature_id: The feature that was not found.
    """

    error_code = "feature_not_found"

    def __init__(self, feature_id: UUID) -> None:
        self.feature_id = feature_id
        super().__init__(f"Feature not found: {feature_id}")


class ParentFeatureNotFoundError(FeatureError):
    """Raised when a variation references a parent that does not exist.

    HTTP Status: 404 Not Found
    """

    error_code = "parent_not_found"

    def __init__(self, parent_id: UUID) -> None:
        self.parent_id = parent_id
        super().__init__(f"Parent feature not found: {parent_id}")


class InvalidFeatureStateError(FeatureError):
    """Raised when an operation is illegal for the feature's current status.

    The canonical case is voting on a feature that is no longer pending.

    HTTP Status: 409 Conflict

    Attributes:
        feature_id: The feature being operated on.
        current_status: The status the feature was found in.
        operation: The operation that was rejected.
    """

    error_code = "invalid_state"

    def __init__(
        self,
        feature_id: UUID,
        current_status: FeatureStatus,
        operation: str = "vote",
        message: str | None = None,
    ) -> None:
        self.feature_id = feature_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            message
            or (
                f"Cannot {operation} feature {feature_id} while it is "
                f"{current_status.value}"
            )
        )


class InvalidStatusTransitionError(InvalidFeatureStateError):
    """Raised when a status change is not in the transition matrix.

    Attributes:
        target_status: The status that was requested.
    """

    def __init__(
        self,
        feature_id: UUID,
        current_status: FeatureStatus,
        target_status: FeatureStatus,
    ) -> None:
        self.target_status = target_status
        super().__init__(
            feature_id=feature_id,
            current_status=current_status,
            operation="transition",
            message=(
                f"Invalid transition for feature {feature_id}: "
                f"{current_status.value} -> {target_status.value}"
            ),
        )


class ParentFeatureImplementedError(FeatureError):
    """Raised when proposing a variation of an already implemented feature.

    Existing variations keep collecting votes; only new ones are blocked.

    HTTP Status: 409 Conflict
    """

    error_code = "parent_implemented"

    def __init__(self, parent_id: UUID) -> None:
        self.parent_id = parent_id
        super().__init__(
            f"Cannot create a variation of implemented feature {parent_id}"
        )
