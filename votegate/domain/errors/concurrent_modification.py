"""Concurrent transition error for compare-and-swap status updates.

Raised by feature stores when a conditional status update affects no row
because another request moved the feature first. Callers treat this as
"already handled by someone else", never as a user-facing failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from votegate.domain.exceptions import VotegateError

if TYPE_CHECKING:
    from votegate.domain.models.feature import FeatureStatus


class ConcurrentTransitionError(VotegateError):
    """Raised when a CAS status update loses to a concurrent writer.

    This is a recoverable error - the caller should re-read the feature
    and decide whether its work is already done.

    Attributes:
        feature_id: Feature whose status was being changed.
        expected_status: Status the update was conditioned on.
        operation: Description of the operation that lost the race.
    """

    error_code = "conflict_lost"

    def __init__(
        self,
        feature_id: UUID,
        expected_status: FeatureStatus,
        operation: str = "claim",
    ) -> None:
        self.feature_id = feature_id
        self.expected_status = expected_status
        self.operation = operation
        super().__init__(
            f"Concurrent modification detected for feature {feature_id} "
            f"during {operation}. Expected status: {expected_status.value}."
        )


class VoteThresholdNotMetError(VotegateError):
    """Raised when a threshold claim finds fewer live votes than required.

    The count that prompted the claim was read in an earlier transaction;
    a withdrawal committed since then. Like a lost CAS this is not a
    user-facing failure: the feature simply stays PENDING.

    Attributes:
        feature_id: Feature that was being claimed.
        vote_count: Live count seen inside the claim transaction.
        min_votes: Count the claim was conditioned on.
    """

    error_code = "threshold_not_met"

    def __init__(self, feature_id: UUID, vote_count: int, min_votes: int) -> None:
        self.feature_id = feature_id
        self.vote_count = vote_count
        self.min_votes = min_votes
        super().__init__(
            f"Feature {feature_id} has {vote_count} live votes, "
            f"claim requires {min_votes}"
        )
