"""Vote ledger port.

The vote ledger records at most one live vote per (user, feature) and is
the only source of vote counts for pending features.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from votegate.domain.models.feature import VoteAction


@dataclass(frozen=True)
class VoteToggleResult:
    """Result of a vote toggle.

    Attributes:
        feature_id: Feature voted on.
        user_id: Voter.
        action: Whether the vote was added or removed.
        vote_count: Live count of vote rows after the mutation, read in the
            same transaction.
    """

    feature_id: UUID
    user_id: str
    action: VoteAction
    vote_count: int

    @property
    def has_voted(self) -> bool:
        return self.action is VoteAction.ADDED


class VoteLedgerProtocol(Protocol):
    """Protocol for the vote ledger.

    Usage:
        result = await ledger.toggle_vote(user_id, feature_id)
        if result.vote_count >= threshold:
            ...claim...
    """

    async def toggle_vote(self, user_id: str, feature_id: UUID) -> VoteToggleResult:
        """Add the user's vote, or remove it if one already exists.

        Args:
            user_id: Voter identity.
            feature_id: Feature to vote on.

        Returns:
            VoteToggleResult with the live post-mutation count.

        Raises:
            FeatureNotFoundError: Feature does not exist.
            InvalidFeatureStateError: Feature is not PENDING.
        """
        ...

    async def count_votes(self, feature_id: UUID) -> int:
        """Count live vote rows for a feature."""
        ...

    async def vote_counts(self, feature_ids: list[UUID]) -> dict[UUID, int]:
        """Count live vote rows for several features at once.

        Returns:
            Mapping of feature id to count (features without votes map to 0).
        """
        ...

    async def has_voted(self, user_id: str, feature_id: UUID) -> bool:
        """Check whether the user currently has a live vote on the feature."""
        ...

    async def voted_feature_ids(self, user_id: str) -> frozenset[UUID]:
        """Get every feature the user currently has a live vote on."""
        ...
