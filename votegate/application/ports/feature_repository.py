"""Feature repository port.

Defines the storage contract for feature requests, including the single
compare-and-swap status update every lifecycle transition goes through.

Developer Golden Rules:
1. ONE CAS - every status change is conditioned on the expected status
2. FREEZE ON EXIT - leaving PENDING freezes the live count and deletes
   the vote rows in the same transaction
3. FRESH READS - never cache a feature across a decision boundary
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from votegate.domain.models.feature import Feature, FeatureStatus


class FeatureRepositoryProtocol(Protocol):
    """Protocol for feature request persistence.

    Implementations must make transition_status_cas atomic against the
    vote ledger so that no vote row can be written to a feature after it
    has left PENDING.
    """

    async def save(self, feature: Feature) -> None:
        """Persist a new feature.

        Args:
            feature: The feature to store.

        Raises:
            ValueError: If a feature with the same id already exists.
        """
        ...

    async def get(self, feature_id: UUID) -> Feature | None:
        """Retrieve a feature by id.

        Returns:
            The feature if found, None otherwise.
        """
        ...

    async def list_features(
        self,
        statuses: frozenset[FeatureStatus] | None = None,
    ) -> list[Feature]:
        """List features, optionally filtered by status.

        Args:
            statuses: Statuses to include. None includes all.

        Returns:
            Features ordered by creation time, newest first.
        """
        ...

    async def count_open_variations(self, parent_ids: list[UUID]) -> dict[UUID, int]:
        """Count non-implemented variations for each parent.

        Args:
            parent_ids: Parents to count children for.

        Returns:
            Mapping of parent id to open variation count (zero entries omitted).
        """
        ...

    async def transition_status_cas(
        self,
        feature_id: UUID,
        expected_status: FeatureStatus,
        new_status: FeatureStatus,
        external_ref: str | None = None,
        privileged: bool = False,
        min_votes: int | None = None,
    ) -> Feature:
        """Atomically change status if it still matches expected_status.

        Side effects by target status:
        - leaving PENDING: live vote count frozen into vote_snapshot and all
          live vote rows deleted
        - IMPLEMENTING: implementation_started_at stamped
        - IMPLEMENTED: implemented_at stamped, snapshot retained
        - PENDING: implementation_started_at and vote_snapshot cleared

        Args:
            feature_id: Feature to update.
            expected_status: Status the feature must currently have.
            new_status: Target status.
            external_ref: Reference recorded on the feature, if given.
            privileged: Allow operator-only transitions.
            min_votes: When set, the PENDING -> IMPLEMENTING claim also
                requires at least this many live votes, counted inside the
                same atomic unit as the status check.

        Returns:
            The updated feature.

        Raises:
            FeatureNotFoundError: Feature does not exist.
            InvalidStatusTransitionError: Transition not in the matrix.
            ConcurrentTransitionError: Current status differs from expected.
            VoteThresholdNotMetError: Fewer than min_votes live votes.
        """
        ...
