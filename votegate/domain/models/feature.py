"""Feature request domain model.

This module defines the feature request lifecycle and the vote record.

State Machine:
    PENDING -> IMPLEMENTING (threshold claim or operator trigger)
    IMPLEMENTING -> IMPLEMENTED (successful completion notification)
    IMPLEMENTING -> PENDING (failed completion notification)
    PENDING -> IMPLEMENTED (operator force-complete only)

Invariants:
- Only PENDING features carry live vote rows; their count is always
  derived from those rows.
- IMPLEMENTING and IMPLEMENTED features display the frozen vote snapshot
  captured when the feature left PENDING.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

# Title length bounds accepted on submission
TITLE_MAX_LENGTH = 200


class FeatureStatus(Enum):
    """State in the feature request lifecycle.

    States:
        PENDING: Collecting votes (initial, re-entered after a failed attempt)
        IMPLEMENTING: Claimed and handed to the implementation agent
        IMPLEMENTED: Completed (terminal)
    """

    PENDING = "pending"
    IMPLEMENTING = "implementing"
    IMPLEMENTED = "implemented"

    def is_terminal(self) -> bool:
        """Check if this status is terminal."""
        return self is FeatureStatus.IMPLEMENTED

    def accepts_votes(self) -> bool:
        """Check if votes may be cast while in this status."""
        return self is FeatureStatus.PENDING

    def valid_transitions(self, privileged: bool = False) -> frozenset[FeatureStatus]:
        """Get valid transitions from this status.

        Args:
            privileged: Include operator-only transitions (force-complete).

        Returns:
            Frozenset of statuses this status can transition to.
        """
        transitions = STATUS_TRANSITION_MATRIX.get(self, frozenset())
        if privileged:
            transitions = transitions | PRIVILEGED_TRANSITIONS.get(self, frozenset())
        return transitions


STATUS_TRANSITION_MATRIX: dict[FeatureStatus, frozenset[FeatureStatus]] = {
    FeatureStatus.PENDING: frozenset({FeatureStatus.IMPLEMENTING}),
    # Success completes, failure re-opens voting
    FeatureStatus.IMPLEMENTING: frozenset(
        {FeatureStatus.IMPLEMENTED, FeatureStatus.PENDING}
    ),
    FeatureStatus.IMPLEMENTED: frozenset(),
}

# Operational correction only
PRIVILEGED_TRANSITIONS: dict[FeatureStatus, frozenset[FeatureStatus]] = {
    FeatureStatus.PENDING: frozenset({FeatureStatus.IMPLEMENTED}),
}


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True, eq=True)
class Feature:
    """A feature request proposed by a user.

    Attributes:
        id: Unique identifier.
        title: Short title (1..200 characters).
        description: Free-form description (non-empty).
        creator_id: Identity of the submitting user.
        status: Current lifecycle status.
        parent_id: Feature this one is a variation of, if any.
        created_at: Submission timestamp (UTC).
        implementation_started_at: When the feature entered IMPLEMENTING.
        implemented_at: When the feature reached IMPLEMENTED.
        vote_snapshot: Vote count frozen when the feature left PENDING.
        external_ref: Last reference reported by the implementation agent.
    """

    id: UUID
    title: str
    description: str
    creator_id: str
    status: FeatureStatus = field(default=FeatureStatus.PENDING)
    parent_id: UUID | None = field(default=None)
    created_at: datetime = field(default_factory=_utc_now)
    implementation_started_at: datetime | None = field(default=None)
    implemented_at: datetime | None = field(default=None)
    vote_snapshot: int | None = field(default=None)
    external_ref: str | None = field(default=None)

    def __post_init__(self) -> None:
        """Validate feature fields."""
        if not self.title or not self.title.strip():
            raise ValueError("Feature title must not be empty")
        if len(self.title) > TITLE_MAX_LENGTH:
            raise ValueError(
                f"Feature title exceeds maximum length of {TITLE_MAX_LENGTH}"
            )
        if not self.description or not self.description.strip():
            raise ValueError("Feature description must not be empty")
        if self.parent_id is not None and self.parent_id == self.id:
            raise ValueError("Feature cannot be a variation of itself")

    def displayed_vote_total(self, live_count: int) -> int:
        """Vote total to show for this feature.

        Pending features show the live count; everything else shows the
        frozen snapshot.

        Args:
            live_count: Current number of live vote rows.

        Returns:
            The vote total to display.
        """
        if self.status is FeatureStatus.PENDING:
            return live_count
        return self.vote_snapshot or 0


@dataclass(frozen=True, eq=True)
class Vote:
    """A single live vote.

    Attributes:
        user_id: Identity of the voter.
        feature_id: Feature voted on.
        created_at: When the vote was cast (UTC).
    """

    user_id: str
    feature_id: UUID
    created_at: datetime = field(default_factory=_utc_now)


class VoteAction(Enum):
    """Effect of a vote toggle."""

    ADDED = "added"
    REMOVED = "removed"
