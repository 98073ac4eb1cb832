"""In-memory feature store stub.

Implements both FeatureRepositoryProtocol and VoteLedgerProtocol over a
single in-memory arena for development and testing. A single asyncio.Lock
guards features and votes together, standing in for the row lock and
transaction a database provides: a vote toggle and a status CAS never
interleave.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from uuid import UUID

from votegate.application.ports.feature_repository import FeatureRepositoryProtocol
from votegate.application.ports.vote_ledger import (
    VoteLedgerProtocol,
    VoteToggleResult,
)
from votegate.domain.errors.concurrent_modification import (
    ConcurrentTransitionError,
    VoteThresholdNotMetError,
)
from votegate.domain.errors.feature import (
    FeatureNotFoundError,
    InvalidFeatureStateError,
    InvalidStatusTransitionError,
)
from votegate.domain.models.feature import Feature, FeatureStatus, Vote, VoteAction


class FeatureStoreStub(FeatureRepositoryProtocol, VoteLedgerProtocol):
    """In-memory implementation of the feature repository and vote ledger.

    Not suitable for multi-process deployments: state lives in this object.

    Attributes:
        _features: Feature id to Feature.
        _votes: Feature id to {user id: Vote}.
    """

    def __init__(self) -> None:
        """Initialize the stub with empty storage."""
        self._features: dict[UUID, Feature] = {}
        self._votes: dict[UUID, dict[str, Vote]] = {}
        self._lock = asyncio.Lock()

    # Feature repository

    async def save(self, feature: Feature) -> None:
        async with self._lock:
            if feature.id in self._features:
                raise ValueError(f"Feature already exists: {feature.id}")
            self._features[feature.id] = feature
            self._votes[feature.id] = {}

    async def get(self, feature_id: UUID) -> Feature | None:
        return self._features.get(feature_id)

    async def list_features(
        self,
        statuses: frozenset[FeatureStatus] | None = None,
    ) -> list[Feature]:
        features = [
            f
            for f in self._features.values()
            if statuses is None or f.status in statuses
        ]
        return sorted(features, key=lambda f: f.created_at, reverse=True)

    async def count_open_variations(self, parent_ids: list[UUID]) -> dict[UUID, int]:
        wanted = set(parent_ids)
        counts: dict[UUID, int] = {}
        for feature in self._features.values():
            if (
                feature.parent_id in wanted
                and feature.status is not FeatureStatus.IMPLEMENTED
            ):
                counts[feature.parent_id] = counts.get(feature.parent_id, 0) + 1
        return counts

    async def transition_status_cas(
        self,
        feature_id: UUID,
        expected_status: FeatureStatus,
        new_status: FeatureStatus,
        external_ref: str | None = None,
        privileged: bool = False,
        min_votes: int | None = None,
    ) -> Feature:
        """Atomic status change using compare-and-swap.

        Simulates UPDATE ... WHERE status = :expected RETURNING with a lock.
        """
        async with self._lock:
            feature = self._features.get(feature_id)
            if feature is None:
                raise FeatureNotFoundError(feature_id)

            if new_status not in expected_status.valid_transitions(privileged):
                raise InvalidStatusTransitionError(
                    feature_id=feature_id,
                    current_status=expected_status,
                    target_status=new_status,
                )

            # CAS check: expected status must match current status
            if feature.status is not expected_status:
                raise ConcurrentTransitionError(
                    feature_id=feature_id,
                    expected_status=expected_status,
                    operation=f"transition_to_{new_status.value}",
                )

            live_votes = len(self._votes.get(feature_id, {}))
            if min_votes is not None and live_votes < min_votes:
                raise VoteThresholdNotMetError(
                    feature_id=feature_id,
                    vote_count=live_votes,
                    min_votes=min_votes,
                )

            now = datetime.now(timezone.utc)
            updated = replace(feature, status=new_status)

            if expected_status is FeatureStatus.PENDING:
                # Freeze and clear in the same critical section
                updated = replace(updated, vote_snapshot=live_votes)
                self._votes[feature_id] = {}

            if new_status is FeatureStatus.IMPLEMENTING:
                updated = replace(updated, implementation_started_at=now)
            elif new_status is FeatureStatus.IMPLEMENTED:
                updated = replace(updated, implemented_at=now)
            elif new_status is FeatureStatus.PENDING:
                updated = replace(
                    updated,
                    implementation_started_at=None,
                    vote_snapshot=None,
                )

            if external_ref is not None:
                updated = replace(updated, external_ref=external_ref)

            self._features[feature_id] = updated
            return updated

    # Vote ledger

    async def toggle_vote(self, user_id: str, feature_id: UUID) -> VoteToggleResult:
        async with self._lock:
            feature = self._features.get(feature_id)
            if feature is None:
                raise FeatureNotFoundError(feature_id)
            if not feature.status.accepts_votes():
                raise InvalidFeatureStateError(
                    feature_id=feature_id,
                    current_status=feature.status,
                    operation="vote",
                )

            votes = self._votes[feature_id]
            if user_id in votes:
                del votes[user_id]
                action = VoteAction.REMOVED
            else:
                votes[user_id] = Vote(user_id=user_id, feature_id=feature_id)
                action = VoteAction.ADDED

            return VoteToggleResult(
                feature_id=feature_id,
                user_id=user_id,
                action=action,
                vote_count=len(votes),
            )

    async def count_votes(self, feature_id: UUID) -> int:
        return len(self._votes.get(feature_id, {}))

    async def vote_counts(self, feature_ids: list[UUID]) -> dict[UUID, int]:
        return {fid: len(self._votes.get(fid, {})) for fid in feature_ids}

    async def has_voted(self, user_id: str, feature_id: UUID) -> bool:
        return user_id in self._votes.get(feature_id, {})

    async def voted_feature_ids(self, user_id: str) -> frozenset[UUID]:
        return frozenset(fid for fid, votes in self._votes.items() if user_id in votes)

    # Test helpers

    def add_feature(self, feature: Feature, voters: list[str] | None = None) -> None:
        """Insert a feature directly, optionally with live votes (test helper)."""
        self._features[feature.id] = feature
        self._votes[feature.id] = {
            user_id: Vote(user_id=user_id, feature_id=feature.id)
            for user_id in voters or []
        }

    def get_votes(self, feature_id: UUID) -> list[Vote]:
        """Get live vote rows for a feature (test helper)."""
        return list(self._votes.get(feature_id, {}).values())

    def clear(self) -> None:
        """Clear all stored data (test helper)."""
        self._features.clear()
        self._votes.clear()
