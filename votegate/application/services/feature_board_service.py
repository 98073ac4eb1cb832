"""Feature board query service.

Read side of the pipeline: assembles the board shown to users. Pending
features show live vote counts; features that left voting show their
frozen snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import UUID

from votegate.domain.errors.feature import FeatureNotFoundError
from votegate.domain.models.feature import Feature, FeatureStatus

if TYPE_CHECKING:
    from votegate.application.ports.feature_repository import (
        FeatureRepositoryProtocol,
    )
    from votegate.application.ports.vote_ledger import VoteLedgerProtocol
    from votegate.application.services.feature_submission_service import (
        FeatureSubmissionService,
    )

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

_OPEN_STATUSES = frozenset({FeatureStatus.PENDING, FeatureStatus.IMPLEMENTING})


@dataclass(frozen=True)
class FeatureView:
    """A feature as displayed on the board."""

    feature: Feature
    vote_total: int
    user_has_voted: bool = False
    variation_count: int = 0


@dataclass(frozen=True)
class BoardView:
    """The whole board.

    Attributes:
        features: Open features (pending or implementing), most votes first.
        implemented_features: Completed features, most recent first.
        can_submit: Whether the viewer may submit now (None if anonymous).
    """

    features: list[FeatureView]
    implemented_features: list[FeatureView]
    can_submit: bool | None = None


class FeatureBoardService:
    """Service building board views."""

    def __init__(
        self,
        feature_repo: FeatureRepositoryProtocol,
        vote_ledger: VoteLedgerProtocol,
        submission_service: FeatureSubmissionService | None = None,
    ) -> None:
        self._feature_repo = feature_repo
        self._vote_ledger = vote_ledger
        self._submission_service = submission_service

    async def get_board(self, user_id: str | None = None) -> BoardView:
        """Build the board for an (optionally anonymous) viewer."""
        features = await self._feature_repo.list_features()
        ids = [f.id for f in features]
        counts = await self._vote_ledger.vote_counts(
            [f.id for f in features if f.status is FeatureStatus.PENDING]
        )
        variations = await self._feature_repo.count_open_variations(ids)
        voted = (
            await self._vote_ledger.voted_feature_ids(user_id)
            if user_id
            else frozenset()
        )

        views = [
            FeatureView(
                feature=f,
                vote_total=f.displayed_vote_total(counts.get(f.id, 0)),
                user_has_voted=f.id in voted,
                variation_count=variations.get(f.id, 0),
            )
            for f in features
        ]

        open_views = sorted(
            (v for v in views if v.feature.status in _OPEN_STATUSES),
            key=lambda v: (v.vote_total, v.feature.created_at),
            reverse=True,
        )
        implemented_views = sorted(
            (v for v in views if v.feature.status is FeatureStatus.IMPLEMENTED),
            key=lambda v: (v.feature.implemented_at or _EPOCH, v.feature.created_at),
            reverse=True,
        )

        can_submit: bool | None = None
        if user_id and self._submission_service is not None:
            can_submit = await self._submission_service.can_submit(user_id)

        return BoardView(
            features=open_views,
            implemented_features=implemented_views,
            can_submit=can_submit,
        )

    async def get_feature(
        self, feature_id: UUID, user_id: str | None = None
    ) -> FeatureView:
        """Build the view of a single feature.

        Raises:
            FeatureNotFoundError: Feature does not exist.
        """
        feature = await self._feature_repo.get(feature_id)
        if feature is None:
            raise FeatureNotFoundError(feature_id)

        live_count = (
            await self._vote_ledger.count_votes(feature_id)
            if feature.status is FeatureStatus.PENDING
            else 0
        )
        has_voted = (
            await self._vote_ledger.has_voted(user_id, feature_id) if user_id else False
        )
        variations = await self._feature_repo.count_open_variations([feature_id])

        return FeatureView(
            feature=feature,
            vote_total=feature.displayed_vote_total(live_count),
            user_has_voted=has_voted,
            variation_count=variations.get(feature_id, 0),
        )
