"""Unit tests for FeatureBoardService."""

from datetime import datetime, timedelta, timezone

import pytest

from votegate.application.services.feature_board_service import FeatureBoardService
from votegate.application.services.feature_submission_service import (
    FeatureSubmissionService,
)
from votegate.domain.errors import FeatureNotFoundError
from votegate.domain.models.feature import FeatureStatus
from votegate.infrastructure.adapters.rate_limit.in_memory_rate_limiter import (
    InMemoryRateLimiter,
)

BASE = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def board_service(store) -> FeatureBoardService:
    return FeatureBoardService(feature_repo=store, vote_ledger=store)


class TestGetBoard:
    async def test_open_features_sorted_by_votes(
        self, board_service, store, make_feature
    ) -> None:
        low = make_feature(title="Low", created_at=BASE)
        high = make_feature(title="High", created_at=BASE)
        implementing = make_feature(
            title="Claimed",
            status=FeatureStatus.IMPLEMENTING,
            vote_snapshot=5,
            created_at=BASE,
        )
        store.add_feature(low, voters=["a"])
        store.add_feature(high, voters=["a", "b", "c"])
        store.add_feature(implementing)

        board = await board_service.get_board()

        assert [(v.feature.title, v.vote_total) for v in board.features] == [
            ("Claimed", 5),
            ("High", 3),
            ("Low", 1),
        ]
        assert board.implemented_features == []
        assert board.can_submit is None

    async def test_implemented_most_recent_first(
        self, board_service, store, make_feature
    ) -> None:
        older = make_feature(
            title="Older",
            status=FeatureStatus.IMPLEMENTED,
            vote_snapshot=5,
            implemented_at=BASE,
        )
        newer = make_feature(
            title="Newer",
            status=FeatureStatus.IMPLEMENTED,
            vote_snapshot=6,
            implemented_at=BASE + timedelta(days=1),
        )
        store.add_feature(older)
        store.add_feature(newer)

        board = await board_service.get_board()

        assert [v.feature.title for v in board.implemented_features] == [
            "Newer",
            "Older",
        ]
        assert board.implemented_features[0].vote_total == 6

    async def test_user_votes_and_variations(
        self, board_service, store, make_feature
    ) -> None:
        parent = make_feature(title="Parent")
        child = make_feature(title="Child", parent_id=parent.id)
        store.add_feature(parent, voters=["alice"])
        store.add_feature(child)

        board = await board_service.get_board(user_id="alice")

        views = {v.feature.title: v for v in board.features}
        assert views["Parent"].user_has_voted
        assert views["Parent"].variation_count == 1
        assert not views["Child"].user_has_voted

    async def test_can_submit_reflects_rate_limit(self, store) -> None:
        limiter = InMemoryRateLimiter(name="submit", limit=1, window_seconds=86400)
        submission = FeatureSubmissionService(
            feature_repo=store, vote_ledger=store, rate_limiter=limiter
        )
        service = FeatureBoardService(
            feature_repo=store, vote_ledger=store, submission_service=submission
        )

        assert (await service.get_board(user_id="alice")).can_submit is True
        await submission.submit("alice", "t", "d")
        assert (await service.get_board(user_id="alice")).can_submit is False


class TestGetFeature:
    async def test_pending_feature(self, board_service, store, make_feature) -> None:
        feature = make_feature()
        store.add_feature(feature, voters=["alice", "bob"])

        view = await board_service.get_feature(feature.id, user_id="bob")

        assert view.vote_total == 2
        assert view.user_has_voted

    async def test_implementing_feature_shows_snapshot(
        self, board_service, store, make_feature
    ) -> None:
        feature = make_feature(status=FeatureStatus.IMPLEMENTING, vote_snapshot=5)
        store.add_feature(feature)

        view = await board_service.get_feature(feature.id)

        assert view.vote_total == 5
        assert not view.user_has_voted

    async def test_unknown_feature(self, board_service, make_feature) -> None:
        with pytest.raises(FeatureNotFoundError):
            await board_service.get_feature(make_feature().id)
