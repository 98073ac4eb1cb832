"""Unit tests for VoteService."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from votegate.application.ports.gates import RateLimitDecision
from votegate.application.services.vote_service import VoteService
from votegate.domain.errors import (
    FeatureNotFoundError,
    InvalidFeatureStateError,
    RateLimitExceededError,
)
from votegate.domain.models.feature import FeatureStatus, VoteAction
from votegate.infrastructure.adapters.rate_limit.in_memory_rate_limiter import (
    InMemoryRateLimiter,
)


@pytest.fixture
def vote_service(store, threshold_trigger, broadcaster, metrics) -> VoteService:
    return VoteService(
        vote_ledger=store,
        threshold_trigger=threshold_trigger,
        broadcaster=broadcaster,
        metrics=metrics,
    )


class TestCastVote:
    async def test_add_vote(self, vote_service, store, broadcaster, metrics, make_feature) -> None:
        feature = make_feature()
        store.add_feature(feature)

        outcome = await vote_service.cast_vote("alice", feature.id)

        assert outcome.action is VoteAction.ADDED
        assert outcome.has_voted
        assert outcome.vote_total == 1
        assert not outcome.implementing
        assert outcome.message is None
        assert broadcaster.events[0].data == {"action": "added", "vote_total": 1}
        assert ("vote", "added") in metrics.calls

    async def test_toggle_removes_vote(self, vote_service, store, make_feature) -> None:
        feature = make_feature()
        store.add_feature(feature, voters=["alice", "bob"])

        outcome = await vote_service.cast_vote("alice", feature.id)

        assert outcome.action is VoteAction.REMOVED
        assert not outcome.has_voted
        assert outcome.vote_total == 1

    async def test_fifth_vote_triggers_implementation(
        self, vote_service, store, dispatcher, make_feature
    ) -> None:
        feature = make_feature(title="Dark mode")
        store.add_feature(feature, voters=["a", "b", "c", "d"])

        outcome = await vote_service.cast_vote("e", feature.id)

        assert outcome.action is VoteAction.ADDED
        assert outcome.implementing
        assert not outcome.has_voted
        assert outcome.vote_total == 5
        assert outcome.dispatched is True
        assert outcome.message == (
            'Feature "Dark mode" reached 5 votes and is now being implemented.'
        )
        assert dispatcher.call_count == 1
        assert (await store.get(feature.id)).status is FeatureStatus.IMPLEMENTING

    async def test_live_count_at_threshold_after_removal_triggers(
        self, vote_service, store, dispatcher, make_feature
    ) -> None:
        feature = make_feature()
        store.add_feature(feature, voters=["a", "b", "c", "d", "e", "f"])

        outcome = await vote_service.cast_vote("f", feature.id)

        # 6 -> 5 still meets the threshold on the live count
        assert outcome.implementing
        assert dispatcher.call_count == 1

    async def test_concurrent_crossing_votes_dispatch_exactly_once(
        self, vote_service, store, dispatcher, make_feature
    ) -> None:
        feature = make_feature()
        store.add_feature(feature, voters=["a", "b", "c"])

        outcomes = await asyncio.gather(
            vote_service.cast_vote("d", feature.id),
            vote_service.cast_vote("e", feature.id),
            vote_service.cast_vote("f", feature.id),
            return_exceptions=True,
        )

        assert dispatcher.call_count == 1
        stored = await store.get(feature.id)
        assert stored.status is FeatureStatus.IMPLEMENTING
        assert stored.vote_snapshot == 5
        # The vote that arrives after the claim finds voting closed
        rejected = [o for o in outcomes if isinstance(o, InvalidFeatureStateError)]
        accepted = [o for o in outcomes if not isinstance(o, Exception)]
        assert len(rejected) == 1
        assert sum(o.implementing for o in accepted) == 1
        assert [o.message for o in accepted if o.implementing][0].startswith("Feature")

    async def test_vote_on_implementing_feature_rejected(
        self, vote_service, store, make_feature
    ) -> None:
        feature = make_feature(status=FeatureStatus.IMPLEMENTING, vote_snapshot=5)
        store.add_feature(feature)

        with pytest.raises(InvalidFeatureStateError):
            await vote_service.cast_vote("alice", feature.id)

    async def test_unknown_feature(self, vote_service, make_feature) -> None:
        with pytest.raises(FeatureNotFoundError):
            await vote_service.cast_vote("alice", make_feature().id)

    async def test_vote_stands_when_evaluation_fails(
        self, store, broadcaster, make_feature
    ) -> None:
        trigger = AsyncMock()
        trigger.evaluate.side_effect = RuntimeError("boom")
        service = VoteService(
            vote_ledger=store, threshold_trigger=trigger, broadcaster=broadcaster
        )
        feature = make_feature()
        store.add_feature(feature)

        outcome = await service.cast_vote("alice", feature.id)

        assert outcome.has_voted
        assert await store.has_voted("alice", feature.id)

    async def test_lost_race_reports_already_implementing(
        self, store, make_feature
    ) -> None:
        from votegate.application.services.threshold_trigger_service import (
            ThresholdEvaluation,
        )

        feature = make_feature(vote_snapshot=7)
        store.add_feature(feature, voters=["a", "b", "c", "d"])
        trigger = AsyncMock()
        trigger.evaluate.return_value = ThresholdEvaluation(
            feature_id=feature.id,
            vote_count=5,
            threshold=5,
            crossed=True,
            claimed=False,
            implementing=True,
            feature=feature,
        )
        service = VoteService(vote_ledger=store, threshold_trigger=trigger)

        outcome = await service.cast_vote("e", feature.id)

        assert outcome.implementing
        assert outcome.vote_total == 7
        assert outcome.dispatched is None
        assert outcome.message == "Feature is already being implemented."


class TestVoteRateLimit:
    async def test_denied_vote_does_not_touch_ledger(
        self, store, threshold_trigger, make_feature
    ) -> None:
        limiter = AsyncMock()
        limiter.acquire.return_value = RateLimitDecision(
            allowed=False, remaining=0, limit=10, retry_after_seconds=42
        )
        service = VoteService(
            vote_ledger=store, threshold_trigger=threshold_trigger, rate_limiter=limiter
        )
        feature = make_feature()
        store.add_feature(feature)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await service.cast_vote("alice", feature.id)

        assert exc_info.value.retry_after_seconds == 42
        assert exc_info.value.action == "vote"
        assert await store.count_votes(feature.id) == 0
        limiter.release.assert_not_awaited()

    async def test_failed_vote_does_not_consume_allowance(
        self, store, threshold_trigger, make_feature
    ) -> None:
        limiter = InMemoryRateLimiter(name="vote", limit=1, window_seconds=60)
        service = VoteService(
            vote_ledger=store, threshold_trigger=threshold_trigger, rate_limiter=limiter
        )

        with pytest.raises(FeatureNotFoundError):
            await service.cast_vote("alice", make_feature().id)

        assert (await limiter.check("alice")).allowed

    async def test_concurrent_votes_share_one_allowance(
        self, store, threshold_trigger, make_feature
    ) -> None:
        limiter = InMemoryRateLimiter(name="vote", limit=2, window_seconds=60)
        service = VoteService(
            vote_ledger=store, threshold_trigger=threshold_trigger, rate_limiter=limiter
        )
        features = [make_feature() for _ in range(5)]
        for feature in features:
            store.add_feature(feature)

        results = await asyncio.gather(
            *(service.cast_vote("alice", f.id) for f in features),
            return_exceptions=True,
        )

        denied = [r for r in results if isinstance(r, RateLimitExceededError)]
        assert len(denied) == 3
        assert sum([await store.count_votes(f.id) for f in features]) == 2
