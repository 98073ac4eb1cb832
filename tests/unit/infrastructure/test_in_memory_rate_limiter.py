"""Unit tests for the sliding window rate limiter."""

import asyncio

import pytest

from votegate.application.ports.gates import RateLimiterProtocol
from votegate.infrastructure.adapters.rate_limit.in_memory_rate_limiter import (
    SECONDS_PER_DAY,
    SWEEP_INTERVAL,
    InMemoryRateLimiter,
)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(name="vote", limit=2, window_seconds=60, clock=clock)


class TestInMemoryRateLimiter:
    def test_satisfies_protocol(self, limiter) -> None:
        assert isinstance(limiter, RateLimiterProtocol)

    async def test_allows_until_limit(self, limiter) -> None:
        first = await limiter.check("alice")
        assert first.allowed
        assert first.remaining == 2

        assert (await limiter.acquire("alice")).remaining == 1
        assert (await limiter.acquire("alice")).remaining == 0

        denied = await limiter.check("alice")
        assert not denied.allowed
        assert denied.remaining == 0
        assert denied.limit == 2

    async def test_check_does_not_consume(self, limiter) -> None:
        for _ in range(5):
            assert (await limiter.check("alice")).allowed

    async def test_denied_acquire_takes_nothing(self, limiter, clock: FakeClock) -> None:
        await limiter.acquire("alice")
        await limiter.acquire("alice")
        for _ in range(3):
            assert not (await limiter.acquire("alice")).allowed

        clock.now += 60

        assert (await limiter.acquire("alice")).remaining == 1

    async def test_retry_after_counts_from_oldest_entry(
        self, limiter, clock: FakeClock
    ) -> None:
        await limiter.acquire("alice")
        clock.now += 20
        await limiter.acquire("alice")
        clock.now += 10

        decision = await limiter.check("alice")

        assert decision.retry_after_seconds == 30

    async def test_window_slides(self, limiter, clock: FakeClock) -> None:
        await limiter.acquire("alice")
        await limiter.acquire("alice")
        clock.now += 60

        assert (await limiter.check("alice")).allowed

    async def test_users_are_independent(self, limiter) -> None:
        await limiter.acquire("alice")
        await limiter.acquire("alice")

        assert (await limiter.check("bob")).allowed

    async def test_release_returns_allowance(self, limiter) -> None:
        await limiter.acquire("alice")
        await limiter.acquire("alice")

        await limiter.release("alice")

        assert (await limiter.check("alice")).remaining == 1

    async def test_release_without_acquire_is_noop(self, limiter) -> None:
        await limiter.release("alice")

        assert (await limiter.check("alice")).remaining == 2
        assert limiter.tracked_users() == 0

    async def test_concurrent_acquires_never_exceed_limit(self, limiter) -> None:
        decisions = await asyncio.gather(*(limiter.acquire("alice") for _ in range(10)))

        assert sum(d.allowed for d in decisions) == 2

    async def test_threads_never_exceed_limit(self, clock: FakeClock) -> None:
        limiter = InMemoryRateLimiter(name="vote", limit=5, window_seconds=60, clock=clock)

        def acquire() -> bool:
            return asyncio.run(limiter.acquire("alice")).allowed

        results = await asyncio.gather(
            *(asyncio.to_thread(acquire) for _ in range(40))
        )

        assert sum(results) == 5

    async def test_reset(self, limiter) -> None:
        await limiter.acquire("alice")
        await limiter.acquire("alice")
        limiter.reset()

        assert (await limiter.check("alice")).allowed


class TestEviction:
    async def test_expired_user_is_evicted_on_touch(
        self, limiter, clock: FakeClock
    ) -> None:
        await limiter.acquire("alice")
        clock.now += 60

        await limiter.check("alice")

        assert limiter.tracked_users() == 0

    async def test_check_does_not_create_entries(self, limiter) -> None:
        for user in ("alice", "bob", "carol"):
            await limiter.check(user)

        assert limiter.tracked_users() == 0

    async def test_release_of_last_entry_evicts(self, limiter) -> None:
        await limiter.acquire("alice")
        await limiter.release("alice")

        assert limiter.tracked_users() == 0

    async def test_sweep_evicts_idle_users(self, limiter, clock: FakeClock) -> None:
        await limiter.acquire("alice")
        await limiter.acquire("bob")
        clock.now += 30
        await limiter.acquire("carol")
        clock.now += 30

        assert limiter.sweep() == 2
        assert limiter.tracked_users() == 1

    async def test_acquire_sweeps_periodically(self, clock: FakeClock) -> None:
        limiter = InMemoryRateLimiter(name="vote", limit=1, window_seconds=60, clock=clock)
        for n in range(SWEEP_INTERVAL - 1):
            await limiter.acquire(f"user-{n}")
        clock.now += 60

        await limiter.acquire("last")

        assert limiter.tracked_users() == 1


class TestFactories:
    def test_per_day_factory(self) -> None:
        limiter = InMemoryRateLimiter.per_day("submit", 3)
        assert limiter.name == "submit"
        assert limiter._window_seconds == SECONDS_PER_DAY

    @pytest.mark.parametrize("limit,window", [(0, 60), (1, 0)])
    def test_rejects_invalid_arguments(self, limit: int, window: float) -> None:
        with pytest.raises(ValueError):
            InMemoryRateLimiter(name="x", limit=limit, window_seconds=window)
