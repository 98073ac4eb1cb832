"""Rate limit and CAPTCHA gate ports.

Both gates are external policy collaborators consulted as yes/no answers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class RateLimitDecision:
    """Answer from a rate limit gate.

    Attributes:
        allowed: Whether the action may proceed.
        remaining: Actions remaining in the current window.
        limit: Configured allowance per window.
        retry_after_seconds: Seconds until another action is allowed (0 if allowed).
    """

    allowed: bool
    remaining: int
    limit: int
    retry_after_seconds: int = 0


@runtime_checkable
class RateLimiterProtocol(Protocol):
    """Protocol for a per-user rate limit gate.

    Allowance is taken up front with acquire(), so concurrent requests from
    one user cannot both pass on the same last unit. An action that then
    fails hands its unit back with release().

    Usage:
        decision = await limiter.acquire(user_id)
        if not decision.allowed:
            raise RateLimitExceededError(...)
        try:
            ...perform the action...
        except Exception:
            await limiter.release(user_id)
            raise
    """

    async def check(self, user_id: str) -> RateLimitDecision:
        """Check whether the user may act now. Does not consume allowance."""
        ...

    async def acquire(self, user_id: str) -> RateLimitDecision:
        """Atomically check and, if allowed, consume one unit of allowance.

        Returns:
            The decision; ``remaining`` counts what is left after this unit.
        """
        ...

    async def release(self, user_id: str) -> None:
        """Return the unit taken by a failed action's acquire()."""
        ...


@runtime_checkable
class CaptchaVerifierProtocol(Protocol):
    """Protocol for CAPTCHA verification."""

    @property
    def enabled(self) -> bool:
        """Whether verification is required at all."""
        ...

    async def verify(self, token: str, remote_ip: str | None = None) -> bool:
        """Verify a CAPTCHA response token.

        Args:
            token: Token produced by the client widget.
            remote_ip: Client address, passed through when known.

        Returns:
            True if the token is valid.
        """
        ...
