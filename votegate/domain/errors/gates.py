"""Errors raised by the submission and vote gates (rate limit, CAPTCHA)."""

from __future__ import annotations

from votegate.domain.exceptions import VotegateError


class RateLimitExceededError(VotegateError):
    """Raised when the rate limit gate denies an action.

    HTTP Status: 429 Too Many Requests

    Attributes:
        user_id: The user that was denied.
        action: The gated action ("submit" or "vote").
        limit: Configured allowance for the window.
        retry_after_seconds: Seconds until the oldest entry leaves the window.
    """

    error_code = "rate_limited"

    def __init__(
        self,
        user_id: str,
        action: str,
        limit: int,
        retry_after_seconds: int,
    ) -> None:
        self.user_id = user_id
        self.action = action
        self.limit = limit
        self.retry_after_seconds = max(1, retry_after_seconds)
        super().__init__(
            f"Rate limit exceeded for {action}: {limit} allowed per window, "
            f"retry in {self.retry_after_seconds}s"
        )


class CaptchaVerificationError(VotegateError):
    """Raised when the CAPTCHA gate rejects a submission.

    HTTP Status: 400 Bad Request

    Attributes:
        reason: Short description of why verification failed.
    """

    error_code = "captcha_failed"

    def __init__(self, reason: str = "CAPTCHA verification failed") -> None:
        self.reason = reason
        super().__init__(reason)
