"""Pipeline configuration for the vote-to-implementation flow.

This module defines configuration for the threshold trigger, the external
dispatcher, rate limiting gates and privileged credentials, with
environment variable overrides for production tuning.

Environment Variables (Pipeline):
- IMPLEMENTATION_THRESHOLD: Votes needed to trigger implementation (default: 5)
- RECONCILER_TEXT_FALLBACK: Allow free-text feature identification (default: true)
- AUTO_VOTE_ON_SUBMIT: Record the creator's vote on submission (default: true)
- LIVE_OBSERVER_QUEUE_SIZE: Pending events per live observer (default: 100)

Environment Variables (Dispatch):
- GITHUB_TOKEN: Token used for workflow dispatch (required to dispatch)
- GITHUB_REPOSITORY: owner/repo hosting the workflow (required to dispatch)
- GITHUB_WORKFLOW: Workflow file name (default: implement-feature.yml)
- GITHUB_REF: Branch the workflow runs on (default: main)
- GITHUB_API_URL: API base URL (default: https://api.github.com)
- DISPATCH_TIMEOUT_SECONDS: Bounded timeout for the dispatch call (default: 10.0)

Environment Variables (Rate Limit):
- FEATURE_SUBMISSION_LIMIT_PER_DAY: Submissions per user per day (default: 3)
- VOTE_RATE_LIMIT_PER_MINUTE: Votes per user per minute (default: 10)

Environment Variables (Security):
- OPERATOR_TOKEN: Bearer token for operator endpoints (unset disables them)
- GITHUB_WEBHOOK_SECRET: Secret for X-Hub-Signature-256 verification
- HCAPTCHA_SECRET_KEY: hCaptcha secret (unset disables CAPTCHA)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUE_VALUES = ("1", "true", "yes", "on")


def _get_int_env(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name.
        default: Default value if not set or invalid.

    Returns:
        Parsed integer value or default.
    """
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    """Get float environment variable with default."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool_env(key: str, default: bool) -> bool:
    """Get boolean environment variable with default."""
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _get_optional_env(key: str) -> str | None:
    """Get string environment variable, treating blank as unset."""
    value = os.environ.get(key, "").strip()
    return value or None


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration for the vote pipeline.

    Attributes:
        implementation_threshold: Live vote count that triggers the claim.
        text_fallback_enabled: Whether completion notifications without an
            explicit feature id may be matched against free text.
        auto_vote_on_submit: Whether the creator's vote is recorded on submit.
        observer_queue_size: Bounded queue size per live observer.
    """

    implementation_threshold: int = 5
    text_fallback_enabled: bool = True
    auto_vote_on_submit: bool = True
    observer_queue_size: int = 100

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.implementation_threshold < 1:
            raise ValueError(
                "implementation_threshold must be positive, "
                f"got {self.implementation_threshold}"
            )
        if self.observer_queue_size < 1:
            raise ValueError(
                f"observer_queue_size must be positive, got {self.observer_queue_size}"
            )

    @classmethod
    def from_environment(cls) -> PipelineConfig:
        """Create config from environment variables with defaults."""
        return cls(
            implementation_threshold=_get_int_env("IMPLEMENTATION_THRESHOLD", 5),
            text_fallback_enabled=_get_bool_env("RECONCILER_TEXT_FALLBACK", True),
            auto_vote_on_submit=_get_bool_env("AUTO_VOTE_ON_SUBMIT", True),
            observer_queue_size=_get_int_env("LIVE_OBSERVER_QUEUE_SIZE", 100),
        )


@dataclass(frozen=True)
class DispatchConfig:
    """Configuration for the GitHub workflow dispatcher.

    Missing credentials are not a validation error here: the dispatcher
    reports them as a configuration failure at dispatch time so that a
    misconfigured deployment still serves votes.

    Attributes:
        github_token: Token with workflow dispatch permission.
        github_repository: Repository in owner/repo form.
        workflow: Workflow file name or id.
        ref: Git ref the workflow runs against.
        api_url: GitHub API base URL.
        timeout_seconds: Bounded timeout applied to the dispatch call.
    """

    github_token: str | None = None
    github_repository: str | None = None
    workflow: str = "implement-feature.yml"
    ref: str = "main"
    api_url: str = "https://api.github.com"
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )
        if self.github_repository is not None and "/" not in self.github_repository:
            raise ValueError(
                "github_repository must be in owner/repo form, "
                f"got {self.github_repository!r}"
            )

    @property
    def is_configured(self) -> bool:
        """Whether credentials and target repository are both present."""
        return bool(self.github_token and self.github_repository)

    @classmethod
    def from_environment(cls) -> DispatchConfig:
        """Create config from environment variables with defaults."""
        return cls(
            github_token=_get_optional_env("GITHUB_TOKEN"),
            github_repository=_get_optional_env("GITHUB_REPOSITORY"),
            workflow=os.environ.get("GITHUB_WORKFLOW", "implement-feature.yml"),
            ref=os.environ.get("GITHUB_REF", "main"),
            api_url=os.environ.get("GITHUB_API_URL", "https://api.github.com"),
            timeout_seconds=_get_float_env("DISPATCH_TIMEOUT_SECONDS", 10.0),
        )


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for per-user rate limiting gates.

    Attributes:
        submissions_per_day: Feature submissions allowed per user per day.
        votes_per_minute: Vote toggles allowed per user per minute.
    """

    submissions_per_day: int = 3
    votes_per_minute: int = 10

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.submissions_per_day < 1:
            raise ValueError(
                f"submissions_per_day must be positive, got {self.submissions_per_day}"
            )
        if self.votes_per_minute < 1:
            raise ValueError(
                f"votes_per_minute must be positive, got {self.votes_per_minute}"
            )

    @classmethod
    def from_environment(cls) -> RateLimitConfig:
        """Create config from environment variables with defaults."""
        return cls(
            submissions_per_day=_get_int_env("FEATURE_SUBMISSION_LIMIT_PER_DAY", 3),
            votes_per_minute=_get_int_env("VOTE_RATE_LIMIT_PER_MINUTE", 10),
        )


@dataclass(frozen=True)
class SecurityConfig:
    """Secrets for privileged and inbound integrations.

    Attributes:
        operator_token: Bearer token for operator endpoints. None refuses all.
        github_webhook_secret: Secret for verifying GitHub webhook signatures.
        hcaptcha_secret: hCaptcha secret key. None skips CAPTCHA checks.
    """

    operator_token: str | None = None
    github_webhook_secret: str | None = None
    hcaptcha_secret: str | None = None

    def __repr__(self) -> str:
        return (
            "SecurityConfig("
            f"operator_token={'***' if self.operator_token else None}, "
            f"github_webhook_secret={'***' if self.github_webhook_secret else None}, "
            f"hcaptcha_secret={'***' if self.hcaptcha_secret else None})"
        )

    @classmethod
    def from_environment(cls) -> SecurityConfig:
        """Create config from environment variables."""
        return cls(
            operator_token=_get_optional_env("OPERATOR_TOKEN"),
            github_webhook_secret=_get_optional_env("GITHUB_WEBHOOK_SECRET"),
            hcaptcha_secret=_get_optional_env("HCAPTCHA_SECRET_KEY"),
        )


# Default production config
DEFAULT_PIPELINE_CONFIG = PipelineConfig()

# Testing config with a small observer queue so overflow is easy to provoke
TEST_PIPELINE_CONFIG = PipelineConfig(
    implementation_threshold=5,
    text_fallback_enabled=True,
    auto_vote_on_submit=True,
    observer_queue_size=4,
)

DEFAULT_RATE_LIMIT_CONFIG = RateLimitConfig()
