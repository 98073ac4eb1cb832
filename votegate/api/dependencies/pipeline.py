"""Vote pipeline API dependencies.

Dependency injection setup for the pipeline services. Every component is
a lazily created module singleton; ``set_*`` functions override one for
tests and ``reset_pipeline_dependencies`` clears them all.

Storage selection:
- DATABASE_URL set -> PostgresFeatureStore (SQLAlchemy async + asyncpg)
- otherwise        -> FeatureStoreStub (in-memory, single process)
"""

from __future__ import annotations

from structlog import get_logger

from votegate.application.ports.feature_repository import FeatureRepositoryProtocol
from votegate.application.ports.gates import (
    CaptchaVerifierProtocol,
    RateLimiterProtocol,
)
from votegate.application.ports.implementation_dispatcher import (
    ImplementationDispatcherProtocol,
)
from votegate.application.ports.vote_ledger import VoteLedgerProtocol
from votegate.application.services.completion_reconciler_service import (
    CompletionReconcilerService,
)
from votegate.application.services.feature_board_service import FeatureBoardService
from votegate.application.services.feature_submission_service import (
    FeatureSubmissionService,
)
from votegate.application.services.implementation_lifecycle_service import (
    ImplementationLifecycleService,
)
from votegate.application.services.live_broadcast_service import LiveBroadcastService
from votegate.application.services.threshold_trigger_service import (
    ThresholdTriggerService,
)
from votegate.application.services.vote_service import VoteService
from votegate.bootstrap.database import get_session_factory, is_database_configured
from votegate.bootstrap.metrics import get_pipeline_metrics
from votegate.config.pipeline_config import (
    DispatchConfig,
    PipelineConfig,
    RateLimitConfig,
    SecurityConfig,
)
from votegate.infrastructure.adapters.external.github_dispatcher import (
    GitHubWorkflowDispatcher,
)
from votegate.infrastructure.adapters.external.hcaptcha_verifier import (
    HCaptchaVerifier,
)
from votegate.infrastructure.adapters.persistence.postgres_feature_store import (
    PostgresFeatureStore,
)
from votegate.infrastructure.adapters.rate_limit.in_memory_rate_limiter import (
    InMemoryRateLimiter,
)
from votegate.infrastructure.stubs.feature_store_stub import FeatureStoreStub

logger = get_logger(__name__)

FeatureStore = FeatureStoreStub | PostgresFeatureStore

_pipeline_config: PipelineConfig | None = None
_dispatch_config: DispatchConfig | None = None
_rate_limit_config: RateLimitConfig | None = None
_security_config: SecurityConfig | None = None
_feature_store: FeatureStore | None = None
_dispatcher: ImplementationDispatcherProtocol | None = None
_captcha_verifier: CaptchaVerifierProtocol | None = None
_submission_rate_limiter: RateLimiterProtocol | None = None
_vote_rate_limiter: RateLimiterProtocol | None = None
_broadcaster: LiveBroadcastService | None = None
_lifecycle_service: ImplementationLifecycleService | None = None
_threshold_trigger: ThresholdTriggerService | None = None
_vote_service: VoteService | None = None
_submission_service: FeatureSubmissionService | None = None
_board_service: FeatureBoardService | None = None
_reconciler_service: CompletionReconcilerService | None = None


# =============================================================================
# Configuration
# =============================================================================


def get_pipeline_config() -> PipelineConfig:
    """Get pipeline configuration loaded from environment."""
    global _pipeline_config
    if _pipeline_config is None:
        _pipeline_config = PipelineConfig.from_environment()
    return _pipeline_config


def get_dispatch_config() -> DispatchConfig:
    """Get GitHub dispatch configuration loaded from environment."""
    global _dispatch_config
    if _dispatch_config is None:
        _dispatch_config = DispatchConfig.from_environment()
        if not _dispatch_config.is_configured:
            logger.warning(
                "dispatch_not_configured",
                message="Claims will succeed but dispatch will fail until "
                "GITHUB_TOKEN and GITHUB_REPOSITORY are set",
            )
    return _dispatch_config


def get_rate_limit_config() -> RateLimitConfig:
    """Get rate limit configuration loaded from environment."""
    global _rate_limit_config
    if _rate_limit_config is None:
        _rate_limit_config = RateLimitConfig.from_environment()
    return _rate_limit_config


def get_security_config() -> SecurityConfig:
    """Get operator and webhook credentials loaded from environment."""
    global _security_config
    if _security_config is None:
        _security_config = SecurityConfig.from_environment()
    return _security_config


# =============================================================================
# Infrastructure
# =============================================================================


def get_feature_store() -> FeatureStore:
    """Get the feature store (repository and vote ledger in one).

    Returns PostgresFeatureStore when DATABASE_URL is set, otherwise the
    in-memory FeatureStoreStub.
    """
    global _feature_store
    if _feature_store is None:
        if is_database_configured():
            _feature_store = PostgresFeatureStore(get_session_factory())
            logger.info("feature_store_selected", store="postgres")
        else:
            _feature_store = FeatureStoreStub()
            logger.info("feature_store_selected", store="in_memory")
    return _feature_store


def get_feature_repository() -> FeatureRepositoryProtocol:
    return get_feature_store()


def get_vote_ledger() -> VoteLedgerProtocol:
    return get_feature_store()


def get_dispatcher() -> ImplementationDispatcherProtocol:
    """Get the GitHub Actions dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = GitHubWorkflowDispatcher(get_dispatch_config())
    return _dispatcher


def get_captcha_verifier() -> CaptchaVerifierProtocol:
    """Get the hCaptcha verifier (disabled when no secret is set)."""
    global _captcha_verifier
    if _captcha_verifier is None:
        _captcha_verifier = HCaptchaVerifier(get_security_config().hcaptcha_secret)
    return _captcha_verifier


def get_submission_rate_limiter() -> RateLimiterProtocol:
    global _submission_rate_limiter
    if _submission_rate_limiter is None:
        _submission_rate_limiter = InMemoryRateLimiter.per_day(
            "submit", get_rate_limit_config().submissions_per_day
        )
    return _submission_rate_limiter


def get_vote_rate_limiter() -> RateLimiterProtocol:
    global _vote_rate_limiter
    if _vote_rate_limiter is None:
        _vote_rate_limiter = InMemoryRateLimiter.per_minute(
            "vote", get_rate_limit_config().votes_per_minute
        )
    return _vote_rate_limiter


def get_broadcaster() -> LiveBroadcastService:
    """Get the live broadcast fan-out."""
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = LiveBroadcastService(
            queue_size=get_pipeline_config().observer_queue_size,
            metrics=get_pipeline_metrics(),
        )
    return _broadcaster


# =============================================================================
# Services
# =============================================================================


def get_lifecycle_service() -> ImplementationLifecycleService:
    global _lifecycle_service
    if _lifecycle_service is None:
        _lifecycle_service = ImplementationLifecycleService(
            feature_repo=get_feature_repository(),
            dispatcher=get_dispatcher(),
            broadcaster=get_broadcaster(),
            metrics=get_pipeline_metrics(),
        )
    return _lifecycle_service


def get_threshold_trigger() -> ThresholdTriggerService:
    global _threshold_trigger
    if _threshold_trigger is None:
        _threshold_trigger = ThresholdTriggerService(
            lifecycle=get_lifecycle_service(),
            threshold=get_pipeline_config().implementation_threshold,
        )
    return _threshold_trigger


def get_vote_service() -> VoteService:
    global _vote_service
    if _vote_service is None:
        _vote_service = VoteService(
            vote_ledger=get_vote_ledger(),
            threshold_trigger=get_threshold_trigger(),
            broadcaster=get_broadcaster(),
            rate_limiter=get_vote_rate_limiter(),
            metrics=get_pipeline_metrics(),
        )
    return _vote_service


def get_submission_service() -> FeatureSubmissionService:
    global _submission_service
    if _submission_service is None:
        _submission_service = FeatureSubmissionService(
            feature_repo=get_feature_repository(),
            vote_ledger=get_vote_ledger(),
            rate_limiter=get_submission_rate_limiter(),
            captcha_verifier=get_captcha_verifier(),
            threshold_trigger=get_threshold_trigger(),
            broadcaster=get_broadcaster(),
            metrics=get_pipeline_metrics(),
            auto_vote=get_pipeline_config().auto_vote_on_submit,
        )
    return _submission_service


def get_board_service() -> FeatureBoardService:
    global _board_service
    if _board_service is None:
        _board_service = FeatureBoardService(
            feature_repo=get_feature_repository(),
            vote_ledger=get_vote_ledger(),
            submission_service=get_submission_service(),
        )
    return _board_service


def get_reconciler_service() -> CompletionReconcilerService:
    global _reconciler_service
    if _reconciler_service is None:
        _reconciler_service = CompletionReconcilerService(
            feature_repo=get_feature_repository(),
            broadcaster=get_broadcaster(),
            metrics=get_pipeline_metrics(),
            text_fallback_enabled=get_pipeline_config().text_fallback_enabled,
        )
    return _reconciler_service


# =============================================================================
# Overrides (testing)
# =============================================================================


def _reset_services() -> None:
    global _lifecycle_service, _threshold_trigger, _vote_service
    global _submission_service, _board_service, _reconciler_service
    _lifecycle_service = None
    _threshold_trigger = None
    _vote_service = None
    _submission_service = None
    _board_service = None
    _reconciler_service = None


def set_pipeline_config(config: PipelineConfig) -> None:
    """Set pipeline configuration (rebuilds services on next use)."""
    global _pipeline_config, _broadcaster
    _pipeline_config = config
    _broadcaster = None
    _reset_services()


def set_rate_limit_config(config: RateLimitConfig) -> None:
    global _rate_limit_config, _submission_rate_limiter, _vote_rate_limiter
    _rate_limit_config = config
    _submission_rate_limiter = None
    _vote_rate_limiter = None
    _reset_services()


def set_security_config(config: SecurityConfig) -> None:
    global _security_config, _captcha_verifier
    _security_config = config
    _captcha_verifier = None
    _reset_services()


def set_feature_store(store: FeatureStore) -> None:
    global _feature_store
    _feature_store = store
    _reset_services()


def set_dispatcher(dispatcher: ImplementationDispatcherProtocol) -> None:
    global _dispatcher
    _dispatcher = dispatcher
    _reset_services()


def set_captcha_verifier(verifier: CaptchaVerifierProtocol) -> None:
    global _captcha_verifier
    _captcha_verifier = verifier
    _reset_services()


def set_rate_limiters(
    submission: RateLimiterProtocol | None = None,
    vote: RateLimiterProtocol | None = None,
) -> None:
    global _submission_rate_limiter, _vote_rate_limiter
    if submission is not None:
        _submission_rate_limiter = submission
    if vote is not None:
        _vote_rate_limiter = vote
    _reset_services()


def set_broadcaster(broadcaster: LiveBroadcastService) -> None:
    global _broadcaster
    _broadcaster = broadcaster
    _reset_services()


def reset_pipeline_dependencies() -> None:
    """Reset all singletons (testing cleanup)."""
    global _pipeline_config, _dispatch_config, _rate_limit_config
    global _security_config, _feature_store, _dispatcher, _captcha_verifier
    global _submission_rate_limiter, _vote_rate_limiter, _broadcaster
    _pipeline_config = None
    _dispatch_config = None
    _rate_limit_config = None
    _security_config = None
    _feature_store = None
    _dispatcher = None
    _captcha_verifier = None
    _submission_rate_limiter = None
    _vote_rate_limiter = None
    _broadcaster = None
    _reset_services()
