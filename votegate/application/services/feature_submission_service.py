"""Feature submission service.

Creates feature requests behind the submission rate limit and CAPTCHA
gates, records the creator's own vote and announces the new feature.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from structlog import get_logger

from votegate.domain.errors.feature import (
    ParentFeatureImplementedError,
    ParentFeatureNotFoundError,
)
from votegate.domain.errors.gates import (
    CaptchaVerificationError,
    RateLimitExceededError,
)
from votegate.domain.events.live_event import LiveEvent
from votegate.domain.models.feature import Feature, FeatureStatus

if TYPE_CHECKING:
    from votegate.application.ports.feature_repository import (
        FeatureRepositoryProtocol,
    )
    from votegate.application.ports.gates import (
        CaptchaVerifierProtocol,
        RateLimiterProtocol,
    )
    from votegate.application.ports.live_broadcaster import LiveBroadcasterProtocol
    from votegate.application.ports.pipeline_metrics import PipelineMetricsProtocol
    from votegate.application.ports.vote_ledger import VoteLedgerProtocol
    from votegate.application.services.threshold_trigger_service import (
        ThresholdTriggerService,
    )

logger = get_logger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    """Result of a feature submission.

    Attributes:
        feature: The created feature (as stored after any claim).
        vote_total: Vote total after the creator's own vote.
        creator_has_voted: Whether the creator holds a live vote.
        implementing: True if the submission immediately crossed the threshold.
    """

    feature: Feature
    vote_total: int
    creator_has_voted: bool
    implementing: bool = False


class FeatureSubmissionService:
    """Service creating feature requests.

    Gates run in order: rate limit, CAPTCHA, parent check. The rate limit
    allowance is consumed only once the feature is stored.
    """

    def __init__(
        self,
        feature_repo: FeatureRepositoryProtocol,
        vote_ledger: VoteLedgerProtocol,
        rate_limiter: RateLimiterProtocol | None = None,
        captcha_verifier: CaptchaVerifierProtocol | None = None,
        threshold_trigger: ThresholdTriggerService | None = None,
        broadcaster: LiveBroadcasterProtocol | None = None,
        metrics: PipelineMetricsProtocol | None = None,
        auto_vote: bool = True,
    ) -> None:
        self._feature_repo = feature_repo
        self._vote_ledger = vote_ledger
        self._rate_limiter = rate_limiter
        self._captcha_verifier = captcha_verifier
        self._threshold_trigger = threshold_trigger
        self._broadcaster = broadcaster
        self._metrics = metrics
        self._auto_vote = auto_vote

    async def can_submit(self, user_id: str) -> bool:
        """Whether the user's submission allowance is not exhausted."""
        if self._rate_limiter is None:
            return True
        decision = await self._rate_limiter.check(user_id)
        return decision.allowed

    async def submit(
        self,
        creator_id: str,
        title: str,
        description: str,
        parent_id: UUID | None = None,
        captcha_token: str | None = None,
        remote_ip: str | None = None,
    ) -> SubmissionResult:
        """Create a feature request.

        Args:
            creator_id: Authenticated submitter identity.
            title: Feature title (1..200 characters).
            description: Feature description.
            parent_id: Feature this is a variation of, if any.
            captcha_token: CAPTCHA response token, required when enabled.
            remote_ip: Client address passed to the CAPTCHA verifier.

        Returns:
            SubmissionResult with the stored feature.

        Raises:
            RateLimitExceededError: Submission allowance exhausted.
            CaptchaVerificationError: CAPTCHA missing or rejected.
            ParentFeatureNotFoundError: parent_id does not exist.
            ParentFeatureImplementedError: Parent is already implemented.
            ValueError: Title or description invalid.
        """
        log = logger.bind(
            creator_id=creator_id,
            parent_id=str(parent_id) if parent_id else None,
        )

        # Step 1: Rate limit gate, allowance taken atomically
        if self._rate_limiter is not None:
            decision = await self._rate_limiter.acquire(creator_id)
            if not decision.allowed:
                log.warning("feature_submission_rate_limited", limit=decision.limit)
                raise RateLimitExceededError(
                    user_id=creator_id,
                    action="submit",
                    limit=decision.limit,
                    retry_after_seconds=decision.retry_after_seconds,
                )

        # Steps 2-4: CAPTCHA, parent checks, persist
        try:
            feature = await self._create(
                log, creator_id, title, description, parent_id, captcha_token, remote_ip
            )
        except Exception:
            # Rejected submissions do not count against the allowance
            if self._rate_limiter is not None:
                await self._rate_limiter.release(creator_id)
            raise
        log = log.bind(feature_id=str(feature.id))
        log.info("feature_submitted", title=feature.title)

        # Step 5: Creator's own vote
        vote_total = 0
        creator_has_voted = False
        if self._auto_vote:
            toggle = await self._vote_ledger.toggle_vote(creator_id, feature.id)
            if self._metrics is not None:
                self._metrics.record_vote(toggle.action.value)
            vote_total = toggle.vote_count
            creator_has_voted = toggle.has_voted

        if self._broadcaster is not None:
            self._broadcaster.publish(LiveEvent.feature_submitted(feature, vote_total))

        # Step 6: A threshold of one is crossed by the creator's vote
        implementing = False
        if self._auto_vote and self._threshold_trigger is not None:
            try:
                evaluation = await self._threshold_trigger.evaluate(
                    feature_id=feature.id,
                    vote_count=vote_total,
                    triggered_by=creator_id,
                )
            except Exception as e:
                log.exception(
                    "threshold_evaluation_failed",
                    operation="submit",
                    error_type=type(e).__name__,
                )
            else:
                if evaluation.implementing and evaluation.feature is not None:
                    feature = evaluation.feature
                    implementing = True
                    creator_has_voted = False

        return SubmissionResult(
            feature=feature,
            vote_total=vote_total,
            creator_has_voted=creator_has_voted,
            implementing=implementing,
        )

    async def _create(
        self,
        log: Any,
        creator_id: str,
        title: str,
        description: str,
        parent_id: UUID | None,
        captcha_token: str | None,
        remote_ip: str | None,
    ) -> Feature:
        # Step 2: CAPTCHA gate
        if self._captcha_verifier is not None and self._captcha_verifier.enabled:
            if not captcha_token:
                log.warning("feature_submission_captcha_missing")
                raise CaptchaVerificationError("CAPTCHA token is required")
            if not await self._captcha_verifier.verify(captcha_token, remote_ip):
                log.warning("feature_submission_captcha_rejected")
                raise CaptchaVerificationError("CAPTCHA verification failed")

        # Step 3: Parent must exist and must not be implemented
        if parent_id is not None:
            parent = await self._feature_repo.get(parent_id)
            if parent is None:
                log.warning("feature_submission_parent_not_found")
                raise ParentFeatureNotFoundError(parent_id)
            if parent.status is FeatureStatus.IMPLEMENTED:
                log.warning("feature_submission_parent_implemented")
                raise ParentFeatureImplementedError(parent_id)

        # Step 4: Persist
        feature = Feature(
            id=uuid4(),
            title=title.strip(),
            description=description.strip(),
            creator_id=creator_id,
            parent_id=parent_id,
        )
        await self._feature_repo.save(feature)
        return feature
