"""Vote service.

Orchestrates a single vote toggle: rate limit gate, ledger mutation, live
broadcast and threshold evaluation. The response always reports the
caller's own vote action, including when a concurrent voter won the
implementation claim.

Developer Golden Rules:
1. LIVE COUNT ONLY - the threshold acts on the ledger's post-mutation count
2. VOTE STANDS - a failure after the ledger commit never fails the vote
3. LOSING IS NORMAL - a lost claim is reported as implementing, not an error
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from structlog import get_logger

from votegate.domain.errors.gates import RateLimitExceededError
from votegate.domain.events.live_event import LiveEvent
from votegate.domain.models.feature import VoteAction

if TYPE_CHECKING:
    from votegate.application.ports.gates import RateLimiterProtocol
    from votegate.application.ports.live_broadcaster import LiveBroadcasterProtocol
    from votegate.application.ports.pipeline_metrics import PipelineMetricsProtocol
    from votegate.application.ports.vote_ledger import VoteLedgerProtocol
    from votegate.application.services.threshold_trigger_service import (
        ThresholdEvaluation,
        ThresholdTriggerService,
    )

logger = get_logger(__name__)


@dataclass(frozen=True)
class VoteOutcome:
    """Result returned to the voter.

    Attributes:
        feature_id: Feature voted on.
        user_id: Voter.
        action: Whether the caller's vote was added or removed.
        has_voted: Whether the caller has a live vote after the request.
            False once the feature left voting (votes were cleared).
        vote_total: Live count, or the frozen snapshot once implementing.
        implementing: True if the feature left voting during this request.
        dispatched: Dispatch outcome when this request won the claim.
        message: Human-readable message for implementing outcomes.
    """

    feature_id: UUID
    user_id: str
    action: VoteAction
    has_voted: bool
    vote_total: int
    implementing: bool = False
    dispatched: bool | None = None
    message: str | None = None


class VoteService:
    """Service handling vote toggles and their downstream effects.

    Example:
        >>> outcome = await vote_service.cast_vote("user-1", feature_id)
        >>> outcome.action
        <VoteAction.ADDED: 'added'>
    """

    def __init__(
        self,
        vote_ledger: VoteLedgerProtocol,
        threshold_trigger: ThresholdTriggerService,
        broadcaster: LiveBroadcasterProtocol | None = None,
        rate_limiter: RateLimiterProtocol | None = None,
        metrics: PipelineMetricsProtocol | None = None,
    ) -> None:
        """Initialize the vote service.

        Args:
            vote_ledger: Ledger performing the toggle.
            threshold_trigger: Evaluates the post-mutation count.
            broadcaster: Optional live fan-out.
            rate_limiter: Optional per-user vote gate.
            metrics: Optional pipeline metrics sink.
        """
        self._vote_ledger = vote_ledger
        self._threshold_trigger = threshold_trigger
        self._broadcaster = broadcaster
        self._rate_limiter = rate_limiter
        self._metrics = metrics

    async def cast_vote(self, user_id: str, feature_id: UUID) -> VoteOutcome:
        """Toggle the user's vote on a feature.

        Args:
            user_id: Authenticated voter identity.
            feature_id: Feature to vote on.

        Returns:
            VoteOutcome describing the caller's action and the feature state.

        Raises:
            RateLimitExceededError: Vote gate denied the request.
            FeatureNotFoundError: Feature does not exist.
            InvalidFeatureStateError: Feature is not accepting votes.
        """
        log = logger.bind(feature_id=str(feature_id), user_id=user_id)

        # Step 1: Rate limit gate, allowance taken atomically
        if self._rate_limiter is not None:
            decision = await self._rate_limiter.acquire(user_id)
            if not decision.allowed:
                log.warning("vote_rate_limited", limit=decision.limit)
                raise RateLimitExceededError(
                    user_id=user_id,
                    action="vote",
                    limit=decision.limit,
                    retry_after_seconds=decision.retry_after_seconds,
                )

        # Step 2: Toggle in the ledger (raises NotFound / InvalidState)
        try:
            toggle = await self._vote_ledger.toggle_vote(user_id, feature_id)
        except Exception:
            # Failed votes do not count against the gate
            if self._rate_limiter is not None:
                await self._rate_limiter.release(user_id)
            raise
        log.info(
            "vote_toggled",
            action=toggle.action.value,
            vote_count=toggle.vote_count,
        )

        # Step 3: Metrics
        if self._metrics is not None:
            self._metrics.record_vote(toggle.action.value)

        # Step 4: Broadcast the delta
        if self._broadcaster is not None:
            self._broadcaster.publish(
                LiveEvent.vote_changed(feature_id, toggle.action, toggle.vote_count)
            )

        # Step 5: Threshold evaluation; the vote stands whatever happens here
        evaluation: ThresholdEvaluation | None = None
        try:
            evaluation = await self._threshold_trigger.evaluate(
                feature_id=feature_id,
                vote_count=toggle.vote_count,
                triggered_by=user_id,
            )
        except Exception as e:
            log.exception(
                "threshold_evaluation_failed",
                operation="threshold_evaluation",
                error_type=type(e).__name__,
            )

        if evaluation is None or not evaluation.implementing:
            return VoteOutcome(
                feature_id=feature_id,
                user_id=user_id,
                action=toggle.action,
                has_voted=toggle.has_voted,
                vote_total=toggle.vote_count,
            )

        snapshot = (
            evaluation.feature.vote_snapshot
            if evaluation.feature is not None
            and evaluation.feature.vote_snapshot is not None
            else toggle.vote_count
        )

        if evaluation.claimed:
            message = (
                evaluation.dispatch.message
                if evaluation.dispatch is not None
                else "Feature is now being implemented."
            )
            log.info(
                "vote_triggered_implementation",
                vote_snapshot=snapshot,
                dispatched=evaluation.dispatched,
            )
        else:
            message = "Feature is already being implemented."
            log.info("vote_counted_toward_concurrent_claim", vote_snapshot=snapshot)

        # Votes were cleared by the claim, so nobody holds a live vote now
        return VoteOutcome(
            feature_id=feature_id,
            user_id=user_id,
            action=toggle.action,
            has_voted=False,
            vote_total=snapshot,
            implementing=True,
            dispatched=evaluation.dispatched,
            message=message,
        )
