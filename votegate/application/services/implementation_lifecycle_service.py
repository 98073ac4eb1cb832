"""Implementation lifecycle service.

Owns every status transition of a feature request outside the reconciler:
the implementation claim (PENDING -> IMPLEMENTING), the dispatch that
follows a won claim, and the operator force-complete. Both the
vote-triggered and operator-triggered paths claim through this service,
so the claim logic exists once.

Developer Golden Rules:
1. CAS ONLY - a claim is the conditional update PENDING -> IMPLEMENTING;
   losing it is a normal outcome, not an error
2. COMMIT, THEN DISPATCH - the claim commits before the external call
3. NO ROLLBACK - a failed dispatch leaves the feature IMPLEMENTING and is
   reported as a partial success
4. ONE DISPATCH PER WON CLAIM - losers never dispatch
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from structlog import get_logger

from votegate.domain.errors.concurrent_modification import (
    ConcurrentTransitionError,
    VoteThresholdNotMetError,
)
from votegate.domain.errors.dispatch import (
    DispatchConfigurationError,
    DispatchRemoteError,
)
from votegate.domain.errors.feature import (
    FeatureNotFoundError,
    InvalidFeatureStateError,
)
from votegate.domain.events.live_event import LiveEvent
from votegate.domain.models.feature import Feature, FeatureStatus

if TYPE_CHECKING:
    from votegate.application.ports.feature_repository import (
        FeatureRepositoryProtocol,
    )
    from votegate.application.ports.implementation_dispatcher import (
        ImplementationDispatcherProtocol,
    )
    from votegate.application.ports.live_broadcaster import LiveBroadcasterProtocol
    from votegate.application.ports.pipeline_metrics import PipelineMetricsProtocol

logger = get_logger(__name__)

# Re-read attempts when a force-complete races another writer
_MAX_FORCE_COMPLETE_ATTEMPTS = 3


@dataclass(frozen=True)
class ClaimResult:
    """Result of an implementation claim attempt.

    Attributes:
        feature_id: Feature that was claimed.
        claimed: True if this caller won the CAS.
        feature: The feature after the attempt (fresh read when lost).
        threshold_met: False when the live count inside the claim was below
            the required minimum.
    """

    feature_id: UUID
    claimed: bool
    feature: Feature | None
    threshold_met: bool = True

    @property
    def implementing(self) -> bool:
        """Whether the feature has left voting, by this claim or another."""
        return (
            self.feature is not None
            and self.feature.status is not FeatureStatus.PENDING
        )

    @property
    def vote_snapshot(self) -> int | None:
        return self.feature.vote_snapshot if self.feature else None


@dataclass(frozen=True)
class DispatchOutcome:
    """What happened when the implementation agent was invoked.

    Attributes:
        dispatched: True if the external trigger was accepted.
        message: Human-readable summary for the caller.
        error_code: Stable error code when dispatched is False.
    """

    dispatched: bool
    message: str
    error_code: str | None = None


@dataclass(frozen=True)
class ImplementationTriggerResult:
    """Combined result of claim followed by dispatch.

    Attributes:
        claim: The claim attempt.
        dispatch: The dispatch outcome, None when the claim was lost.
    """

    claim: ClaimResult
    dispatch: DispatchOutcome | None = None

    @property
    def claimed(self) -> bool:
        return self.claim.claimed

    @property
    def dispatched(self) -> bool | None:
        return self.dispatch.dispatched if self.dispatch else None


@dataclass(frozen=True)
class ForceCompleteResult:
    """Result of an operator force-complete.

    Attributes:
        feature: The feature in its final state.
        already_implemented: True if nothing changed (idempotent no-op).
        previous_status: Status before the transition.
    """

    feature: Feature
    already_implemented: bool
    previous_status: FeatureStatus


class ImplementationLifecycleService:
    """Service owning the claim, dispatch and force-complete transitions.

    Example:
        >>> lifecycle = ImplementationLifecycleService(
        ...     feature_repo=store,
        ...     dispatcher=dispatcher,
        ... )
        >>> result = await lifecycle.trigger_implementation(feature_id)
        >>> result.claimed
        True
    """

    def __init__(
        self,
        feature_repo: FeatureRepositoryProtocol,
        dispatcher: ImplementationDispatcherProtocol,
        broadcaster: LiveBroadcasterProtocol | None = None,
        metrics: PipelineMetricsProtocol | None = None,
    ) -> None:
        """Initialize the lifecycle service.

        Args:
            feature_repo: Repository providing the status CAS.
            dispatcher: External implementation trigger.
            broadcaster: Optional live fan-out for state changes.
            metrics: Optional pipeline metrics sink.
        """
        self._feature_repo = feature_repo
        self._dispatcher = dispatcher
        self._broadcaster = broadcaster
        self._metrics = metrics

    async def claim_implementation(
        self,
        feature_id: UUID,
        triggered_by: str | None = None,
        trigger: str = "threshold",
        min_votes: int | None = None,
    ) -> ClaimResult:
        """Attempt the PENDING -> IMPLEMENTING transition.

        The winning caller freezes the live vote count and clears the vote
        rows in the same store transaction.

        Args:
            feature_id: Feature to claim.
            triggered_by: Identity whose action triggered the claim.
            trigger: "threshold" or "operator".
            min_votes: Live votes the claim requires; None claims regardless
                of count.

        Returns:
            ClaimResult; claimed=False means another caller won, the
            feature already left PENDING, or the live count fell below
            min_votes.

        Raises:
            FeatureNotFoundError: Feature does not exist.
        """
        log = logger.bind(
            feature_id=str(feature_id),
            triggered_by=triggered_by,
            trigger=trigger,
        )

        try:
            feature = await self._feature_repo.transition_status_cas(
                feature_id=feature_id,
                expected_status=FeatureStatus.PENDING,
                new_status=FeatureStatus.IMPLEMENTING,
                min_votes=min_votes,
            )
        except ConcurrentTransitionError:
            current = await self._feature_repo.get(feature_id)
            log.info(
                "implementation_claim_lost",
                current_status=current.status.value if current else None,
            )
            self._record_claim("lost")
            return ClaimResult(feature_id=feature_id, claimed=False, feature=current)
        except VoteThresholdNotMetError as e:
            current = await self._feature_repo.get(feature_id)
            log.info(
                "implementation_claim_below_threshold",
                vote_count=e.vote_count,
                min_votes=e.min_votes,
            )
            self._record_claim("below_threshold")
            return ClaimResult(
                feature_id=feature_id,
                claimed=False,
                feature=current,
                threshold_met=False,
            )

        log.info(
            "implementation_claimed",
            vote_snapshot=feature.vote_snapshot,
            started_at=(
                feature.implementation_started_at.isoformat()
                if feature.implementation_started_at
                else None
            ),
        )
        self._record_claim("won")
        self._publish(LiveEvent.implementation_started(feature))
        return ClaimResult(feature_id=feature_id, claimed=True, feature=feature)

    async def dispatch_implementation(self, feature: Feature) -> DispatchOutcome:
        """Invoke the implementation agent for a claimed feature.

        Every failure is captured and returned; the feature stays
        IMPLEMENTING until reconciled or force-completed.

        Args:
            feature: The feature as returned by a won claim.

        Returns:
            DispatchOutcome describing the result.
        """
        log = logger.bind(feature_id=str(feature.id), operation="dispatch")

        try:
            result = await self._dispatcher.dispatch(
                feature_id=feature.id,
                title=feature.title,
                description=feature.description,
            )
        except DispatchConfigurationError as e:
            log.error(
                "implementation_dispatch_not_configured",
                missing=list(e.missing),
            )
            return self._dispatch_failed(
                feature, e.error_code, "configuration_error"
            )
        except DispatchRemoteError as e:
            log.error(
                "implementation_dispatch_failed",
                status_code=e.status_code,
                reason=e.reason,
            )
            return self._dispatch_failed(feature, e.error_code, "remote_error")
        except Exception as e:
            # The claim has committed; an unknown dispatcher fault is still a
            # remote failure from the caller's point of view
            log.exception(
                "implementation_dispatch_error",
                error_type=type(e).__name__,
            )
            return self._dispatch_failed(
                feature, DispatchRemoteError.error_code, "remote_error"
            )

        log.info("implementation_dispatched", message=result.message)
        if self._metrics is not None:
            self._metrics.record_dispatch("success")
        return DispatchOutcome(
            dispatched=True,
            message=(
                f'Feature "{feature.title}" reached {feature.vote_snapshot or 0} '
                "votes and is now being implemented."
            ),
        )

    async def trigger_implementation(
        self,
        feature_id: UUID,
        triggered_by: str | None = None,
        trigger: str = "threshold",
        min_votes: int | None = None,
    ) -> ImplementationTriggerResult:
        """Claim the feature and, if the claim is won, dispatch it.

        Args:
            feature_id: Feature to implement.
            triggered_by: Identity whose action triggered the claim.
            trigger: "threshold" or "operator".
            min_votes: Live votes the claim requires.

        Returns:
            ImplementationTriggerResult with claim and dispatch outcomes.
        """
        claim = await self.claim_implementation(
            feature_id=feature_id,
            triggered_by=triggered_by,
            trigger=trigger,
            min_votes=min_votes,
        )
        if not claim.claimed or claim.feature is None:
            return ImplementationTriggerResult(claim=claim)

        dispatch = await self.dispatch_implementation(claim.feature)
        return ImplementationTriggerResult(claim=claim, dispatch=dispatch)

    async def trigger_manual_implementation(
        self,
        feature_id: UUID,
        operator_id: str,
    ) -> ImplementationTriggerResult:
        """Operator-initiated claim and dispatch, regardless of vote count.

        Args:
            feature_id: Feature to implement.
            operator_id: Operator identity for the audit log.

        Returns:
            ImplementationTriggerResult; claimed=False if the feature was
            already IMPLEMENTING.

        Raises:
            FeatureNotFoundError: Feature does not exist.
            InvalidFeatureStateError: Feature is already IMPLEMENTED.
        """
        feature = await self._feature_repo.get(feature_id)
        if feature is None:
            raise FeatureNotFoundError(feature_id)
        if feature.status is FeatureStatus.IMPLEMENTED:
            raise InvalidFeatureStateError(
                feature_id=feature_id,
                current_status=feature.status,
                operation="implement",
            )

        logger.info(
            "manual_implementation_requested",
            feature_id=str(feature_id),
            operator_id=operator_id,
            current_status=feature.status.value,
        )
        return await self.trigger_implementation(
            feature_id=feature_id,
            triggered_by=operator_id,
            trigger="operator",
        )

    async def force_complete(
        self,
        feature_id: UUID,
        operator_id: str,
        external_ref: str | None = None,
    ) -> ForceCompleteResult:
        """Move a feature straight to IMPLEMENTED (operational correction).

        Idempotent: an IMPLEMENTED feature is returned unchanged. A PENDING
        feature has its live votes frozen and cleared, as in a claim.

        Args:
            feature_id: Feature to complete.
            operator_id: Operator identity for the audit log.
            external_ref: Optional reference to record.

        Returns:
            ForceCompleteResult.

        Raises:
            FeatureNotFoundError: Feature does not exist.
        """
        log = logger.bind(
            feature_id=str(feature_id),
            operator_id=operator_id,
            operation="force_complete",
        )

        for _ in range(_MAX_FORCE_COMPLETE_ATTEMPTS):
            feature = await self._feature_repo.get(feature_id)
            if feature is None:
                log.warning("force_complete_feature_not_found")
                raise FeatureNotFoundError(feature_id)

            # Idempotence check shared with reconciliation
            if feature.status is FeatureStatus.IMPLEMENTED:
                log.info("force_complete_already_implemented")
                return ForceCompleteResult(
                    feature=feature,
                    already_implemented=True,
                    previous_status=feature.status,
                )

            try:
                updated = await self._feature_repo.transition_status_cas(
                    feature_id=feature_id,
                    expected_status=feature.status,
                    new_status=FeatureStatus.IMPLEMENTED,
                    external_ref=external_ref,
                    privileged=True,
                )
            except ConcurrentTransitionError:
                log.info("force_complete_retrying_after_concurrent_change")
                continue

            log.info(
                "feature_force_completed",
                previous_status=feature.status.value,
                vote_snapshot=updated.vote_snapshot,
            )
            self._publish(LiveEvent.implementation_reconciled(updated, "implemented"))
            return ForceCompleteResult(
                feature=updated,
                already_implemented=False,
                previous_status=feature.status,
            )

        # Lost every race; report whatever the final state is
        feature = await self._feature_repo.get(feature_id)
        if feature is None:
            raise FeatureNotFoundError(feature_id)
        log.warning("force_complete_contended", current_status=feature.status.value)
        return ForceCompleteResult(
            feature=feature,
            already_implemented=feature.status is FeatureStatus.IMPLEMENTED,
            previous_status=feature.status,
        )

    def _dispatch_failed(
        self, feature: Feature, error_code: str, metric_outcome: str
    ) -> DispatchOutcome:
        if self._metrics is not None:
            self._metrics.record_dispatch(metric_outcome)
        message = (
            f'Feature "{feature.title}" is marked as implementing, but the '
            "implementation agent could not be started. An operator has to "
            "retry or resolve it."
        )
        self._publish(LiveEvent.dispatch_failed(feature.id, message))
        return DispatchOutcome(dispatched=False, message=message, error_code=error_code)

    def _record_claim(self, result: str) -> None:
        if self._metrics is not None:
            self._metrics.record_claim(result)

    def _publish(self, event: LiveEvent) -> None:
        if self._broadcaster is not None:
            self._broadcaster.publish(event)
