"""Threshold trigger service.

Evaluates, after every successful vote mutation, whether a feature has
reached the implementation threshold and if so hands it to the lifecycle
service's claim. Concurrent voters that all observe a crossing count race
on the claim's CAS; exactly one wins and dispatches. The claim re-counts
the live votes under the same lock, so a stale count never claims.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from structlog import get_logger

if TYPE_CHECKING:
    from votegate.application.services.implementation_lifecycle_service import (
        DispatchOutcome,
        ImplementationLifecycleService,
    )
    from votegate.domain.models.feature import Feature

logger = get_logger(__name__)

DEFAULT_IMPLEMENTATION_THRESHOLD = 5


@dataclass(frozen=True)
class ThresholdEvaluation:
    """Outcome of a threshold evaluation.

    Attributes:
        feature_id: Feature evaluated.
        vote_count: Live count the evaluation acted on.
        threshold: Threshold in force.
        crossed: True if the live count still met the threshold when the
            claim ran. A withdrawal committed after vote_count was read
            leaves this False.
        claimed: True if this evaluation won the claim.
        implementing: True if the feature is implementing after evaluation.
        feature: Feature after the claim attempt, when one was made.
        dispatch: Dispatch outcome when this evaluation won the claim.
    """

    feature_id: UUID
    vote_count: int
    threshold: int
    crossed: bool = False
    claimed: bool = False
    implementing: bool = False
    feature: Feature | None = None
    dispatch: DispatchOutcome | None = None

    @property
    def dispatched(self) -> bool | None:
        return self.dispatch.dispatched if self.dispatch else None


class ThresholdTriggerService:
    """Service deciding when a vote count triggers implementation."""

    def __init__(
        self,
        lifecycle: ImplementationLifecycleService,
        threshold: int = DEFAULT_IMPLEMENTATION_THRESHOLD,
    ) -> None:
        """Initialize the threshold trigger.

        Args:
            lifecycle: Service performing the claim and dispatch.
            threshold: Live vote count that triggers implementation.
        """
        if threshold < 1:
            raise ValueError(f"threshold must be positive, got {threshold}")
        self._lifecycle = lifecycle
        self._threshold = threshold

    @property
    def threshold(self) -> int:
        return self._threshold

    async def evaluate(
        self,
        feature_id: UUID,
        vote_count: int,
        triggered_by: str | None = None,
    ) -> ThresholdEvaluation:
        """Evaluate a post-mutation vote count.

        Args:
            feature_id: Feature whose vote changed.
            vote_count: Live count returned by the vote ledger.
            triggered_by: Voter whose mutation produced the count.

        Returns:
            ThresholdEvaluation describing what happened.
        """
        if vote_count < self._threshold:
            return ThresholdEvaluation(
                feature_id=feature_id,
                vote_count=vote_count,
                threshold=self._threshold,
            )

        logger.info(
            "implementation_threshold_reached",
            feature_id=str(feature_id),
            vote_count=vote_count,
            threshold=self._threshold,
            triggered_by=triggered_by,
        )

        result = await self._lifecycle.trigger_implementation(
            feature_id=feature_id,
            triggered_by=triggered_by,
            trigger="threshold",
            min_votes=self._threshold,
        )
        return ThresholdEvaluation(
            feature_id=feature_id,
            vote_count=vote_count,
            threshold=self._threshold,
            crossed=result.claim.threshold_met,
            claimed=result.claimed,
            implementing=result.claim.implementing,
            feature=result.claim.feature,
            dispatch=result.dispatch,
        )
