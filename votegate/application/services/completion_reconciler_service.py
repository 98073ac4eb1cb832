"""Completion reconciler service.

Applies asynchronous completion notifications from the implementation
agent to feature state. Notifications may be late, duplicated, out of
order, or refer to features that have moved on; every case resolves to a
well-defined outcome and none raises to the sender.

Outcome table (current status x reported outcome):
    not found                 -> NOT_FOUND
    IMPLEMENTED               -> ALREADY_IMPLEMENTED (no-op)
    IMPLEMENTING + success    -> IMPLEMENTED (snapshot kept)
    IMPLEMENTING + failure    -> REVERTED to PENDING (votes not restored)
    PENDING                   -> STALE_IGNORED

Feature identification:
    The explicit feature_id always wins. Without one, a free-text fallback
    looks for an explicit "feature: <uuid>" marker when enabled. Fallback
    matches are logged as low-confidence. Bare numbers never match.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from structlog import get_logger

from votegate.domain.errors.concurrent_modification import ConcurrentTransitionError
from votegate.domain.events.live_event import LiveEvent
from votegate.domain.models.completion_notification import (
    CompletionNotification,
    CompletionOutcome,
)
from votegate.domain.models.feature import Feature, FeatureStatus

if TYPE_CHECKING:
    from votegate.application.ports.feature_repository import (
        FeatureRepositoryProtocol,
    )
    from votegate.application.ports.live_broadcaster import LiveBroadcasterProtocol
    from votegate.application.ports.pipeline_metrics import PipelineMetricsProtocol

logger = get_logger(__name__)

# "feature: <uuid>", "feature_id=<uuid>", "Feature #<uuid>", "feature-<uuid>"
FEATURE_REFERENCE_PATTERN = re.compile(
    r"\bfeature(?:[\s_-]?id)?[\s:#=_-]*"
    r"([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})\b",
    re.IGNORECASE,
)

# Re-read attempts after losing a CAS to a concurrent duplicate
_MAX_RECONCILE_ATTEMPTS = 3


class ReconciliationOutcome(Enum):
    """What a notification did to the feature."""

    IMPLEMENTED = "implemented"
    REVERTED = "reverted"
    ALREADY_IMPLEMENTED = "already_implemented"
    STALE_IGNORED = "stale_ignored"
    NOT_FOUND = "not_found"
    UNIDENTIFIED = "unidentified"
    ERROR = "error"

    @property
    def changed_state(self) -> bool:
        return self in (ReconciliationOutcome.IMPLEMENTED, ReconciliationOutcome.REVERTED)


@dataclass(frozen=True)
class ReconciliationResult:
    """Result of reconciling one notification.

    Attributes:
        outcome: What happened.
        feature_id: Identified feature, if any.
        identified_by: "explicit", "text", or None if unidentified.
        feature: Feature after reconciliation, if found.
    """

    outcome: ReconciliationOutcome
    feature_id: UUID | None = None
    identified_by: str | None = None
    feature: Feature | None = None


def extract_feature_reference(text: str | None) -> UUID | None:
    """Find an explicit feature marker in free text.

    Args:
        text: Commit message, run title or similar.

    Returns:
        The referenced feature id, or None.
    """
    if not text:
        return None
    match = FEATURE_REFERENCE_PATTERN.search(text)
    if match is None:
        return None
    return UUID(match.group(1))


class CompletionReconcilerService:
    """Service applying completion notifications idempotently.

    Example:
        >>> result = await reconciler.reconcile(
        ...     CompletionNotification(
        ...         outcome=CompletionOutcome.SUCCESS,
        ...         feature_id=feature_id,
        ...     )
        ... )
        >>> result.outcome
        <ReconciliationOutcome.IMPLEMENTED: 'implemented'>
    """

    def __init__(
        self,
        feature_repo: FeatureRepositoryProtocol,
        broadcaster: LiveBroadcasterProtocol | None = None,
        metrics: PipelineMetricsProtocol | None = None,
        text_fallback_enabled: bool = True,
    ) -> None:
        """Initialize the reconciler.

        Args:
            feature_repo: Repository providing the status CAS.
            broadcaster: Optional live fan-out.
            metrics: Optional pipeline metrics sink.
            text_fallback_enabled: Allow free-text identification when no
                explicit feature id is supplied.
        """
        self._feature_repo = feature_repo
        self._broadcaster = broadcaster
        self._metrics = metrics
        self._text_fallback_enabled = text_fallback_enabled

    def identify(
        self, notification: CompletionNotification
    ) -> tuple[UUID | None, str | None]:
        """Resolve which feature a notification refers to.

        Returns:
            (feature_id, identified_by) or (None, None).
        """
        if notification.feature_id is not None:
            return notification.feature_id, "explicit"
        if not self._text_fallback_enabled:
            return None, None
        feature_id = extract_feature_reference(notification.text)
        if feature_id is None:
            return None, None
        return feature_id, "text"

    async def reconcile(
        self, notification: CompletionNotification
    ) -> ReconciliationResult:
        """Apply one notification.

        Args:
            notification: The inbound completion report.

        Returns:
            ReconciliationResult. Never raises for business outcomes.
        """
        feature_id, identified_by = self.identify(notification)
        log = logger.bind(
            feature_id=str(feature_id) if feature_id else None,
            outcome=notification.outcome.value,
            external_ref=notification.external_ref,
            source=notification.source,
            identified_by=identified_by,
        )

        if feature_id is None:
            log.warning(
                "completion_notification_unidentified",
                fallback_enabled=self._text_fallback_enabled,
            )
            return self._finish(ReconciliationResult(ReconciliationOutcome.UNIDENTIFIED))

        if identified_by == "text":
            log.warning("completion_notification_identified_from_text_low_confidence")

        target = (
            FeatureStatus.IMPLEMENTED
            if notification.outcome is CompletionOutcome.SUCCESS
            else FeatureStatus.PENDING
        )

        for _ in range(_MAX_RECONCILE_ATTEMPTS):
            feature = await self._feature_repo.get(feature_id)

            if feature is None:
                log.warning("completion_feature_not_found")
                return self._finish(
                    ReconciliationResult(
                        ReconciliationOutcome.NOT_FOUND,
                        feature_id=feature_id,
                        identified_by=identified_by,
                    )
                )

            if feature.status is FeatureStatus.IMPLEMENTED:
                log.info("completion_duplicate_ignored")
                return self._finish(
                    ReconciliationResult(
                        ReconciliationOutcome.ALREADY_IMPLEMENTED,
                        feature_id=feature_id,
                        identified_by=identified_by,
                        feature=feature,
                    )
                )

            if feature.status is FeatureStatus.PENDING:
                log.warning("completion_stale_notification_ignored")
                return self._finish(
                    ReconciliationResult(
                        ReconciliationOutcome.STALE_IGNORED,
                        feature_id=feature_id,
                        identified_by=identified_by,
                        feature=feature,
                    )
                )

            try:
                updated = await self._feature_repo.transition_status_cas(
                    feature_id=feature_id,
                    expected_status=FeatureStatus.IMPLEMENTING,
                    new_status=target,
                    external_ref=notification.external_ref,
                )
            except ConcurrentTransitionError:
                # A concurrent duplicate got there first; re-read and classify
                log.info("completion_cas_lost_rereading")
                continue

            if target is FeatureStatus.IMPLEMENTED:
                log.info(
                    "feature_implemented",
                    vote_snapshot=updated.vote_snapshot,
                    implemented_at=(
                        updated.implemented_at.isoformat()
                        if updated.implemented_at
                        else None
                    ),
                )
                self._publish(LiveEvent.implementation_reconciled(updated, "implemented"))
                outcome = ReconciliationOutcome.IMPLEMENTED
            else:
                log.warning("feature_implementation_failed_reverted_to_pending")
                self._publish(LiveEvent.implementation_reconciled(updated, "failed"))
                outcome = ReconciliationOutcome.REVERTED

            return self._finish(
                ReconciliationResult(
                    outcome,
                    feature_id=feature_id,
                    identified_by=identified_by,
                    feature=updated,
                )
            )

        log.error("completion_reconcile_contended")
        return self._finish(
            ReconciliationResult(
                ReconciliationOutcome.ERROR,
                feature_id=feature_id,
                identified_by=identified_by,
            )
        )

    async def reconcile_many(
        self, notifications: list[CompletionNotification]
    ) -> list[ReconciliationResult]:
        """Apply a batch of notifications independently.

        A failure on one notification is logged and reported as ERROR
        without affecting the others.
        """
        results: list[ReconciliationResult] = []
        for notification in notifications:
            try:
                results.append(await self.reconcile(notification))
            except Exception as e:
                logger.exception(
                    "completion_reconcile_failed",
                    feature_id=(
                        str(notification.feature_id) if notification.feature_id else None
                    ),
                    operation="reconcile",
                    error_type=type(e).__name__,
                )
                results.append(
                    self._finish(
                        ReconciliationResult(
                            ReconciliationOutcome.ERROR,
                            feature_id=notification.feature_id,
                        )
                    )
                )
        return results

    def _finish(self, result: ReconciliationResult) -> ReconciliationResult:
        if self._metrics is not None:
            self._metrics.record_reconciliation(result.outcome.value)
        return result

    def _publish(self, event: LiveEvent) -> None:
        if self._broadcaster is not None:
            self._broadcaster.publish(event)
