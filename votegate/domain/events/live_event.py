"""Live broadcast event payloads.

Events pushed to connected observers whenever the board changes. Observers
are read-only consumers: nothing here is authoritative, clients that need
the truth re-fetch the board.

Usage:
    event = LiveEvent.vote_changed(feature_id, VoteAction.ADDED, vote_total=3)
    broadcaster.publish(event)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from votegate.domain.models.feature import Feature, VoteAction

# Schema version carried by every live event
LIVE_EVENT_SCHEMA_VERSION: int = 1


class LiveEventType(Enum):
    """Kinds of events pushed to observers."""

    FEATURE_SUBMITTED = "feature_submitted"
    VOTE_CHANGED = "vote_changed"
    IMPLEMENTATION_STARTED = "implementation_started"
    IMPLEMENTATION_RECONCILED = "implementation_reconciled"
    IMPLEMENTATION_DISPATCH_FAILED = "implementation_dispatch_failed"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True, eq=True)
class LiveEvent:
    """A single board change pushed to observers.

    Attributes:
        type: Kind of event.
        feature_id: Feature the event concerns.
        data: Event-specific payload (JSON-serializable values only).
        event_id: Unique identifier of this event.
        occurred_at: When the change happened (UTC).
        schema_version: Payload schema version.
    """

    type: LiveEventType
    feature_id: UUID
    data: dict[str, Any] = field(default_factory=dict)
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utc_now)
    schema_version: int = LIVE_EVENT_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dict.

        Use this, not asdict(): UUID and datetime values need string forms.
        """
        return {
            "type": self.type.value,
            "event_id": str(self.event_id),
            "feature_id": str(self.feature_id),
            "occurred_at": self.occurred_at.isoformat(),
            "schema_version": self.schema_version,
            "data": dict(self.data),
        }

    def to_json(self) -> str:
        """Serialize to a JSON string for the wire."""
        return json.dumps(self.to_dict())

    @classmethod
    def feature_submitted(cls, feature: Feature, vote_total: int) -> LiveEvent:
        return cls(
            type=LiveEventType.FEATURE_SUBMITTED,
            feature_id=feature.id,
            data={
                "title": feature.title,
                "description": feature.description,
                "creator_id": feature.creator_id,
                "parent_id": str(feature.parent_id) if feature.parent_id else None,
                "vote_total": vote_total,
            },
        )

    @classmethod
    def vote_changed(
        cls, feature_id: UUID, action: VoteAction, vote_total: int
    ) -> LiveEvent:
        return cls(
            type=LiveEventType.VOTE_CHANGED,
            feature_id=feature_id,
            data={"action": action.value, "vote_total": vote_total},
        )

    @classmethod
    def implementation_started(cls, feature: Feature) -> LiveEvent:
        return cls(
            type=LiveEventType.IMPLEMENTATION_STARTED,
            feature_id=feature.id,
            data={
                "title": feature.title,
                "vote_total": feature.vote_snapshot or 0,
                "started_at": (
                    feature.implementation_started_at.isoformat()
                    if feature.implementation_started_at
                    else None
                ),
            },
        )

    @classmethod
    def implementation_reconciled(
        cls, feature: Feature, result: str
    ) -> LiveEvent:
        """Create a reconciliation event.

        Args:
            feature: Feature after the transition.
            result: "implemented" or "failed".
        """
        return cls(
            type=LiveEventType.IMPLEMENTATION_RECONCILED,
            feature_id=feature.id,
            data={
                "result": result,
                "status": feature.status.value,
                "vote_total": feature.vote_snapshot or 0,
                "external_ref": feature.external_ref,
            },
        )

    @classmethod
    def dispatch_failed(cls, feature_id: UUID, message: str) -> LiveEvent:
        return cls(
            type=LiveEventType.IMPLEMENTATION_DISPATCH_FAILED,
            feature_id=feature_id,
            data={"message": message},
        )
