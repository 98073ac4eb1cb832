"""Completion notification domain model.

A completion notification is the implementation agent's report on a
previously dispatched feature. Notifications arrive out of band, possibly
late, duplicated or for a feature that has since moved on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID


class CompletionOutcome(Enum):
    """Outcome reported by the implementation agent."""

    SUCCESS = "success"
    FAILURE = "failure"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CompletionNotification:
    """An inbound completion report.

    Attributes:
        outcome: Whether the implementation succeeded.
        feature_id: Explicit feature identifier, when the sender supplies one.
        external_ref: Sender-side reference (e.g. workflow run URL).
        text: Free text accompanying the report (commit message, run title).
            Only consulted when feature_id is absent.
        source: Name of the channel the notification arrived on.
        received_at: When the notification was received (UTC).
    """

    outcome: CompletionOutcome
    feature_id: UUID | None = None
    external_ref: str | None = None
    text: str | None = None
    source: str = "webhook"
    received_at: datetime = field(default_factory=_utc_now)
