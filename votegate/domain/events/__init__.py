"""Domain events for Votegate."""

from votegate.domain.events.live_event import (
    LIVE_EVENT_SCHEMA_VERSION,
    LiveEvent,
    LiveEventType,
)

__all__ = ["LIVE_EVENT_SCHEMA_VERSION", "LiveEvent", "LiveEventType"]
