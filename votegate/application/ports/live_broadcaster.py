"""Live broadcaster port.

Producers publish board changes without knowing who is listening. A
publish must never block and never raise because of an observer.
"""

from __future__ import annotations

from typing import Protocol

from votegate.domain.events.live_event import LiveEvent


class LiveBroadcasterProtocol(Protocol):
    """Protocol for publishing live events."""

    def publish(self, event: LiveEvent) -> int:
        """Offer an event to every connected observer.

        Args:
            event: The event to broadcast.

        Returns:
            Number of observers the event was offered to.
        """
        ...
