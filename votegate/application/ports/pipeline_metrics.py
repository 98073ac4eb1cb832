"""Pipeline metrics port.

Services record pipeline outcomes through this port so the application
layer does not depend on the metrics backend.
"""

from __future__ import annotations

from typing import Protocol


class PipelineMetricsProtocol(Protocol):
    """Protocol for recording pipeline counters."""

    def record_vote(self, action: str) -> None:
        """Count a vote toggle ("added" or "removed")."""
        ...

    def record_claim(self, result: str) -> None:
        """Count a claim attempt ("won", "lost" or "below_threshold")."""
        ...

    def record_dispatch(self, outcome: str) -> None:
        """Count a dispatch ("success", "configuration_error", "remote_error")."""
        ...

    def record_reconciliation(self, outcome: str) -> None:
        """Count a reconciliation by its outcome value."""
        ...

    def set_live_observers(self, count: int) -> None:
        """Report the number of connected observers."""
        ...
