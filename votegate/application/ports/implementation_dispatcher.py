"""Implementation dispatcher port.

The dispatcher hands a claimed feature to the external implementation
agent. It is called once per won claim, after the claim has committed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID


@dataclass(frozen=True)
class DispatchResult:
    """Result of a successful dispatch.

    Attributes:
        success: Always True for a returned result; failures raise.
        message: Human-readable summary.
        external_ref: Reference returned by the remote, if any.
    """

    success: bool
    message: str
    external_ref: str | None = None


class ImplementationDispatcherProtocol(Protocol):
    """Protocol for invoking the implementation agent."""

    async def dispatch(
        self,
        feature_id: UUID,
        title: str,
        description: str,
    ) -> DispatchResult:
        """Trigger implementation of a feature.

        Implementations must bound the call with a timeout.

        Args:
            feature_id: Feature to implement.
            title: Feature title.
            description: Feature description.

        Returns:
            DispatchResult on success.

        Raises:
            DispatchConfigurationError: Required credentials or endpoint absent.
            DispatchRemoteError: Remote rejected the call, failed, or timed out.
        """
        ...
