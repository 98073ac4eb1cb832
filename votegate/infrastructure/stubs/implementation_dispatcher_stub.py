"""Implementation dispatcher stub for testing.

Records every dispatch call and can be configured to fail the way the real
GitHub dispatcher fails.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from uuid import UUID

from votegate.application.ports.implementation_dispatcher import (
    DispatchResult,
    ImplementationDispatcherProtocol,
)
from votegate.domain.errors.dispatch import (
    DispatchConfigurationError,
    DispatchRemoteError,
)


@dataclass(frozen=True)
class DispatchCall:
    """A recorded dispatch invocation."""

    feature_id: UUID
    title: str
    description: str


class ImplementationDispatcherStub(ImplementationDispatcherProtocol):
    """Configurable stub implementation of ImplementationDispatcherProtocol.

    Modes:
        succeeding(): every dispatch succeeds (default)
        unconfigured(): every dispatch raises DispatchConfigurationError
        failing(): every dispatch raises DispatchRemoteError

    Attributes:
        calls: Recorded dispatch calls in invocation order.
    """

    def __init__(
        self,
        error: str | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        """Initialize the stub.

        Args:
            error: None, "configuration" or "remote".
            delay_seconds: Artificial latency before answering.
        """
        self._error = error
        self._delay_seconds = delay_seconds
        self.calls: list[DispatchCall] = []

    async def dispatch(
        self,
        feature_id: UUID,
        title: str,
        description: str,
    ) -> DispatchResult:
        self.calls.append(
            DispatchCall(feature_id=feature_id, title=title, description=description)
        )
        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)

        if self._error == "configuration":
            raise DispatchConfigurationError(missing=("GITHUB_TOKEN",))
        if self._error == "remote":
            raise DispatchRemoteError(
                feature_id=feature_id,
                reason="Remote rejected workflow dispatch",
                status_code=502,
            )

        return DispatchResult(
            success=True,
            message=f"Implementation dispatched for feature {feature_id}",
        )

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def calls_for(self, feature_id: UUID) -> list[DispatchCall]:
        """Get calls made for a specific feature (test helper)."""
        return [c for c in self.calls if c.feature_id == feature_id]

    @classmethod
    def succeeding(cls) -> ImplementationDispatcherStub:
        return cls()

    @classmethod
    def unconfigured(cls) -> ImplementationDispatcherStub:
        return cls(error="configuration")

    @classmethod
    def failing(cls) -> ImplementationDispatcherStub:
        return cls(error="remote")
