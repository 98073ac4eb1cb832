"""Shared fixtures for application service tests."""

import pytest

from votegate.application.services.implementation_lifecycle_service import (
    ImplementationLifecycleService,
)
from votegate.application.services.threshold_trigger_service import (
    ThresholdTriggerService,
)
from votegate.infrastructure.stubs import (
    FeatureStoreStub,
    ImplementationDispatcherStub,
)


class RecordingBroadcaster:
    """Collects published events."""

    def __init__(self) -> None:
        self.events = []

    def publish(self, event) -> int:
        self.events.append(event)
        return 0

    def types(self) -> list[str]:
        return [e.type.value for e in self.events]


class RecordingMetrics:
    """Collects metric calls as (name, label) tuples."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def record_vote(self, action: str) -> None:
        self.calls.append(("vote", action))

    def record_claim(self, result: str) -> None:
        self.calls.append(("claim", result))

    def record_dispatch(self, outcome: str) -> None:
        self.calls.append(("dispatch", outcome))

    def record_reconciliation(self, outcome: str) -> None:
        self.calls.append(("reconciliation", outcome))

    def set_live_observers(self, count: int) -> None:
        self.calls.append(("observers", count))


@pytest.fixture
def store() -> FeatureStoreStub:
    return FeatureStoreStub()


@pytest.fixture
def dispatcher() -> ImplementationDispatcherStub:
    return ImplementationDispatcherStub.succeeding()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture
def lifecycle(store, dispatcher, broadcaster, metrics) -> ImplementationLifecycleService:
    return ImplementationLifecycleService(
        feature_repo=store,
        dispatcher=dispatcher,
        broadcaster=broadcaster,
        metrics=metrics,
    )


@pytest.fixture
def threshold_trigger(lifecycle) -> ThresholdTriggerService:
    return ThresholdTriggerService(lifecycle=lifecycle, threshold=5)
