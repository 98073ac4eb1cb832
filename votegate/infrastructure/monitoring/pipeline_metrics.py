"""Prometheus metrics for the vote pipeline.

Operational counters only: vote toggles, claim races, dispatch outcomes,
reconciliations and connected live observers.

Labels: service, environment plus one outcome label per counter.
"""

import os
import threading

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)

# Content type for Prometheus metrics endpoint
METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

_collector_lock = threading.Lock()


class PrometheusPipelineMetrics:
    """Collects pipeline counters on an isolated registry.

    Implements PipelineMetricsProtocol.

    Attributes:
        votes_total: Counter of vote toggles by action.
        claims_total: Counter of implementation claims by result.
        dispatch_total: Counter of dispatch attempts by outcome.
        reconciliations_total: Counter of completion notifications by outcome.
        live_observers: Gauge of connected observers.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize the counters.

        Args:
            registry: Optional custom registry for testing isolation.
        """
        self._registry = registry or CollectorRegistry()
        self._environment = os.environ.get("ENVIRONMENT", "development")
        self._service_name = os.environ.get("SERVICE_NAME", "votegate-api")

        self.votes_total = Counter(
            name="votegate_votes_total",
            documentation="Total vote toggles",
            labelnames=["service", "environment", "action"],
            registry=self._registry,
        )
        self.claims_total = Counter(
            name="votegate_claims_total",
            documentation="Total implementation claim attempts",
            labelnames=["service", "environment", "result"],
            registry=self._registry,
        )
        self.dispatch_total = Counter(
            name="votegate_dispatch_total",
            documentation="Total implementation dispatch attempts",
            labelnames=["service", "environment", "outcome"],
            registry=self._registry,
        )
        self.reconciliations_total = Counter(
            name="votegate_reconciliations_total",
            documentation="Total completion notifications reconciled",
            labelnames=["service", "environment", "outcome"],
            registry=self._registry,
        )
        self.live_observers = Gauge(
            name="votegate_live_observers",
            documentation="Currently connected live observers",
            labelnames=["service", "environment"],
            registry=self._registry,
        )

    def _labels(self) -> dict[str, str]:
        return {"service": self._service_name, "environment": self._environment}

    def record_vote(self, action: str) -> None:
        self.votes_total.labels(**self._labels(), action=action).inc()

    def record_claim(self, result: str) -> None:
        self.claims_total.labels(**self._labels(), result=result).inc()

    def record_dispatch(self, outcome: str) -> None:
        self.dispatch_total.labels(**self._labels(), outcome=outcome).inc()

    def record_reconciliation(self, outcome: str) -> None:
        self.reconciliations_total.labels(**self._labels(), outcome=outcome).inc()

    def set_live_observers(self, count: int) -> None:
        self.live_observers.labels(**self._labels()).set(count)

    def get_registry(self) -> CollectorRegistry:
        """Get the collector registry."""
        return self._registry

    def generate_metrics(self) -> bytes:
        """Render this collector in Prometheus text format."""
        return generate_latest(self._registry)

    @property
    def content_type(self) -> str:
        return METRICS_CONTENT_TYPE


# Singleton instance
_pipeline_metrics: PrometheusPipelineMetrics | None = None


def get_pipeline_metrics() -> PrometheusPipelineMetrics:
    """Get the singleton collector (thread-safe, double-checked locking)."""
    global _pipeline_metrics
    if _pipeline_metrics is None:
        with _collector_lock:
            if _pipeline_metrics is None:
                _pipeline_metrics = PrometheusPipelineMetrics()
    return _pipeline_metrics


def reset_pipeline_metrics() -> None:
    """Reset the singleton collector (for testing only)."""
    global _pipeline_metrics
    with _collector_lock:
        _pipeline_metrics = None
