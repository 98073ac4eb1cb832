"""Bootstrap wiring for pipeline metrics."""

from __future__ import annotations

from votegate.infrastructure.monitoring.pipeline_metrics import (
    PrometheusPipelineMetrics,
    get_pipeline_metrics as get_infra_pipeline_metrics,
    reset_pipeline_metrics,
)

_pipeline_metrics: PrometheusPipelineMetrics | None = None


def get_pipeline_metrics() -> PrometheusPipelineMetrics:
    """Get the pipeline metrics instance."""
    global _pipeline_metrics
    if _pipeline_metrics is None:
        _pipeline_metrics = get_infra_pipeline_metrics()
    return _pipeline_metrics


def set_pipeline_metrics(metrics: PrometheusPipelineMetrics) -> None:
    """Set custom pipeline metrics (testing/override)."""
    global _pipeline_metrics
    _pipeline_metrics = metrics


def reset_metrics() -> None:
    """Reset metrics singletons (testing cleanup)."""
    global _pipeline_metrics
    _pipeline_metrics = None
    reset_pipeline_metrics()
