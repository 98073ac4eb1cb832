"""Monitoring infrastructure - Prometheus pipeline metrics."""

from votegate.infrastructure.monitoring.pipeline_metrics import (
    METRICS_CONTENT_TYPE,
    PrometheusPipelineMetrics,
    get_pipeline_metrics,
    reset_pipeline_metrics,
)

__all__ = [
    "METRICS_CONTENT_TYPE",
    "PrometheusPipelineMetrics",
    "get_pipeline_metrics",
    "reset_pipeline_metrics",
]
