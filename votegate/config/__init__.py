"""Configuration module for Votegate.

Available Configurations:
- PipelineConfig: Threshold trigger, reconciler and live fan-out settings
- DispatchConfig: GitHub workflow dispatch settings
- RateLimitConfig: Per-user submission and vote gates
- SecurityConfig: Operator token and inbound integration secrets
"""

from votegate.config.pipeline_config import (
    DEFAULT_PIPELINE_CONFIG,
    DEFAULT_RATE_LIMIT_CONFIG,
    TEST_PIPELINE_CONFIG,
    DispatchConfig,
    PipelineConfig,
    RateLimitConfig,
    SecurityConfig,
)

__all__ = [
    "PipelineConfig",
    "DispatchConfig",
    "RateLimitConfig",
    "SecurityConfig",
    "DEFAULT_PIPELINE_CONFIG",
    "DEFAULT_RATE_LIMIT_CONFIG",
    "TEST_PIPELINE_CONFIG",
]
