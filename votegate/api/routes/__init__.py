"""API routers."""

from votegate.api.routes.features import router as features_router
from votegate.api.routes.health import router as health_router
from votegate.api.routes.live import router as live_router
from votegate.api.routes.metrics import router as metrics_router
from votegate.api.routes.operator import router as operator_router
from votegate.api.routes.webhooks import router as webhooks_router

__all__ = [
    "features_router",
    "health_router",
    "live_router",
    "metrics_router",
    "operator_router",
    "webhooks_router",
]
