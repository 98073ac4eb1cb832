"""Metrics endpoint for Prometheus scraping."""

from fastapi import APIRouter, Response

from votegate.bootstrap.metrics import get_pipeline_metrics

router = APIRouter(prefix="/v1", tags=["metrics"])


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    description="Returns pipeline counters in Prometheus exposition format.",
    response_class=Response,
    responses={
        200: {
            "description": "Metrics in Prometheus format",
            "content": {"text/plain": {}},
        }
    },
)
async def get_metrics() -> Response:
    metrics = get_pipeline_metrics()
    return Response(
        content=metrics.generate_metrics(),
        media_type=metrics.content_type,
    )
