"""
Health check routes.
"""

from fastapi import APIRouter, Request
from fastapi.responses import Response

from jobqueue import __version__
from jobqueue.clock import utcnow
from jobqueue.errors import StoreUnavailableError
from jobqueue.observability.metrics import get_metrics
from jobqueue.types.api import HealthResponse

router = APIRouter(tags=["Health"])


async def _store_status(request: Request) -> str:
    try:
        await request.app.state.store.ping()
    except StoreUnavailableError:
        return "unhealthy"
    return "healthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and the shared store connection.",
)
async def health_check(request: Request) -> HealthResponse:
    """
    Perform a health check.

    Returns:
        HealthResponse with service status.
    """
    store_status = await _store_status(request)

    return HealthResponse(
        status="healthy" if store_status == "healthy" else "degraded",
        version=__version__,
        store=store_status,
        timestamp=utcnow(),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(request: Request) -> dict:
    return {"ready": await _store_status(request) == "healthy"}


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the service is alive.",
)
async def liveness_check() -> dict:
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics.",
)
async def metrics() -> Response:
    """
    Expose Prometheus metrics.

    Returns:
        Prometheus-formatted metrics.
    """
    metrics_collector = get_metrics()
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
