"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobqueue import __version__
from jobqueue.api.routes import health_router, jobs_router, queues_router, workers_router
from jobqueue.config import get_settings
from jobqueue.errors import JobNotFoundError, RecordInconsistencyError, StoreUnavailableError
from jobqueue.liveness import LivenessRegistry
from jobqueue.observability.logging import setup_logging
from jobqueue.observability.metrics import get_metrics, setup_metrics
from jobqueue.observability.tracing import instrument_fastapi, setup_tracing
from jobqueue.queue.manager import QueueManager
from jobqueue.store import StorePort, create_store
from jobqueue.types.api import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    setup_logging()
    setup_metrics()
    setup_tracing()

    logger.info("Application started")

    yield

    # Shutdown
    await app.state.store.close()
    logger.info("Application shutdown")


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


def create_app(store: StorePort | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store: Shared store to serve from; built from settings when omitted.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Job Queue API",
        description="Priority job queue with dead-letter handling and worker liveness",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.store = store or create_store(settings)
    app.state.manager = QueueManager(app.state.store)
    app.state.liveness = LivenessRegistry(
        app.state.store,
        timeout_seconds=settings.worker_heartbeat_timeout_seconds,
    )
    app.state.queues = list(settings.worker_queues)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def count_requests(request: Request, call_next):
        response = await call_next(request)
        get_metrics().record_api_request(request.method, request.url.path, response.status_code)
        return response

    @app.exception_handler(JobNotFoundError)
    async def job_not_found_handler(request: Request, exc: JobNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "job_not_found", str(exc))

    @app.exception_handler(RecordInconsistencyError)
    async def inconsistency_handler(request: Request, exc: RecordInconsistencyError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, "record_inconsistency", str(exc))

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        logger.error("Store unavailable", extra={"path": request.url.path, "error": str(exc)})
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "store_unavailable", str(exc))

    # Include routers
    app.include_router(health_router)
    app.include_router(queues_router)
    app.include_router(jobs_router)
    app.include_router(workers_router)

    if settings.tracing_enabled:
        instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    app = create_app()

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
