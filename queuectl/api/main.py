"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from queuectl import __version__
from queuectl.api.routes import config_router, dlq_router, health_router, jobs_router
from queuectl.config import Settings, get_settings
from queuectl.db import Database, SqlJobStore
from queuectl.errors import (
    InvalidInput,
    JobNotFound,
    NotInDlq,
    QueueError,
    StoreUnavailable,
)
from queuectl.observability.logging import setup_logging
from queuectl.observability.metrics import setup_metrics
from queuectl.observability.tracing import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_tracing,
)
from queuectl.service import JobQueue
from queuectl.types.api import ErrorResponse

logger = logging.getLogger(__name__)

# Request-level errors and the HTTP status they map to
ERROR_STATUS: dict[type[QueueError], int] = {
    InvalidInput: status.HTTP_422_UNPROCESSABLE_CONTENT,
    JobNotFound: status.HTTP_404_NOT_FOUND,
    NotInDlq: status.HTTP_409_CONFLICT,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def queue_error_handler(request: Request, exc: QueueError) -> JSONResponse:
    """Render queuectl errors as ErrorResponse bodies."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    if status_code >= 500:
        logger.warning("Request failed", extra={"path": request.url.path, "error": str(exc)})
    body = ErrorResponse(error=type(exc).__name__, detail=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_app(
    queue: JobQueue | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        queue: A ready JobQueue. When omitted, the lifespan opens the
            database from settings and builds one.
        settings: Settings; environment settings if None.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if queue is not None:
            yield
            return

        setup_logging(settings)
        setup_metrics()
        database = Database.from_settings(settings)
        if settings.otel_enabled:
            instrument_sqlalchemy(database.engine)
        await database.create_schema()

        store = SqlJobStore(database)
        app.state.database = database
        app.state.queue = JobQueue(store, settings, config_store=store)
        logger.info("Application started")

        yield

        await database.close()
        logger.info("Application shutdown")

    app = FastAPI(
        title="queuectl API",
        description="Persistent background job queue for shell commands",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    if queue is not None:
        app.state.queue = queue
        store = queue.store
        app.state.database = store.database if isinstance(store, SqlJobStore) else None

    app.add_exception_handler(QueueError, queue_error_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(jobs_router)
    app.include_router(dlq_router)
    app.include_router(config_router)

    if settings.otel_enabled:
        setup_tracing(settings)
        instrument_fastapi(app)

    return app


def run(settings: Settings | None = None) -> None:
    """Run the API server."""
    settings = settings or get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
