import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from jobflow.config.logging import setup_logging
from jobflow.config.settings import Settings, get_settings
from jobflow.infra.database import Database
from jobflow.infra.queue import create_queue
from jobflow.runner import run_consumers
from jobflow.v1.core.exceptions import (
    JobFlowException,
    RequestContextMiddleware,
    general_exception_handler,
    http_exception_handler,
    job_flow_exception_handler,
    request_validation_exception_handler,
)
from jobflow.v1.healthz import router as health_router
from jobflow.v1.jobs.routes import router as jobs_router


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    # Initialize structured logging
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        database = Database(settings)
        queue = create_queue(settings)
        stop_event = asyncio.Event()
        consumers_task = None

        try:
            if settings.db_auto_create:
                await database.create_all()
            await queue.start()

            app.state.settings = settings
            app.state.database = database
            app.state.queue = queue

            if settings.run_consumers_in_api:
                consumers_task = asyncio.create_task(
                    run_consumers(settings, database, queue, stop_event)
                )
            yield
        finally:
            stop_event.set()
            try:
                if consumers_task:
                    await consumers_task
            finally:
                await queue.close()
                await database.close()

    app = FastAPI(
        title=settings.app_name,
        description="Asynchronous job processing with cancellation and retry",
        version=settings.version,
        debug=settings.debug,
        # All endpoints will be under /v1/ prefix
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(JobFlowException, job_flow_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(
        RequestValidationError, request_validation_exception_handler
    )
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "jobflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
