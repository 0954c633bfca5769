"""
FastAPI application initialization
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from api.routes import health, listings, stats, zones
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.exceptions import PipelineException
from core.logging import setup_logging
from ingestion.runtime import PipelineRuntime, build_runtime
from ingestion.scheduler import BackfillScheduler
import logging

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    "not_found": 404,
    "conflict": 409,
    "validation_error": 422,
    "capture_error": 422,
}


async def pipeline_exception_handler(request: Request, exc: PipelineException):
    status_code = ERROR_STATUS_CODES.get(exc.kind, 500)
    if status_code >= 500:
        logger.error(f"[{getattr(request.state, 'request_id', None)}] {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "kind": exc.kind, "details": exc.message, "context": exc.context},
    )


def create_app(runtime: Optional[PipelineRuntime] = None) -> FastAPI:
    """
    Build the application.

    A prebuilt runtime may be supplied; otherwise one is built from
    settings at startup and disposed at shutdown.
    """
    app = FastAPI(
        title="Listing Pipeline API",
        description="Capture, transform and plan ingestion of rental listings",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(PipelineException, pipeline_exception_handler)

    app.include_router(health.router)
    app.include_router(stats.router)
    app.include_router(zones.router)
    app.include_router(listings.router)

    @app.on_event("startup")
    async def startup_event():
        """Application startup event"""
        logger.info("Starting Listing Pipeline API")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

        app.state.owns_runtime = runtime is None
        app.state.runtime = runtime or build_runtime()
        app.state.scheduler = None

        if settings.SCHEDULER_ENABLED:
            app.state.scheduler = BackfillScheduler(app.state.runtime.backfill_runner())
            app.state.scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Application shutdown event"""
        logger.info("Shutting down Listing Pipeline API")
        if app.state.scheduler is not None:
            app.state.scheduler.stop()
        if app.state.owns_runtime:
            await app.state.runtime.dispose()

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Listing Pipeline API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "listings": "/api/v1/{source}",
                "zones": "/api/v1/zones",
                "stats": "/stats"
            }
        }

    return app


setup_logging()
app = create_app()
