"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development (in-memory storage):
    STORAGE_MOCK_MODE=true uvicorn file_proxy.main:app --reload

For production:
    gunicorn file_proxy.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .api.dependencies import build_proxy_config
from .api.middleware import PreflightMiddleware, RequestLoggingMiddleware
from .api.routes import files, health
from .config.settings import Settings, get_settings

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Validates configuration on startup and logs shutdown.
    """
    settings: Settings = app.state.settings
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "File proxy starting",
        extra={
            "version": __version__,
            "stage": settings.stage_name,
            "bucket": settings.s3_bucket_name,
            "mock_mode": {"storage": settings.storage_mock_mode},
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        # Readiness reports this too; liveness keeps working so it can be seen
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("File proxy shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Settings to build the app with. Defaults to the cached
            process settings; tests pass their own.
    """
    settings = settings or get_settings()
    proxy_config = build_proxy_config(settings)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Per-user file storage over an object store.

        ## Resources

        - `GET /{stage}/users/{userId}/files` - list a user's files
        - `GET /{stage}/users/{userId}/files/{fileName}` - fetch a file
        - `PUT /{stage}/users/{userId}/files/{fileName}` - upload a file
        - `DELETE /{stage}/users/{userId}/files/{fileName}` - delete a file

        ## Status codes

        Storage results are collapsed to `200`, `400` (client-side problems,
        including missing files) and `500` (storage failures). Every
        response carries CORS headers, errors included.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings

    if settings is not get_settings():
        # Routes resolve settings through DI; make them see these ones
        app.dependency_overrides[get_settings] = lambda: settings

    # Last added runs first: logging wraps the preflight short-circuit
    app.add_middleware(
        PreflightMiddleware,
        cors=proxy_config.cors,
        stage_prefix=settings.stage_prefix,
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        files.router,
        prefix=settings.stage_prefix,
        tags=["Files"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at docs."""
        return {
            "message": settings.api_title,
            "version": __version__,
            "stage": settings.stage_prefix,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Runs outside the middleware stack, so it stamps the CORS headers
        itself: browsers must be able to read the 500.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error"},
            headers=proxy_config.cors.headers(),
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "stage": settings.stage_prefix,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "file_proxy.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
