"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Each app instance owns its own tables and timers

For local development:
    DEBUG=true uvicorn src.main:app --reload --port 5040

For production:
    uvicorn src.main:app --host 127.0.0.1 --port 5040

Run a single worker process: all media lives in this process's memory,
so a second worker would not see the first one's uploads.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import health, media
from .config.settings import Settings, get_settings
from .core.media.expiration import ExpirationScheduler
from .core.media.manager import MediaManager
from .core.media.storage import MemoryStorage
from .infrastructure.imaging.transform import create_image_transformer

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

    Startup builds the shared state every request works against:
    - the content-addressed storage
    - the handle manager on top of it
    - the expiration scheduler driving deletes

    Shutdown cancels pending expirations. Nothing survives a restart
    anyway, so there is nothing to flush.
    """
    settings: Settings = app.state.settings

    logging.getLogger().setLevel(settings.log_level.upper())

    problems = settings.validate_required_fields()
    if problems:
        logger.error("Invalid configuration", extra={"problems": problems})
        raise RuntimeError(f"Invalid configuration: {'; '.join(problems)}")

    storage = MemoryStorage(shards=settings.storage_shards)
    manager = MediaManager(storage, shards=settings.storage_shards)
    scheduler = ExpirationScheduler(manager, ttl=settings.media_ttl_seconds)

    app.state.media_manager = manager
    app.state.expiration_scheduler = scheduler
    app.state.image_transformer = create_image_transformer()

    logger.info(
        "Media relay starting",
        extra={
            "version": settings.api_version,
            "ttl_seconds": settings.media_ttl_seconds,
            "max_upload_size_mb": settings.max_upload_size_mb,
            "debug": settings.debug,
        }
    )

    yield

    # Shutdown
    cancelled = await scheduler.shutdown()
    logger.info(
        "Media relay shutting down",
        extra={"cancelled_expirations": cancelled, "live_bindings": len(manager)},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    This function is called once at startup (in production) or
    multiple times (in tests with different configurations).
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Ephemeral image relay.

        ## Workflow

        1. **Upload**: `POST /upload` with a multipart `image` field
           - Any common image format; stored as PNG
           - Returns a 16-digit hex handle
        2. **Fetch**: `GET /get/{media_id}`
        3. **Check**: `GET /exists/{media_id}`

        Handles stop resolving one TTL (default one hour) after upload.
        The handle is the only credential - share it carefully.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS middleware
    # Debug mode allows any origin; otherwise only CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        media.router,
        tags=["Media"],
    )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients.
        We log the full error server-side but return a generic message.
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
            content={"detail": "Internal server error"}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn imports
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host=settings.bind_host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
