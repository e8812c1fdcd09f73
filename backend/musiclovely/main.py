"""FastAPI application entry point and lifespan management.

Configures CORS, registers the API routers, renders service errors as
``{success: false, error}`` and manages the application lifespan
(database tables, stale-claim recovery, HTTP client shutdown).
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from musiclovely.config import get_settings
from musiclovely.database import create_tables
from musiclovely.api.v1.router import router as v1_router
from musiclovely.schemas.common import HealthResponse
from musiclovely.services.errors import ServiceError


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Suppress noisy third-party HTTP loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Runs on startup: create DB tables and release stale generation claims."""
    settings = get_settings()
    _setup_logging(settings.LOG_LEVEL)

    create_tables()
    logging.getLogger(__name__).info("Database tables ready")

    from musiclovely.utils.startup import recover_stale_submissions
    recover_stale_submissions()

    yield  # Application runs here

    # Graceful shutdown: close shared HTTP clients
    from musiclovely.services.http_client_manager import close_all_clients
    await close_all_clients()
    logging.getLogger(__name__).info("Shutting down")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logging.getLogger(__name__).exception(f"Unhandled error: {exc}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error", "detail": str(exc)},
        )

    # Health check
    @app.get("/health", tags=["Health"], response_model=HealthResponse)
    async def health():
        from datetime import datetime, timezone
        return HealthResponse(
            status="healthy",
            version=settings.APP_VERSION,
            timestamp=datetime.now(timezone.utc),
        )

    # Mount API routes
    app.include_router(v1_router)

    if settings.MIRROR_MEDIA:
        app.mount("/media", StaticFiles(directory=settings.media_path), name="media")

    return app


app = create_app()
