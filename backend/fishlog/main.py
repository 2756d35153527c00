"""
FishLog Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       uvicorn serves the module-level `app` (uvicorn fishlog.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                       │
    │                                                      │
    │  Middleware:  Request ID → Access Log → GZip → CORS  │
    │                                                      │
    │  Routers:     trips  catches  equipment  weather     │
    │               photos  files  health                  │
    │                                                      │
    │  Exception Handlers:                                 │
    │    FishLogError        → its own status + envelope   │
    │    RequestValidation   → 400 validation_error        │
    │    Exception           → 500 internal_error          │
    └──────────────────────────────────────────────────────┘

Error Envelope:
    {"error": {"code", "message", "http_status", "details"?}, "request_id"}
    `details` is only sent for errors whose message is safe to expose.

Lifecycle:
    Startup:  logging, config validation, local storage directory
    Shutdown: close the weather/blob HTTP clients, dispose the engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fishlog import __version__
from fishlog.config import settings
from fishlog.database import dispose_engine
from fishlog.exceptions import FishLogError, InternalError
from fishlog.middleware.logging import RequestLoggingMiddleware
from fishlog.middleware.request_id import RequestIDMiddleware, request_id_var
from fishlog.routes import catches, equipment, files, gear, health, photos, species, trips, weather
from fishlog.routes.deps import get_blob_store, get_weather_provider
from fishlog.store.supabase_blob import SupabaseBlobStore

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {401: "unauthorized", 404: "not_found", 405: "method_not_allowed"}


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """Root logger on stdout; third-party request/SQL chatter turned down."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("FishLog Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving /health so the misconfiguration is visible
        logger.error("Configuration error: %s", str(e))

    if settings.blob_backend == "local":
        storage = Path(settings.storage_root) / settings.photo_bucket
        storage.mkdir(parents=True, exist_ok=True)
        logger.info("Local blob storage: %s", storage.resolve())
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    logger.info("FishLog Backend shutting down...")
    await get_weather_provider().close()
    if settings.blob_backend == "supabase":
        blobs = get_blob_store()
        if isinstance(blobs, SupabaseBlobStore):
            await blobs.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(exc: FishLogError) -> JSONResponse:
    body = exc.to_envelope()
    if exc.exposes_detail and exc.context:
        body["details"] = jsonable_encoder(exc.context)
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": body, "request_id": request_id_var.get("")},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Every domain error renders the same envelope with its own status.
    Internal and bad-gateway errors log their real message and return a
    generic one.
    """

    @app.exception_handler(FishLogError)
    async def handle_domain_error(request: Request, exc: FishLogError):
        rid = request_id_var.get("")
        if exc.exposes_detail:
            logger.info("[%s] %s on %s: %s", rid, exc.code, request.url.path, exc.message)
        else:
            logger.error("[%s] %s on %s: %s | Context: %s", rid, exc.code, request.url.path, exc.message, exc.context)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
        body = {
            "code": "validation_error",
            "message": first.get("msg", "Invalid request"),
            "http_status": 400,
            "details": {
                "field": field,
                "errors": jsonable_encoder(errors, custom_encoder={Exception: str}),
            },
        }
        return JSONResponse(status_code=400, content={"error": body, "request_id": request_id_var.get("")})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        body = {
            "code": HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
            "message": str(exc.detail),
            "http_status": exc.status_code,
        }
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": body, "request_id": request_id_var.get("")},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return error_response(InternalError(str(exc)))


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="FishLog API",
        description="Trips, catches, equipment, weather and catch photos for a fishing log.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(trips.router)
    app.include_router(catches.router)
    app.include_router(equipment.router)
    app.include_router(gear.router)
    app.include_router(species.router)
    app.include_router(weather.router)
    app.include_router(photos.router)
    app.include_router(files.router)
    app.include_router(health.router)

    return app


app = create_app()
