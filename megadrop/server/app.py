"""FastAPI application factory for the megadrop upload service."""
import logging
import secrets
import time
from contextlib import asynccontextmanager
from typing import Optional, Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..context import UploadContext
from ..errors import InputValidationError
from ..models import UploadConfig, utc_now_iso
from .routes import health, status, upload

logger = logging.getLogger(__name__)

APP_NAME = "MEGA Upload Backend"

ENDPOINTS = [
    "GET /health",
    "GET /health/info",
    "POST /upload",
    "POST /upload/batch",
    "GET /upload/validate/{file_id}",
    "GET /status/{device_id}",
]

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization", "Device-ID"]
CORS_MAX_AGE = 86400

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def _default_context(config: UploadConfig) -> UploadContext:
    from ..services.mega_store import MegaStore

    return UploadContext(MegaStore(config), config)


def create_app(
    context: Optional[UploadContext] = None,
    config: Optional[UploadConfig] = None,
    context_factory: Callable[[UploadConfig], UploadContext] = _default_context,
    initialize: bool = True,
) -> FastAPI:
    """
    Build the FastAPI app around one shared UploadContext.

    Args:
        context: Pre-built context (tests inject one over a fake store)
        config: Used to build the context when none is given
        context_factory: Builds the context from config (MEGA by default)
        initialize: Connect to the store during startup
    """
    if context is None:
        config = config or UploadConfig.from_env()
        context = context_factory(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if initialize:
            if not await context.start():
                logger.warning("Starting in degraded mode: MEGA service unavailable")
        yield
        await context.close()

    app = FastAPI(title=APP_NAME, version=_version(), lifespan=lifespan)
    app.state.context = context
    app.state.started_at = time.monotonic()

    app.include_router(health.router, prefix="/health")
    app.include_router(upload.router, prefix="/upload")
    app.include_router(status.router, prefix="/status")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = secrets.token_hex(6)
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = int((time.monotonic() - start) * 1000)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        response.headers["X-Request-Id"] = request_id
        logger.info(
            "%s %s -> %d in %dms [%s]",
            request.method, request.url.path, response.status_code, duration_ms, request_id,
        )
        return response

    # outermost: answers preflight requests
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(context.config.cors_origins),
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
        max_age=CORS_MAX_AGE,
    )

    @app.exception_handler(InputValidationError)
    async def validation_error_handler(request: Request, exc: InputValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Validation failed", "message": str(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "success": False,
                    "error": "Endpoint not found",
                    "path": request.url.path,
                    "availableEndpoints": ENDPOINTS,
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
        )

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        logger.error("Server error: %s", exc, exc_info=exc)
        message = "An unexpected error occurred" if context.config.is_production else str(exc)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "message": message,
                "requestId": getattr(request.state, "request_id", None),
                "timestamp": utc_now_iso(),
            },
        )

    return app


def _version() -> str:
    from .. import __version__

    return __version__
