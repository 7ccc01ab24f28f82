"""
Main FastAPI application for the bridge.

Sets up the application with all routes, middleware, error handlers and
startup/shutdown logic.
"""

import shutil
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from bridge.api.health import router as health_router
from bridge.api.limiter import get_limiter_status, limiter
from bridge.api.v1.chat import router as chat_router
from bridge.api.v1.models import router as models_router
from bridge.config import Settings
from bridge.middleware.cors import cors_preflight_middleware
from bridge.middleware.request_size import request_size_validator
from bridge.utils.errors import BridgeError, ConfigurationError
from bridge.utils.logging import get_logger, setup_logging
from bridge.utils.request_context import set_request_id

logger = get_logger(__name__)


def error_response(status_code: int, message: str, error_type: str, **kwargs) -> JSONResponse:  # type: ignore
    """OpenAI-compatible error body: ``{"error": {"message", "type", "code"}}``."""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "type": error_type, "code": status_code}},
        **kwargs,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore
    """
    Manage application lifecycle.

    Logs the effective bridge configuration on startup and warns when the
    Gemini CLI binary cannot be found (requests would fail with
    ``binary_not_found``).

    Args:
        app: FastAPI application instance

    Yields:
        Control during application runtime
    """
    settings = app.state.settings
    config = app.state.bridge_config

    logger.info(
        "geminicli-bridge starting",
        extra={
            "endpoint": f"{settings.base_url}/v1/chat/completions",
            "model": config.default_model,
            "approval_mode": config.approval_mode,
            "working_dir": config.working_dir,
            "timeout_seconds": config.request_timeout,
            "inactivity_timeout_seconds": config.inactivity_timeout,
            "max_arg_len": config.max_arg_len,
        },
    )
    logger.info(
        "Rate limiter initialized with status",
        extra={"component": "rate_limiter", **get_limiter_status()},
    )

    if shutil.which(config.binary) is None:
        logger.warning(
            "Gemini CLI binary not found on PATH",
            extra={"binary": config.binary},
        )

    yield

    logger.info("geminicli-bridge shutting down")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted

    Returns:
        Configured FastAPI application instance

    Raises:
        ConfigurationError: If the Gemini CLI working directory does not exist
    """
    if settings is None:
        try:
            settings = Settings()
        except Exception as exc:
            # Cannot use logger yet - settings failed to load
            import sys

            print(f"CRITICAL: Failed to load settings: {exc}", file=sys.stderr)
            raise

    setup_logging(settings)

    bridge_config = settings.bridge_config
    if not Path(bridge_config.working_dir).is_dir():
        logger.critical(
            "Gemini CLI working directory does not exist",
            extra={"working_dir": bridge_config.working_dir},
        )
        raise ConfigurationError(
            f"GEMINI_WORKING_DIR is not a directory: {bridge_config.working_dir}"
        )

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="OpenAI-compatible API served by the Gemini CLI",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.bridge_config = bridge_config

    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter

    # Add request ID and timing middleware (added first, executes last)
    @app.middleware("http")
    async def add_request_tracking(request: Request, call_next):  # type: ignore
        """Add request tracking with streaming-aware timing."""
        request_id = request.headers.get("X-Request-ID", "").strip()
        if not request_id:
            request_id = f"req_{int(time.time() * 1000)}"

        set_request_id(request_id)

        start_time = time.time()
        response = await call_next(request)
        # For streaming, this measures "time to first byte"
        elapsed = time.time() - start_time

        response.headers["X-Request-ID"] = request_id

        if response.headers.get("content-type", "").startswith("text/event-stream"):
            response.headers["X-First-Byte-Time"] = str(elapsed)
            logger.info(
                "Streaming response initiated",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "first_byte_time": elapsed,
                },
            )
        else:
            response.headers["X-Response-Time"] = str(elapsed)
            logger.info(
                "Response completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "response_time": elapsed,
                },
            )

        return response

    app.middleware("http")(request_size_validator)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Outermost: preflights never reach routing
    app.middleware("http")(cors_preflight_middleware)

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
        """Render bridge exceptions as OpenAI error bodies."""
        log_fn = logger.warning if exc.status_code < 500 else logger.error
        log_fn(
            f"Request failed: {exc.message}",
            extra={
                "error_type": exc.error_type,
                "status_code": exc.status_code,
                "path": request.url.path,
            },
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed bodies are invalid requests (400), never 422."""
        errors = exc.errors()
        if any(error.get("type") == "json_invalid" for error in errors):
            message = "Invalid JSON in request body"
        else:
            message = "; ".join(
                f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
                for error in errors
            ) or "Invalid request body"
        logger.warning("Request validation failed", extra={"validation_error": message})
        return error_response(400, message, "invalid_request")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Unmatched routes and methods answer 404 in the OpenAI error shape."""
        if exc.status_code in (404, 405):
            return error_response(
                404, f"Unknown endpoint: {request.method} {request.url.path}", "not_found"
            )
        return error_response(exc.status_code, str(exc.detail), "server_error")

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Return HTTP 429 with Retry-After header."""
        logger.warning(
            "Rate limit exceeded",
            extra={
                "client": request.client.host if request.client else "unknown",
                "path": str(request.url.path),
                "limit": str(exc.detail),
            },
        )
        return error_response(
            429,
            f"Rate limit exceeded: {exc.detail}",
            "rate_limit",
            headers={"Retry-After": "60"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=exc,
        )
        return error_response(500, "Internal server error", "server_error")

    app.include_router(health_router)
    app.include_router(models_router)
    app.include_router(chat_router)

    logger.info("FastAPI application created successfully")

    return app


# Create the application instance for running with uvicorn
app = create_app()
