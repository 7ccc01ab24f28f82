"""
Request size validation middleware.

Validates incoming request body size before processing.
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from bridge.utils.errors import RequestSizeError
from bridge.utils.logging import get_logger

logger = get_logger(__name__)


async def request_size_validator(request: Request, call_next):  # type: ignore
    """Middleware to validate request body size.

    Checks Content-Length header against configured maximum.
    Returns 413 Payload Too Large if exceeded. Bodiless methods pass through.

    Args:
        request: FastAPI Request object
        call_next: Next middleware/route handler

    Returns:
        Response from next middleware/route handler or 413 error response
    """
    if request.method in ("GET", "HEAD", "OPTIONS"):
        return await call_next(request)

    content_length_header = request.headers.get("content-length")

    # Without a usable Content-Length the body parser applies its own limits
    if content_length_header is None:
        return await call_next(request)

    try:
        content_length = int(content_length_header)
    except ValueError:
        return await call_next(request)

    max_size = request.app.state.settings.max_request_body_size
    if content_length > max_size:
        error = RequestSizeError(actual_size=content_length, max_size=max_size)
        logger.warning(
            "Request body too large",
            extra={
                "actual_size": content_length,
                "max_size": max_size,
                "path": request.url.path,
                "method": request.method,
            },
        )
        return JSONResponse(status_code=error.status_code, content=error.to_body())

    logger.debug(
        "Request size validation passed",
        extra={"content_length": content_length, "max_size": max_size, "path": request.url.path},
    )

    return await call_next(request)
