"""
CORS preflight middleware.

Answers every OPTIONS request with 204 and wide-open CORS headers before
routing, so preflights succeed for any path.
"""

from fastapi import Request, Response

from bridge.utils.logging import get_logger

logger = get_logger(__name__)

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


async def cors_preflight_middleware(request: Request, call_next):  # type: ignore
    """Short-circuit OPTIONS requests with 204 No Content."""
    if request.method != "OPTIONS":
        return await call_next(request)

    logger.debug("CORS preflight answered", extra={"path": str(request.url.path)})
    return Response(status_code=204, headers=PREFLIGHT_HEADERS)
