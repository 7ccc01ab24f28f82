"""
Rate limiting configuration using SlowAPI.

The bridge has no user identity (authentication belongs to the Gemini CLI),
so limits are keyed on the client address. The limiter starts disabled;
``create_app`` switches it on when ``RATE_LIMIT_ENABLED`` is set.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from bridge.utils.logging import get_logger

logger = get_logger(__name__)

CHAT_COMPLETIONS_LIMIT = "60/minute"
MODELS_LIMIT = "120/minute"


def get_client_key(request: Request) -> str:
    """
    Extract the rate limit key for a request.

    Args:
        request: FastAPI Request object

    Returns:
        ``ip_<address>``
    """
    key = f"ip_{get_remote_address(request)}"
    logger.debug("Rate limit key resolved", extra={"key": key, "path": str(request.url.path)})
    return key


limiter = Limiter(
    key_func=get_client_key,
    headers_enabled=True,  # Include X-RateLimit-* headers in responses
    enabled=False,
)


def get_limiter_status() -> dict[str, str | bool]:
    """
    Get a structured dump of the rate limiter's configuration for startup logs.

    Returns:
        Dictionary with the enabled flag, per-endpoint limits and key type
    """
    return {
        "enabled": limiter.enabled,
        "chat_completions_limit": CHAT_COMPLETIONS_LIMIT,
        "models_limit": MODELS_LIMIT,
        "key_function_type": "client-address",
    }
