"""Health check endpoint for the bridge."""

from fastapi import APIRouter, Request

from bridge.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
@router.get("/")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint.

    Static description of the running bridge; no side effects.

    Returns:
        Status, service name and version, default model and approval mode
    """
    logger.debug("Health check request received")
    settings = request.app.state.settings
    config = request.app.state.bridge_config
    return {
        "status": "ok",
        "service": settings.api_title,
        "version": settings.api_version,
        "model": config.default_model,
        "approvalMode": config.approval_mode,
    }
