"""Models listing endpoint for OpenAI-compatible API."""

import time

from fastapi import APIRouter, Request, Response

from bridge.api.limiter import MODELS_LIMIT, limiter
from bridge.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["models"])


@router.get("/models", response_model=dict)
@limiter.limit(MODELS_LIMIT)
async def list_models(request: Request, response: Response) -> dict:
    """
    List the Gemini models this bridge serves.

    Any of them can be requested by ID, optionally prefixed with ``gemini/``
    or ``bridge-gemini-cli/``.

    Args:
        request: FastAPI request object

    Returns:
        OpenAI model list
    """
    config = request.app.state.bridge_config
    now = int(time.time())
    models = [
        {"id": model_id, "object": "model", "created": now, "owned_by": "google"}
        for model_id in config.supported_models
    ]

    logger.debug(f"Returning {len(models)} model(s)", extra={"model_count": len(models)})

    return {"object": "list", "data": models}
