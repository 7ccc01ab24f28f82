"""
Version 1 API endpoints.

This module contains the OpenAI-compatible chat and models endpoints.
"""

from bridge.api.v1.chat import router as chat_router
from bridge.api.v1.models import router as models_router

__all__ = ["chat_router", "models_router"]
