"""
Middleware components for the bridge.

Provides request size validation and CORS preflight handling.
"""

from bridge.middleware.cors import cors_preflight_middleware
from bridge.middleware.request_size import request_size_validator

__all__ = ["cors_preflight_middleware", "request_size_validator"]
