"""
Unit tests for request size validation middleware.

Tests the middleware logic in isolation, verifying that request size validation
works correctly for different Content-Length values and request types.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from bridge.config import Settings
from bridge.middleware.request_size import request_size_validator
from bridge.utils.errors import InvalidRequestError, RequestSizeError


class TestRequestSizeError:
    """Test RequestSizeError exception."""

    def test_request_size_error_creation(self) -> None:
        """Test creating RequestSizeError with size attributes."""
        error = RequestSizeError(actual_size=2_000_000, max_size=1_000_000)
        assert error.actual_size == 2_000_000
        assert error.max_size == 1_000_000
        assert error.status_code == 413
        assert error.error_type == "request_too_large"
        assert "2000000" in error.message

    def test_request_size_error_is_invalid_request(self) -> None:
        """Oversized bodies are a kind of invalid request."""
        assert isinstance(RequestSizeError(actual_size=2, max_size=1), InvalidRequestError)


@pytest.fixture
def test_settings_custom_limit() -> Settings:
    """Create test settings with custom max_request_body_size."""
    return Settings(max_request_body_size=500_000)


@pytest.fixture
def mock_request(test_settings_custom_limit: Settings):
    """Create a mock FastAPI Request with proper app state."""
    request = MagicMock()
    request.method = "POST"
    request.url.path = "/v1/chat/completions"
    request.headers = {}
    request.app.state.settings = test_settings_custom_limit
    return request


@pytest.fixture
def mock_call_next():
    """Create a mock call_next function."""
    return AsyncMock(return_value=MagicMock(status_code=200))


class TestRequestSizeValidation:
    """Size checks against the configured limit."""

    @pytest.mark.asyncio
    async def test_passes_at_limit(self, mock_request, mock_call_next) -> None:
        """A body exactly at the limit is accepted."""
        mock_request.headers["content-length"] = "500000"

        response = await request_size_validator(mock_request, mock_call_next)

        assert response.status_code == 200
        mock_call_next.assert_called_once_with(mock_request)

    @pytest.mark.asyncio
    async def test_rejects_over_limit(self, mock_request, mock_call_next) -> None:
        """One byte over the limit is rejected with an OpenAI error body."""
        mock_request.headers["content-length"] = "500001"

        response = await request_size_validator(mock_request, mock_call_next)

        assert response.status_code == 413
        body = json.loads(response.body)
        assert body["error"]["type"] == "request_too_large"
        assert body["error"]["code"] == 413
        mock_call_next.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_content_length_passes(self, mock_request, mock_call_next) -> None:
        """Chunked bodies without Content-Length are left to the body parser."""
        response = await request_size_validator(mock_request, mock_call_next)

        assert response.status_code == 200
        mock_call_next.assert_called_once()

    @pytest.mark.asyncio
    async def test_invalid_content_length_passes(self, mock_request, mock_call_next) -> None:
        """A non-numeric Content-Length is not treated as oversized."""
        mock_request.headers["content-length"] = "lots"

        response = await request_size_validator(mock_request, mock_call_next)

        assert response.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
    async def test_bodiless_methods_skip_validation(
        self, mock_request, mock_call_next, method: str
    ) -> None:
        """Bodiless methods are never size-checked."""
        mock_request.method = method
        mock_request.headers["content-length"] = "999999999"

        response = await request_size_validator(mock_request, mock_call_next)

        assert response.status_code == 200
        mock_call_next.assert_called_once_with(mock_request)
