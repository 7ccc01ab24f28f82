"""
Custom exception hierarchy for the bridge.

Every exception carries the OpenAI error ``type`` and the HTTP status it is
rendered with, so the API layer can turn any of them into an error body.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bridge.models.internal import ErrorClassification


class BridgeError(Exception):
    """
    Base exception for all bridge-specific errors.

    All application errors should inherit from this class.
    """

    status_code: int = 500
    default_type: str = "server_error"

    def __init__(
        self,
        message: str,
        error_type: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """
        Initialize a bridge error.

        Args:
            message: Human-readable error message
            error_type: OpenAI-style error type (defaults to the class default)
            status_code: HTTP status (defaults to the class default)
        """
        super().__init__(message)
        self.message = message
        self.error_type = error_type or self.default_type
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> dict[str, dict[str, str | int]]:
        """Render the OpenAI-compatible error body."""
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.status_code,
            }
        }


class ConfigurationError(BridgeError):
    """
    Raised when there's an error in application configuration.

    Typically thrown during startup when settings are invalid.
    """


class InvalidRequestError(BridgeError):
    """Raised for malformed or empty requests, before any process is spawned."""

    status_code = 400
    default_type = "invalid_request"


class RequestSizeError(InvalidRequestError):
    """Raised when request body exceeds size limit."""

    status_code = 413
    default_type = "request_too_large"

    def __init__(self, actual_size: int, max_size: int) -> None:
        """
        Initialize a request size error.

        Args:
            actual_size: Actual size of request body in bytes
            max_size: Maximum allowed size in bytes
        """
        message = (
            f"Request body size ({actual_size} bytes) exceeds maximum allowed ({max_size} bytes)"
        )
        super().__init__(message)
        self.actual_size = actual_size
        self.max_size = max_size


class SpawnError(BridgeError):
    """Raised when the Gemini CLI process cannot be started."""

    def __init__(self, message: str, binary: str) -> None:
        super().__init__(message)
        self.binary = binary


class SubprocessFailedError(BridgeError):
    """
    Raised when the Gemini CLI exited unsuccessfully.

    The classification decides the status code and error type.
    """

    def __init__(self, classification: "ErrorClassification", exit_code: int | None) -> None:
        super().__init__(
            classification.message,
            error_type=classification.category.value,
            status_code=classification.status_code,
        )
        self.classification = classification
        self.exit_code = exit_code


class ParseError(BridgeError):
    """Raised when the CLI exited successfully but its output is not valid JSON."""

    default_type = "parse_error"

    def __init__(self, message: str = "Failed to parse Gemini CLI response") -> None:
        super().__init__(message)
