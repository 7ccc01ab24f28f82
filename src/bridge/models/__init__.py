"""
Data models for the bridge.

This module contains both OpenAI-compatible models (external API)
and internal models for the Gemini CLI side.
"""

from bridge.models.internal import (
    BridgeConfig,
    ErrorCategory,
    ErrorClassification,
    StreamEvent,
    SubprocessInvocation,
    TransferMode,
)
from bridge.models.openai import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatCompletionStreamChoice,
    ChatMessage,
    ChoiceDelta,
    MessageRole,
    Usage,
)

__all__ = [
    # Internal models
    "BridgeConfig",
    "TransferMode",
    "SubprocessInvocation",
    "StreamEvent",
    "ErrorCategory",
    "ErrorClassification",
    # OpenAI models
    "MessageRole",
    "ChatMessage",
    "ChatCompletionRequest",
    "ChoiceDelta",
    "ChatCompletionStreamChoice",
    "ChatCompletionChunk",
    "ChatCompletionResponse",
    "Usage",
]
