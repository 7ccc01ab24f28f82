"""
OpenAI-compatible data models for the chat completions API.

These models ensure compatibility with OpenAI API clients. Requests are
permissive (unknown fields are accepted and ignored) because clients send
sampling parameters and tool definitions the Gemini CLI has no use for.
"""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Enumeration of message roles the prompt translator labels."""

    SYSTEM = "system"
    DEVELOPER = "developer"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ContentPart(BaseModel):
    """One element of list-style message content (text, image_url, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(description="Part type; only 'text' parts reach the prompt")
    text: str | None = Field(default=None, description="Text for 'text' parts")


class ChatMessage(BaseModel):
    """
    A message in the chat completions API.

    Compatible with OpenAI API message format.
    """

    model_config = ConfigDict(extra="allow")

    role: str = Field(description="Role of the message sender")
    content: str | list[ContentPart] | None = Field(
        default=None, description="Message content as text or a list of parts"
    )
    tool_call_id: str | None = Field(default=None, description="Tool call answered by this message")
    name: str | None = Field(default=None, description="Optional participant name")


class ChatCompletionRequest(BaseModel):
    """
    Request model for chat completions endpoint.

    Only ``messages``, ``model`` and ``stream`` influence the bridge.
    """

    model_config = ConfigDict(extra="allow")

    model: str | None = Field(default=None, description="Model identifier, optionally prefixed")
    messages: list[ChatMessage] = Field(
        default_factory=list, description="List of messages in the conversation"
    )
    stream: bool | None = Field(default=False, description="Stream response tokens")


class Usage(BaseModel):
    """Token usage counters."""

    prompt_tokens: int = Field(ge=0)
    completion_tokens: int = Field(ge=0)
    total_tokens: int = Field(ge=0)


class ChoiceDelta(BaseModel):
    """
    Delta content in a streaming chunk.

    Contains incremental content updates during streaming responses.
    """

    role: MessageRole | None = Field(default=None, description="Role (only in first chunk)")
    content: str | None = Field(default=None, description="Incremental text content")


class ChatCompletionStreamChoice(BaseModel):
    """A choice in a streaming chat completion chunk."""

    index: int = Field(default=0, description="Index of this choice in the stream")
    delta: ChoiceDelta = Field(default_factory=ChoiceDelta, description="Incremental delta")
    finish_reason: str | None = Field(
        default=None, description="Why generation stopped (only in final chunk)"
    )


class ChatCompletionChunk(BaseModel):
    """
    Streaming chunk compatible with OpenAI SSE format.

    Sent as individual Server-Sent Events during streaming responses.
    """

    id: str = Field(description="Unique identifier for this completion stream")
    object: str = Field(default="chat.completion.chunk", description="Object type")
    created: int = Field(description="Unix timestamp of creation")
    model: str = Field(description="Model used for completion")
    choices: list[ChatCompletionStreamChoice] = Field(description="List of streaming choices")
    usage: Usage | None = Field(
        default=None,
        description="Token usage (only in final chunk with finish_reason)",
    )

    def to_sse(self) -> str:
        """
        Serialize as one server-sent event.

        Unset delta fields and a missing usage block are omitted, while
        ``finish_reason`` is always present (``null`` until the final chunk).
        """
        data: dict[str, Any] = self.model_dump(mode="json")
        for choice in data["choices"]:
            choice["delta"] = {k: v for k, v in choice["delta"].items() if v is not None}
        if data["usage"] is None:
            del data["usage"]
        return f"data: {json.dumps(data)}\n\n"


class ResponseMessage(BaseModel):
    """Assistant message of a non-streaming completion."""

    role: MessageRole = Field(default=MessageRole.ASSISTANT)
    content: str = Field(description="Message content")


class ChatCompletionChoice(BaseModel):
    """A single choice in a chat completion response."""

    index: int = Field(default=0, description="Index of this choice in the response")
    message: ResponseMessage = Field(description="The message content")
    finish_reason: str = Field(default="stop", description="Why the model stopped generating")


class ChatCompletionResponse(BaseModel):
    """
    Response model for non-streaming chat completions.

    Follows the OpenAI chat.completion format for maximum compatibility.
    """

    id: str = Field(description="Unique identifier for this completion")
    object: str = Field(default="chat.completion", description="Object type")
    created: int = Field(description="Unix timestamp of creation")
    model: str = Field(description="Model used for completion")
    choices: list[ChatCompletionChoice] = Field(description="List of completion choices")
    usage: Usage = Field(description="Token usage (prompt_tokens, completion_tokens, total_tokens)")
