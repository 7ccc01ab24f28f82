"""
OpenAI response emission.

Streaming mode turns Gemini CLI events into ``chat.completion.chunk``
server-sent events; non-streaming mode turns the CLI's single json document
into a ``chat.completion``.
"""

import json
from typing import Any

from bridge.models.internal import BridgeConfig
from bridge.models.openai import (
    ChatCompletionChoice,
    ChatCompletionChunk,
    ChatCompletionResponse,
    ChatCompletionStreamChoice,
    ChoiceDelta,
    MessageRole,
    ResponseMessage,
    Usage,
)
from bridge.runner.context import RequestContext
from bridge.utils.errors import ParseError
from bridge.utils.logging import get_logger
from bridge.utils.token_tracking import (
    estimate_usage,
    usage_from_model_stats,
    usage_from_result_stats,
)

logger = get_logger(__name__)

DONE_SENTINEL = "data: [DONE]\n\n"


class StreamingEmitter:
    """
    Builds the SSE chunks of one streaming response.

    Every chunk shares the context's id, creation time and model name.
    Content passed to ``content_chunk`` is accumulated on the context.
    """

    def __init__(self, context: RequestContext, config: BridgeConfig) -> None:
        self._context = context
        self._config = config
        self._result_stats: dict[str, Any] | None = None

    def _chunk(
        self,
        delta: ChoiceDelta,
        finish_reason: str | None = None,
        usage: Usage | None = None,
    ) -> str:
        chunk = ChatCompletionChunk(
            id=self._context.request_id,
            created=self._context.created,
            model=self._context.model_name,
            choices=[ChatCompletionStreamChoice(index=0, delta=delta, finish_reason=finish_reason)],
            usage=usage,
        )
        return chunk.to_sse()

    def role_chunk(self) -> str:
        """Announce the assistant role before the first token."""
        return self._chunk(ChoiceDelta(role=MessageRole.ASSISTANT, content=""))

    def content_chunk(self, content: str) -> str:
        self._context.append_output(content)
        return self._chunk(ChoiceDelta(content=content))

    def record_result(self, stats: dict[str, Any]) -> None:
        """Keep the usage statistics of the terminal ``result`` event."""
        self._result_stats = stats

    def usage(self) -> Usage:
        """Reported usage when a result event arrived, estimated otherwise."""
        prompt, completion = self._context.prompt, self._context.output_text
        if self._result_stats is not None:
            return usage_from_result_stats(
                self._result_stats, prompt, completion, self._config.chars_per_token
            )
        return estimate_usage(prompt, completion, self._config.chars_per_token)

    def finish_chunk(self) -> str:
        return self._chunk(ChoiceDelta(), finish_reason="stop", usage=self.usage())

    def error_chunk(self, message: str) -> str:
        """Surface a failure as visible text so the caller never sees a silent empty stream."""
        return self._chunk(ChoiceDelta(content=f"\n\n[Error: {message}]"), finish_reason="stop")

    @staticmethod
    def done() -> str:
        return DONE_SENTINEL


def parse_json_output(stdout: str) -> dict[str, Any]:
    """
    Decode the CLI's json output.

    The CLI may print log lines before the document, so decoding starts at
    the first ``{``.

    Raises:
        ParseError: If no JSON object can be decoded
    """
    start = stdout.find("{")
    payload = stdout[start:] if start >= 0 else stdout
    try:
        document = json.loads(payload)
    except json.JSONDecodeError as exc:
        logger.error(
            "Failed to parse Gemini CLI output",
            extra={"error": str(exc), "output_chars": len(stdout), "output_head": stdout[:200]},
        )
        raise ParseError() from exc
    if not isinstance(document, dict):
        raise ParseError()
    return document


def build_completion(
    context: RequestContext, stdout: str, config: BridgeConfig
) -> ChatCompletionResponse:
    """
    Build the non-streaming completion document from the CLI's json output.

    Args:
        context: The request context (id, model, prompt)
        stdout: Full stdout of a successful run
        config: Engine configuration

    Returns:
        ChatCompletionResponse with exactly one choice

    Raises:
        ParseError: If the output is not a JSON object
    """
    document = parse_json_output(stdout)

    response_text = document.get("response") or ""
    if not isinstance(response_text, str):
        response_text = str(response_text)
    stats = document.get("stats") or {}

    context.append_output(response_text)
    usage = usage_from_model_stats(
        stats if isinstance(stats, dict) else {},
        context.model,
        context.prompt,
        response_text,
        config.chars_per_token,
    )

    return ChatCompletionResponse(
        id=context.request_id,
        created=context.created,
        model=context.model_name,
        choices=[
            ChatCompletionChoice(
                index=0,
                message=ResponseMessage(role=MessageRole.ASSISTANT, content=response_text),
                finish_reason="stop",
            )
        ],
        usage=usage,
    )
