"""Chat completions endpoint for OpenAI-compatible API."""

import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from bridge.api.limiter import CHAT_COMPLETIONS_LIMIT, limiter
from bridge.models.internal import BridgeConfig
from bridge.models.openai import ChatCompletionRequest, ChatCompletionResponse
from bridge.runner.launcher import resolve_model
from bridge.runner.session import CompletionSession
from bridge.utils.errors import InvalidRequestError
from bridge.utils.logging import get_logger
from bridge.utils.message_conversion import messages_to_prompt

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["chat"])


def get_bridge_config(request: Request) -> BridgeConfig:
    """Engine configuration built at startup."""
    return request.app.state.bridge_config


async def wait_for_disconnect(request: Request) -> None:
    """Block until the ASGI server reports that the client went away."""
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def complete_unless_disconnected(
    request: Request, session: CompletionSession
) -> ChatCompletionResponse | None:
    """
    Run a non-streaming session, cancelling it if the client disconnects first.

    Cancelling the run releases its context, which terminates the Gemini CLI
    process and removes the staged prompt.

    Args:
        request: FastAPI request whose body has already been read
        session: Session to run in ``json`` mode

    Returns:
        The completion, or None when the client disconnected first
    """
    completion_task = asyncio.create_task(session.complete())
    disconnect_task = asyncio.create_task(wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait(
            {completion_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if completion_task not in done:
            disconnect_task.result()
            completion_task.cancel()
            await asyncio.wait({completion_task})
    finally:
        disconnect_task.cancel()
        completion_task.cancel()

    if completion_task.cancelled():
        logger.info(
            "Client disconnected, Gemini CLI run cancelled",
            extra={"completion_id": session.context.short_id},
        )
        return None
    return completion_task.result()


@router.post("/chat/completions")
@limiter.limit(CHAT_COMPLETIONS_LIMIT)
async def create_chat_completion(request: Request, request_data: ChatCompletionRequest):
    """
    Serve a chat completion through the Gemini CLI.

    The conversation is flattened into one prompt and passed to a fresh CLI
    process. Request-shape errors are rejected before anything is spawned.

    Args:
        request: FastAPI request object
        request_data: ChatCompletionRequest with model, messages and stream flag

    Returns:
        StreamingResponse of SSE ``chat.completion.chunk`` events terminated
        by ``data: [DONE]`` when ``stream`` is true, a ``chat.completion``
        document otherwise

    Raises:
        InvalidRequestError: If there are no messages or the prompt is empty (400)
        SubprocessFailedError: If a non-streaming run fails (status by classification)
        ParseError: If a non-streaming run produced undecodable output (500)
    """
    config = get_bridge_config(request)
    stream = request_data.stream is True

    if not request_data.messages:
        raise InvalidRequestError("No messages provided")

    prompt = messages_to_prompt(request_data.messages, config.default_system_prompt)
    model = resolve_model(request_data.model, config.default_model)

    logger.info(
        "Chat completion request",
        extra={
            "requested_model": request_data.model,
            "model": model,
            "stream": stream,
            "message_count": len(request_data.messages),
        },
    )

    session = CompletionSession(prompt, model, stream, config)

    if stream:
        return StreamingResponse(
            session.stream(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering
            },
        )

    completion = await complete_unless_disconnected(request, session)
    if completion is None:
        # Client closed request; nobody reads this status
        return Response(status_code=499)
    return JSONResponse(content=completion.model_dump(mode="json"))
