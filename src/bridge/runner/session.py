"""
Completion session: drives one request through a Gemini CLI run.

The session owns the request context and moves it through
``pending → spawned → streaming → draining → closed``. Three event sources
drive it: output bytes, supervisor timers and process exit. Whatever ends
the run (normal exit, spawn failure, timeout, parse failure or client
disconnect) the timers are cancelled, the staged prompt is removed and a
still-running process is terminated before the context is released.
"""

import asyncio
import codecs
import contextlib
from collections.abc import AsyncIterator, Mapping

from bridge.models.internal import (
    BridgeConfig,
    ErrorClassification,
    ErrorEvent,
    MessageEvent,
    ResultEvent,
    StreamEvent,
    ToolResultEvent,
    ToolUseEvent,
)
from bridge.models.openai import ChatCompletionResponse
from bridge.runner.context import RequestContext, SessionState, TerminationReason
from bridge.runner.emitter import StreamingEmitter, build_completion
from bridge.runner.events import EventStreamParser
from bridge.runner.launcher import build_invocation, feed_stdin, spawn, staged_prompt
from bridge.runner.supervisor import ProcessSupervisor, reap_in_background
from bridge.utils.error_classification import classify_failure
from bridge.utils.errors import SpawnError, SubprocessFailedError
from bridge.utils.logging import get_logger

logger = get_logger(__name__)

_READ_SIZE = 64 * 1024


class CompletionSession:
    """
    One chat completion served by one Gemini CLI process.

    Use ``stream()`` for SSE output or ``complete()`` for a single document;
    a session runs at most once.
    """

    def __init__(
        self,
        prompt: str,
        model: str,
        stream: bool,
        config: BridgeConfig,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.context = RequestContext(prompt, model, stream)
        self._config = config
        self._invocation = build_invocation(prompt, model, stream, config, environ)
        self._supervisor = ProcessSupervisor(self.context, config)
        self._stderr_task: asyncio.Task[None] | None = None
        self._stdin_task: asyncio.Task[None] | None = None

    @property
    def transfer_mode(self) -> str:
        return self._invocation.transfer_mode.value

    # Lifecycle

    @contextlib.asynccontextmanager
    async def _running(self) -> AsyncIterator[asyncio.subprocess.Process]:
        """Spawn the CLI with its timers and readers; release everything on exit."""
        context = self.context
        with staged_prompt(self._invocation) as prompt_file:
            try:
                process = await spawn(self._invocation)
                context.process = process
                context.state = SessionState.SPAWNED
                context.touch()

                logger.info(
                    "Gemini CLI started",
                    extra={
                        "completion_id": context.short_id,
                        "pid": process.pid,
                        "model": context.model,
                        "stream": context.stream,
                        "prompt_chars": len(context.prompt),
                        "transfer_mode": self.transfer_mode,
                        "approval_mode": self._config.approval_mode,
                    },
                )

                self._supervisor.start()
                self._stderr_task = asyncio.create_task(self._read_stderr(process))
                if prompt_file is not None:
                    self._stdin_task = asyncio.create_task(feed_stdin(process, prompt_file))

                yield process
            finally:
                self._release()

    def _release(self) -> None:
        """
        Synchronous cleanup, safe to run while the request task is cancelled.

        A process still alive at this point (client disconnect, internal
        error) is handed to a detached reaper for SIGTERM → SIGKILL.
        """
        context = self.context
        self._supervisor.stop()
        for task in (self._stdin_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()

        process = context.process
        if process is not None and process.returncode is None:
            context.mark_terminated(TerminationReason.CANCELLED)
            logger.warning(
                "Releasing request with live Gemini CLI, terminating",
                extra={"completion_id": context.short_id, "pid": process.pid},
            )
            reap_in_background(process, self._config.kill_grace_period)

        context.state = SessionState.CLOSED

    async def _read_stderr(self, process: asyncio.subprocess.Process) -> None:
        if process.stderr is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await process.stderr.read(_READ_SIZE)
            if not data:
                break
            self.context.touch()
            self.context.append_stderr(decoder.decode(data))
        self.context.append_stderr(decoder.decode(b"", final=True))

    async def _wait_for_exit(self, process: asyncio.subprocess.Process) -> int:
        """Stdout is closed: finish stdin and stderr, then reap the process."""
        self.context.state = SessionState.DRAINING
        if self._stdin_task is not None:
            await self._stdin_task
        if self._stderr_task is not None:
            await self._stderr_task
        return await process.wait()

    def _failed(self, returncode: int | None) -> bool:
        return returncode != 0 or self.context.termination_reason is not None

    def _classify(self, spawn_error: str | None = None) -> ErrorClassification:
        return classify_failure(
            self.context.stderr_text,
            spawn_error=spawn_error,
            terminated=self.context.termination_reason is not None,
            binary=self._config.binary,
        )

    # Streaming

    async def stream(self) -> AsyncIterator[str]:
        """
        Run the CLI in ``stream-json`` mode and yield SSE chunks.

        Yields the role chunk, one content chunk per assistant message, one
        terminal chunk (finish with usage, or an error chunk when the run
        failed before any content) and the ``[DONE]`` sentinel.
        """
        context = self.context
        emitter = StreamingEmitter(context, self._config)
        parser = EventStreamParser()
        returncode: int | None = None

        try:
            async with self._running() as process:
                yield emitter.role_chunk()
                context.state = SessionState.STREAMING

                assert process.stdout is not None
                while True:
                    data = await process.stdout.read(_READ_SIZE)
                    if not data:
                        break
                    context.touch()
                    for event in parser.feed(data):
                        chunk = self._handle_event(event, emitter)
                        if chunk is not None:
                            yield chunk

                for event in parser.flush():
                    chunk = self._handle_event(event, emitter)
                    if chunk is not None:
                        yield chunk

                returncode = await self._wait_for_exit(process)

        except SpawnError as exc:
            classification = self._classify(spawn_error=exc.message)
            logger.error(
                "Gemini CLI spawn failed",
                extra={"completion_id": context.short_id, "category": classification.category.value},
            )
            yield emitter.error_chunk(classification.message)
            yield emitter.done()
            return

        except Exception as exc:
            logger.error(
                "Unexpected error while streaming",
                extra={"completion_id": context.short_id, "error": str(exc)},
                exc_info=True,
            )
            if context.content_emitted:
                yield emitter.finish_chunk()
            else:
                yield emitter.error_chunk("Internal server error")
            yield emitter.done()
            return

        if self._failed(returncode) and not context.content_emitted:
            classification = self._classify()
            logger.error(
                "Gemini CLI failed before producing content",
                extra={
                    "completion_id": context.short_id,
                    "exit_code": returncode,
                    "termination_reason": getattr(context.termination_reason, "value", None),
                    "category": classification.category.value,
                    "stderr_tail": context.stderr_text[-500:],
                },
            )
            yield emitter.error_chunk(classification.message)
        else:
            if self._failed(returncode):
                logger.warning(
                    "Gemini CLI failed after partial output, ending stream normally",
                    extra={
                        "completion_id": context.short_id,
                        "exit_code": returncode,
                        "termination_reason": getattr(context.termination_reason, "value", None),
                    },
                )
            yield emitter.finish_chunk()

        yield emitter.done()

        logger.info(
            "Request completed",
            extra={
                "completion_id": context.short_id,
                "mode": "stream",
                "exit_code": returncode,
                "elapsed_seconds": round(context.elapsed, 1),
                "content_chars": len(context.output_text),
            },
        )

    def _handle_event(self, event: StreamEvent, emitter: StreamingEmitter) -> str | None:
        """Apply one CLI event; returns the chunk to send, if any."""
        if isinstance(event, MessageEvent):
            if event.role == "assistant" and event.content:
                return emitter.content_chunk(event.content)
        elif isinstance(event, ToolUseEvent):
            logger.info(
                "Gemini CLI tool use",
                extra={"tool_name": event.tool_name, "tool_id": event.tool_id},
            )
        elif isinstance(event, ToolResultEvent):
            logger.info(
                "Gemini CLI tool result",
                extra={"tool_id": event.tool_id, "tool_status": event.status},
            )
        elif isinstance(event, ResultEvent):
            emitter.record_result(event.stats)
        elif isinstance(event, ErrorEvent):
            logger.warning(
                "Gemini CLI reported an error event",
                extra={"detail": event.message or event.model_dump_json()},
            )
        return None

    # Non-streaming

    async def complete(self) -> ChatCompletionResponse:
        """
        Run the CLI in ``json`` mode and build one completion document.

        Raises:
            SubprocessFailedError: If the CLI could not start, exited non-zero
                or was terminated by the supervisor
            ParseError: If a successful run produced undecodable output
        """
        context = self.context
        output = bytearray()

        try:
            async with self._running() as process:
                context.state = SessionState.STREAMING
                assert process.stdout is not None
                while True:
                    data = await process.stdout.read(_READ_SIZE)
                    if not data:
                        break
                    context.touch()
                    output.extend(data)
                returncode = await self._wait_for_exit(process)
        except SpawnError as exc:
            raise SubprocessFailedError(self._classify(spawn_error=exc.message), None) from exc

        if self._failed(returncode):
            classification = self._classify()
            logger.error(
                "Gemini CLI failed",
                extra={
                    "completion_id": context.short_id,
                    "exit_code": returncode,
                    "termination_reason": getattr(context.termination_reason, "value", None),
                    "category": classification.category.value,
                    "stderr_tail": context.stderr_text[-500:],
                },
            )
            raise SubprocessFailedError(classification, returncode)

        response = build_completion(
            context, output.decode("utf-8", errors="replace"), self._config
        )

        logger.info(
            "Request completed",
            extra={
                "completion_id": context.short_id,
                "mode": "non-stream",
                "elapsed_seconds": round(context.elapsed, 1),
                "content_chars": len(context.output_text),
                "usage": response.usage.model_dump(),
            },
        )
        return response
