"""
Per-request state for one Gemini CLI run.

A RequestContext is created when a completion request is accepted and owns
exactly one subprocess. Its mutable fields are only touched by the tasks of
that request (stdout reader, stderr reader, supervisor), so no locking is
needed.
"""

import asyncio
import time
import uuid
from enum import Enum

from bridge.runner.launcher import display_model_name


class SessionState(str, Enum):
    """Lifecycle of a request context."""

    PENDING = "pending"  # prompt built, nothing spawned yet
    SPAWNED = "spawned"  # process started, no output consumed yet
    STREAMING = "streaming"  # reading stdout
    DRAINING = "draining"  # stdout closed, waiting for stderr and exit
    CLOSED = "closed"  # process reaped, timers cancelled, staging removed


class TerminationReason(str, Enum):
    """Why the supervisor stopped the process."""

    DEADLINE = "deadline"
    INACTIVITY = "inactivity"
    CANCELLED = "cancelled"


class RequestContext:
    """Aggregate owning one request's identity, output and process handle."""

    def __init__(self, prompt: str, model: str, stream: bool) -> None:
        self.request_id = f"chatcmpl-{uuid.uuid4()}"
        self.created = int(time.time())
        self.started_at = time.monotonic()
        self.last_activity = self.started_at

        self.prompt = prompt
        self.model = model
        self.model_name = display_model_name(model)
        self.stream = stream

        self.state = SessionState.PENDING
        self.process: asyncio.subprocess.Process | None = None
        self.termination_reason: TerminationReason | None = None

        self._output: list[str] = []
        self._stderr: list[str] = []

    @property
    def short_id(self) -> str:
        return self.request_id[-8:]

    @property
    def output_text(self) -> str:
        return "".join(self._output)

    @property
    def stderr_text(self) -> str:
        return "".join(self._stderr)

    @property
    def content_emitted(self) -> bool:
        return bool(self._output)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def idle_seconds(self) -> float:
        return time.monotonic() - self.last_activity

    def touch(self) -> None:
        """Record that the process produced output."""
        self.last_activity = time.monotonic()

    def append_output(self, text: str) -> None:
        self._output.append(text)

    def append_stderr(self, text: str) -> None:
        self._stderr.append(text)

    def mark_terminated(self, reason: TerminationReason) -> None:
        """Keep the first termination reason only."""
        if self.termination_reason is None:
            self.termination_reason = reason
