"""
Internal data models for the bridge.

These models represent concepts not exposed via the OpenAI API: the engine
configuration, the subprocess invocation, the Gemini CLI stream-json events
and the failure classification.
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class BridgeConfig(BaseModel):
    """
    Immutable engine configuration.

    Built once at startup from Settings and injected into every component;
    durations are in seconds.
    """

    model_config = ConfigDict(frozen=True)

    binary: str = Field(description="Gemini CLI binary")
    default_model: str = Field(description="Model used when the request names none")
    approval_mode: str = Field(description="Approval mode passed to the CLI")
    working_dir: str = Field(description="Working directory of the CLI process")
    env_passthrough: tuple[str, ...] = Field(default=(), description="Inherited env names")
    extra_env: dict[str, str] = Field(default_factory=dict, description="Additional env vars")
    supported_models: tuple[str, ...] = Field(default=(), description="Advertised models")
    default_system_prompt: str = Field(description="Injected when no system message is present")
    request_timeout: float = Field(gt=0, description="Absolute deadline")
    inactivity_timeout: float = Field(gt=0, description="Idle threshold")
    watchdog_interval: float = Field(gt=0, description="Idle check interval")
    kill_grace_period: float = Field(ge=0, description="SIGTERM to SIGKILL delay")
    max_arg_len: int = Field(ge=1, description="Largest prompt passed inline")
    chars_per_token: float = Field(gt=0, description="Usage estimation ratio")


class TransferMode(str, Enum):
    """How the prompt reaches the CLI."""

    INLINE = "inline"  # --prompt <text>
    STDIN = "stdin"  # --prompt - with the prompt piped from a staged file


class SubprocessInvocation(BaseModel):
    """Everything needed to start one Gemini CLI process."""

    model_config = ConfigDict(frozen=True)

    program: str
    args: tuple[str, ...]
    cwd: str
    env: dict[str, str]
    transfer_mode: TransferMode
    prompt: str

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]


# Gemini CLI stream-json events. Unknown fields are kept so they show up in
# debug logs; unknown event types fail validation and are skipped.


class _StreamEventBase(BaseModel):
    model_config = ConfigDict(extra="allow")


class MessageEvent(_StreamEventBase):
    """Message content; the CLI also echoes the user's prompt with role 'user'."""

    type: Literal["message"]
    role: str | None = None
    content: str = ""


class ToolUseEvent(_StreamEventBase):
    type: Literal["tool_use"]
    tool_name: str | None = None
    tool_id: str | None = None


class ToolResultEvent(_StreamEventBase):
    type: Literal["tool_result"]
    tool_id: str | None = None
    status: str | None = None


class ResultEvent(_StreamEventBase):
    """Terminal event carrying usage statistics."""

    type: Literal["result"]
    status: str | None = None
    stats: dict[str, Any] = Field(default_factory=dict)


class ErrorEvent(_StreamEventBase):
    type: Literal["error"]
    message: str | None = None


StreamEvent = Annotated[
    MessageEvent | ToolUseEvent | ToolResultEvent | ResultEvent | ErrorEvent,
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


class ErrorCategory(str, Enum):
    """User-facing failure categories."""

    INVALID_REQUEST = "invalid_request"
    RATE_LIMIT = "rate_limit"
    AUTH_ERROR = "auth_error"
    CONTEXT_OVERFLOW = "context_overflow"
    BINARY_NOT_FOUND = "binary_not_found"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    SERVER_ERROR = "server_error"


class ErrorClassification(BaseModel):
    """Result of classifying a failed CLI run."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    message: str
    category: ErrorCategory
