"""
Configuration management using Pydantic Settings.

This module handles all environment-based configuration for the bridge,
including API settings, Gemini CLI invocation and subprocess supervision.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from bridge.models.internal import BridgeConfig


DEFAULT_ENV_PASSTHROUGH = [
    "PATH",
    "HOME",
    "USER",
    "LOGNAME",
    "SHELL",
    "LANG",
    "LC_ALL",
    "TMPDIR",
    "XDG_CONFIG_HOME",
    "XDG_CACHE_HOME",
    "NODE_OPTIONS",
    "HTTP_PROXY",
    "HTTPS_PROXY",
    "NO_PROXY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "GOOGLE_CLOUD_PROJECT",
    "GOOGLE_CLOUD_LOCATION",
    "GOOGLE_GENAI_USE_VERTEXAI",
    "GOOGLE_APPLICATION_CREDENTIALS",
]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env file.

    Durations keep the millisecond environment names used by existing bridge
    deployments; ``bridge_config`` converts them to seconds.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    api_host: str = Field(default="127.0.0.1", description="API server host address")
    api_port: int = Field(default=18791, description="API server port", ge=1, le=65535)
    api_title: str = Field(default="geminicli-bridge", description="Service name")
    api_version: str = Field(default="1.0.0", description="Service version")

    # Environment
    environment: str = Field(
        default="development",
        description="Deployment environment",
        pattern="^(development|staging|production|test)$",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    log_format: str = Field(
        default="json",
        description="Logging format",
        pattern="^(json|standard)$",
    )

    # Gemini CLI
    gemini_bin: str = Field(default="gemini", description="Path or name of the Gemini CLI binary")
    gemini_model: str = Field(
        default="gemini-3-flash-preview",
        description="Model used when the request does not name one",
        min_length=1,
    )
    gemini_approval_mode: str = Field(
        default="yolo",
        description="Approval mode: 'yolo' maps to -y, anything else to --approval-mode",
    )
    gemini_working_dir: str = Field(
        default_factory=lambda: str(Path.home()),
        description="Working directory for the Gemini CLI (scopes its file access)",
    )
    gemini_env_passthrough: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ENV_PASSTHROUGH),
        description="Environment variable names copied from the server into the CLI process",
    )
    gemini_extra_env: dict[str, str] = Field(
        default_factory=dict,
        description="Additional environment variables for the CLI process",
    )
    supported_models: list[str] = Field(
        default_factory=lambda: ["gemini-3-pro-preview", "gemini-3-flash-preview"],
        description="Models advertised via GET /v1/models",
    )
    default_system_prompt: str | None = Field(
        default=None,
        description="Overrides the packaged default system instruction",
    )

    # Subprocess supervision
    bridge_timeout_ms: int = Field(
        default=300_000,
        description="Absolute deadline for one CLI invocation in milliseconds",
        ge=1,
    )
    bridge_inactivity_timeout_ms: int = Field(
        default=120_000,
        description="Kill the CLI after this long without stdout/stderr output",
        ge=1,
    )
    bridge_watchdog_interval_ms: int = Field(
        default=10_000,
        description="Polling interval of the inactivity watchdog",
        ge=1,
    )
    bridge_kill_grace_ms: int = Field(
        default=5_000,
        description="Grace period between SIGTERM and SIGKILL",
        ge=0,
    )
    bridge_max_arg_len: int = Field(
        default=32_768,
        description="Prompts longer than this are piped via stdin instead of --prompt",
        ge=1,
    )
    bridge_chars_per_token: float = Field(
        default=3.5,
        description="Characters per token used for usage estimation",
        gt=0,
    )

    # CORS Configuration
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        description="Allowed CORS methods",
    )
    cors_allow_headers: list[str] = Field(
        default=["Content-Type", "Authorization"],
        description="Allowed CORS headers",
    )

    # Request Validation
    max_request_body_size: int = Field(
        default=10_485_760,
        description="Maximum request body size in bytes",
        ge=1024,
        le=104_857_600,
    )

    # Rate Limiting Configuration
    rate_limit_enabled: bool = Field(
        default=False,
        description="Enable rate limiting for API endpoints",
    )

    @computed_field
    @property
    def base_url(self) -> str:
        """Computed property for base API URL."""
        return f"http://{self.api_host}:{self.api_port}"

    def get_log_config(self) -> dict[str, Any]:
        """Get logging configuration dictionary."""
        return {
            "level": self.log_level,
            "format": self.log_format,
        }

    @property
    def bridge_config(self) -> "BridgeConfig":
        """
        Build the immutable configuration consumed by the bridging engine.

        Returns:
            Frozen BridgeConfig with durations converted to seconds and the
            default system instruction resolved.
        """
        # Lazy import to avoid circular dependencies
        from bridge.models.internal import BridgeConfig
        from bridge.utils.prompts import DEFAULT_SYSTEM_PROMPT, load_prompt

        system_prompt = self.default_system_prompt or load_prompt(
            "default", fallback=DEFAULT_SYSTEM_PROMPT
        )

        return BridgeConfig(
            binary=self.gemini_bin,
            default_model=self.gemini_model,
            approval_mode=self.gemini_approval_mode,
            working_dir=self.gemini_working_dir,
            env_passthrough=tuple(self.gemini_env_passthrough),
            extra_env=dict(self.gemini_extra_env),
            supported_models=tuple(self.supported_models),
            default_system_prompt=system_prompt,
            request_timeout=self.bridge_timeout_ms / 1000,
            inactivity_timeout=self.bridge_inactivity_timeout_ms / 1000,
            watchdog_interval=self.bridge_watchdog_interval_ms / 1000,
            kill_grace_period=self.bridge_kill_grace_ms / 1000,
            max_arg_len=self.bridge_max_arg_len,
            chars_per_token=self.bridge_chars_per_token,
        )
