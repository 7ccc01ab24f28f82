"""Pytest configuration and shared fixtures."""

import json
import os
import stat
import sys
import tempfile
from collections.abc import Callable
from pathlib import Path

import pytest

from bridge.config import Settings
from bridge.models.internal import BridgeConfig

# Set before any test module imports bridge.main (which builds an app at import)
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("GEMINI_WORKING_DIR", tempfile.gettempdir())

FAKE_GEMINI = Path(__file__).parent / "fixtures" / "fake_gemini.py"


@pytest.fixture(scope="session")
def fake_gemini_bin(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Executable wrapper that runs the fake Gemini CLI with this interpreter."""
    bin_dir = tmp_path_factory.mktemp("bin")
    wrapper = bin_dir / "gemini"
    wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_GEMINI}" "$@"\n')
    wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(wrapper)


@pytest.fixture
def make_config(fake_gemini_bin: str, tmp_path: Path) -> Callable[..., BridgeConfig]:
    """Factory for BridgeConfig pointing at the fake CLI with short timeouts."""
    def _make(mode: str = "ok", **overrides) -> BridgeConfig:
        values = {
            "binary": fake_gemini_bin,
            "default_model": "gemini-3-flash-preview",
            "approval_mode": "yolo",
            "working_dir": str(tmp_path),
            "env_passthrough": ("PATH", "HOME"),
            "extra_env": {"FAKE_GEMINI_MODE": mode},
            "supported_models": ("gemini-3-pro-preview", "gemini-3-flash-preview"),
            "default_system_prompt": "You are a helpful AI assistant.",
            "request_timeout": 10.0,
            "inactivity_timeout": 10.0,
            "watchdog_interval": 0.05,
            "kill_grace_period": 0.5,
            "max_arg_len": 32_768,
            "chars_per_token": 3.5,
        }
        values.update(overrides)
        return BridgeConfig(**values)

    return _make


@pytest.fixture
def make_settings(fake_gemini_bin: str, tmp_path: Path) -> Callable[..., Settings]:
    """Factory for Settings pointing at the fake CLI with short timeouts."""
    def _make(mode: str = "ok", **overrides) -> Settings:
        values = {
            "environment": "test",
            "gemini_bin": fake_gemini_bin,
            "gemini_working_dir": str(tmp_path),
            "gemini_env_passthrough": ["PATH", "HOME"],
            "gemini_extra_env": {"FAKE_GEMINI_MODE": mode},
            "bridge_timeout_ms": 10_000,
            "bridge_inactivity_timeout_ms": 10_000,
            "bridge_watchdog_interval_ms": 50,
            "bridge_kill_grace_ms": 500,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def parse_sse() -> Callable[[str], list]:
    """Split an SSE body into decoded chunk payloads; ``[DONE]`` stays a string."""

    def _parse(body: str) -> list:
        events = []
        for block in body.split("\n\n"):
            if not block.strip():
                continue
            assert block.startswith("data: "), f"Malformed SSE block: {block!r}"
            data = block[len("data: ") :]
            events.append(data if data == "[DONE]" else json.loads(data))
        return events

    return _parse
