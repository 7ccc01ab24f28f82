"""
Gemini CLI subprocess launcher.

Builds the invocation for one request and starts the process. Prompts up to
``max_arg_len`` characters are passed inline with ``--prompt``; larger ones
are staged in a private temporary directory and piped through stdin
(``--prompt -``) to stay clear of the OS argument size limit.
"""

import asyncio
import contextlib
import os
import shutil
import tempfile
from collections.abc import Iterator, Mapping
from pathlib import Path

from bridge.models.internal import BridgeConfig, SubprocessInvocation, TransferMode
from bridge.utils.errors import SpawnError
from bridge.utils.logging import get_logger

logger = get_logger(__name__)

MODEL_PREFIXES = ("bridge-gemini-cli/", "gemini/")

#: Always set for the CLI so it never tries to drive a terminal UI.
ENV_OVERLAY = {"CI": "true", "TERM": "dumb"}

STDIN_SENTINEL = "-"
STAGING_PREFIX = "geminicli-bridge-"
_STDIN_CHUNK_SIZE = 64 * 1024


def resolve_model(requested: str | None, default_model: str) -> str:
    """
    Resolve the bare Gemini model ID for a request.

    Clients may send ``gemini-3-pro-preview``, ``gemini/gemini-3-pro-preview``
    or ``bridge-gemini-cli/gemini-3-pro-preview``.

    Args:
        requested: The request's ``model`` field
        default_model: Configured default

    Returns:
        Model ID without provider prefix
    """
    if not requested:
        return default_model
    bare = requested
    for prefix in MODEL_PREFIXES:
        if bare.startswith(prefix):
            bare = bare[len(prefix) :]
            break
    return bare or default_model


def display_model_name(model: str) -> str:
    """Model name reported back to clients."""
    return f"gemini/{model}"


def select_transfer_mode(prompt: str, max_arg_len: int) -> TransferMode:
    """Inline up to ``max_arg_len`` characters, stdin above."""
    return TransferMode.STDIN if len(prompt) > max_arg_len else TransferMode.INLINE


def build_environment(
    config: BridgeConfig, source: Mapping[str, str] | None = None
) -> dict[str, str]:
    """
    Build the CLI environment.

    Only variables listed in ``env_passthrough`` are inherited; configured
    extras and the fixed overlay are applied on top.

    Args:
        config: Engine configuration
        source: Environment to copy from (defaults to ``os.environ``)

    Returns:
        Complete environment for the subprocess
    """
    source = os.environ if source is None else source
    env = {name: source[name] for name in config.env_passthrough if name in source}
    env.update(config.extra_env)
    env.update(ENV_OVERLAY)
    return env


def build_invocation(
    prompt: str,
    model: str,
    stream: bool,
    config: BridgeConfig,
    environ: Mapping[str, str] | None = None,
) -> SubprocessInvocation:
    """
    Build the Gemini CLI invocation for one request.

    Args:
        prompt: Prompt text
        model: Bare model ID
        stream: ``stream-json`` output when True, single ``json`` document otherwise
        config: Engine configuration
        environ: Environment to inherit from (defaults to ``os.environ``)

    Returns:
        Frozen SubprocessInvocation
    """
    transfer_mode = select_transfer_mode(prompt, config.max_arg_len)

    args = ["--model", model, "--output-format", "stream-json" if stream else "json"]

    if config.approval_mode == "yolo":
        args.append("-y")
    elif config.approval_mode:
        args.extend(["--approval-mode", config.approval_mode])

    if transfer_mode is TransferMode.INLINE:
        args.extend(["--prompt", prompt])
    else:
        args.extend(["--prompt", STDIN_SENTINEL])

    return SubprocessInvocation(
        program=config.binary,
        args=tuple(args),
        cwd=config.working_dir,
        env=build_environment(config, environ),
        transfer_mode=transfer_mode,
        prompt=prompt,
    )


@contextlib.contextmanager
def staged_prompt(invocation: SubprocessInvocation) -> Iterator[Path | None]:
    """
    Stage the prompt for stdin transfer.

    Yields the path of a file holding the prompt inside a private temporary
    directory, or None for inline transfer. The directory is removed when
    the block exits, whatever the outcome.

    Args:
        invocation: Invocation being launched
    """
    if invocation.transfer_mode is not TransferMode.STDIN:
        yield None
        return

    staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX))
    try:
        prompt_file = staging_dir / "prompt.txt"
        prompt_file.write_text(invocation.prompt, encoding="utf-8")
        logger.debug(
            "Prompt staged for stdin transfer",
            extra={"path": str(prompt_file), "prompt_chars": len(invocation.prompt)},
        )
        yield prompt_file
    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)
        logger.debug("Staged prompt removed", extra={"path": str(staging_dir)})


async def spawn(invocation: SubprocessInvocation) -> asyncio.subprocess.Process:
    """
    Start the Gemini CLI.

    The process gets its own session so termination signals can target the
    whole process group (the CLI runs node and may start helpers).

    Raises:
        SpawnError: If the process cannot be started (missing binary, bad cwd, ...)
    """
    stdin = (
        asyncio.subprocess.PIPE
        if invocation.transfer_mode is TransferMode.STDIN
        else asyncio.subprocess.DEVNULL
    )
    try:
        return await asyncio.create_subprocess_exec(
            *invocation.argv,
            stdin=stdin,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=invocation.cwd,
            env=invocation.env,
            start_new_session=True,
        )
    except OSError as exc:
        logger.error(
            "Failed to spawn Gemini CLI",
            extra={"binary": invocation.program, "error": str(exc), "error_type": type(exc).__name__},
        )
        raise SpawnError(str(exc), binary=invocation.program) from exc


async def feed_stdin(process: asyncio.subprocess.Process, prompt_file: Path) -> None:
    """
    Stream the staged prompt into the process's stdin, then close it.

    A process that exits before reading its input is not an error here;
    its exit code decides the outcome.
    """
    stdin = process.stdin
    if stdin is None:
        return
    try:
        with prompt_file.open("rb") as handle:
            while chunk := handle.read(_STDIN_CHUNK_SIZE):
                stdin.write(chunk)
                await stdin.drain()
    except (BrokenPipeError, ConnectionResetError) as exc:
        logger.warning(
            "Gemini CLI closed stdin before the prompt was fully written",
            extra={"error": str(exc)},
        )
    finally:
        stdin.close()
        with contextlib.suppress(BrokenPipeError, ConnectionResetError):
            await stdin.wait_closed()
