"""
Liveness and timeout supervision for Gemini CLI processes.

Two timers run per request while the process is alive:

- an absolute deadline measured from spawn, and
- an inactivity watchdog that polls the time since the last byte on stdout
  or stderr. The CLI can hang on a stuck network call without exiting or
  printing anything, which the deadline alone would only catch minutes later.

Either trigger sends SIGTERM to the process group and escalates to SIGKILL
after a grace period. The resulting exit is classified by the session.
"""

import asyncio
import contextlib
import os
import signal

from bridge.models.internal import BridgeConfig
from bridge.runner.context import RequestContext, TerminationReason
from bridge.utils.logging import get_logger

logger = get_logger(__name__)

# Strong references to detached reaper tasks until they finish
_reapers: set[asyncio.Task[None]] = set()


def send_signal(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    """Signal the process group, or just the process when it has no group of its own."""
    if process.returncode is not None:
        return
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass
    except PermissionError:
        with contextlib.suppress(ProcessLookupError):
            process.send_signal(sig)


async def terminate_process(process: asyncio.subprocess.Process, grace_period: float) -> int:
    """
    Graceful termination: SIGTERM → wait → SIGKILL.

    Args:
        process: Process to stop
        grace_period: Seconds to wait after SIGTERM

    Returns:
        The process's exit code
    """
    if process.returncode is not None:
        return process.returncode

    send_signal(process, signal.SIGTERM)
    try:
        return await asyncio.wait_for(process.wait(), timeout=grace_period)
    except asyncio.TimeoutError:
        logger.warning(
            "Gemini CLI ignored SIGTERM, sending SIGKILL",
            extra={"pid": process.pid, "grace_period": grace_period},
        )
        send_signal(process, signal.SIGKILL)
        return await process.wait()


def reap_in_background(process: asyncio.subprocess.Process, grace_period: float) -> None:
    """
    Terminate a process from a detached task.

    Used on client disconnect, where the request's own task is being
    cancelled and cannot await the escalation itself.
    """
    if process.returncode is not None:
        return
    send_signal(process, signal.SIGTERM)
    task = asyncio.get_running_loop().create_task(terminate_process(process, grace_period))
    _reapers.add(task)
    task.add_done_callback(_reapers.discard)


class ProcessSupervisor:
    """
    Deadline and inactivity timers for one request context.

    Usage:
        supervisor = ProcessSupervisor(context, config)
        supervisor.start()
        try:
            ...
        finally:
            supervisor.stop()
    """

    def __init__(self, context: RequestContext, config: BridgeConfig) -> None:
        self._context = context
        self._config = config
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Start both timers. The context must own a live process."""
        if self._context.process is None:
            raise RuntimeError("Cannot supervise a context without a process")
        self._tasks = [
            asyncio.create_task(self._deadline(), name=f"deadline-{self._context.short_id}"),
            asyncio.create_task(self._watchdog(), name=f"watchdog-{self._context.short_id}"),
        ]

    def stop(self) -> None:
        """Cancel both timers. Safe to call more than once."""
        for task in self._tasks:
            task.cancel()
        self._tasks = []

    async def _deadline(self) -> None:
        await asyncio.sleep(self._config.request_timeout)
        logger.error(
            "Request timed out, terminating Gemini CLI",
            extra={"timeout_seconds": self._config.request_timeout},
        )
        await self._terminate(TerminationReason.DEADLINE)

    async def _watchdog(self) -> None:
        while True:
            await asyncio.sleep(self._config.watchdog_interval)
            idle = self._context.idle_seconds()
            if idle > self._config.inactivity_timeout:
                logger.error(
                    "Inactivity watchdog triggered, killing hung Gemini CLI",
                    extra={
                        "idle_seconds": round(idle, 1),
                        "inactivity_timeout": self._config.inactivity_timeout,
                    },
                )
                await self._terminate(TerminationReason.INACTIVITY)
                return

    async def _terminate(self, reason: TerminationReason) -> None:
        process = self._context.process
        if process is None or process.returncode is not None:
            return
        self._context.mark_terminated(reason)
        await terminate_process(process, self._config.kill_grace_period)
