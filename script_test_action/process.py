"""Child process execution with a hard timeout and guaranteed teardown."""

import asyncio
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


@dataclass(frozen=True, kw_only=True)
class ProcessOutcome:
    """Captured outcome of a finished (or killed) child process."""

    returncode: int | None
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        """Whether the process exited normally with status 0."""
        return not self.timed_out and self.returncode == 0


async def run_process(
    argv: Sequence[str],
    *,
    timeout: float,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ProcessOutcome:
    """Run a command to completion, killing its whole process group on timeout.

    Args:
        argv: Program and arguments
        timeout: Seconds to wait before the process group is killed
        cwd: Working directory for the child
        env: Full environment for the child (inherits ours when None)

    Returns:
        Captured output; ``timed_out`` is set when the deadline was hit

    Raises:
        OSError: If the program cannot be launched

    """
    log.debug("Running %s (timeout=%ss)", " ".join(argv), timeout)
    process = await asyncio.create_subprocess_exec(
        *argv,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        **spawn_options(),
    )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except TimeoutError:
        log.debug("Process %d exceeded %ss, killing", process.pid, timeout)
        await _terminate(process)
        return ProcessOutcome(
            returncode=process.returncode, stdout="", stderr="", timed_out=True
        )
    except asyncio.CancelledError:
        await _terminate(process)
        raise

    return ProcessOutcome(
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


def spawn_options() -> dict[str, Any]:
    """Start the child as the leader of a new process group."""
    if IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Kill the process and everything it spawned, then reap it.

    The group is killed even when the direct child already exited, since
    background children it left behind still hold the output pipes.
    """
    if IS_WINDOWS:
        await _kill_tree_windows(process)
    else:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    await process.wait()


async def _kill_tree_windows(process: asyncio.subprocess.Process) -> None:
    try:
        killer = await asyncio.create_subprocess_exec(
            "taskkill",
            "/F",
            "/T",
            "/PID",
            str(process.pid),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        await killer.wait()
    except OSError as exc:
        log.warning("taskkill failed for process %d: %s", process.pid, exc)

    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
