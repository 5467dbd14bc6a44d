"""Least invasive safe invocation of scripts classified as executable."""

import logging
import os
import tempfile
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from script_test_action.interpreters.base import ScriptInterpreter, ScriptTraits
from script_test_action.models.result import ExecutionResult, ProbeMode
from script_test_action.models.script import ScriptUnit
from script_test_action.process import run_process

log = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500

# Exported to every probed script so it can tell it runs under the harness
PROBE_ENVIRONMENT: Mapping[str, str] = {
    "SCRIPT_TEST_ACTION": "1",
    "DEBIAN_FRONTEND": "noninteractive",
}

UNGUARDED_WARNING = (
    "source-only load executed the script's top-level statements "
    "(no main guard found); side effects may have occurred"
)


def select_mode(traits: ScriptTraits) -> ProbeMode:
    """Pick the first applicable mode: dry-run, then help, then source-only."""
    if traits.dry_run_args:
        return "dry-run"
    if traits.help_args:
        return "help"
    return "source-only"


@dataclass(frozen=True, kw_only=True)
class ExecutionProber:
    """Invoke scripts in a disposable child process under a hard timeout."""

    timeout: float
    extra_env: Mapping[str, str] = field(default_factory=dict)

    async def probe(
        self,
        unit: ScriptUnit,
        interpreter: ScriptInterpreter,
        traits: ScriptTraits,
    ) -> ExecutionResult:
        """Run one script in the least invasive mode it supports.

        The child runs in its own process group inside a throwaway working
        directory, with stdin closed; on timeout the group is killed.

        Args:
            unit: Script to probe
            interpreter: Backend that builds the command line
            traits: Conventions the backend read from the script

        Returns:
            ``pass`` on a clean exit, ``fail`` with the error otherwise

        """
        mode = select_mode(traits)
        argv = interpreter.command_for(mode, unit.path, traits)
        warnings: Sequence[str] = ()
        if mode == "source-only" and not traits.has_main_guard:
            warnings = (UNGUARDED_WARNING,)

        log.debug("Probing %s in %s mode", unit.relative_path, mode)
        started = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="script-test-") as workdir:
            try:
                outcome = await run_process(
                    argv,
                    timeout=self.timeout,
                    cwd=Path(workdir),
                    env=self._environment(),
                )
            except OSError as exc:
                return ExecutionResult(
                    status="fail",
                    mode=mode,
                    message=f"Cannot launch {argv[0]}: {exc}",
                    duration=time.monotonic() - started,
                    warnings=warnings,
                )
        duration = time.monotonic() - started

        if outcome.timed_out:
            return ExecutionResult(
                status="fail",
                mode=mode,
                message=f"timeout after {self.timeout}s",
                duration=duration,
                timed_out=True,
                warnings=warnings,
            )
        if outcome.returncode != 0:
            return ExecutionResult(
                status="fail",
                mode=mode,
                message=failure_message(outcome.returncode, outcome.stderr, outcome.stdout),
                duration=duration,
                warnings=warnings,
            )
        return ExecutionResult(status="pass", mode=mode, duration=duration, warnings=warnings)

    def _environment(self) -> dict[str, str]:
        return {**os.environ, **PROBE_ENVIRONMENT, **self.extra_env}


def failure_message(returncode: int | None, stderr: str, stdout: str) -> str:
    """Summarize a failed invocation by its exit code and last output lines."""
    output = stderr.strip() or stdout.strip()
    message = f"exit code {returncode}"
    if output:
        tail = output[-MAX_MESSAGE_LENGTH:]
        message = f"{message}: {tail}"
    return message
