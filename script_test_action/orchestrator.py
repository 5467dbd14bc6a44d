"""Run the per-script pipeline over a bounded pool of concurrent workers."""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from script_test_action.aggregator import ResultAggregator
from script_test_action.classifier import classify
from script_test_action.interpreters.base import ScriptInterpreter, ScriptTraits
from script_test_action.models.report import RunReport, ScriptRecord
from script_test_action.models.result import (
    Classification,
    ExecutionResult,
    ParseError,
    SyntaxResult,
)
from script_test_action.models.script import ScriptUnit
from script_test_action.privilege import PrivilegeProbe
from script_test_action.prober import ExecutionProber
from script_test_action.report import log_script_result

log = logging.getLogger(__name__)

SYNTAX_ONLY_MESSAGE = "execution stage disabled (syntax-only mode)"


@dataclass(frozen=True, kw_only=True)
class HarnessOrchestrator:
    """Validates and probes discovered scripts.

    Each script goes through syntax check, classification and (when allowed)
    probing independently of every other script. Completed records are
    handed to a single aggregator task through a queue.
    """

    interpreters: Mapping[str, ScriptInterpreter]
    prober: ExecutionProber
    privilege_probe: PrivilegeProbe
    timeout: float
    concurrency: int = 1
    skip_execution: bool = False
    trace: logging.Logger = field(
        default_factory=lambda: logging.getLogger("script_test_action.trace"), repr=False
    )

    async def run(
        self,
        units: Sequence[ScriptUnit],
        *,
        root: Path,
        started_at: datetime | None = None,
        stop: asyncio.Event | None = None,
    ) -> RunReport:
        """Process all units and build the run report.

        Args:
            units: Discovered scripts
            root: Search root recorded in the report
            started_at: Run start time (defaults to now)
            stop: When set, no further scripts are started; scripts already
                running finish or time out and the report is partial

        Returns:
            Report covering every script that completed

        """
        started_at = started_at or datetime.now(UTC)
        stop = stop or asyncio.Event()
        aggregator = ResultAggregator()
        queue: asyncio.Queue[ScriptRecord | None] = asyncio.Queue()
        consumer = asyncio.create_task(aggregator.consume(queue))
        semaphore = asyncio.Semaphore(self.concurrency)

        async def worker(unit: ScriptUnit) -> None:
            async with semaphore:
                if stop.is_set():
                    return
                record = await self._process(unit)
            log_script_result(self.trace, record)
            await queue.put(record)

        log.info(
            "Processing %d script(s) with concurrency %d%s",
            len(units),
            self.concurrency,
            " (syntax-only)" if self.skip_execution else "",
        )
        try:
            await asyncio.gather(*(worker(unit) for unit in units))
        finally:
            await queue.put(None)
            await consumer

        cancelled = stop.is_set()
        if cancelled:
            log.warning(
                "Run cancelled after %d of %d script(s)",
                aggregator.summary.total_scripts,
                len(units),
            )

        return aggregator.build_report(
            root=str(root),
            mode="syntax-only" if self.skip_execution else "full",
            started_at=started_at,
            finished_at=datetime.now(UTC),
            discovered_scripts=len(units),
            cancelled=cancelled,
        )

    async def _process(self, unit: ScriptUnit) -> ScriptRecord:
        """Run syntax check, classification and probing for one script."""
        interpreter = self.interpreters[unit.interpreter]
        source, syntax = await self._check_syntax(unit, interpreter)

        try:
            text = source.decode("utf-8-sig", errors="replace")
            traits = interpreter.inspect(text) if syntax.passed else ScriptTraits()
            classification = classify(text, syntax, traits, self.privilege_probe)
            execution = await self._execute(unit, interpreter, traits, classification)
        except Exception as exc:
            log.error("Processing %s failed: %s", unit.relative_path, exc, exc_info=exc)
            return ScriptRecord.for_unit(
                unit,
                syntax=syntax,
                classification=None,
                execution=ExecutionResult(status="fail", message=f"Harness error: {exc}"),
            )

        return ScriptRecord.for_unit(
            unit, syntax=syntax, classification=classification, execution=execution
        )

    async def _check_syntax(
        self, unit: ScriptUnit, interpreter: ScriptInterpreter
    ) -> tuple[bytes, SyntaxResult]:
        try:
            source = await asyncio.to_thread(unit.path.read_bytes)
        except OSError as exc:
            return b"", SyntaxResult.from_errors(
                [ParseError(message=f"Cannot read script: {exc}", stage="tokenize")]
            )

        try:
            return source, await interpreter.check_syntax(unit, source, self.timeout)
        except Exception as exc:
            log.error("Syntax check of %s failed: %s", unit.relative_path, exc, exc_info=exc)
            return source, SyntaxResult.from_errors(
                [ParseError(message=f"Harness error: {exc}")]
            )

    async def _execute(
        self,
        unit: ScriptUnit,
        interpreter: ScriptInterpreter,
        traits: ScriptTraits,
        classification: Classification,
    ) -> ExecutionResult:
        if not classification.executable:
            return ExecutionResult.skipped(f"{classification.kind.value}: {classification.reason}")
        if self.skip_execution:
            return ExecutionResult.skipped(SYNTAX_ONLY_MESSAGE)
        return await self.prober.probe(unit, interpreter, traits)
