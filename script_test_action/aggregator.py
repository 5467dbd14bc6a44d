"""Single-writer aggregation of per-script records into a run report."""

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Literal

from script_test_action.models.report import RunReport, RunSummary, ScriptRecord

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2


class ResultAggregator:
    """Owns the run counters; ``add`` is the only way to change them."""

    def __init__(self) -> None:
        self._records: list[ScriptRecord] = []
        self._summary = RunSummary()

    @property
    def summary(self) -> RunSummary:
        """Current counters."""
        return self._summary

    @property
    def records(self) -> Sequence[ScriptRecord]:
        """Records in arrival order."""
        return tuple(self._records)

    def add(self, record: ScriptRecord) -> None:
        """Account for one completed script in a single update."""
        syntax_passed = record.syntax.status == "pass"
        execution = record.execution.status
        current = self._summary
        self._summary = RunSummary(
            total_scripts=current.total_scripts + 1,
            passed_syntax=current.passed_syntax + syntax_passed,
            failed_syntax=current.failed_syntax + (not syntax_passed),
            passed_execution=current.passed_execution + (execution == "pass"),
            failed_execution=current.failed_execution + (execution == "fail"),
            skipped_execution=current.skipped_execution + (execution == "skipped"),
        )
        self._records.append(record)

    async def consume(self, queue: "asyncio.Queue[ScriptRecord | None]") -> None:
        """Drain records from the queue until a ``None`` sentinel arrives."""
        while (record := await queue.get()) is not None:
            self.add(record)
            queue.task_done()
        queue.task_done()

    def exit_code(self, *, cancelled: bool = False) -> int:
        """Return 0 when nothing failed and the run completed, else 1."""
        if cancelled:
            return EXIT_FAILURES
        summary = self._summary
        if summary.failed_syntax == 0 and summary.failed_execution == 0:
            return EXIT_OK
        return EXIT_FAILURES

    def build_report(
        self,
        *,
        root: str,
        mode: Literal["full", "syntax-only"],
        started_at: datetime,
        finished_at: datetime,
        discovered_scripts: int,
        cancelled: bool = False,
    ) -> RunReport:
        """Freeze the collected records into a report sorted by path."""
        return RunReport(
            root=root,
            mode=mode,
            started_at=started_at,
            finished_at=finished_at,
            duration=(finished_at - started_at).total_seconds(),
            discovered_scripts=discovered_scripts,
            cancelled=cancelled,
            summary=self._summary,
            scripts=sorted(self._records, key=lambda r: r.relative_path),
            exit_code=self.exit_code(cancelled=cancelled),
        )
