"""Tests for the result aggregator."""

import asyncio
import random
from datetime import UTC, datetime, timedelta

from script_test_action.aggregator import (
    EXIT_FAILURES,
    EXIT_OK,
    ResultAggregator,
)
from script_test_action.models.report import ScriptRecord
from script_test_action.models.result import ExecutionResult, ParseError, SyntaxResult
from script_test_action.testing.factories import ScriptRecordFactory

STARTED = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def passing(relative_path: str) -> ScriptRecord:
    """Record that passed both stages."""
    return ScriptRecordFactory.build(
        relative_path=relative_path,
        execution=ExecutionResult(status="pass", mode="source-only"),
    )


def syntax_failure(relative_path: str) -> ScriptRecord:
    """Record with a syntax error and skipped execution."""
    return ScriptRecordFactory.build(
        relative_path=relative_path,
        syntax=SyntaxResult.from_errors([ParseError(message="boom", line=1)]),
        execution=ExecutionResult.skipped("skip:syntax-failed: syntax check failed"),
    )


def execution_failure(relative_path: str) -> ScriptRecord:
    """Record that parsed but failed to run."""
    return ScriptRecordFactory.build(
        relative_path=relative_path,
        execution=ExecutionResult(status="fail", mode="help", message="exit code 1"),
    )


def skipped(relative_path: str) -> ScriptRecord:
    """Record skipped by classification."""
    return ScriptRecordFactory.build(
        relative_path=relative_path,
        execution=ExecutionResult.skipped("skip:cloud-dependent"),
    )


def build(aggregator: ResultAggregator, *, cancelled: bool = False):
    """Build a report with fixed timestamps."""
    return aggregator.build_report(
        root="/repo",
        mode="full",
        started_at=STARTED,
        finished_at=STARTED + timedelta(seconds=3),
        discovered_scripts=aggregator.summary.total_scripts,
        cancelled=cancelled,
    )


class TestCounters:
    """Tests for counter updates."""

    def test_starts_empty(self) -> None:
        """A fresh aggregator has zero counts and exit code 0."""
        aggregator = ResultAggregator()

        assert aggregator.summary.total_scripts == 0
        assert aggregator.exit_code() == EXIT_OK

    def test_counts_each_stage(self) -> None:
        """Every record increments exactly one bucket per stage."""
        aggregator = ResultAggregator()
        for record in (
            passing("a.sh"),
            syntax_failure("b.sh"),
            execution_failure("c.sh"),
            skipped("d.sh"),
        ):
            aggregator.add(record)

        summary = aggregator.summary
        assert summary.total_scripts == 4
        assert summary.passed_syntax == 3
        assert summary.failed_syntax == 1
        assert summary.passed_execution == 1
        assert summary.failed_execution == 1
        assert summary.skipped_execution == 2

    def test_invariants_hold(self) -> None:
        """Stage buckets always add up to the total."""
        aggregator = ResultAggregator()
        makers = [passing, syntax_failure, execution_failure, skipped]
        rng = random.Random(7)
        for index in range(50):
            aggregator.add(rng.choice(makers)(f"s{index}.sh"))

        summary = aggregator.summary
        assert summary.passed_syntax + summary.failed_syntax == summary.total_scripts
        assert (
            summary.passed_execution
            + summary.failed_execution
            + summary.skipped_execution
            == summary.total_scripts
        )


class TestExitCode:
    """Tests for exit code computation."""

    def test_zero_when_only_passes_and_skips(self) -> None:
        """Skips do not fail the run."""
        aggregator = ResultAggregator()
        aggregator.add(passing("a.sh"))
        aggregator.add(skipped("b.sh"))

        assert aggregator.exit_code() == EXIT_OK

    def test_one_on_syntax_failure(self) -> None:
        """Any syntax failure fails the run."""
        aggregator = ResultAggregator()
        aggregator.add(syntax_failure("a.sh"))

        assert aggregator.exit_code() == EXIT_FAILURES

    def test_one_on_execution_failure(self) -> None:
        """Any execution failure fails the run."""
        aggregator = ResultAggregator()
        aggregator.add(execution_failure("a.sh"))

        assert aggregator.exit_code() == EXIT_FAILURES

    def test_one_when_cancelled(self) -> None:
        """A cancelled run is never reported as success."""
        aggregator = ResultAggregator()
        aggregator.add(passing("a.sh"))

        assert aggregator.exit_code(cancelled=True) == EXIT_FAILURES


class TestBuildReport:
    """Tests for build_report."""

    def test_sorts_records_by_path(self) -> None:
        """The report order does not depend on completion order."""
        aggregator = ResultAggregator()
        for name in ("c.sh", "a.sh", "b.sh"):
            aggregator.add(passing(name))

        report = build(aggregator)

        assert [r.relative_path for r in report.scripts] == ["a.sh", "b.sh", "c.sh"]

    def test_independent_of_processing_order(self) -> None:
        """Two arrival orders produce identical reports."""
        records = [passing("a.sh"), syntax_failure("b.sh"), skipped("c.sh")]
        first, second = ResultAggregator(), ResultAggregator()
        for record in records:
            first.add(record)
        for record in reversed(records):
            second.add(record)

        assert build(first).model_dump_json() == build(second).model_dump_json()

    def test_reports_duration_and_exit_code(self) -> None:
        """Duration comes from the timestamps; exit code from the counters."""
        aggregator = ResultAggregator()
        aggregator.add(execution_failure("a.sh"))

        report = build(aggregator, cancelled=False)

        assert report.duration == 3.0
        assert report.exit_code == EXIT_FAILURES
        assert report.cancelled is False


async def test_consume_drains_queue_until_sentinel() -> None:
    """The consumer applies every queued record then stops on None."""
    aggregator = ResultAggregator()
    queue: asyncio.Queue[ScriptRecord | None] = asyncio.Queue()
    for name in ("a.sh", "b.sh"):
        await queue.put(passing(name))
    await queue.put(None)

    await aggregator.consume(queue)

    assert aggregator.summary.total_scripts == 2
    assert [r.relative_path for r in aggregator.records] == ["a.sh", "b.sh"]
