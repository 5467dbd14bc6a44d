"""Console trace and structured report emission."""

import logging
from datetime import datetime
from pathlib import Path

from script_test_action.models.report import RunReport, ScriptRecord

log = logging.getLogger(__name__)

REPORT_FILENAME = "script-test-results.json"
REPORT_ARCHIVE_STEM = "script-test-results"
LOG_STEM = "script-test"

STATUS_SYMBOLS = {
    "pass": "✅",
    "fail": "❌",
    "error": "❗",
    "timeout": "⏱️",
    "skipped": "⏭️",
}


def record_symbol(record: ScriptRecord) -> str:
    """Pick the symbol summarizing a record's worst outcome."""
    if record.classification is None:
        return STATUS_SYMBOLS["error"]
    if record.syntax.status == "fail":
        return STATUS_SYMBOLS["fail"]
    if record.execution.timed_out:
        return STATUS_SYMBOLS["timeout"]
    return STATUS_SYMBOLS[record.execution.status]


def log_script_result(trace: logging.Logger, record: ScriptRecord) -> None:
    """Log one line per completed script, plus indented details."""
    execution = record.execution
    classification = record.classification
    detail = execution.mode or (classification.kind.value if classification else "error")
    trace.info(
        "%s %s: syntax=%s execution=%s (%s, %.2fs)",
        record_symbol(record),
        record.relative_path,
        record.syntax.status,
        execution.status,
        detail,
        execution.duration,
    )
    for error in record.syntax.errors:
        location = f"line {error.line}" if error.line is not None else "?"
        trace.info("  %s error at %s: %s", error.stage, location, error.message)
    if execution.message:
        trace.info("  Message: %s", execution.message)
    for warning in execution.warnings:
        trace.warning("  Warning: %s", warning)


def log_results_summary(trace: logging.Logger, report: RunReport) -> None:
    """Log the aggregate counters of a run."""
    summary = report.summary
    trace.info("=" * 80)
    trace.info("Script Test Summary (%s mode):", report.mode)
    trace.info("=" * 80)
    trace.info("Scripts:   %d of %d discovered", summary.total_scripts, report.discovered_scripts)
    trace.info(
        "Syntax:    %d passed, %d failed", summary.passed_syntax, summary.failed_syntax
    )
    trace.info(
        "Execution: %d passed, %d failed, %d skipped",
        summary.passed_execution,
        summary.failed_execution,
        summary.skipped_execution,
    )
    if report.cancelled:
        trace.warning("Run was cancelled; report covers completed scripts only")
    trace.info("Duration:  %.2fs, exit code %d", report.duration, report.exit_code)


def timestamped_path(directory: Path, stem: str, suffix: str, moment: datetime) -> Path:
    """Return a per-run file path that does not exist yet."""
    base = f"{stem}-{moment.strftime('%Y%m%dT%H%M%SZ')}"
    candidate = directory / f"{base}{suffix}"
    counter = 1
    while candidate.exists():
        candidate = directory / f"{base}-{counter}{suffix}"
        counter += 1
    return candidate


def write_report(report: RunReport, output_dir: Path) -> Path:
    """Write the report to its fixed location and to a per-run archive.

    Returns:
        Path of the fixed-location report file

    """
    output_dir.mkdir(parents=True, exist_ok=True)
    content = report.model_dump_json(indent=2)

    archive = timestamped_path(output_dir, REPORT_ARCHIVE_STEM, ".json", report.started_at)
    archive.write_text(content, encoding="utf-8")

    latest = output_dir / REPORT_FILENAME
    latest.write_text(content, encoding="utf-8")
    log.info("Wrote report to %s (archived as %s)", latest, archive.name)
    return latest
