"""Models for the structured run report."""

from collections.abc import Sequence
from datetime import datetime
from typing import Literal

from pydantic import Field

from script_test_action.models.base import Model
from script_test_action.models.result import (
    Classification,
    ExecutionResult,
    SyntaxResult,
)
from script_test_action.models.script import ScriptUnit


class ScriptRecord(Model):
    """Everything the harness learned about one script."""

    path: str = Field(..., description="Absolute path of the script")
    relative_path: str = Field(..., description="Path relative to the search root")
    interpreter: str = Field(..., description="Interpreter backend key")
    syntax: SyntaxResult
    classification: Classification | None = Field(
        default=None, description="Absent only when the harness itself failed"
    )
    execution: ExecutionResult

    @classmethod
    def for_unit(
        cls,
        unit: ScriptUnit,
        *,
        syntax: SyntaxResult,
        classification: Classification | None,
        execution: ExecutionResult,
    ) -> "ScriptRecord":
        """Build the record for a processed script unit."""
        return cls(
            path=str(unit.path),
            relative_path=unit.relative_path,
            interpreter=unit.interpreter,
            syntax=syntax,
            classification=classification,
            execution=execution,
        )


class RunSummary(Model):
    """Aggregate counters of a run."""

    total_scripts: int = 0
    passed_syntax: int = 0
    failed_syntax: int = 0
    passed_execution: int = 0
    failed_execution: int = 0
    skipped_execution: int = 0


class RunReport(Model):
    """Complete structured result of one harness run."""

    root: str
    mode: Literal["full", "syntax-only"]
    started_at: datetime
    finished_at: datetime
    duration: float
    discovered_scripts: int
    cancelled: bool = False
    summary: RunSummary
    scripts: Sequence[ScriptRecord] = Field(default_factory=tuple)
    exit_code: int
