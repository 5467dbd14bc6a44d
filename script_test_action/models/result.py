"""Models for per-script stage outcomes."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal

ParseStage = Literal["tokenize", "parse"]
ProbeMode = Literal["dry-run", "help", "source-only"]


@dataclass(frozen=True, kw_only=True)
class ParseError:
    """A single syntax problem reported by a tokenizer or parser."""

    message: str
    line: int | None = None
    column: int | None = None
    stage: ParseStage = "parse"


@dataclass(frozen=True, kw_only=True)
class SyntaxResult:
    """Outcome of the two-stage syntax check of one script."""

    status: Literal["pass", "fail"]
    errors: Sequence[ParseError] = ()

    @classmethod
    def from_errors(cls, errors: Sequence[ParseError]) -> "SyntaxResult":
        """Build a result that fails when any error is present."""
        return cls(status="fail" if errors else "pass", errors=tuple(errors))

    @property
    def passed(self) -> bool:
        """Whether the script parsed cleanly."""
        return self.status == "pass"


class ClassificationKind(StrEnum):
    """Whether a script may be executed, or why it is skipped."""

    EXECUTABLE = "executable"
    SKIP_SYNTAX_FAILED = "skip:syntax-failed"
    SKIP_MANDATORY_PARAMS = "skip:mandatory-params"
    SKIP_PRIVILEGE_REQUIRED = "skip:privilege-required"
    SKIP_CLOUD_DEPENDENT = "skip:cloud-dependent"


@dataclass(frozen=True, kw_only=True)
class Classification:
    """Safety classification of a script, with the reason for it."""

    kind: ClassificationKind
    reason: str

    @property
    def executable(self) -> bool:
        """Whether the execution stage may run this script."""
        return self.kind is ClassificationKind.EXECUTABLE


@dataclass(frozen=True, kw_only=True)
class ExecutionResult:
    """Result of the execution stage for a single script.

    Skipped results carry no mode; failed results caused by the per-script
    timeout have ``timed_out`` set.
    """

    status: Literal["pass", "fail", "skipped"]
    message: str | None = None
    mode: ProbeMode | None = None
    duration: float = 0.0
    timed_out: bool = False
    warnings: Sequence[str] = field(default_factory=tuple)

    @classmethod
    def skipped(cls, message: str) -> "ExecutionResult":
        """Build a skipped result with the given reason."""
        return cls(status="skipped", message=message)
