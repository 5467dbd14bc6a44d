"""Shell (bash) interpreter backend implementation."""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from script_test_action.interpreters.base import (
    ScriptInterpreter,
    ScriptTraits,
    line_column,
)
from script_test_action.interpreters.shell.config import ShellConfig
from script_test_action.models.result import ParseError, ProbeMode
from script_test_action.models.script import ScriptUnit
from script_test_action.process import run_process

log = logging.getLogger(__name__)

MANDATORY_PATTERNS = (
    # ${1:?usage} / ${TARGET_HOST:?must be set}
    re.compile(r"\$\{(?:[1-9]|[A-Za-z_][A-Za-z0-9_]*):?\?"),
    # if [[ $# -lt 1 ]] / [ "$#" -eq 0 ]
    re.compile(r"\[\[?\s*\"?\$#\"?\s+-(?:lt\s+[1-9]|eq\s+0|le\s+0)\b"),
)

PRIVILEGE_PATTERNS = (
    re.compile(r"\$\{?EUID\}?\"?\s*(?:-ne|!=|-gt)\s*\"?0"),
    re.compile(r"\$\(id -u\)\"?\s*(?:-ne|!=|-gt)\s*\"?0"),
    re.compile(r"must be run as root", re.IGNORECASE),
    # sudo in command position: line start, after ; & | ! ( ` or then/do/else
    re.compile(r"(?:^|[;&|!(`]|\b(?:then|do|else)\b)[ \t]*sudo(?=[ \t])", re.MULTILINE),
    re.compile(
        r"^\s*#.*\b(?:root|sudo|superuser) (?:privileges|access)",
        re.IGNORECASE | re.MULTILINE,
    ),
)

MAIN_GUARD_PATTERN = re.compile(
    r"BASH_SOURCE\[0\]\}?\"?\s*(?:==|=|!=)\s*\"?\$\{?0\b"
)

BASH_ERROR_LINE = re.compile(r"^.*?: line (\d+): (.*)$")

# $0 is set to a fixed name so main guards comparing BASH_SOURCE to $0 stay false
SOURCE_ONLY = 'source "$1"'


def case_label_pattern(flag: str) -> re.Pattern[str]:
    """Match a ``case`` arm handling ``flag``, e.g. ``-h|--help)``."""
    label = rf"[\"']?{re.escape(flag)}[\"']?"
    other = r"[^\s|)]+"
    return re.compile(rf"^[ \t]*\(?(?:{other}\|)*{label}(?:\|{other})*\)", re.MULTILINE)


DRY_RUN_LABEL = case_label_pattern("--dry-run")
HELP_FLAGS = ("--help", "-h")
HELP_LABELS = tuple((flag, case_label_pattern(flag)) for flag in HELP_FLAGS)


@dataclass(frozen=True, kw_only=True)
class ShellInterpreter(ScriptInterpreter):
    """Backend for bash scripts."""

    key = "shell"

    @classmethod
    def from_config(cls, config: ShellConfig) -> "ShellInterpreter":
        """Create backend from its configuration."""
        return cls(executable=config.executable, extensions=tuple(config.extensions))

    async def tokenize(
        self, unit: ScriptUnit, text: str, timeout: float
    ) -> Sequence[ParseError]:
        """Reject content bash cannot read as text.

        NUL bytes truncate bash's input and carriage returns turn into part
        of every word on the line, so both are lexical errors here.
        """
        errors: list[ParseError] = []

        if (nul := text.find("\0")) != -1:
            line, column = line_column(text, nul)
            errors.append(
                ParseError(message="NUL byte in script", line=line, column=column, stage="tokenize")
            )

        crlf_lines = [
            number
            for number, content in enumerate(text.split("\n"), start=1)
            if content.endswith("\r")
        ]
        if crlf_lines:
            extra = len(crlf_lines) - 1
            message = "Carriage return (CRLF) line ending"
            if extra:
                message += f" (and {extra} more line(s))"
            errors.append(ParseError(message=message, line=crlf_lines[0], stage="tokenize"))

        return errors

    async def parse(
        self, unit: ScriptUnit, text: str, timeout: float
    ) -> Sequence[ParseError]:
        """Parse the script with ``bash -n`` (read commands, execute nothing)."""
        try:
            outcome = await run_process(
                [self.executable, "-n", str(unit.path)], timeout=timeout
            )
        except OSError as exc:
            return [ParseError(message=f"Cannot run {self.executable}: {exc}")]

        if outcome.timed_out:
            return [ParseError(message=f"Syntax check timed out after {timeout}s")]
        if outcome.returncode == 0:
            return []

        return parse_bash_errors(outcome.stderr)

    def inspect(self, text: str) -> ScriptTraits:
        """Read positional/env requirements and root guards from the text."""
        return ScriptTraits(
            mandatory_parameter=_first_match(MANDATORY_PATTERNS, text),
            privilege_requirement=_first_match(PRIVILEGE_PATTERNS, text),
            dry_run_args=("--dry-run",) if DRY_RUN_LABEL.search(text) else None,
            help_args=next(
                ((flag,) for flag, pattern in HELP_LABELS if pattern.search(text)), None
            ),
            has_main_guard=MAIN_GUARD_PATTERN.search(text) is not None,
        )

    def command_for(
        self, mode: ProbeMode, path: Path, traits: ScriptTraits
    ) -> Sequence[str]:
        """Build the command line for the given probe mode."""
        match mode:
            case "dry-run":
                return [self.executable, str(path), *(traits.dry_run_args or ())]
            case "help":
                return [self.executable, str(path), *(traits.help_args or ("--help",))]
            case "source-only":
                return [self.executable, "-c", SOURCE_ONLY, "script-test", str(path)]


def parse_bash_errors(stderr: str) -> Sequence[ParseError]:
    """Turn ``bash -n`` diagnostics into parse errors.

    Bash echoes the offending source after each error on a line of its own
    starting with a backtick; those echoes are dropped.
    """
    errors: list[ParseError] = []
    for raw in stderr.splitlines():
        if not (match := BASH_ERROR_LINE.match(raw.strip())):
            continue
        message = match.group(2).strip()
        if message.startswith("`"):
            continue
        errors.append(ParseError(message=message, line=int(match.group(1))))

    if not errors:
        errors.append(ParseError(message=stderr.strip() or "bash -n reported an error"))
    return errors


def _first_match(patterns: Sequence[re.Pattern[str]], text: str) -> str | None:
    for pattern in patterns:
        if match := pattern.search(text):
            return match.group(0).strip()
    return None
