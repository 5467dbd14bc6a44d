"""PowerShell interpreter backend implementation."""

import base64
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from script_test_action.interpreters.base import ScriptInterpreter, ScriptTraits
from script_test_action.interpreters.powershell.config import PowerShellConfig
from script_test_action.interpreters.powershell.models import DiagnosticList
from script_test_action.models.result import ParseError, ParseStage, ProbeMode
from script_test_action.models.script import ScriptUnit
from script_test_action.process import run_process

log = logging.getLogger(__name__)

SESSION_ARGS = ("-NoLogo", "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass")

TOKENIZE_COMMAND = """
$ErrorActionPreference = 'Stop'
$content = [System.IO.File]::ReadAllText({path})
$errors = $null
[void][System.Management.Automation.PSParser]::Tokenize($content, [ref]$errors)
$records = @($errors | ForEach-Object {{
    [pscustomobject]@{{ message = $_.Message; line = $_.Token.StartLine; column = $_.Token.StartColumn }}
}})
ConvertTo-Json -InputObject $records -Compress
"""

PARSE_COMMAND = """
$ErrorActionPreference = 'Stop'
$content = [System.IO.File]::ReadAllText({path})
$tokens = $null
$errors = $null
[void][System.Management.Automation.Language.Parser]::ParseInput($content, {path}, [ref]$tokens, [ref]$errors)
$records = @($errors | ForEach-Object {{
    [pscustomobject]@{{ message = $_.Message; line = $_.Extent.StartLineNumber; column = $_.Extent.StartColumnNumber }}
}})
ConvertTo-Json -InputObject $records -Compress
"""

MANDATORY_PATTERN = re.compile(
    r"\[Parameter\([^\]]*\bMandatory\b(?!\s*=\s*\$false)[^\]]*\]\s*(?:\[[^\]]+\]\s*)*\$(\w+)",
    re.IGNORECASE,
)

PRIVILEGE_PATTERNS = (
    re.compile(r"#Requires\s+-RunAsAdministrator", re.IGNORECASE),
    re.compile(r"WindowsBuiltInRole\]::Administrator", re.IGNORECASE),
    re.compile(r"must be run as (?:an? )?administrator", re.IGNORECASE),
)

# Leading comments, help blocks and attributes before the script-level param(
SCRIPT_PARAM_PATTERN = re.compile(
    r"\A\ufeff?(?:\s|#[^\n]*|<#.*?#>)*((?:\[[^\]]*\](?:\s|#[^\n]*|<#.*?#>)*)*)param\s*\(",
    re.IGNORECASE | re.DOTALL,
)
SHOULD_PROCESS_PATTERN = re.compile(r"SupportsShouldProcess(?!\s*=\s*\$false)", re.IGNORECASE)
SWITCH_PATTERN = re.compile(r"\[switch\]\s*\$(WhatIf|DryRun)\b", re.IGNORECASE)
HELP_PATTERN = re.compile(r"^\s*\.SYNOPSIS\b", re.IGNORECASE | re.MULTILINE)
MAIN_GUARD_PATTERN = re.compile(
    r"\$MyInvocation\.InvocationName\s+-ne\s+['\"]\.['\"]", re.IGNORECASE
)


@dataclass(frozen=True, kw_only=True)
class PowerShellInterpreter(ScriptInterpreter):
    """Backend for PowerShell scripts, driven through ``pwsh``."""

    key = "powershell"

    @classmethod
    def from_config(cls, config: PowerShellConfig) -> "PowerShellInterpreter":
        """Create backend from its configuration."""
        return cls(executable=config.executable, extensions=tuple(config.extensions))

    async def tokenize(
        self, unit: ScriptUnit, text: str, timeout: float
    ) -> Sequence[ParseError]:
        """Tokenize the script with the PowerShell tokenizer."""
        return await self._run_parser(TOKENIZE_COMMAND, unit, timeout, "tokenize")

    async def parse(
        self, unit: ScriptUnit, text: str, timeout: float
    ) -> Sequence[ParseError]:
        """Build the script's AST with the PowerShell language parser."""
        return await self._run_parser(PARSE_COMMAND, unit, timeout, "parse")

    async def _run_parser(
        self, template: str, unit: ScriptUnit, timeout: float, stage: ParseStage
    ) -> Sequence[ParseError]:
        command = template.format(path=quote(str(unit.path)))
        argv = [self.executable, *SESSION_ARGS, "-EncodedCommand", encode_command(command)]
        try:
            outcome = await run_process(argv, timeout=timeout)
        except OSError as exc:
            return [ParseError(message=f"Cannot run {self.executable}: {exc}", stage=stage)]

        if outcome.timed_out:
            return [ParseError(message=f"Syntax check timed out after {timeout}s", stage=stage)]
        if outcome.returncode != 0:
            detail = outcome.stderr.strip() or f"exit code {outcome.returncode}"
            return [ParseError(message=f"PowerShell parser failed: {detail}", stage=stage)]

        try:
            diagnostics = DiagnosticList.validate_json(outcome.stdout.strip() or "[]")
        except ValidationError as exc:
            log.debug("Unexpected parser output for %s: %s", unit.relative_path, exc)
            return [
                ParseError(message="PowerShell parser returned unreadable output", stage=stage)
            ]

        return [
            ParseError(message=d.message, line=d.line, column=d.column, stage=stage)
            for d in diagnostics
        ]

    def inspect(self, text: str) -> ScriptTraits:
        """Read param() blocks, #Requires and comment-based help."""
        mandatory = MANDATORY_PATTERN.search(text)
        privilege = next(
            (m.group(0) for p in PRIVILEGE_PATTERNS if (m := p.search(text))), None
        )
        return ScriptTraits(
            mandatory_parameter=(
                f"mandatory parameter ${mandatory.group(1)}" if mandatory else None
            ),
            privilege_requirement=privilege,
            dry_run_args=script_dry_run_args(text),
            help_args=("-?",) if HELP_PATTERN.search(text) else None,
            has_main_guard=MAIN_GUARD_PATTERN.search(text) is not None,
        )

    def command_for(
        self, mode: ProbeMode, path: Path, traits: ScriptTraits
    ) -> Sequence[str]:
        """Build the command line for the given probe mode."""
        base = [self.executable, *SESSION_ARGS]
        match mode:
            case "dry-run":
                return [*base, "-File", str(path), *(traits.dry_run_args or ())]
            case "help":
                return [*base, "-Command", f"Get-Help -Name {quote(str(path))} -Full | Out-Null"]
            case "source-only":
                return [*base, "-Command", f". {quote(str(path))}"]


def script_dry_run_args(text: str) -> Sequence[str] | None:
    """Return the dry-run switch the script itself accepts, if any.

    Only the script-level ``param()`` block and the attributes in front of it
    count. ``SupportsShouldProcess`` on a function inside the script does not
    make the script accept ``-WhatIf``.
    """
    if not (match := SCRIPT_PARAM_PATTERN.match(text)):
        return None
    if SHOULD_PROCESS_PATTERN.search(match.group(1)):
        return ("-WhatIf",)
    if switch := SWITCH_PATTERN.search(_balanced_body(text, match.end())):
        return (f"-{switch.group(1)}",)
    return None


def _balanced_body(text: str, start: int) -> str:
    """Return the text from ``start`` up to the parenthesis closing the block."""
    depth = 1
    quote_char: str | None = None
    for index in range(start, len(text)):
        char = text[index]
        if quote_char:
            if char == quote_char:
                quote_char = None
        elif char in "'\"":
            quote_char = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return text[start:index]
    return text[start:]


def quote(value: str) -> str:
    """Quote a value as a PowerShell single-quoted string literal."""
    return "'" + value.replace("'", "''") + "'"


def encode_command(command: str) -> str:
    """Encode a script for ``pwsh -EncodedCommand`` (base64 of UTF-16LE)."""
    return base64.b64encode(command.encode("utf-16-le")).decode("ascii")
