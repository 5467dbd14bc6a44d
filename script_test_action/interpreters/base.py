"""Abstract base class for script interpreter backends."""

import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from script_test_action.models.result import ParseError, ProbeMode, SyntaxResult
from script_test_action.models.script import ScriptUnit

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ScriptTraits:
    """Facts a backend reads from a script's text without running it."""

    mandatory_parameter: str | None = None
    privilege_requirement: str | None = None
    dry_run_args: Sequence[str] | None = None
    help_args: Sequence[str] | None = None
    has_main_guard: bool = False


@dataclass(frozen=True, kw_only=True)
class ScriptInterpreter(ABC):
    """Abstract base for interpreter backends.

    A backend knows how to syntax-check scripts of its language without
    executing them, what the language's conventions for parameters, privilege
    guards and dry-run switches look like, and how to build the command line
    for each probe mode.
    """

    key: ClassVar[str]

    executable: str
    extensions: Sequence[str]

    def is_available(self) -> bool:
        """Check whether the interpreter executable can be found."""
        return shutil.which(self.executable) is not None

    async def check_syntax(
        self, unit: ScriptUnit, source: bytes, timeout: float
    ) -> SyntaxResult:
        """Tokenize and then parse a script's source.

        Parsing only runs when tokenization succeeded; the errors of the
        deepest stage reached are returned.

        Args:
            unit: Script being checked
            source: Raw file content
            timeout: Seconds allowed for an external parser process

        Returns:
            Syntax result with ordered parse errors

        """
        try:
            text = decode_source(source)
        except UnicodeDecodeError as exc:
            return SyntaxResult.from_errors(
                [
                    ParseError(
                        message=f"Source is not valid UTF-8 ({exc.reason} at byte {exc.start})",
                        stage="tokenize",
                    )
                ]
            )

        if errors := await self.tokenize(unit, text, timeout):
            log.debug("%s failed tokenization", unit.relative_path)
            return SyntaxResult.from_errors(errors)

        return SyntaxResult.from_errors(await self.parse(unit, text, timeout))

    @abstractmethod
    async def tokenize(
        self, unit: ScriptUnit, text: str, timeout: float
    ) -> Sequence[ParseError]:
        """Run the lexical stage and return its errors."""

    @abstractmethod
    async def parse(
        self, unit: ScriptUnit, text: str, timeout: float
    ) -> Sequence[ParseError]:
        """Run the full syntax-tree stage and return its errors."""

    @abstractmethod
    def inspect(self, text: str) -> ScriptTraits:
        """Read parameter, privilege and invocation conventions from the text."""

    @abstractmethod
    def command_for(
        self, mode: ProbeMode, path: Path, traits: ScriptTraits
    ) -> Sequence[str]:
        """Build the command line that invokes a script in the given mode."""


def decode_source(source: bytes) -> str:
    """Decode script bytes as UTF-8, tolerating a byte order mark."""
    return source.decode("utf-8-sig")


def line_column(text: str, offset: int) -> tuple[int, int]:
    """Convert a character offset into 1-based line and column numbers."""
    line = text.count("\n", 0, offset) + 1
    column = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return line, column
