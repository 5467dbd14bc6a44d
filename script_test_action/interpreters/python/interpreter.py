"""Python interpreter backend implementation."""

import ast
import io
import logging
import re
import tokenize
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from script_test_action.interpreters.base import ScriptInterpreter, ScriptTraits
from script_test_action.interpreters.python.config import PythonConfig
from script_test_action.models.result import ParseError, ParseStage, ProbeMode
from script_test_action.models.script import ScriptUnit

log = logging.getLogger(__name__)

DRY_RUN_FLAGS = ("--dry-run", "--what-if", "--whatif")
CLICK_ENTRY_POINTS = frozenset({"click.command", "click.group"})

PRIVILEGE_PATTERNS = (
    re.compile(r"\bgeteuid\(\)\s*(?:!=|==|>)\s*0"),
    re.compile(r"\bIsUserAnAdmin\(\)"),
    re.compile(r"must be run as (?:root|an? administrator|administrator)", re.IGNORECASE),
)

# Runs module-level definitions without triggering the __main__ block
LOAD_DEFINITIONS = (
    "import runpy, sys; runpy.run_path(sys.argv[1], run_name='__script_test__')"
)


@dataclass(frozen=True, kw_only=True)
class PythonInterpreter(ScriptInterpreter):
    """Backend for Python scripts."""

    key = "python"

    @classmethod
    def from_config(cls, config: PythonConfig) -> "PythonInterpreter":
        """Create backend from its configuration."""
        return cls(executable=config.executable, extensions=tuple(config.extensions))

    async def tokenize(
        self, unit: ScriptUnit, text: str, timeout: float
    ) -> Sequence[ParseError]:
        """Run the tokenizer over the whole source."""
        try:
            for _ in tokenize.generate_tokens(io.StringIO(text).readline):
                pass
        except tokenize.TokenError as exc:
            message = str(exc.args[0]) if exc.args else "tokenize error"
            position = exc.args[1] if len(exc.args) > 1 else None
            line, column = position if isinstance(position, tuple) else (None, None)
            return [
                ParseError(
                    message=message,
                    line=line,
                    column=column + 1 if column is not None else None,
                    stage="tokenize",
                )
            ]
        except SyntaxError as exc:
            return [_from_syntax_error(exc, "tokenize")]
        return []

    async def parse(
        self, unit: ScriptUnit, text: str, timeout: float
    ) -> Sequence[ParseError]:
        """Compile the source to a code object without executing it."""
        try:
            compile(text, str(unit.path), "exec", dont_inherit=True)
        except SyntaxError as exc:
            return [_from_syntax_error(exc, "parse")]
        except ValueError as exc:
            return [ParseError(message=str(exc), stage="parse")]
        return []

    def inspect(self, text: str) -> ScriptTraits:
        """Read argparse/click declarations and guards from the syntax tree."""
        try:
            tree = ast.parse(text)
        except (SyntaxError, ValueError):
            return ScriptTraits()

        visitor = _TraitsVisitor()
        visitor.visit(tree)

        privilege = next(
            (m.group(0) for p in PRIVILEGE_PATTERNS if (m := p.search(text))), None
        )
        return ScriptTraits(
            mandatory_parameter=visitor.mandatory,
            privilege_requirement=privilege,
            dry_run_args=(visitor.dry_run_flag,) if visitor.dry_run_flag else None,
            help_args=("--help",) if visitor.has_cli_parser else None,
            has_main_guard=visitor.has_main_guard,
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
                return [self.executable, "-c", LOAD_DEFINITIONS, str(path)]


class _TraitsVisitor(ast.NodeVisitor):
    """Collect command-line conventions from a module's syntax tree."""

    def __init__(self) -> None:
        self.mandatory: str | None = None
        self.dry_run_flag: str | None = None
        self.has_cli_parser = False
        self.has_main_guard = False

    def visit_If(self, node: ast.If) -> None:
        test = node.test
        if (
            isinstance(test, ast.Compare)
            and isinstance(test.left, ast.Name)
            and test.left.id == "__name__"
            and len(test.comparators) == 1
            and _constant(test.comparators[0]) == "__main__"
        ):
            self.has_main_guard = True
        self.generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        name = _call_name(node.func)
        keywords = {kw.arg: kw.value for kw in node.keywords if kw.arg}
        flags = [a for a in (_constant(arg) for arg in node.args) if isinstance(a, str)]

        if name == "ArgumentParser" or _dotted(node.func) in CLICK_ENTRY_POINTS:
            add_help = keywords.get("add_help")
            if add_help is None or _constant(add_help) is not False:
                self.has_cli_parser = True
        elif name in {"add_argument", "option", "argument"}:
            self._record_parameter(name, flags, keywords)

        self.generic_visit(node)

    def visit_Subscript(self, node: ast.Subscript) -> None:
        target = _dotted(node.value)
        index = _constant(node.slice)
        if self.mandatory is None:
            if target == "sys.argv" and isinstance(index, int) and index >= 1:
                self.mandatory = f"reads positional argument sys.argv[{index}]"
            elif target == "os.environ" and isinstance(index, str) and isinstance(
                node.ctx, ast.Load
            ):
                self.mandatory = f"requires environment variable {index}"
        self.generic_visit(node)

    def _record_parameter(
        self, name: str, flags: Sequence[str], keywords: dict[str, ast.expr]
    ) -> None:
        if not flags:
            return
        if self.dry_run_flag is None:
            self.dry_run_flag = next((f for f in flags if f in DRY_RUN_FLAGS), None)

        if self.mandatory is not None:
            return
        required = keywords.get("required")
        if required is not None:
            is_required = _constant(required) is True and "default" not in keywords
        elif name == "add_argument":
            # argparse positionals are required unless they take optional nargs
            nargs = keywords.get("nargs")
            is_required = not flags[0].startswith("-") and (
                nargs is None or _constant(nargs) not in {"?", "*"}
            )
        elif name == "argument":
            is_required = "default" not in keywords
        else:
            is_required = False

        if is_required:
            self.mandatory = f"requires argument '{flags[0]}'"


def _call_name(func: ast.expr) -> str | None:
    if isinstance(func, ast.Attribute):
        return func.attr
    if isinstance(func, ast.Name):
        return func.id
    return None


def _dotted(node: ast.expr) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute) and (base := _dotted(node.value)):
        return f"{base}.{node.attr}"
    return None


def _constant(node: ast.expr) -> object:
    return node.value if isinstance(node, ast.Constant) else None


def _from_syntax_error(exc: SyntaxError, stage: ParseStage) -> ParseError:
    return ParseError(message=exc.msg, line=exc.lineno, column=exc.offset, stage=stage)
