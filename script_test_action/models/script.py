"""Models for discovered scripts."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, kw_only=True)
class ScriptUnit:
    """A discovered script, treated as an opaque independently testable artifact."""

    path: Path
    relative_path: str
    interpreter: str
