"""Loading of interpreter backends from entry points."""

from collections.abc import Sequence
from importlib.metadata import entry_points
from typing import Any

from script_test_action.interpreters.manifest import InterpreterManifest

ENTRY_POINT_GROUP = "script_test_action.interpreters"


class InterpreterNotFoundError(Exception):
    """Raised when an interpreter backend is not registered."""


class InterpreterUnavailableError(Exception):
    """Raised when a requested interpreter executable cannot be found."""


def registered_interpreter_keys() -> Sequence[str]:
    """Return the keys of all registered backends, sorted."""
    return sorted(entry.name for entry in entry_points(group=ENTRY_POINT_GROUP))


def load_interpreter_manifest(key: str) -> InterpreterManifest[Any]:
    """Load an interpreter manifest by key.

    Args:
        key: The backend key as registered in pyproject.toml
             (e.g., "shell", "powershell")

    Returns:
        The interpreter manifest instance

    Raises:
        InterpreterNotFoundError: If no backend with the given key is found

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == key:
            manifest: InterpreterManifest[Any] = entry.load()
            return manifest

    available = sorted(e.name for e in entries)
    raise InterpreterNotFoundError(
        f"Interpreter '{key}' not found. Available interpreters: {available}"
    )
