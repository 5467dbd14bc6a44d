"""Fixtures for integration tests."""

from pathlib import Path
from typing import Protocol

import pytest

from script_test_action.config import HarnessConfig


class WriteScriptFn(Protocol):
    """Protocol for script creation function."""

    def __call__(self, relative_path: str, content: str) -> Path:
        """Write a script under the search root and return its path."""


@pytest.fixture
def scripts_root(tmp_path: Path) -> Path:
    """Create an empty search root."""
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def write_script(scripts_root: Path) -> WriteScriptFn:
    """Return a function that writes scripts under the search root."""

    def _write(relative_path: str, content: str) -> Path:
        path = scripts_root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def python_config() -> HarnessConfig:
    """Config running only the Python backend, unprivileged."""
    return HarnessConfig(interpreters=["python"], timeout=30, concurrency=4, privileged=False)
