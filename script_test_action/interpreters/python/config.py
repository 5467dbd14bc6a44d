"""Configuration for the Python interpreter backend."""

import sys
from collections.abc import Sequence

from pydantic import BaseModel, Field


class PythonConfig(BaseModel):
    """Configuration for the Python interpreter backend."""

    # Defaults to the interpreter running the harness
    executable: str = Field(default_factory=lambda: sys.executable)
    extensions: Sequence[str] = (".py",)
