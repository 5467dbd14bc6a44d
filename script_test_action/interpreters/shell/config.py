"""Configuration for the shell interpreter backend."""

from collections.abc import Sequence

from pydantic import BaseModel


class ShellConfig(BaseModel):
    """Configuration for the shell interpreter backend."""

    executable: str = "bash"
    extensions: Sequence[str] = (".sh", ".bash")
