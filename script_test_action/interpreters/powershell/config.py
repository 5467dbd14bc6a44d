"""Configuration for the PowerShell interpreter backend."""

from collections.abc import Sequence

from pydantic import BaseModel


class PowerShellConfig(BaseModel):
    """Configuration for the PowerShell interpreter backend."""

    executable: str = "pwsh"
    extensions: Sequence[str] = (".ps1",)
