"""Models for diagnostics emitted by the PowerShell parser."""

from pydantic import BaseModel, TypeAdapter


class PowerShellDiagnostic(BaseModel):
    """A tokenizer or parser error serialized by pwsh."""

    message: str
    line: int | None = None
    column: int | None = None


DiagnosticList = TypeAdapter(list[PowerShellDiagnostic])
