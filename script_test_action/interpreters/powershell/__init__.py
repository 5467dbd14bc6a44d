"""PowerShell interpreter backend module."""

from script_test_action.interpreters.powershell.config import PowerShellConfig
from script_test_action.interpreters.powershell.interpreter import (
    PowerShellInterpreter,
)
from script_test_action.interpreters.powershell.manifest import powershell_manifest

__all__ = ["PowerShellConfig", "PowerShellInterpreter", "powershell_manifest"]
