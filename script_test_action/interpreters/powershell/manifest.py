"""PowerShell interpreter backend manifest."""

from script_test_action.interpreters.manifest import InterpreterManifest
from script_test_action.interpreters.powershell.config import PowerShellConfig
from script_test_action.interpreters.powershell.interpreter import (
    PowerShellInterpreter,
)

powershell_manifest = InterpreterManifest(
    config_cls=PowerShellConfig,
    interpreter_factory=PowerShellInterpreter.from_config,
)
