"""Shell interpreter backend manifest."""

from script_test_action.interpreters.manifest import InterpreterManifest
from script_test_action.interpreters.shell.config import ShellConfig
from script_test_action.interpreters.shell.interpreter import ShellInterpreter

shell_manifest = InterpreterManifest(
    config_cls=ShellConfig,
    interpreter_factory=ShellInterpreter.from_config,
)
