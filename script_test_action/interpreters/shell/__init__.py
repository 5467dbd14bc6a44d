"""Shell interpreter backend module."""

from script_test_action.interpreters.shell.config import ShellConfig
from script_test_action.interpreters.shell.interpreter import ShellInterpreter
from script_test_action.interpreters.shell.manifest import shell_manifest

__all__ = ["ShellConfig", "ShellInterpreter", "shell_manifest"]
