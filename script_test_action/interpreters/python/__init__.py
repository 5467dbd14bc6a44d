"""Python interpreter backend module."""

from script_test_action.interpreters.python.config import PythonConfig
from script_test_action.interpreters.python.interpreter import PythonInterpreter
from script_test_action.interpreters.python.manifest import python_manifest

__all__ = ["PythonConfig", "PythonInterpreter", "python_manifest"]
