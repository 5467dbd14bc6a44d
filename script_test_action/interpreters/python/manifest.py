"""Python interpreter backend manifest."""

from script_test_action.interpreters.manifest import InterpreterManifest
from script_test_action.interpreters.python.config import PythonConfig
from script_test_action.interpreters.python.interpreter import PythonInterpreter

python_manifest = InterpreterManifest(
    config_cls=PythonConfig,
    interpreter_factory=PythonInterpreter.from_config,
)
