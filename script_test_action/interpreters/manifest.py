"""Interpreter manifest definition for the plugin system."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel

from script_test_action.interpreters.base import ScriptInterpreter

ConfigT = TypeVar("ConfigT", bound=BaseModel)


@dataclass(frozen=True, kw_only=True)
class InterpreterManifest(Generic[ConfigT]):
    """Manifest describing an interpreter backend plugin.

    The manifest contains references to the configuration class and the
    interpreter factory function for lazy loading of backends by key.
    """

    config_cls: type[ConfigT]
    interpreter_factory: Callable[[ConfigT], ScriptInterpreter]

    def create(self, settings: dict[str, object] | None = None) -> ScriptInterpreter:
        """Validate backend settings and build the interpreter."""
        return self.interpreter_factory(self.config_cls(**(settings or {})))
