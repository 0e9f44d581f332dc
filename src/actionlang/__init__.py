"""actionlang: IR, scopes and a tree-walking engine for UI-behaviour Action trees."""

from actionlang.builder import ActionBuilder
from actionlang.checker import check
from actionlang.config import EngineConfig, load_config
from actionlang.errors import ActionLangError, ExecutionFailure, MalformedProgramError, ScriptError
from actionlang.ir import DEFAULT_ID_GENERATOR, Action, ActionTree, IdGenerator
from actionlang.runtime.engine import ExecutionEngine, ExecutionResult, run
from actionlang.runtime.values import UNDEFINED

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_ID_GENERATOR",
    "UNDEFINED",
    "Action",
    "ActionBuilder",
    "ActionLangError",
    "ActionTree",
    "EngineConfig",
    "ExecutionEngine",
    "ExecutionFailure",
    "ExecutionResult",
    "IdGenerator",
    "MalformedProgramError",
    "ScriptError",
    "check",
    "load_config",
    "run",
    "__version__",
]
