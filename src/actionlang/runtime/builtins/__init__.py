"""Host-provided globals bound into the outermost context before any user code runs."""

from typing import TYPE_CHECKING, Any

from actionlang.errors import UndefinedReferenceError
from actionlang.runtime.builtins.console import make_console
from actionlang.runtime.builtins.data import (
    ERROR_TYPES,
    make_array,
    make_boolean,
    make_error,
    make_json,
    make_object,
    make_string,
    make_uri,
)
from actionlang.runtime.builtins.numeric import make_globals, make_math, make_number
from actionlang.runtime.scope import CONST, ExecutionContext
from actionlang.runtime.values import UNDEFINED, NativeFunction

if TYPE_CHECKING:
    from actionlang.runtime.engine import ExecutionEngine


class GlobalObject:
    """globalThis: a live view of the program-level bindings."""

    def __init__(self, engine: "ExecutionEngine"):
        object.__setattr__(self, "_engine", engine)

    def __getattr__(self, name: str) -> Any:
        try:
            return self._engine.program_context.lookup(name)
        except UndefinedReferenceError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        self._engine.assign_name(self._engine.program_context, name, value)

    def __repr__(self) -> str:
        return "[object global]"


def builtin_globals(engine: "ExecutionEngine") -> dict[str, Any]:
    values: dict[str, Any] = {
        "console": make_console(),
        "Math": make_math(),
        "JSON": make_json(),
        "Object": make_object(),
        "Array": make_array(),
        "Number": make_number(),
        "String": make_string(),
        "Boolean": make_boolean(),
    }
    values.update(make_globals())
    values.update(make_uri())
    for name in ERROR_TYPES:
        values[name] = make_error(name)
    values["undefined"] = UNDEFINED
    values["globalThis"] = GlobalObject(engine)
    return values


def _attach(value: Any, engine: "ExecutionEngine") -> None:
    """Give native functions (and those nested in namespace objects) their engine."""
    if isinstance(value, NativeFunction):
        value.engine = engine
        members = value.members.values()
    elif isinstance(value, dict):
        members = value.values()
    else:
        return
    for member in members:
        if isinstance(member, NativeFunction):
            member.engine = engine


def register_builtins(engine: "ExecutionEngine", context: ExecutionContext) -> None:
    for name, value in builtin_globals(engine).items():
        _attach(value, engine)
        context.declare(name, value, CONST)
