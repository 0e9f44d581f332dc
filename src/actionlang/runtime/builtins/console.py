"""console.* built-ins. Nothing is printed: every call appends an OutputRecord to the engine's log."""

from typing import TYPE_CHECKING, Any

from actionlang.runtime.values import (
    UNDEFINED,
    ClassDefinition,
    Closure,
    NativeFunction,
    ScriptRegExp,
    is_number,
    number_to_string,
    to_string,
)

if TYPE_CHECKING:
    from actionlang.runtime.engine import ExecutionEngine

CONSOLE_METHODS = ("log", "info", "warn", "error", "debug")


def display(value: Any, nested: bool = False) -> str:
    """Human-readable form used for console output and failure messages."""
    if isinstance(value, str):
        return f"'{value}'" if nested else value
    if value is UNDEFINED or value is None or isinstance(value, bool):
        return to_string(value)
    if is_number(value):
        return number_to_string(value)
    if isinstance(value, list):
        return "[" + ", ".join(display(item, nested=True) for item in value) + "]"
    if isinstance(value, dict):
        if isinstance(value.get("name"), str) and "message" in value and not nested:
            return to_string(value)
        if not value:
            return "{}"
        body = ", ".join(f"{key}: {display(item, nested=True)}" for key, item in value.items())
        return "{ " + body + " }"
    if isinstance(value, (Closure, NativeFunction)):
        return f"[Function: {value.name}]"
    if isinstance(value, ClassDefinition):
        return f"[class {value.name}]"
    if isinstance(value, ScriptRegExp):
        return to_string(value)
    return repr(value)


def _writer(kind: str):
    def write(engine: "ExecutionEngine", this: Any, args: list) -> Any:
        engine.record(kind, *args)
        return UNDEFINED

    return write


def make_console() -> dict[str, NativeFunction]:
    return {name: NativeFunction(name, _writer(name)) for name in CONSOLE_METHODS}
