"""Structured errors for actionlang (tree structure, scope, script, execution)."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ActionLangError(Exception):
    """Base for all actionlang errors."""
    message: str
    node_id: Optional[str] = None
    action_type: Optional[str] = None

    kind = "error"

    def __str__(self) -> str:
        loc = ""
        if self.node_id:
            loc = f"{self.node_id}"
            if self.action_type:
                loc += f" <{self.action_type}>"
            loc += ": "
        return f"{loc}{self.message}"


class TreeStructureError(ActionLangError):
    """An attach/detach would break the single-parent, acyclic tree shape."""
    kind = "tree-structure"


class MalformedProgramError(ActionLangError):
    """Unknown action type or a missing attribute/child. Never catchable by script code."""
    kind = "malformed-program"


class InternalError(ActionLangError):
    """A Python exception escaped a handler. Like a malformed program, never catchable by script code."""
    kind = "internal-error"


class ScriptError(ActionLangError):
    """Base for errors a script-level try/catch may intercept."""
    kind = "script-error"
    error_name = "Error"

    def to_script_value(self) -> Any:
        """The value bound to the catch parameter."""
        return {"name": self.error_name, "message": self.message}


class ScopeError(ScriptError):
    pass


class UndefinedReferenceError(ScopeError):
    kind = "undefined-reference"
    error_name = "ReferenceError"


class DuplicateDeclarationError(ScopeError):
    kind = "duplicate-declaration"
    error_name = "SyntaxError"


class ConstantAssignmentError(ScopeError):
    kind = "constant-assignment"
    error_name = "TypeError"


class ScriptTypeError(ScriptError):
    """Calling a non-function, reading a property of undefined, etc."""
    kind = "type-error"
    error_name = "TypeError"


class ScriptSyntaxError(ScriptError):
    """Text handed to a parsing built-in (JSON.parse, RegExp) was malformed."""
    kind = "syntax-error"
    error_name = "SyntaxError"


class ScriptRangeError(ScriptError):
    """A numeric argument outside its allowed range, e.g. an invalid array length."""
    kind = "range-error"
    error_name = "RangeError"


class StackOverflowError(ScriptError):
    kind = "stack-overflow"
    error_name = "RangeError"


class IterationLimitError(ScriptError):
    kind = "iteration-limit"
    error_name = "RangeError"


class HostError(ScriptError):
    """A host callable (built-in or bound environment) raised a Python exception."""
    kind = "host-error"


@dataclass
class ThrownValue(ScriptError):
    """A value raised by a source-level throw."""
    value: Any = None

    kind = "uncaught-throw"

    def to_script_value(self) -> Any:
        return self.value


@dataclass
class ExecutionFailure(ActionLangError):
    """The one structured failure the caller of execute() receives."""
    failure_kind: str = "error"
    value: Any = None
    output: list = field(default_factory=list)

    @property
    def kind(self) -> str:  # type: ignore[override]
        return self.failure_kind
