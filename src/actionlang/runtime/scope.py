"""Chained scopes, the call stack, and the per-frame ExecutionContext that bundles them."""

import time
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from actionlang.errors import (
    ConstantAssignmentError,
    DuplicateDeclarationError,
    UndefinedReferenceError,
)


class Scope:
    """One frame of a name-resolution chain. The parent link is read-only and not owned."""

    label = "scope"

    def __init__(self, parent: Optional["Scope"] = None):
        self.items: dict[str, Any] = {}
        self.parent = parent

    def _chain(self) -> Iterator["Scope"]:
        scope: Optional[Scope] = self
        while scope is not None:
            yield scope
            scope = scope.parent

    def push(self, name: str, value: Any) -> None:
        """Declare in the current frame; never overwrites."""
        if name in self.items:
            raise DuplicateDeclarationError(f"Identifier {name!r} has already been declared")
        self.items[name] = value

    def set(self, name: str, value: Any) -> None:
        self.items[name] = value

    def get_local(self, name: str, default: Any = None) -> Any:
        return self.items.get(name, default)

    def has_local(self, name: str) -> bool:
        return name in self.items

    def get(self, name: str) -> Any:
        for scope in self._chain():
            if name in scope.items:
                return scope.items[name]
        raise UndefinedReferenceError(f"{name} is not defined")

    def has(self, name: str) -> bool:
        return any(name in scope.items for scope in self._chain())

    def update(self, name: str, value: Any) -> bool:
        """Mutate the nearest frame that holds name. False if no frame does."""
        for scope in self._chain():
            if name in scope.items:
                scope.items[name] = value
                return True
        return False

    def delete(self, name: str) -> bool:
        if name in self.items:
            del self.items[name]
            return True
        return False

    def create_child_scope(self) -> "Scope":
        return type(self)(self)

    def local_names(self) -> list[str]:
        return list(self.items)

    def all_names(self) -> list[str]:
        names: dict[str, None] = {}
        for scope in self._chain():
            names.update(dict.fromkeys(scope.items))
        return list(names)

    def depth(self) -> int:
        return sum(1 for _ in self._chain()) - 1

    def clear(self) -> None:
        self.items.clear()

    def __len__(self) -> int:
        return len(self.items)

    def describe(self) -> str:
        return "\n".join(
            f"[{self.label} {level}] {len(scope.items)} items: {', '.join(scope.items)}"
            for level, scope in enumerate(self._chain())
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(depth={self.depth()}, names={self.local_names()})"


class VariableScope(Scope):
    """Mutable bindings: redeclaring fails, update succeeds."""
    label = "variables"


class ConstantScope(Scope):
    """Immutable bindings: redeclaring fails, update always fails once the name exists."""

    label = "constants"

    def update(self, name: str, value: Any) -> bool:
        if self.has(name):
            raise ConstantAssignmentError(f"Assignment to constant variable {name!r}")
        return False


class FunctionScope(Scope):
    """Bindings are callable definitions rather than plain values."""

    label = "functions"

    @staticmethod
    def _check(name: str, value: Any) -> None:
        if not callable(value):
            raise TypeError(f"Function binding {name!r} must be callable, got {type(value).__name__}")

    def push(self, name: str, value: Any) -> None:
        self._check(name, value)
        super().push(name, value)

    def set(self, name: str, value: Any) -> None:
        self._check(name, value)
        super().set(name, value)


@dataclass
class CallFrame:
    function_name: str
    arguments: tuple = ()
    timestamp: float = field(default_factory=time.time)
    node_id: Optional[str] = None


class CallStack:
    """LIFO of call frames. Shared by every context of one execution; never chained."""

    def __init__(self):
        self.frames: list[CallFrame] = []

    def push_frame(self, function_name: str, arguments=(), node_id: Optional[str] = None) -> CallFrame:
        frame = CallFrame(function_name or "<anonymous>", tuple(arguments), node_id=node_id)
        self.frames.append(frame)
        return frame

    def pop_frame(self) -> Optional[CallFrame]:
        return self.frames.pop() if self.frames else None

    def current_frame(self) -> Optional[CallFrame]:
        return self.frames[-1] if self.frames else None

    def depth(self) -> int:
        return len(self.frames)

    def __len__(self) -> int:
        return len(self.frames)

    def stack_trace(self) -> list[str]:
        return [
            f"  at {frame.function_name} (frame {i})"
            for i, frame in reversed(list(enumerate(self.frames)))
        ]


# Declaration kinds accepted by ExecutionContext.declare
LET = "let"
CONST = "const"
VAR = "var"
FUNCTION = "function"


class ExecutionContext:
    """One lexical evaluation frame: variable, constant and function scopes plus the shared call stack."""

    def __init__(
        self,
        parent: Optional["ExecutionContext"] = None,
        call_stack: Optional[CallStack] = None,
        function_boundary: bool = False,
    ):
        self.parent = parent
        if parent is not None:
            self.variables = parent.variables.create_child_scope()
            self.constants = parent.constants.create_child_scope()
            self.functions = parent.functions.create_child_scope()
            self.call_stack = parent.call_stack
        else:
            self.variables = VariableScope()
            self.constants = ConstantScope()
            self.functions = FunctionScope()
            self.call_stack = call_stack or CallStack()
        self.function_boundary = function_boundary or parent is None

    def create_child_context(self, function_boundary: bool = False) -> "ExecutionContext":
        return ExecutionContext(self, function_boundary=function_boundary)

    def depth(self) -> int:
        return self.variables.depth()

    def _levels(self) -> Iterator["ExecutionContext"]:
        context: Optional[ExecutionContext] = self
        while context is not None:
            yield context
            context = context.parent

    def declares_locally(self, name: str) -> bool:
        return (
            self.variables.has_local(name)
            or self.constants.has_local(name)
            or self.functions.has_local(name)
        )

    def declares_var_target(self, name: str) -> bool:
        """True when a var declaration of name may redeclare what this level already holds."""
        return self.variables.has_local(name) or self.functions.has_local(name)

    def function_context(self) -> "ExecutionContext":
        for context in self._levels():
            if context.function_boundary:
                return context
        return self

    def declare(self, name: str, value: Any, kind: str = LET) -> None:
        """Declare name at this level; var declarations land on the enclosing function level."""
        if kind == VAR:
            target = self.function_context()
            if target.declares_var_target(name):
                # a var over a function declaration turns the binding into a plain variable
                target.functions.delete(name)
                target.variables.set(name, value)
                return
            if target.declares_locally(name):
                raise DuplicateDeclarationError(f"Identifier {name!r} has already been declared")
            target.variables.set(name, value)
            return
        if kind == FUNCTION:
            if self.variables.has_local(name) or self.constants.has_local(name):
                raise DuplicateDeclarationError(f"Identifier {name!r} has already been declared")
            self.functions.set(name, value)
            return
        if self.declares_locally(name):
            raise DuplicateDeclarationError(f"Identifier {name!r} has already been declared")
        if kind == CONST:
            self.constants.push(name, value)
        else:
            self.variables.push(name, value)

    def is_declared(self, name: str) -> bool:
        return any(context.declares_locally(name) for context in self._levels())

    def lookup(self, name: str) -> Any:
        for context in self._levels():
            if context.constants.has_local(name):
                return context.constants.get_local(name)
            if context.variables.has_local(name):
                return context.variables.get_local(name)
            if context.functions.has_local(name):
                return context.functions.get_local(name)
        raise UndefinedReferenceError(f"{name} is not defined")

    def assign(self, name: str, value: Any) -> bool:
        """Rebind the nearest declaration of name. False when nothing declares it."""
        for context in self._levels():
            if context.constants.has_local(name):
                return context.constants.update(name, value)
            if context.variables.has_local(name):
                return context.variables.update(name, value)
            if context.functions.has_local(name):
                if callable(value):
                    return context.functions.update(name, value)
                context.functions.delete(name)
                context.variables.set(name, value)
                return True
        return False

    def root(self) -> "ExecutionContext":
        context = self
        while context.parent is not None:
            context = context.parent
        return context

    def __repr__(self) -> str:
        return f"ExecutionContext(depth={self.depth()}, call_depth={self.call_stack.depth()})"
