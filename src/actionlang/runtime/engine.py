"""Tree-walking interpreter for Action trees.

evaluate(node, context) dispatches on node.action_type through a flat handler
table and returns either a plain value or a control signal (see signals.py).
Only the error taxonomy in actionlang.errors travels as Python exceptions.
"""

import logging
import random
import re
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Union

from actionlang.config import EngineConfig
from actionlang.errors import (
    ActionLangError,
    ExecutionFailure,
    HostError,
    InternalError,
    IterationLimitError,
    MalformedProgramError,
    ScriptError,
    ScriptSyntaxError,
    ScriptTypeError,
    StackOverflowError,
    ThrownValue,
    UndefinedReferenceError,
)
from actionlang.ir import Action, ActionTree
from actionlang.runtime.builtins import register_builtins
from actionlang.runtime.builtins.console import display
from actionlang.runtime.builtins.methods import lookup_method
from actionlang.runtime.environment import Environment
from actionlang.runtime.operators import (
    BINARY_OPERATORS,
    COMPOUND_ASSIGNMENT,
    LOGICAL_ASSIGNMENT,
    UNARY_OPERATORS,
    add,
    subtract,
)
from actionlang.runtime.scope import CONST, FUNCTION, LET, VAR, CallStack, ExecutionContext
from actionlang.runtime.signals import (
    BREAK,
    CONTINUE,
    BreakSignal,
    ContinueSignal,
    ReturnSignal,
    is_signal,
    targets_loop,
)
from actionlang.runtime.values import (
    MAX_ARRAY_LENGTH,
    UNDEFINED,
    ClassDefinition,
    Closure,
    NativeFunction,
    Parameter,
    ScriptInstance,
    ScriptRegExp,
    is_function,
    is_nullish,
    is_number,
    normalize_number,
    strict_equals,
    to_array_length,
    to_number,
    to_property_key,
    to_string,
    truthy,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Action, ExecutionContext], Any]

STATEMENT_BLOCKS = ("block", "seq", "program")

# Tags that only make sense as a child of a specific parent construct.
ROLE_ONLY_TAGS = ("case", "default", "catch", "finally", "declareParam", "declareMethod", "property")

_SHORT_CIRCUIT = object()


@dataclass
class OutputRecord:
    kind: str
    args: tuple
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "text": self.text}


@dataclass
class ExecutionResult:
    value: Any = UNDEFINED
    output: list[OutputRecord] = field(default_factory=list)
    failure: Optional[ExecutionFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class SuperBinding:
    """What `super` resolves to inside a method of a derived class."""
    superclass: ClassDefinition
    this: Any


class _NameReference:
    def __init__(self, engine: "ExecutionEngine", context: ExecutionContext, name: str):
        self.engine = engine
        self.context = context
        self.name = name

    def get(self) -> Any:
        return self.context.lookup(self.name)

    def set(self, value: Any) -> None:
        self.engine.assign_name(self.context, self.name, value)


class _PropertyReference:
    def __init__(self, engine: "ExecutionEngine", target: Any, key: Any):
        self.engine = engine
        self.target = target
        self.key = key

    def get(self) -> Any:
        return self.engine.get_property(self.target, self.key)

    def set(self, value: Any) -> None:
        self.engine.set_property(self.target, self.key, value)


class ExecutionEngine:
    """Evaluates an ActionTree against a chain of ExecutionContexts."""

    _HANDLERS = {
        "program": "_exec_program",
        "seq": "_exec_seq",
        "block": "_exec_block",
        "declareVar": "_exec_declare_var",
        "declareConst": "_exec_declare_const",
        "declareFunction": "_exec_declare_function",
        "declareClass": "_exec_declare_class",
        "if": "_exec_if",
        "for": "_exec_for",
        "forIn": "_exec_for_in",
        "forOf": "_exec_for_of",
        "while": "_exec_while",
        "doWhile": "_exec_do_while",
        "switch": "_exec_switch",
        "try": "_exec_try",
        "return": "_exec_return",
        "throw": "_exec_throw",
        "break": "_exec_break",
        "continue": "_exec_continue",
        "call": "_exec_call",
        "new": "_exec_new",
        "memberAccess": "_exec_member_access",
        "assign": "_exec_assign",
        "binaryOp": "_exec_binary_op",
        "unaryOp": "_exec_unary_op",
        "logicalOp": "_exec_logical_op",
        "conditional": "_exec_conditional",
        "await": "_exec_await",
        "yield": "_exec_yield",
        "arrowFunction": "_exec_arrow_function",
        "functionExpr": "_exec_function_expr",
        "identifier": "_exec_identifier",
        "literal": "_exec_literal",
        "array": "_exec_array",
        "object": "_exec_object",
        "template": "_exec_template",
        "spread": "_exec_spread",
        "import": "_exec_import",
        "export": "_exec_export",
        "exportDefault": "_exec_export",
    }

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        environment: Optional[Environment] = None,
        on_output: Optional[Callable[[OutputRecord], None]] = None,
        globals: Optional[dict[str, Any]] = None,
    ):
        self.config = config or EngineConfig()
        self.on_output = on_output
        self.output: list[OutputRecord] = []
        self.iterations = 0
        self.random = random.Random(self.config.random_seed)

        self._handlers: dict[str, Handler] = {tag: getattr(self, name) for tag, name in self._HANDLERS.items()}
        for tag in ROLE_ONLY_TAGS:
            self._handlers[tag] = self._exec_misplaced

        self.global_context = ExecutionContext(call_stack=CallStack())
        self.program_context = self.global_context.create_child_context(function_boundary=True)
        register_builtins(self, self.global_context)

        self.environment: Optional[Environment] = None
        if environment is not None:
            self.bind_environment(environment)
        for name, value in (globals or {}).items():
            self.bind(name, value)

    @property
    def call_stack(self) -> CallStack:
        return self.global_context.call_stack

    @property
    def handled_types(self) -> set[str]:
        return set(self._handlers)

    def register_handler(self, action_type: str, handler: Handler) -> None:
        """Add or replace the handler for a tag. handler(node, context) -> value or signal."""
        self._handlers[action_type] = handler

    # --- environment ---

    def bind(self, name: str, value: Any) -> None:
        """Expose a host value to scripts under name in the outermost context."""
        if isinstance(value, NativeFunction) and value.engine is None:
            value.engine = self
        self.global_context.constants.set(name, value)

    def bind_environment(self, environment: Environment) -> None:
        self.environment = environment
        if environment.timers is not None:
            environment.timers.invoke = self._invoke_callback
        for name, value in environment.globals().items():
            self.bind(name, value)

    def _invoke_callback(self, callback: Any, args: list) -> Any:
        if not is_function(callback):
            raise ScriptTypeError(f"Callback must be a function, got {display(callback)}")
        return self.call_function(callback, list(args))

    def advance_timers(self, ms: int = 0) -> int:
        """Move the environment's virtual clock forward; returns how many callbacks fired."""
        timers = self.environment.timers if self.environment is not None else None
        if timers is None:
            return 0
        with self._execution_boundary():
            return timers.tick(ms)

    def run_timers(self, limit: int = 10_000) -> int:
        timers = self.environment.timers if self.environment is not None else None
        if timers is None:
            return 0
        with self._execution_boundary():
            return timers.run_all(limit)

    # --- side-effect log ---

    def record(self, kind: str, *args: Any) -> OutputRecord:
        entry = OutputRecord(kind, args, " ".join(display(arg) for arg in args))
        self.output.append(entry)
        if self.on_output is not None:
            self.on_output(entry)
        return entry

    def get_output(self) -> list[OutputRecord]:
        return self.output

    def clear_output(self) -> None:
        self.output = []

    # --- entry points ---

    def execute(self, tree: Union[ActionTree, Action, None]) -> Any:
        """Run a tree and return the value of its last top-level statement.

        Any error raised during evaluation reaches the caller as one ExecutionFailure.
        """
        root = tree.root if isinstance(tree, ActionTree) else tree
        if root is None:
            return UNDEFINED
        self.iterations = 0
        self.program_context = self.global_context.create_child_context(function_boundary=True)
        logger.debug("execute %s <%s>", root.id, root.action_type)
        with self._execution_boundary():
            result = self.evaluate(root, self.program_context)
            if isinstance(result, (BreakSignal, ContinueSignal)):
                raise MalformedProgramError(
                    f"Illegal {'break' if isinstance(result, BreakSignal) else 'continue'} statement",
                    root.id,
                    root.action_type,
                )
        if isinstance(result, ReturnSignal):
            result = result.value
        logger.debug("execute %s finished after %d loop iterations", root.id, self.iterations)
        return result

    @contextmanager
    def _execution_boundary(self) -> Iterator[None]:
        """Raise the host recursion limit for the duration and turn every error into one ExecutionFailure."""
        previous = sys.getrecursionlimit()
        if previous < self.config.recursion_limit:
            sys.setrecursionlimit(self.config.recursion_limit)
        try:
            yield
        except ActionLangError as exc:
            logger.debug("execution failed: %s", exc)
            raise self._failure(exc) from exc
        except Exception as exc:
            logger.debug("execution failed outside any node: %r", exc)
            raise self._failure(InternalError(f"{type(exc).__name__}: {exc}")) from exc
        finally:
            sys.setrecursionlimit(previous)

    def _failure(self, exc: ActionLangError) -> ExecutionFailure:
        if isinstance(exc, ExecutionFailure):
            return exc
        value = None
        message = exc.message
        if isinstance(exc, ThrownValue):
            value = exc.value
            message = f"Uncaught {display(exc.value)}"
        elif isinstance(exc, ScriptError):
            value = exc.to_script_value()
        return ExecutionFailure(
            message,
            exc.node_id,
            exc.action_type,
            failure_kind=exc.kind,
            value=value,
            output=list(self.output),
        )

    def evaluate(self, node: Action, context: ExecutionContext) -> Any:
        handler = self._handlers.get(node.action_type)
        if handler is None:
            raise MalformedProgramError(f"Unknown action type {node.action_type!r}", node.id, node.action_type)
        try:
            return handler(node, context)
        except ActionLangError as exc:
            if exc.node_id is None:
                exc.node_id = node.id
                exc.action_type = node.action_type
            raise
        except RecursionError:
            raise StackOverflowError("Maximum call stack size exceeded", node.id, node.action_type) from None
        except Exception as exc:
            raise InternalError(f"{type(exc).__name__}: {exc}", node.id, node.action_type) from exc

    # --- helpers ---

    def _required_child(self, node: Action, role: str) -> Action:
        child = node.child_with_role(role)
        if child is None:
            raise MalformedProgramError(f"Missing {role!r} child", node.id, node.action_type)
        return child

    def _required_attribute(self, node: Action, name: str) -> Any:
        value = node.get_attribute(name)
        if value is None or value == "":
            raise MalformedProgramError(f"Missing {name!r} attribute", node.id, node.action_type)
        return value

    def _first_child(self, node: Action) -> Optional[Action]:
        return node.children[0] if node.children else None

    def _count_iteration(self) -> None:
        self.iterations += 1
        limit = self.config.max_iterations
        if limit is not None and self.iterations > limit:
            raise IterationLimitError("Maximum iteration limit exceeded (possible infinite loop)")

    def _loop_control(self, result: Any, label: Optional[str]) -> Optional[str]:
        """'break' or 'continue' when this loop consumes the signal, 'exit' when it must propagate."""
        if isinstance(result, BreakSignal):
            return "break" if targets_loop(result, label) else "exit"
        if isinstance(result, ContinueSignal):
            return "continue" if targets_loop(result, label) else "exit"
        if isinstance(result, ReturnSignal):
            return "exit"
        return None

    def _run_statements(self, statements: list[Action], context: ExecutionContext) -> Any:
        hoisted = set()
        for statement in statements:
            if statement.action_type == "declareFunction":
                self._declare_function(statement, context)
                hoisted.add(statement.id)
        result = UNDEFINED
        for statement in statements:
            if statement.id in hoisted:
                continue
            result = self.evaluate(statement, context)
            if is_signal(result):
                return result
        return result

    def iterate(self, value: Any) -> list:
        """Materialise an iterable script value (array, string or host iterable)."""
        if isinstance(value, (list, str)):
            return list(value)
        if isinstance(value, dict) or is_nullish(value) or isinstance(value, (bool, int, float)):
            raise ScriptTypeError(f"{display(value)} is not iterable")
        if hasattr(value, "__iter__"):
            return list(value)
        raise ScriptTypeError(f"{display(value)} is not iterable")

    def _describe(self, node: Action) -> str:
        if node.action_type == "identifier":
            return str(node.get_attribute("name"))
        if node.action_type == "memberAccess":
            target = node.child_with_role("object")
            prop = node.get_attribute("property") or "[...]"
            return f"{self._describe(target) if target is not None else '?'}.{prop}"
        if node.action_type == "call":
            callee = node.child_with_role("callee")
            return f"{self._describe(callee) if callee is not None else '?'}(...)"
        return "expression"

    # --- sequences ---

    def _exec_program(self, node: Action, context: ExecutionContext) -> Any:
        return self._run_statements(node.children, context)

    def _exec_seq(self, node: Action, context: ExecutionContext) -> Any:
        return self._run_statements(node.children, context)

    def _exec_block(self, node: Action, context: ExecutionContext) -> Any:
        result = self._run_statements(node.children, context.create_child_context())
        label = node.get_attribute("label")
        if label is not None and isinstance(result, BreakSignal) and result.label == label:
            return UNDEFINED
        return result

    def _exec_misplaced(self, node: Action, context: ExecutionContext) -> Any:
        raise MalformedProgramError(
            f"{node.action_type!r} is only valid inside its parent construct", node.id, node.action_type
        )

    # --- declarations ---

    def _exec_declare_var(self, node: Action, context: ExecutionContext) -> Any:
        name = self._required_attribute(node, "name")
        kind = node.get_attribute("kind") or VAR
        init = node.child_with_role("init") or self._first_child(node)
        if init is None:
            if kind == CONST:
                raise MalformedProgramError("Missing initializer in const declaration", node.id, node.action_type)
            if kind == VAR and context.function_context().declares_var_target(name):
                return UNDEFINED
            value = UNDEFINED
        else:
            value = self.evaluate(init, context)
        self._name_anonymous(value, name)
        context.declare(name, value, kind if kind in (LET, CONST, VAR) else LET)
        return value

    def _exec_declare_const(self, node: Action, context: ExecutionContext) -> Any:
        name = self._required_attribute(node, "name")
        init = node.child_with_role("init") or self._first_child(node)
        if init is None:
            raise MalformedProgramError("Missing initializer in const declaration", node.id, node.action_type)
        value = self.evaluate(init, context)
        self._name_anonymous(value, name)
        context.declare(name, value, CONST)
        return value

    @staticmethod
    def _name_anonymous(value: Any, name: str) -> None:
        if isinstance(value, Closure) and value.name == "anonymous":
            value.name = name

    def _make_closure(self, node: Action, context: ExecutionContext, name: str, is_arrow: bool = False) -> Closure:
        params = []
        for child in node.children:
            if child.action_type == "declareParam":
                params.append(
                    Parameter(
                        self._required_attribute(child, "name"),
                        child.child_with_role("default"),
                        truthy(child.get_attribute("rest")),
                    )
                )
        body = node.child_with_role("body")
        if body is None:
            body = next((c for c in node.children if c.action_type != "declareParam"), None)
        expression_body = truthy(node.get_attribute("expression")) or (
            is_arrow and body is not None and body.action_type not in STATEMENT_BLOCKS
        )
        return Closure(name, params, body, context, self, is_arrow=is_arrow, expression_body=expression_body)

    def _declare_function(self, node: Action, context: ExecutionContext) -> Closure:
        name = self._required_attribute(node, "name")
        closure = self._make_closure(node, context, name)
        context.declare(name, closure, FUNCTION)
        return closure

    def _exec_declare_function(self, node: Action, context: ExecutionContext) -> Any:
        return self._declare_function(node, context)

    def _exec_declare_class(self, node: Action, context: ExecutionContext) -> Any:
        name = self._required_attribute(node, "name")
        superclass = None
        extends = node.child_with_role("extends")
        if extends is not None:
            superclass = self.evaluate(extends, context)
            if not isinstance(superclass, ClassDefinition):
                raise ScriptTypeError(f"Class extends value {display(superclass)} is not a constructor")
        cls = ClassDefinition(name, superclass=superclass)
        body = node.child_with_role("body") or next((c for c in node.children if c.action_type == "block"), None)
        members = body.children if body is not None else node.children
        for member in members:
            is_static = truthy(member.get_attribute("static"))
            if member.action_type == "declareMethod":
                method_name = self._required_attribute(member, "name")
                method = self._make_closure(member, context, f"{name}.{method_name}")
                method.home_class = cls
                if method_name == "constructor" and not is_static:
                    cls.constructor = method
                elif is_static:
                    cls.static_methods[method_name] = method
                else:
                    cls.methods[method_name] = method
            elif member.action_type == "property":
                field_name = self._required_attribute(member, "key")
                value_node = member.child_with_role("value")
                if is_static:
                    cls.static_methods[field_name] = (
                        self.evaluate(value_node, context) if value_node is not None else UNDEFINED
                    )
                elif value_node is None:
                    cls.fields[field_name] = None
                else:
                    init = Closure(f"{name}.{field_name}", [], value_node, context, self, expression_body=True)
                    init.home_class = cls
                    cls.fields[field_name] = init
        context.declare(name, cls, CONST)
        return cls

    # --- control flow ---

    def _exec_if(self, node: Action, context: ExecutionContext) -> Any:
        condition = self._required_child(node, "condition")
        if truthy(self.evaluate(condition, context)):
            branch = node.child_with_role("then")
        else:
            branch = node.child_with_role("else")
        return self.evaluate(branch, context) if branch is not None else UNDEFINED

    def _copy_bindings(self, source: ExecutionContext, names: list[str], parent: ExecutionContext) -> ExecutionContext:
        if not names:
            return source
        fresh = parent.create_child_context()
        for name in names:
            fresh.variables.push(name, source.variables.get(name))
        return fresh

    def _exec_for(self, node: Action, context: ExecutionContext) -> Any:
        label = node.get_attribute("label")
        init = node.child_with_role("init")
        test = node.child_with_role("test")
        update = node.child_with_role("update")
        body = node.child_with_role("body")

        loop_context = context.create_child_context()
        if init is not None:
            self.evaluate(init, loop_context)
        # let bindings from the init clause are copied into each iteration
        per_iteration = loop_context.variables.local_names()
        iteration = self._copy_bindings(loop_context, per_iteration, loop_context)
        while True:
            self._count_iteration()
            if test is not None and not truthy(self.evaluate(test, iteration)):
                break
            if body is not None:
                result = self.evaluate(body, iteration)
                control = self._loop_control(result, label)
                if control == "break":
                    break
                if control == "exit":
                    return result
            iteration = self._copy_bindings(iteration, per_iteration, loop_context)
            if update is not None:
                self.evaluate(update, iteration)
        return UNDEFINED

    def _bind_loop_variable(self, variable: Action, value: Any, context: ExecutionContext) -> None:
        if variable.action_type in ("declareVar", "declareConst"):
            name = self._required_attribute(variable, "name")
            kind = CONST if variable.action_type == "declareConst" else (variable.get_attribute("kind") or VAR)
            context.declare(name, value, kind)
            return
        self._reference(variable, context).set(value)

    def _keys_of(self, target: Any) -> list[str]:
        if is_nullish(target):
            return []
        if isinstance(target, dict):
            return list(target.keys())
        if isinstance(target, (list, str)):
            return [str(i) for i in range(len(target))]
        if isinstance(target, (Closure, NativeFunction)):
            return list(target.members.keys())
        if hasattr(target, "__dict__"):
            return [k for k in vars(target) if not k.startswith("_")]
        return []

    def _exec_for_in(self, node: Action, context: ExecutionContext) -> Any:
        return self._run_each(node, context, self._keys_of(self.evaluate(self._required_child(node, "object"), context)))

    def _exec_for_of(self, node: Action, context: ExecutionContext) -> Any:
        iterable = self.evaluate(self._required_child(node, "iterable"), context)
        if isinstance(iterable, list):
            return self._run_each(node, context, iterable, live=True)
        return self._run_each(node, context, self.iterate(iterable))

    def _run_each(self, node: Action, context: ExecutionContext, items: list, live: bool = False) -> Any:
        label = node.get_attribute("label")
        variable = self._required_child(node, "variable")
        body = node.child_with_role("body")
        loop_context = context.create_child_context()
        index = 0
        # live iteration re-reads the length so appends made by the body are visited
        while index < len(items):
            item = items[index]
            index += 1
            self._count_iteration()
            iteration = loop_context.create_child_context()
            self._bind_loop_variable(variable, item, iteration)
            if body is None:
                continue
            result = self.evaluate(body, iteration)
            control = self._loop_control(result, label)
            if control == "break":
                break
            if control == "exit":
                return result
        return UNDEFINED

    def _exec_while(self, node: Action, context: ExecutionContext) -> Any:
        label = node.get_attribute("label")
        condition = self._required_child(node, "condition")
        body = node.child_with_role("body")
        loop_context = context.create_child_context()
        while truthy(self.evaluate(condition, loop_context)):
            self._count_iteration()
            if body is None:
                continue
            result = self.evaluate(body, loop_context)
            control = self._loop_control(result, label)
            if control == "break":
                break
            if control == "exit":
                return result
        return UNDEFINED

    def _exec_do_while(self, node: Action, context: ExecutionContext) -> Any:
        label = node.get_attribute("label")
        condition = self._required_child(node, "condition")
        body = node.child_with_role("body")
        loop_context = context.create_child_context()
        while True:
            self._count_iteration()
            if body is not None:
                result = self.evaluate(body, loop_context)
                control = self._loop_control(result, label)
                if control == "break":
                    break
                if control == "exit":
                    return result
            if not truthy(self.evaluate(condition, loop_context)):
                break
        return UNDEFINED

    def _exec_switch(self, node: Action, context: ExecutionContext) -> Any:
        discriminant = self.evaluate(self._required_child(node, "discriminant"), context)
        clauses = [c for c in node.children if c.action_type in ("case", "default")]
        start = None
        for index, clause in enumerate(clauses):
            if clause.action_type != "case":
                continue
            if strict_equals(self.evaluate(self._required_child(clause, "test"), context), discriminant):
                start = index
                break
        if start is None:
            start = next((i for i, c in enumerate(clauses) if c.action_type == "default"), None)
        if start is None:
            return UNDEFINED

        switch_context = context.create_child_context()
        result = UNDEFINED
        for clause in clauses[start:]:
            for statement in clause.children:
                if statement.role == "test":
                    continue
                result = self.evaluate(statement, switch_context)
                if isinstance(result, BreakSignal) and result.label is None:
                    return UNDEFINED
                if is_signal(result):
                    return result
        return result

    def _exec_try(self, node: Action, context: ExecutionContext) -> Any:
        block = node.child_with_role("try") or next((c for c in node.children if c.action_type == "block"), None)
        if block is None:
            raise MalformedProgramError("Missing 'try' block", node.id, node.action_type)
        handler = next((c for c in node.children if c.action_type == "catch"), None)
        finalizer = next((c for c in node.children if c.action_type == "finally"), None)

        pending: Optional[ActionLangError] = None
        result: Any = UNDEFINED
        try:
            result = self.evaluate(block, context)
        except ScriptError as exc:
            if handler is None:
                pending = exc
            else:
                try:
                    result = self._run_catch(handler, exc, context)
                except ActionLangError as raised:
                    pending = raised
        except ActionLangError as exc:
            pending = exc

        if finalizer is not None:
            outcome = self._run_statements(finalizer.children, context.create_child_context())
            # a completing break/continue/return in finally discards whatever was pending
            if is_signal(outcome) and not isinstance(pending, (MalformedProgramError, InternalError)):
                return outcome
        if pending is not None:
            raise pending
        return result

    def _run_catch(self, handler: Action, exc: ScriptError, context: ExecutionContext) -> Any:
        catch_context = context.create_child_context()
        param = handler.get_attribute("param")
        if param:
            catch_context.declare(param, exc.to_script_value(), LET)
        return self._run_statements(handler.children, catch_context)

    def _exec_return(self, node: Action, context: ExecutionContext) -> Any:
        value_node = self._first_child(node)
        return ReturnSignal(self.evaluate(value_node, context) if value_node is not None else UNDEFINED)

    def _exec_throw(self, node: Action, context: ExecutionContext) -> Any:
        value_node = self._first_child(node)
        value = self.evaluate(value_node, context) if value_node is not None else UNDEFINED
        raise ThrownValue(display(value), value=value)

    def _exec_break(self, node: Action, context: ExecutionContext) -> Any:
        label = node.get_attribute("label")
        return BreakSignal(label) if label else BREAK

    def _exec_continue(self, node: Action, context: ExecutionContext) -> Any:
        label = node.get_attribute("label")
        return ContinueSignal(label) if label else CONTINUE

    # --- calls ---

    def _evaluate_arguments(self, node: Action, context: ExecutionContext) -> list:
        args: list = []
        for child in node.children:
            if child.role != "argument":
                continue
            if child.action_type == "spread":
                args.extend(self.iterate(self._spread_operand(child, context)))
            else:
                args.append(self.evaluate(child, context))
        return args

    def _exec_call(self, node: Action, context: ExecutionContext) -> Any:
        callee = self._required_child(node, "callee")
        this: Any = UNDEFINED
        if callee.action_type == "memberAccess":
            target, key, short = self._member_target(callee, context)
            if short:
                return UNDEFINED
            function = self.get_property(target, key)
            this = target.this if isinstance(target, SuperBinding) else target
        elif callee.action_type == "identifier" and callee.get_attribute("name") == "super":
            return self._call_super(node, context)
        else:
            function = self.evaluate(callee, context)
        if truthy(node.get_attribute("optional")) and is_nullish(function):
            return UNDEFINED
        args = self._evaluate_arguments(node, context)
        if not is_function(function):
            raise ScriptTypeError(f"{self._describe(callee)} is not a function")
        return self.call_function(function, args, this, node)

    def _call_super(self, node: Action, context: ExecutionContext) -> Any:
        try:
            binding = context.lookup("super")
        except UndefinedReferenceError:
            raise ScriptSyntaxError("'super' keyword unexpected here") from None
        args = self._evaluate_arguments(node, context)
        constructor = binding.superclass.find_constructor()
        if constructor is not None:
            self.call_function(constructor, args, binding.this, node)
        return UNDEFINED

    def call_function(self, function: Any, args: list, this: Any = UNDEFINED, node: Optional[Action] = None) -> Any:
        """Invoke any script-callable value with one call-stack frame pushed for the duration."""
        if isinstance(function, ClassDefinition):
            raise ScriptTypeError(f"Class constructor {function.name} cannot be invoked without 'new'")
        if len(self.call_stack) >= self.config.max_call_depth:
            raise StackOverflowError("Maximum call stack size exceeded")
        name = getattr(function, "name", None) or getattr(function, "__name__", "anonymous")
        self.call_stack.push_frame(name, tuple(args), node.id if node is not None else None)
        try:
            if isinstance(function, Closure):
                return self._invoke_closure(function, args, this)
            if isinstance(function, NativeFunction):
                return self._call_host(name, function.impl, self, this, args)
            return self._call_host(name, function, *args)
        finally:
            self.call_stack.pop_frame()

    @staticmethod
    def _call_host(name: str, function: Callable[..., Any], *args: Any) -> Any:
        try:
            result = function(*args)
        except (ActionLangError, RecursionError):
            raise
        except Exception as exc:
            raise HostError(f"{name}: {exc}") from exc
        if isinstance(result, float):
            return normalize_number(result)
        return result

    def _invoke_closure(self, closure: Closure, args: list, this: Any) -> Any:
        frame = ExecutionContext(closure.context, function_boundary=True)
        if not closure.is_arrow:
            bound_this = closure.bound_this if closure.bound_this is not UNDEFINED else this
            frame.constants.set("this", bound_this)
            frame.variables.set("arguments", list(args))
            home = closure.home_class
            if home is not None and home.superclass is not None:
                frame.constants.set("super", SuperBinding(home.superclass, bound_this))
        for index, param in enumerate(closure.params):
            if param.rest:
                value: Any = list(args[index:])
            else:
                value = args[index] if index < len(args) else UNDEFINED
                if value is UNDEFINED and param.default is not None:
                    value = self.evaluate(param.default, frame)
            frame.variables.set(param.name, value)

        body = closure.body
        if body is None:
            return UNDEFINED
        if closure.expression_body:
            return self.evaluate(body, frame)
        if body.action_type in STATEMENT_BLOCKS:
            result = self._run_statements(body.children, frame)
        else:
            result = self.evaluate(body, frame)
        if isinstance(result, ReturnSignal):
            return result.value
        if isinstance(result, (BreakSignal, ContinueSignal)):
            raise MalformedProgramError(f"Illegal break or continue escaping {closure.name}", body.id, body.action_type)
        return UNDEFINED

    def _exec_new(self, node: Action, context: ExecutionContext) -> Any:
        target_node = self._required_child(node, "constructor")
        target = self.evaluate(target_node, context)
        args = self._evaluate_arguments(node, context)
        if isinstance(target, ClassDefinition):
            return self.construct(target, args, node)
        if isinstance(target, Closure) and not target.is_arrow:
            instance = ScriptInstance()
            result = self.call_function(target, args, instance, node)
            return result if isinstance(result, (dict, list)) else instance
        if isinstance(target, NativeFunction):
            return self.call_function(target, args, UNDEFINED, node)
        if isinstance(target, type):
            return self._call_host(target.__name__, target, *args)
        raise ScriptTypeError(f"{self._describe(target_node)} is not a constructor")

    def construct(self, cls: ClassDefinition, args: list, node: Optional[Action] = None) -> ScriptInstance:
        instance = ScriptInstance(cls)
        lineage = []
        current: Optional[ClassDefinition] = cls
        while current is not None:
            lineage.append(current)
            current = current.superclass
        for definition in reversed(lineage):
            for name, init in definition.fields.items():
                instance[name] = self.call_function(init, [], instance, node) if init is not None else UNDEFINED
        constructor = cls.find_constructor()
        if constructor is not None:
            self.call_function(constructor, args, instance, node)
        return instance

    # --- members ---

    def _property_key(self, node: Action, context: ExecutionContext) -> Any:
        if truthy(node.get_attribute("computed")) or node.get_attribute("property") is None:
            return self.evaluate(self._required_child(node, "property"), context)
        return node.get_attribute("property")

    def _member_target(self, node: Action, context: ExecutionContext) -> tuple[Any, Any, bool]:
        target_node = self._required_child(node, "object")
        if target_node.action_type == "memberAccess":
            target = self._member_get(target_node, context)
            if target is _SHORT_CIRCUIT:
                return None, None, True
        else:
            target = self.evaluate(target_node, context)
        if truthy(node.get_attribute("optional")) and is_nullish(target):
            return None, None, True
        return target, self._property_key(node, context), False

    def _member_get(self, node: Action, context: ExecutionContext) -> Any:
        target, key, short = self._member_target(node, context)
        if short:
            return _SHORT_CIRCUIT
        return self.get_property(target, key)

    def _exec_member_access(self, node: Action, context: ExecutionContext) -> Any:
        value = self._member_get(node, context)
        return UNDEFINED if value is _SHORT_CIRCUIT else value

    @staticmethod
    def _array_index(key: Any) -> Optional[int]:
        if is_number(key) and float(key).is_integer() and key >= 0:
            return int(key)
        if isinstance(key, str) and key.isdigit():
            return int(key)
        return None

    def get_property(self, target: Any, key: Any) -> Any:
        if is_nullish(target):
            raise ScriptTypeError(f"Cannot read properties of {display(target)} (reading '{to_property_key(key)}')")
        if isinstance(target, (list, str)):
            if key == "length":
                return len(target)
            index = self._array_index(key)
            if index is not None:
                return target[index] if index < len(target) else UNDEFINED
            return lookup_method(target, to_property_key(key)) or UNDEFINED
        name = to_property_key(key)
        if isinstance(target, SuperBinding):
            method = target.superclass.find_method(name)
            if method is not None:
                return method.bind(target.this)
            return self.get_property(target.superclass, name)
        if isinstance(target, dict):
            if name in target:
                return target[name]
            if isinstance(target, ScriptInstance) and target.class_def is not None:
                method = target.class_def.find_method(name)
                if method is not None:
                    return method
            return lookup_method(target, name) or UNDEFINED
        if isinstance(target, ClassDefinition):
            current: Optional[ClassDefinition] = target
            while current is not None:
                if name in current.static_methods:
                    return current.static_methods[name]
                current = current.superclass
            if name == "name":
                return target.name
            return UNDEFINED
        if isinstance(target, (Closure, NativeFunction)):
            if name in target.members:
                return target.members[name]
            if name == "name":
                return target.name
            if name == "length" and isinstance(target, Closure):
                return len([p for p in target.params if not p.rest and p.default is None])
            return lookup_method(target, name) or UNDEFINED
        if isinstance(target, ScriptRegExp):
            if name == "source":
                return target.source
            if name == "flags":
                return target.flags
            if name == "global":
                return target.is_global
            return lookup_method(target, name) or UNDEFINED
        if isinstance(target, (bool, int, float)):
            return lookup_method(target, name) or UNDEFINED
        try:
            value = getattr(target, name)
        except AttributeError:
            return UNDEFINED
        except Exception as exc:
            raise HostError(f"reading {name}: {exc}") from exc
        return value

    def set_property(self, target: Any, key: Any, value: Any) -> None:
        if is_nullish(target):
            raise ScriptTypeError(f"Cannot set properties of {display(target)} (setting '{to_property_key(key)}')")
        if isinstance(target, list):
            if key == "length":
                length = to_array_length(value)
                del target[length:]
                target.extend([UNDEFINED] * (length - len(target)))
                return
            index = self._array_index(key)
            # lists carry no named properties; out-of-range indices are names, not slots
            if index is None or index >= MAX_ARRAY_LENGTH:
                return
            if index >= len(target):
                target.extend([UNDEFINED] * (index + 1 - len(target)))
            target[index] = value
            return
        if isinstance(target, dict):
            target[to_property_key(key)] = value
            return
        if isinstance(target, (Closure, NativeFunction)):
            target.members[to_property_key(key)] = value
            return
        if isinstance(target, ClassDefinition):
            target.static_methods[to_property_key(key)] = value
            return
        if isinstance(target, (str, bool, int, float)):
            return
        try:
            setattr(target, to_property_key(key), value)
        except Exception as exc:
            raise HostError(f"setting {to_property_key(key)}: {exc}") from exc

    def delete_property(self, target: Any, key: Any) -> bool:
        if isinstance(target, dict):
            target.pop(to_property_key(key), None)
            return True
        if isinstance(target, list):
            index = self._array_index(key)
            if index is not None and index < len(target):
                target[index] = UNDEFINED
            return True
        if isinstance(target, (Closure, NativeFunction)):
            target.members.pop(to_property_key(key), None)
            return True
        return False

    # --- assignment ---

    def assign_name(self, context: ExecutionContext, name: str, value: Any) -> None:
        if context.assign(name, value):
            return
        if self.config.strict_assignment:
            raise UndefinedReferenceError(f"{name} is not defined")
        self.program_context.variables.set(name, value)

    def _reference(self, node: Action, context: ExecutionContext) -> Union[_NameReference, _PropertyReference]:
        if node.action_type == "identifier":
            return _NameReference(self, context, self._required_attribute(node, "name"))
        if node.action_type == "memberAccess":
            target, key, short = self._member_target(node, context)
            if short:
                raise ScriptSyntaxError("Invalid left-hand side in assignment")
            if isinstance(target, SuperBinding):
                target = target.this
            return _PropertyReference(self, target, key)
        raise MalformedProgramError(f"Invalid assignment target {node.action_type!r}", node.id, node.action_type)

    def _exec_assign(self, node: Action, context: ExecutionContext) -> Any:
        operator = node.get_attribute("operator") or "="
        left = self._required_child(node, "left")
        right = node.child_with_role("right") or node.child_with_role("default")
        if right is None:
            raise MalformedProgramError("Missing 'right' child", node.id, node.action_type)
        reference = self._reference(left, context)
        if operator == "=":
            value = self.evaluate(right, context)
        elif operator in LOGICAL_ASSIGNMENT:
            current = reference.get()
            if operator == "&&=" and not truthy(current):
                return current
            if operator == "||=" and truthy(current):
                return current
            if operator == "??=" and not is_nullish(current):
                return current
            value = self.evaluate(right, context)
        elif operator in COMPOUND_ASSIGNMENT:
            current = reference.get()
            value = BINARY_OPERATORS[COMPOUND_ASSIGNMENT[operator]](current, self.evaluate(right, context))
        else:
            raise MalformedProgramError(f"Unknown assignment operator {operator!r}", node.id, node.action_type)
        self._name_anonymous(value, left.get_attribute("name") or "anonymous")
        reference.set(value)
        return value

    # --- operators ---

    def _exec_binary_op(self, node: Action, context: ExecutionContext) -> Any:
        operator = self._required_attribute(node, "operator")
        if operator in ("&&", "||", "??"):
            return self._exec_logical_op(node, context)
        apply = BINARY_OPERATORS.get(operator)
        if apply is None:
            raise MalformedProgramError(f"Unknown binary operator {operator!r}", node.id, node.action_type)
        left = self.evaluate(self._required_child(node, "left"), context)
        right = self.evaluate(self._required_child(node, "right"), context)
        return apply(left, right)

    def _exec_unary_op(self, node: Action, context: ExecutionContext) -> Any:
        operator = self._required_attribute(node, "operator")
        operand = node.child_with_role("argument") or self._first_child(node)
        if operand is None:
            raise MalformedProgramError("Missing operand", node.id, node.action_type)

        if operator in ("++", "--"):
            reference = self._reference(operand, context)
            old = to_number(reference.get())
            new = add(old, 1) if operator == "++" else subtract(old, 1)
            reference.set(new)
            prefix = node.get_attribute("prefix")
            return new if prefix is None or truthy(prefix) else old
        if operator == "delete":
            if operand.action_type != "memberAccess":
                return False
            target, key, short = self._member_target(operand, context)
            return True if short else self.delete_property(target, key)
        if operator == "typeof" and operand.action_type == "identifier":
            try:
                value = self.evaluate(operand, context)
            except UndefinedReferenceError:
                return "undefined"
            return UNARY_OPERATORS["typeof"](value)

        apply = UNARY_OPERATORS.get(operator)
        if apply is None:
            raise MalformedProgramError(f"Unknown unary operator {operator!r}", node.id, node.action_type)
        return apply(self.evaluate(operand, context))

    def _exec_logical_op(self, node: Action, context: ExecutionContext) -> Any:
        operator = self._required_attribute(node, "operator")
        left = self.evaluate(self._required_child(node, "left"), context)
        right = self._required_child(node, "right")
        if operator == "&&":
            return self.evaluate(right, context) if truthy(left) else left
        if operator == "||":
            return left if truthy(left) else self.evaluate(right, context)
        if operator == "??":
            return self.evaluate(right, context) if is_nullish(left) else left
        raise MalformedProgramError(f"Unknown logical operator {operator!r}", node.id, node.action_type)

    def _exec_conditional(self, node: Action, context: ExecutionContext) -> Any:
        if truthy(self.evaluate(self._required_child(node, "condition"), context)):
            return self.evaluate(self._required_child(node, "then"), context)
        return self.evaluate(self._required_child(node, "else"), context)

    def _exec_await(self, node: Action, context: ExecutionContext) -> Any:
        operand = self._first_child(node)
        value = self.evaluate(operand, context) if operand is not None else UNDEFINED
        if hasattr(value, "__await__") or callable(getattr(value, "then", None)):
            logger.warning("await on %r cannot be resolved synchronously; passing it through", value)
        return value

    def _exec_yield(self, node: Action, context: ExecutionContext) -> Any:
        operand = self._first_child(node)
        return self.evaluate(operand, context) if operand is not None else UNDEFINED

    # --- function values ---

    def _exec_arrow_function(self, node: Action, context: ExecutionContext) -> Any:
        return self._make_closure(node, context, "anonymous", is_arrow=True)

    def _exec_function_expr(self, node: Action, context: ExecutionContext) -> Any:
        name = node.get_attribute("name")
        if not name:
            return self._make_closure(node, context, "anonymous")
        # a named function expression can refer to itself
        own = context.create_child_context()
        closure = self._make_closure(node, own, name)
        own.declare(name, closure, FUNCTION)
        return closure

    # --- primaries ---

    def _exec_identifier(self, node: Action, context: ExecutionContext) -> Any:
        name = self._required_attribute(node, "name")
        if name == "this":
            try:
                return context.lookup("this")
            except UndefinedReferenceError:
                return UNDEFINED
        if name == "undefined":
            return UNDEFINED
        return context.lookup(name)

    def _exec_literal(self, node: Action, context: ExecutionContext) -> Any:
        kind = node.get_attribute("type")
        value = node.get_attribute("value")
        if kind == "number":
            return normalize_number(to_number(value))
        if kind == "boolean":
            return value is True or value == "true"
        if kind == "null":
            return None
        if kind == "undefined":
            return UNDEFINED
        if kind == "regexp":
            try:
                return ScriptRegExp(str(value), node.get_attribute("flags") or "")
            except re.error as exc:
                raise ScriptSyntaxError(f"Invalid regular expression: /{value}/: {exc}") from exc
        if kind == "bigint":
            return int(str(value).rstrip("n"))
        if kind in ("string", "templatePart"):
            return "" if value is None else to_string(value)
        return value

    def _spread_operand(self, node: Action, context: ExecutionContext) -> Any:
        operand = node.child_with_role("argument") or self._first_child(node)
        if operand is None:
            raise MalformedProgramError("Missing spread operand", node.id, node.action_type)
        return self.evaluate(operand, context)

    def _exec_array(self, node: Action, context: ExecutionContext) -> Any:
        elements: list = []
        for child in node.children:
            if child.action_type == "spread":
                elements.extend(self.iterate(self._spread_operand(child, context)))
            else:
                elements.append(self.evaluate(child, context))
        return elements

    def _exec_object(self, node: Action, context: ExecutionContext) -> Any:
        result: dict[str, Any] = {}
        for child in node.children:
            if child.action_type == "spread":
                source = self._spread_operand(child, context)
                if isinstance(source, dict):
                    result.update(source)
                elif isinstance(source, (list, str)):
                    result.update({str(i): item for i, item in enumerate(source)})
                continue
            if child.action_type != "property":
                raise MalformedProgramError(
                    f"Unexpected {child.action_type!r} inside object literal", child.id, child.action_type
                )
            key_node = child.child_with_role("key")
            if key_node is not None and (truthy(child.get_attribute("computed")) or child.get_attribute("key") is None):
                key = to_property_key(self.evaluate(key_node, context))
            else:
                key = to_property_key(self._required_attribute(child, "key"))
            value_node = child.child_with_role("value")
            value = self.evaluate(value_node, context) if value_node is not None else context.lookup(key)
            self._name_anonymous(value, key)
            result[key] = value
        return result

    def _exec_template(self, node: Action, context: ExecutionContext) -> Any:
        return "".join(to_string(self.evaluate(part, context)) for part in node.children)

    def _exec_spread(self, node: Action, context: ExecutionContext) -> Any:
        return self._spread_operand(node, context)

    def _exec_import(self, node: Action, context: ExecutionContext) -> Any:
        return UNDEFINED

    def _exec_export(self, node: Action, context: ExecutionContext) -> Any:
        declaration = self._first_child(node)
        return self.evaluate(declaration, context) if declaration is not None else UNDEFINED


def run(
    tree: Union[ActionTree, Action, None],
    config: Optional[EngineConfig] = None,
    environment: Optional[Environment] = None,
) -> ExecutionResult:
    """Execute a tree on a fresh engine, reporting failure in the result instead of raising."""
    engine = ExecutionEngine(config=config, environment=environment)
    try:
        value = engine.execute(tree)
    except ExecutionFailure as failure:
        return ExecutionResult(UNDEFINED, engine.get_output(), failure)
    return ExecutionResult(value, engine.get_output(), None)
