"""Execution runtime: scopes, values, operators and the tree-walking engine."""

from actionlang.runtime.engine import ExecutionEngine, ExecutionResult, OutputRecord, run
from actionlang.runtime.environment import Environment, TimerQueue
from actionlang.runtime.scope import (
    CallFrame,
    CallStack,
    ConstantScope,
    ExecutionContext,
    FunctionScope,
    Scope,
    VariableScope,
)
from actionlang.runtime.values import UNDEFINED

__all__ = [
    "UNDEFINED",
    "CallFrame",
    "CallStack",
    "ConstantScope",
    "Environment",
    "ExecutionContext",
    "ExecutionEngine",
    "ExecutionResult",
    "FunctionScope",
    "OutputRecord",
    "Scope",
    "TimerQueue",
    "VariableScope",
    "run",
]
