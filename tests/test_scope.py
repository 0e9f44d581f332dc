"""Tests for scope chains, the call stack and ExecutionContext declarations."""

import pytest

from actionlang.errors import (
    ConstantAssignmentError,
    DuplicateDeclarationError,
    UndefinedReferenceError,
)
from actionlang.runtime.scope import (
    CONST,
    FUNCTION,
    LET,
    VAR,
    CallStack,
    ConstantScope,
    ExecutionContext,
    FunctionScope,
    VariableScope,
)


def test_push_refuses_duplicates_but_set_overwrites():
    scope = VariableScope()
    scope.push("x", 1)
    with pytest.raises(DuplicateDeclarationError):
        scope.push("x", 2)
    scope.set("x", 3)
    assert scope.get("x") == 3


def test_get_walks_outward_and_raises_when_unresolved():
    outer = VariableScope()
    outer.push("x", 1)
    inner = outer.create_child_scope()
    assert isinstance(inner, VariableScope)
    assert inner.get("x") == 1
    assert inner.has("x") and not inner.has_local("x")
    with pytest.raises(UndefinedReferenceError):
        inner.get("missing")


def test_shadowing_and_update_target_nearest_frame():
    outer = VariableScope()
    outer.push("x", 1)
    inner = outer.create_child_scope()
    inner.push("x", 2)
    assert inner.get("x") == 2
    assert inner.update("x", 5) is True
    assert outer.get("x") == 1
    assert inner.get("x") == 5

    outer.push("y", 1)
    assert inner.update("y", 9) is True
    assert outer.get("y") == 9
    assert inner.update("nope", 0) is False


def test_delete_only_touches_current_frame():
    outer = VariableScope()
    outer.push("x", 1)
    inner = outer.create_child_scope()
    assert inner.delete("x") is False
    assert outer.delete("x") is True
    assert not inner.has("x")


def test_introspection_helpers():
    outer = VariableScope()
    outer.push("a", 1)
    inner = outer.create_child_scope()
    inner.push("b", 2)
    assert inner.depth() == 1
    assert inner.local_names() == ["b"]
    assert inner.all_names() == ["b", "a"]
    assert len(inner) == 1
    assert "variables 1" in inner.describe()
    inner.clear()
    assert len(inner) == 0


def test_constant_scope_rejects_updates_anywhere_in_chain():
    constants = ConstantScope()
    constants.push("PI", 3.14)
    child = constants.create_child_scope()
    with pytest.raises(ConstantAssignmentError):
        child.update("PI", 3)
    assert child.update("other", 1) is False


def test_function_scope_accepts_callables_only():
    functions = FunctionScope()
    functions.push("f", lambda: 1)
    with pytest.raises(TypeError):
        functions.push("g", 42)
    with pytest.raises(TypeError):
        functions.set("f", "nope")


def test_call_stack_is_lifo():
    stack = CallStack()
    assert stack.current_frame() is None
    stack.push_frame("outer", (1,))
    stack.push_frame("inner")
    assert stack.depth() == 2
    assert stack.current_frame().function_name == "inner"
    assert stack.stack_trace()[0].startswith("  at inner")
    assert stack.pop_frame().function_name == "inner"
    assert stack.current_frame().arguments == (1,)
    stack.pop_frame()
    assert stack.pop_frame() is None


def test_child_context_shares_call_stack_and_chains_scopes():
    root = ExecutionContext()
    root.declare("x", 1, LET)
    child = root.create_child_context()
    assert child.call_stack is root.call_stack
    assert child.variables.parent is root.variables
    assert child.constants.parent is root.constants
    assert child.functions.parent is root.functions
    assert child.lookup("x") == 1
    assert child.depth() == 1


def test_declare_kinds():
    context = ExecutionContext()
    context.declare("a", 1, LET)
    context.declare("B", 2, CONST)
    context.declare("f", len, FUNCTION)
    assert context.variables.get("a") == 1
    assert context.constants.get("B") == 2
    assert context.functions.get("f") is len
    with pytest.raises(DuplicateDeclarationError):
        context.declare("a", 3, CONST)
    with pytest.raises(DuplicateDeclarationError):
        context.declare("B", 3, LET)


def test_var_lands_on_function_level_and_may_be_redeclared():
    function_level = ExecutionContext().create_child_context(function_boundary=True)
    block = function_level.create_child_context()
    block.declare("v", 1, VAR)
    assert function_level.variables.get_local("v") == 1
    block.declare("v", 2, VAR)
    assert function_level.lookup("v") == 2


def test_assign_rebinds_nearest_and_reports_missing():
    root = ExecutionContext()
    root.declare("x", 1, LET)
    root.declare("K", 1, CONST)
    child = root.create_child_context()
    assert child.assign("x", 2) is True
    assert root.lookup("x") == 2
    assert child.assign("missing", 1) is False
    with pytest.raises(ConstantAssignmentError):
        child.assign("K", 2)


def test_lookup_unresolved_raises():
    with pytest.raises(UndefinedReferenceError) as exc_info:
        ExecutionContext().lookup("ghost")
    assert "ghost is not defined" in str(exc_info.value)
