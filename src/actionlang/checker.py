"""Structural checker: reject trees the engine would find malformed, before running them."""

from typing import Optional

from actionlang.errors import MalformedProgramError
from actionlang.ir import Action, ActionTree
from actionlang.runtime.engine import ExecutionEngine
from actionlang.runtime.operators import (
    BINARY_OPERATORS,
    COMPOUND_ASSIGNMENT,
    LOGICAL_ASSIGNMENT,
    UNARY_OPERATORS,
)

# tag -> (required attributes, required child roles)
REQUIREMENTS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "declareVar": (("name",), ()),
    "declareConst": (("name",), ()),
    "declareFunction": (("name",), ()),
    "declareClass": (("name",), ()),
    "declareMethod": (("name",), ()),
    "declareParam": (("name",), ()),
    "identifier": (("name",), ()),
    "if": ((), ("condition",)),
    "forIn": ((), ("variable", "object")),
    "forOf": ((), ("variable", "iterable")),
    "while": ((), ("condition",)),
    "doWhile": ((), ("condition",)),
    "switch": ((), ("discriminant",)),
    "case": ((), ("test",)),
    "call": ((), ("callee",)),
    "new": ((), ("constructor",)),
    "memberAccess": ((), ("object",)),
    "binaryOp": (("operator",), ("left", "right")),
    "logicalOp": (("operator",), ("left", "right")),
    "unaryOp": (("operator",), ()),
    "conditional": ((), ("condition", "then", "else")),
}

# Role-only tags and the parents they may appear under.
ALLOWED_PARENTS: dict[str, tuple[str, ...]] = {
    "case": ("switch",),
    "default": ("switch",),
    "catch": ("try",),
    "finally": ("try",),
    "declareParam": ("declareFunction", "declareMethod", "functionExpr", "arrowFunction"),
    "declareMethod": ("block",),
    "property": ("object", "block"),
}

LOGICAL_OPERATORS = ("&&", "||", "??")
ASSIGNMENT_OPERATORS = {"=", *COMPOUND_ASSIGNMENT, *LOGICAL_ASSIGNMENT}


def check(tree: ActionTree, handled_types: Optional[set[str]] = None) -> None:
    """Check that every node is executable. Raises MalformedProgramError on the first problem.

    handled_types defaults to the tags a stock ExecutionEngine dispatches on; pass
    engine.handled_types when custom handlers were registered.
    """
    if tree.root is None:
        raise MalformedProgramError("Tree has no root action")
    report = tree.validate()
    if not report.valid:
        raise MalformedProgramError(report.errors[0], tree.root.id, tree.root.action_type)
    if handled_types is None:
        handled_types = set(ExecutionEngine._HANDLERS) | set(ALLOWED_PARENTS)

    def fail(node: Action, message: str) -> None:
        raise MalformedProgramError(message, node.id, node.action_type)

    def check_operator(node: Action) -> None:
        operator = node.get_attribute("operator")
        if node.action_type == "binaryOp" and operator not in BINARY_OPERATORS and operator not in LOGICAL_OPERATORS:
            fail(node, f"Unknown binary operator {operator!r}")
        elif node.action_type == "logicalOp" and operator not in LOGICAL_OPERATORS:
            fail(node, f"Unknown logical operator {operator!r}")
        elif node.action_type == "unaryOp" and operator not in UNARY_OPERATORS and operator not in (
            "++",
            "--",
            "delete",
        ):
            fail(node, f"Unknown unary operator {operator!r}")
        elif node.action_type == "assign" and (operator or "=") not in ASSIGNMENT_OPERATORS:
            fail(node, f"Unknown assignment operator {operator!r}")

    def check_node(node: Action, loop_labels: tuple[Optional[str], ...]) -> None:
        if node.action_type not in handled_types:
            fail(node, f"Unknown action type {node.action_type!r}")
        attributes, roles = REQUIREMENTS.get(node.action_type, ((), ()))
        for name in attributes:
            if node.get_attribute(name) in (None, ""):
                fail(node, f"Missing {name!r} attribute")
        for role in roles:
            if node.child_with_role(role) is None:
                fail(node, f"Missing {role!r} child")
        allowed = ALLOWED_PARENTS.get(node.action_type)
        if allowed is not None and (node.parent is None or node.parent.action_type not in allowed):
            fail(node, f"{node.action_type!r} outside of {' / '.join(allowed)}")
        if node.action_type == "declareConst" and not node.children:
            fail(node, "Missing initializer in const declaration")
        if node.action_type == "assign" and node.child_with_role("left") is None:
            fail(node, "Missing 'left' child")
        check_operator(node)

        if node.action_type in ("break", "continue"):
            label = node.get_attribute("label")
            if label and label not in loop_labels:
                fail(node, f"Undefined label {label!r}")

        if node.action_type in ("declareFunction", "declareMethod", "functionExpr", "arrowFunction"):
            # labels do not cross a function boundary
            loop_labels = ()
        label = node.get_attribute("label")
        if label and node.action_type in ("for", "forIn", "forOf", "while", "doWhile", "block"):
            loop_labels = loop_labels + (label,)
        for child in node.children:
            check_node(child, loop_labels)

    check_node(tree.root, ())
