"""Binary, unary and compound-assignment operators with loose-typed coercion."""

import math
from typing import Any, Callable

from actionlang.errors import ScriptTypeError
from actionlang.runtime.values import (
    UNDEFINED,
    ClassDefinition,
    ScriptInstance,
    is_function,
    is_number,
    is_primitive,
    loose_equals,
    normalize_number,
    strict_equals,
    to_int32,
    to_number,
    to_primitive,
    to_property_key,
    to_string,
    to_uint32,
    truthy,
    type_of,
)


def add(left: Any, right: Any) -> Any:
    left, right = to_primitive(left), to_primitive(right)
    if isinstance(left, str) or isinstance(right, str):
        return to_string(left) + to_string(right)
    return normalize_number(to_number(left) + to_number(right))


def subtract(left: Any, right: Any) -> Any:
    return normalize_number(to_number(left) - to_number(right))


def multiply(left: Any, right: Any) -> Any:
    a, b = to_number(left), to_number(right)
    if (a == 0 and isinstance(b, float) and math.isinf(b)) or (b == 0 and isinstance(a, float) and math.isinf(a)):
        return math.nan
    return normalize_number(a * b)


def divide(left: Any, right: Any) -> Any:
    a, b = to_number(left), to_number(right)
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        negative = (a < 0) != (math.copysign(1, b) < 0)
        return -math.inf if negative else math.inf
    return normalize_number(a / b)


def remainder(left: Any, right: Any) -> Any:
    a, b = to_number(left), to_number(right)
    if b == 0 or math.isnan(a) or math.isnan(b) or math.isinf(a):
        return math.nan
    if math.isinf(b):
        return a
    return normalize_number(math.fmod(a, b))


def power(left: Any, right: Any) -> Any:
    a, b = to_number(left), to_number(right)
    if a < 0 and not float(b).is_integer():
        return math.nan
    if abs(a) == 1 and isinstance(b, float) and math.isinf(b):
        return math.nan
    try:
        return normalize_number(float(a) ** float(b))
    except OverflowError:
        return math.inf
    except ZeroDivisionError:
        return math.inf


def _relational(left: Any, right: Any, compare: Callable[[Any, Any], bool]) -> bool:
    left, right = to_primitive(left), to_primitive(right)
    if isinstance(left, str) and isinstance(right, str):
        return compare(left, right)
    a, b = to_number(left), to_number(right)
    if math.isnan(a) or math.isnan(b):
        return False
    return compare(a, b)


def contains(left: Any, right: Any) -> bool:
    """The `in` operator."""
    if isinstance(right, dict):
        return to_property_key(left) in right
    if isinstance(right, list):
        index = to_number(left)
        if to_property_key(left) == "length":
            return True
        return is_number(index) and float(index).is_integer() and 0 <= index < len(right)
    if is_primitive(right):
        raise ScriptTypeError(f"Cannot use 'in' operator to search for {to_string(left)!r} in {to_string(right)}")
    return hasattr(right, to_property_key(left))


def instance_of(left: Any, right: Any) -> bool:
    if isinstance(right, ClassDefinition):
        return isinstance(left, ScriptInstance) and left.class_def is not None and left.class_def.is_subclass_of(right)
    if isinstance(right, type):
        return isinstance(left, right)
    if not is_function(right):
        raise ScriptTypeError("Right-hand side of 'instanceof' is not callable")
    builtin_types = getattr(right, "members", {}).get("__pytype__")
    return builtin_types is not None and isinstance(left, builtin_types)


def negate(value: Any) -> Any:
    number = to_number(value)
    return -0.0 if number == 0 else normalize_number(-number)


def _shift_left(a: Any, b: Any) -> int:
    return to_int32(to_int32(a) << (to_uint32(b) & 31))


def _shift_right(a: Any, b: Any) -> int:
    return to_int32(a) >> (to_uint32(b) & 31)


def _shift_right_unsigned(a: Any, b: Any) -> int:
    return to_uint32(a) >> (to_uint32(b) & 31)


BINARY_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "+": add,
    "-": subtract,
    "*": multiply,
    "/": divide,
    "%": remainder,
    "**": power,
    "==": loose_equals,
    "!=": lambda a, b: not loose_equals(a, b),
    "===": strict_equals,
    "!==": lambda a, b: not strict_equals(a, b),
    "<": lambda a, b: _relational(a, b, lambda x, y: x < y),
    "<=": lambda a, b: _relational(a, b, lambda x, y: x <= y),
    ">": lambda a, b: _relational(a, b, lambda x, y: x > y),
    ">=": lambda a, b: _relational(a, b, lambda x, y: x >= y),
    "&": lambda a, b: to_int32(to_int32(a) & to_int32(b)),
    "|": lambda a, b: to_int32(to_int32(a) | to_int32(b)),
    "^": lambda a, b: to_int32(to_int32(a) ^ to_int32(b)),
    "<<": _shift_left,
    ">>": _shift_right,
    ">>>": _shift_right_unsigned,
    "in": contains,
    "instanceof": instance_of,
}

# Unary operators that only need the operand's value; typeof/delete/++/-- are handled by the engine.
UNARY_OPERATORS: dict[str, Callable[[Any], Any]] = {
    "-": negate,
    "+": to_number,
    "!": lambda v: not truthy(v),
    "~": lambda v: to_int32(~to_int32(v)),
    "typeof": type_of,
    "void": lambda v: UNDEFINED,
}

# Compound assignment operator -> binary operator applied before the write.
COMPOUND_ASSIGNMENT = {
    "+=": "+",
    "-=": "-",
    "*=": "*",
    "/=": "/",
    "%=": "%",
    "**=": "**",
    "&=": "&",
    "|=": "|",
    "^=": "^",
    "<<=": "<<",
    ">>=": ">>",
    ">>>=": ">>>",
}

LOGICAL_ASSIGNMENT = {"&&=", "||=", "??="}

