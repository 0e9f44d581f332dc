"""Tests for loose-typed operators and value coercion."""

import math

import pytest

from actionlang.errors import ScriptTypeError
from actionlang.runtime.operators import BINARY_OPERATORS, UNARY_OPERATORS, contains, divide, remainder
from actionlang.runtime.values import (
    UNDEFINED,
    number_to_string,
    to_int32,
    to_number,
    to_string,
    truthy,
    type_of,
)


def op(symbol, left, right):
    return BINARY_OPERATORS[symbol](left, right)


@pytest.mark.parametrize(
    "left, right, expected",
    [
        (1, 2, 3),
        ("1", 2, "12"),
        (1, "2", "12"),
        (0.1, 0.2, 0.30000000000000004),
        (1.5, 1.5, 3),
        (True, 1, 2),
        (None, 1, 1),
        ([1, 2], "", "1,2"),
        ({}, "", "[object Object]"),
    ],
)
def test_add(left, right, expected):
    result = op("+", left, right)
    assert result == expected
    assert type(result) is type(expected)


def test_add_undefined_is_nan():
    assert math.isnan(op("+", UNDEFINED, 1))


def test_arithmetic_coerces_strings():
    assert op("-", "10", 4) == 6
    assert op("*", "3", "4") == 12
    assert math.isnan(op("*", "x", 1))


def test_division_by_zero():
    assert divide(1, 0) == math.inf
    assert divide(-1, 0) == -math.inf
    assert divide(1, -0.0) == -math.inf
    assert math.isnan(divide(0, 0))
    assert divide(7, 2) == 3.5


def test_remainder_keeps_dividend_sign():
    assert remainder(-7, 2) == -1
    assert remainder(7, -2) == 1
    assert math.isnan(remainder(1, 0))
    assert remainder(5, math.inf) == 5


def test_power():
    assert op("**", 2, 10) == 1024
    assert math.isnan(op("**", -8, 0.5))
    assert op("**", 10, 400) == math.inf


@pytest.mark.parametrize(
    "left, right, loose, strict",
    [
        (1, "1", True, False),
        (0, False, True, False),
        (None, UNDEFINED, True, False),
        (None, 0, False, False),
        ("", 0, True, False),
        (math.nan, math.nan, False, False),
        ("a", "a", True, True),
        (1, 1.0, True, True),
    ],
)
def test_equality(left, right, loose, strict):
    assert op("==", left, right) is loose
    assert op("===", left, right) is strict
    assert op("!=", left, right) is (not loose)


def test_objects_compare_by_identity():
    a = {}
    assert op("===", a, a)
    assert not op("===", a, {})


def test_relational():
    assert op("<", 1, 2)
    assert op("<", "10", 9) is False
    assert op("<", "a", "b")
    assert op("<", "10", "9")
    assert op("<", math.nan, 1) is False
    assert op(">=", math.nan, math.nan) is False
    assert op("<=", None, 0)


def test_bitwise_and_shifts():
    assert op("&", 6, 3) == 2
    assert op("|", 4, 1) == 5
    assert op("^", 5, 1) == 4
    assert op("<<", 1, 31) == -2147483648
    assert op(">>", -8, 1) == -4
    assert op(">>>", -1, 0) == 4294967295
    assert op("<<", 1, 33) == 2
    assert to_int32(2**32 + 5) == 5


def test_in_operator():
    assert contains("a", {"a": 1})
    assert contains(0, [10]) and not contains(1, [10])
    assert contains("length", [])
    with pytest.raises(ScriptTypeError):
        contains("a", "abc")


def test_unary():
    assert UNARY_OPERATORS["-"](0) == 0 and math.copysign(1, UNARY_OPERATORS["-"](0)) < 0
    assert UNARY_OPERATORS["+"]("3") == 3
    assert UNARY_OPERATORS["!"]("") is True
    assert UNARY_OPERATORS["~"](5) == -6
    assert UNARY_OPERATORS["void"](1) is UNDEFINED


@pytest.mark.parametrize(
    "value, expected",
    [
        (UNDEFINED, "undefined"),
        (None, "object"),
        (True, "boolean"),
        (1.5, "number"),
        ("s", "string"),
        ([], "object"),
        (len, "function"),
    ],
)
def test_type_of(value, expected):
    assert type_of(value) == expected


@pytest.mark.parametrize(
    "text, expected",
    [("", 0), (" 42 ", 42), ("1e3", 1000), ("0x1f", 31), ("-Infinity", -math.inf), (".5", 0.5)],
)
def test_to_number(text, expected):
    assert to_number(text) == expected


def test_to_number_non_numeric():
    assert math.isnan(to_number("12px"))
    assert math.isnan(to_number(UNDEFINED))
    assert to_number(None) == 0
    assert to_number([]) == 0
    assert to_number([7]) == 7


def test_truthiness():
    assert not any(truthy(v) for v in (0, "", None, UNDEFINED, math.nan, False))
    assert all(truthy(v) for v in ("0", [], {}, -1, "false"))


@pytest.mark.parametrize(
    "value, expected",
    [(1.0, "1"), (0.5, "0.5"), (math.nan, "NaN"), (-math.inf, "-Infinity"), (1e21, "1e+21"), (1e-7, "1e-7")],
)
def test_number_to_string(value, expected):
    assert number_to_string(value) == expected


def test_to_string():
    assert to_string([1, None, [2, 3]]) == "1,,2,3"
    assert to_string({"name": "TypeError", "message": "bad"}) == "TypeError: bad"
    assert to_string(False) == "false"
