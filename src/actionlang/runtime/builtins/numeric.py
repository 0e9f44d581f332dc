"""Math, Number and the global number-parsing helpers."""

import math
import re
from typing import TYPE_CHECKING, Any, Callable, Optional

from actionlang.runtime.operators import power
from actionlang.runtime.values import (
    MAX_SAFE_INTEGER,
    UNDEFINED,
    NativeFunction,
    is_number,
    normalize_number,
    to_number,
    to_string,
)

if TYPE_CHECKING:
    from actionlang.runtime.engine import ExecutionEngine

_FLOAT_PREFIX = re.compile(r"^[+-]?(Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)")
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def parse_int(text: Any, radix: Any = UNDEFINED) -> Any:
    source = to_string(text).strip()
    sign = 1
    if source[:1] in ("+", "-"):
        sign = -1 if source[0] == "-" else 1
        source = source[1:]
    base = to_number(radix)
    base = 0 if isinstance(base, float) and (math.isnan(base) or math.isinf(base)) else int(base)
    if base == 0:
        base = 10
        if source[:2].lower() == "0x":
            base, source = 16, source[2:]
    elif base == 16 and source[:2].lower() == "0x":
        source = source[2:]
    if base < 2 or base > 36:
        return math.nan
    valid = _DIGITS[:base]
    end = 0
    while end < len(source) and source[end].lower() in valid:
        end += 1
    if end == 0:
        return math.nan
    return normalize_number(sign * int(source[:end], base))


def parse_float(text: Any) -> Any:
    match = _FLOAT_PREFIX.match(to_string(text).strip())
    if match is None:
        return math.nan
    literal = match.group(0)
    if literal.lstrip("+-") == "Infinity":
        return -math.inf if literal.startswith("-") else math.inf
    return normalize_number(float(literal))


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def _is_finite(value: Any) -> bool:
    return is_number(value) and not (isinstance(value, float) and (math.isnan(value) or math.isinf(value)))


def _whole(fn: Callable[[float], Any]) -> Callable[[Any], Any]:
    """Wrap floor/ceil/trunc so NaN and the infinities pass through unchanged."""
    def apply(value: Any) -> Any:
        number = to_number(value)
        if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
            return number
        return normalize_number(fn(number))

    return apply


def _round(value: Any) -> Any:
    number = to_number(value)
    if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
        return number
    return normalize_number(math.floor(number + 0.5))


def _sign(value: Any) -> Any:
    number = to_number(value)
    if isinstance(number, float) and math.isnan(number):
        return number
    return (number > 0) - (number < 0)


def _guarded(fn: Callable[..., float]) -> Callable[..., Any]:
    """Domain errors become NaN and overflow becomes Infinity instead of Python exceptions."""
    def apply(*values: Any) -> Any:
        numbers = [to_number(v) for v in values]
        if any(isinstance(n, float) and math.isnan(n) for n in numbers):
            return math.nan
        try:
            return normalize_number(fn(*numbers))
        except ValueError:
            if fn is math.log and numbers and numbers[0] == 0:
                return -math.inf
            return math.nan
        except OverflowError:
            return math.inf

    return apply


def _extreme(pick: Callable[..., Any], empty: float) -> Callable[..., Any]:
    def apply(*values: Any) -> Any:
        numbers = [to_number(v) for v in values]
        if not numbers:
            return empty
        if any(isinstance(n, float) and math.isnan(n) for n in numbers):
            return math.nan
        return pick(numbers)

    return apply


def native(name: str, fn: Callable[..., Any], arity: Optional[int] = 1) -> NativeFunction:
    """Expose a plain positional function taking exactly arity arguments (all of them when None)."""
    def impl(engine: "ExecutionEngine", this: Any, args: list) -> Any:
        if arity is None:
            return fn(*args)
        return fn(*(list(args[:arity]) + [UNDEFINED] * (arity - len(args))))

    return NativeFunction(name, impl)


def _random(engine: "ExecutionEngine", this: Any, args: list) -> Any:
    return engine.random.random()


def make_math() -> dict[str, Any]:
    functions: dict[str, Callable[..., Any]] = {
        "abs": _guarded(abs),
        "floor": _whole(math.floor),
        "ceil": _whole(math.ceil),
        "trunc": _whole(math.trunc),
        "round": _round,
        "sign": _sign,
        "sqrt": _guarded(math.sqrt),
        "cbrt": _guarded(lambda x: math.copysign(abs(x) ** (1 / 3), x)),
        "pow": power,
        "exp": _guarded(math.exp),
        "log": _guarded(math.log),
        "log2": _guarded(math.log2),
        "log10": _guarded(math.log10),
        "sin": _guarded(math.sin),
        "cos": _guarded(math.cos),
        "tan": _guarded(math.tan),
        "asin": _guarded(math.asin),
        "acos": _guarded(math.acos),
        "atan": _guarded(math.atan),
        "atan2": _guarded(math.atan2),
        "hypot": _guarded(math.hypot),
        "min": _extreme(min, math.inf),
        "max": _extreme(max, -math.inf),
    }
    arity = {"pow": 2, "atan2": 2, "hypot": None, "min": None, "max": None}
    members: dict[str, Any] = {name: native(name, fn, arity.get(name, 1)) for name, fn in functions.items()}
    members["random"] = NativeFunction("random", _random)
    members.update(
        PI=math.pi,
        E=math.e,
        LN2=math.log(2),
        LN10=math.log(10),
        LOG2E=1 / math.log(2),
        LOG10E=1 / math.log(10),
        SQRT2=math.sqrt(2),
        SQRT1_2=math.sqrt(0.5),
    )
    return members


def _number(engine: "ExecutionEngine", this: Any, args: list) -> Any:
    return normalize_number(to_number(args[0])) if args else 0


def make_number() -> NativeFunction:
    number = NativeFunction("Number", _number)
    number.members.update(
        isNaN=native("isNaN", lambda v: _is_nan(v)),
        isFinite=native("isFinite", lambda v: _is_finite(v)),
        isInteger=native("isInteger", lambda v: _is_finite(v) and float(v).is_integer()),
        isSafeInteger=native(
            "isSafeInteger",
            lambda v: _is_finite(v) and float(v).is_integer() and abs(v) <= MAX_SAFE_INTEGER,
        ),
        parseInt=native("parseInt", parse_int, 2),
        parseFloat=native("parseFloat", parse_float),
        MAX_SAFE_INTEGER=MAX_SAFE_INTEGER,
        MIN_SAFE_INTEGER=-MAX_SAFE_INTEGER,
        EPSILON=2.0 ** -52,
        MAX_VALUE=1.7976931348623157e308,
        MIN_VALUE=5e-324,
        POSITIVE_INFINITY=math.inf,
        NEGATIVE_INFINITY=-math.inf,
        NaN=math.nan,
    )
    return number


def make_globals() -> dict[str, Any]:
    return {
        "parseInt": native("parseInt", parse_int, 2),
        "parseFloat": native("parseFloat", parse_float),
        "isNaN": native("isNaN", lambda v: _is_nan(to_number(v))),
        "isFinite": native("isFinite", lambda v: _is_finite(to_number(v))),
        "NaN": math.nan,
        "Infinity": math.inf,
    }
