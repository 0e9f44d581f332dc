"""Script values and the loose-typed coercion rules the engine applies to them.

Representation: UNDEFINED is a singleton, null is None, numbers are int/float
(bool is never a number), arrays are lists, plain objects are dicts, and
functions are Closure / NativeFunction / ClassDefinition or any host callable.
"""

import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

from actionlang.errors import ScriptRangeError

if TYPE_CHECKING:
    from actionlang.ir import Action
    from actionlang.runtime.engine import ExecutionEngine
    from actionlang.runtime.scope import ExecutionContext

MAX_SAFE_INTEGER = 2 ** 53 - 1
MAX_ARRAY_LENGTH = 2 ** 32 - 1


class Undefined:
    _instance: Optional["Undefined"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = Undefined()


@dataclass
class Parameter:
    name: str
    default: Optional["Action"] = None
    rest: bool = False


@dataclass(eq=False)
class Closure:
    """A script function paired with the context active where it was declared (by reference)."""
    name: str
    params: list[Parameter]
    body: Optional["Action"]
    context: "ExecutionContext" = field(repr=False)
    engine: "ExecutionEngine" = field(repr=False)
    is_arrow: bool = False
    expression_body: bool = False
    bound_this: Any = field(default=UNDEFINED, repr=False)
    home_class: Optional["ClassDefinition"] = field(default=None, repr=False)
    members: dict[str, Any] = field(default_factory=dict, repr=False)

    def bind(self, this: Any) -> "Closure":
        return Closure(
            self.name,
            self.params,
            self.body,
            self.context,
            self.engine,
            self.is_arrow,
            self.expression_body,
            this,
            self.home_class,
        )

    def __call__(self, *args: Any) -> Any:
        return self.engine.call_function(self, list(args))


NativeImpl = Callable[["ExecutionEngine", Any, list], Any]


@dataclass(eq=False)
class NativeFunction:
    """A host routine exposed to scripts. impl(engine, this, args) -> value."""
    name: str
    impl: NativeImpl = field(repr=False)
    members: dict[str, Any] = field(default_factory=dict, repr=False)
    engine: Optional["ExecutionEngine"] = field(default=None, repr=False)

    def __call__(self, *args: Any) -> Any:
        if self.engine is None:
            return self.impl(None, UNDEFINED, list(args))  # type: ignore[arg-type]
        return self.engine.call_function(self, list(args))


@dataclass(eq=False)
class ClassDefinition:
    name: str
    constructor: Optional[Closure] = None
    methods: dict[str, Closure] = field(default_factory=dict)
    static_methods: dict[str, Any] = field(default_factory=dict)
    superclass: Optional["ClassDefinition"] = None
    fields: dict[str, Optional[Closure]] = field(default_factory=dict)  # instance field initialisers

    def find_method(self, name: str) -> Optional[Closure]:
        cls: Optional[ClassDefinition] = self
        while cls is not None:
            if name in cls.methods:
                return cls.methods[name]
            cls = cls.superclass
        return None

    def find_constructor(self) -> Optional[Closure]:
        cls: Optional[ClassDefinition] = self
        while cls is not None:
            if cls.constructor is not None:
                return cls.constructor
            cls = cls.superclass
        return None

    def is_subclass_of(self, other: "ClassDefinition") -> bool:
        cls: Optional[ClassDefinition] = self
        while cls is not None:
            if cls is other:
                return True
            cls = cls.superclass
        return False

    def __call__(self, *args: Any) -> Any:
        from actionlang.errors import ScriptTypeError
        raise ScriptTypeError(f"Class constructor {self.name} cannot be invoked without 'new'")


@dataclass(eq=False)
class ScriptRegExp:
    source: str
    flags: str = ""
    pattern: re.Pattern = field(init=False, repr=False)

    def __post_init__(self):
        options = 0
        if "i" in self.flags:
            options |= re.IGNORECASE
        if "m" in self.flags:
            options |= re.MULTILINE
        if "s" in self.flags:
            options |= re.DOTALL
        self.pattern = re.compile(self.source, options)

    @property
    def is_global(self) -> bool:
        return "g" in self.flags


class ScriptInstance(dict):
    """A plain script object that remembers the class it was constructed from."""

    __slots__ = ("class_def",)

    def __init__(self, class_def: Optional[ClassDefinition] = None):
        super().__init__()
        self.class_def = class_def


def is_nullish(value: Any) -> bool:
    return value is None or value is UNDEFINED


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_function(value: Any) -> bool:
    return isinstance(value, (Closure, NativeFunction, ClassDefinition)) or (
        callable(value) and not isinstance(value, type)
    )


def normalize_number(value: Any) -> Any:
    """Integral floats become ints; ints outside the safe range become floats."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        if value.is_integer() and abs(value) <= MAX_SAFE_INTEGER and not (value == 0 and math.copysign(1, value) < 0):
            return int(value)
        return value
    if isinstance(value, int) and abs(value) > MAX_SAFE_INTEGER:
        return float(value)
    return value


def type_of(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if is_function(value):
        return "function"
    return "object"


def truthy(value: Any) -> bool:
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


_NUMERIC_RE = re.compile(r"^[+-]?(\d+\.?\d*([eE][+-]?\d+)?|\.\d+([eE][+-]?\d+)?)$")


def to_number(value: Any) -> Any:
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        lowered = text.lower()
        if lowered.startswith(("0x", "0o", "0b")):
            base = {"x": 16, "o": 8, "b": 2}[lowered[1]]
            try:
                return int(text[2:], base)
            except ValueError:
                return math.nan
        if _NUMERIC_RE.match(text):
            return normalize_number(float(text))
        return math.nan
    if isinstance(value, (list, dict)):
        return to_number(to_primitive(value))
    return math.nan


def to_int32(value: Any) -> int:
    number = to_number(value)
    if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
        return 0
    number = int(number) & 0xFFFFFFFF
    return number - 0x100000000 if number >= 0x80000000 else number


def to_uint32(value: Any) -> int:
    return to_int32(value) & 0xFFFFFFFF


def to_array_length(value: Any) -> int:
    """A valid array length from value; raises ScriptRangeError otherwise."""
    number = to_number(value)
    if (
        isinstance(number, float) and (math.isnan(number) or math.isinf(number) or not number.is_integer())
    ) or not 0 <= number <= MAX_ARRAY_LENGTH:
        raise ScriptRangeError("Invalid array length")
    return int(number)


def number_to_string(value: Any) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        text = repr(value)
        if "e" in text:
            mantissa, exponent = text.split("e")
            sign = "-" if exponent.startswith("-") else "+"
            text = f"{mantissa}e{sign}{exponent.lstrip('+-').lstrip('0') or '0'}"
        return text
    return str(value)


def to_string(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return number_to_string(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join("" if is_nullish(item) else to_string(item) for item in value)
    if isinstance(value, dict):
        if "message" in value and "name" in value and isinstance(value.get("name"), str):
            return f"{value['name']}: {to_string(value['message'])}"
        return "[object Object]"
    if isinstance(value, (Closure, NativeFunction)):
        return f"function {value.name}() {{ [code] }}"
    if isinstance(value, ClassDefinition):
        return f"class {value.name} {{ }}"
    if isinstance(value, ScriptRegExp):
        return f"/{value.source}/{value.flags}"
    return str(value)


def to_primitive(value: Any) -> Any:
    """Objects become their string form; primitives are returned as-is."""
    if isinstance(value, (list, dict)) or is_function(value):
        return to_string(value)
    return value


def to_property_key(value: Any) -> str:
    if isinstance(value, str):
        return value
    return to_string(value)


def is_primitive(value: Any) -> bool:
    return value is UNDEFINED or value is None or isinstance(value, (bool, int, float, str))


def strict_equals(left: Any, right: Any) -> bool:
    if is_number(left) and is_number(right):
        return left == right
    if left is UNDEFINED or right is UNDEFINED or left is None or right is None:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left is right


def loose_equals(left: Any, right: Any) -> bool:
    if is_nullish(left) and is_nullish(right):
        return True
    if is_nullish(left) or is_nullish(right):
        return False
    if type_of(left) == type_of(right) and (is_primitive(left) or not is_primitive(right)):
        return strict_equals(left, right)
    if isinstance(left, bool):
        return loose_equals(to_number(left), right)
    if isinstance(right, bool):
        return loose_equals(left, to_number(right))
    if is_number(left) and isinstance(right, str):
        return strict_equals(left, to_number(right))
    if isinstance(left, str) and is_number(right):
        return strict_equals(to_number(left), right)
    if not is_primitive(left) and is_primitive(right):
        return loose_equals(to_primitive(left), right)
    if is_primitive(left) and not is_primitive(right):
        return loose_equals(left, to_primitive(right))
    return False


def same_value_zero(left: Any, right: Any) -> bool:
    if is_number(left) and is_number(right) and math.isnan(left) and math.isnan(right):
        return True
    return strict_equals(left, right)
