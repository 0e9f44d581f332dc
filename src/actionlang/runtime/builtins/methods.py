"""Instance methods of arrays, strings, numbers, functions, regexps and plain objects.

Every method is a NativeFunction whose `this` is the receiver; the engine looks
them up with lookup_method() when a property is not an own member.
"""

import functools
import math
import re
from typing import TYPE_CHECKING, Any, Callable, Optional

from actionlang.errors import ScriptTypeError
from actionlang.runtime.values import (
    UNDEFINED,
    Closure,
    NativeFunction,
    ScriptRegExp,
    is_function,
    is_nullish,
    is_number,
    number_to_string,
    same_value_zero,
    strict_equals,
    to_number,
    to_property_key,
    to_string,
    truthy,
)

if TYPE_CHECKING:
    from actionlang.runtime.engine import ExecutionEngine

Impl = Callable[["ExecutionEngine", Any, list], Any]

ARRAY_METHODS: dict[str, NativeFunction] = {}
STRING_METHODS: dict[str, NativeFunction] = {}
NUMBER_METHODS: dict[str, NativeFunction] = {}
BOOLEAN_METHODS: dict[str, NativeFunction] = {}
FUNCTION_METHODS: dict[str, NativeFunction] = {}
REGEXP_METHODS: dict[str, NativeFunction] = {}
OBJECT_METHODS: dict[str, NativeFunction] = {}


def method(*tables: dict[str, NativeFunction], name: str) -> Callable[[Impl], Impl]:
    def register(impl: Impl) -> Impl:
        for table in tables:
            table[name] = NativeFunction(name, impl)
        return impl

    return register


def lookup_method(target: Any, name: str) -> Optional[NativeFunction]:
    if isinstance(target, list):
        table = ARRAY_METHODS
    elif isinstance(target, str):
        table = STRING_METHODS
    elif isinstance(target, bool):
        table = BOOLEAN_METHODS
    elif is_number(target):
        table = NUMBER_METHODS
    elif isinstance(target, (Closure, NativeFunction)):
        table = FUNCTION_METHODS
    elif isinstance(target, ScriptRegExp):
        table = REGEXP_METHODS
    elif isinstance(target, dict):
        table = OBJECT_METHODS
    else:
        return None
    return table.get(name)


def _arg(args: list, index: int) -> Any:
    return args[index] if index < len(args) else UNDEFINED


def _callback(args: list, owner: str) -> Any:
    fn = _arg(args, 0)
    if not is_function(fn):
        raise ScriptTypeError(f"{owner}: {to_string(fn) if not isinstance(fn, (list, dict)) else 'object'} is not a function")
    return fn


def _integer(value: Any, default: int = 0) -> int:
    """ToIntegerOrInfinity clipped to int; NaN and undefined become default."""
    number = to_number(value)
    if isinstance(number, float):
        if math.isnan(number):
            return default
        if math.isinf(number):
            return 2 ** 53 if number > 0 else -(2 ** 53)
    return int(number)


def _relative(value: Any, length: int, default: int) -> int:
    """Clamp a possibly negative index the way slice/splice/at interpret it."""
    if value is UNDEFINED:
        return default
    number = to_number(value)
    if isinstance(number, float):
        if math.isnan(number):
            return 0
        if math.isinf(number):
            return length if number > 0 else 0
    number = int(number)
    if number < 0:
        return max(length + number, 0)
    return min(number, length)


# --- shared ---

@method(ARRAY_METHODS, STRING_METHODS, NUMBER_METHODS, BOOLEAN_METHODS, REGEXP_METHODS, OBJECT_METHODS, name="toString")
def _to_string(engine, this, args):
    if is_number(this) and args and args[0] is not UNDEFINED:
        return _number_to_radix(this, _integer(args[0]))
    return to_string(this)


@method(ARRAY_METHODS, STRING_METHODS, NUMBER_METHODS, BOOLEAN_METHODS, OBJECT_METHODS, name="valueOf")
def _value_of(engine, this, args):
    return this


# --- arrays ---

@method(ARRAY_METHODS, name="push")
def _push(engine, this, args):
    this.extend(args)
    return len(this)


@method(ARRAY_METHODS, name="pop")
def _pop(engine, this, args):
    return this.pop() if this else UNDEFINED


@method(ARRAY_METHODS, name="shift")
def _shift(engine, this, args):
    return this.pop(0) if this else UNDEFINED


@method(ARRAY_METHODS, name="unshift")
def _unshift(engine, this, args):
    this[0:0] = args
    return len(this)


@method(ARRAY_METHODS, STRING_METHODS, name="slice")
def _slice(engine, this, args):
    start = _relative(_arg(args, 0), len(this), 0)
    end = _relative(_arg(args, 1), len(this), len(this))
    return this[start:end] if start < end else this[:0]


@method(ARRAY_METHODS, name="splice")
def _splice(engine, this, args):
    start = _relative(_arg(args, 0), len(this), 0)
    if len(args) < 2:
        count = len(this) - start
    else:
        count = max(min(_integer(args[1]), len(this) - start), 0)
    removed = this[start:start + count]
    this[start:start + count] = args[2:]
    return removed


@method(ARRAY_METHODS, name="concat")
def _concat(engine, this, args):
    result = list(this)
    for item in args:
        if isinstance(item, list):
            result.extend(item)
        else:
            result.append(item)
    return result


@method(ARRAY_METHODS, name="join")
def _join(engine, this, args):
    separator = "," if _arg(args, 0) is UNDEFINED else to_string(args[0])
    return separator.join("" if is_nullish(item) else to_string(item) for item in this)


@method(ARRAY_METHODS, name="reverse")
def _reverse(engine, this, args):
    this.reverse()
    return this


@method(ARRAY_METHODS, STRING_METHODS, name="indexOf")
def _index_of(engine, this, args):
    if isinstance(this, str):
        start = _relative(_arg(args, 1), len(this), 0)
        return this.find(to_string(_arg(args, 0)), start)
    target = _arg(args, 0)
    start = _relative(_arg(args, 1), len(this), 0)
    for index in range(start, len(this)):
        if strict_equals(this[index], target):
            return index
    return -1


@method(ARRAY_METHODS, STRING_METHODS, name="lastIndexOf")
def _last_index_of(engine, this, args):
    if isinstance(this, str):
        return this.rfind(to_string(_arg(args, 0)))
    target = _arg(args, 0)
    for index in range(len(this) - 1, -1, -1):
        if strict_equals(this[index], target):
            return index
    return -1


@method(ARRAY_METHODS, STRING_METHODS, name="includes")
def _includes(engine, this, args):
    if isinstance(this, str):
        start = _relative(_arg(args, 1), len(this), 0)
        return to_string(_arg(args, 0)) in this[start:]
    target = _arg(args, 0)
    return any(same_value_zero(item, target) for item in this)


@method(ARRAY_METHODS, STRING_METHODS, name="at")
def _at(engine, this, args):
    index = _integer(_arg(args, 0))
    if index < 0:
        index += len(this)
    return this[index] if 0 <= index < len(this) else UNDEFINED


def _each(engine, this, args, owner):
    fn = _callback(args, owner)
    this_arg = _arg(args, 1)
    index = 0
    while index < len(this):
        item = this[index]
        yield index, item, engine.call_function(fn, [item, index, this], this_arg)
        index += 1


@method(ARRAY_METHODS, name="forEach")
def _for_each(engine, this, args):
    for _ in _each(engine, this, args, "forEach"):
        pass
    return UNDEFINED


@method(ARRAY_METHODS, name="map")
def _map(engine, this, args):
    return [result for _, _, result in _each(engine, this, args, "map")]


@method(ARRAY_METHODS, name="filter")
def _filter(engine, this, args):
    return [item for _, item, keep in _each(engine, this, args, "filter") if truthy(keep)]


@method(ARRAY_METHODS, name="find")
def _find(engine, this, args):
    for _, item, found in _each(engine, this, args, "find"):
        if truthy(found):
            return item
    return UNDEFINED


@method(ARRAY_METHODS, name="findIndex")
def _find_index(engine, this, args):
    for index, _, found in _each(engine, this, args, "findIndex"):
        if truthy(found):
            return index
    return -1


@method(ARRAY_METHODS, name="some")
def _some(engine, this, args):
    return any(truthy(result) for _, _, result in _each(engine, this, args, "some"))


@method(ARRAY_METHODS, name="every")
def _every(engine, this, args):
    return all(truthy(result) for _, _, result in _each(engine, this, args, "every"))


@method(ARRAY_METHODS, name="flatMap")
def _flat_map(engine, this, args):
    return _flatten([result for _, _, result in _each(engine, this, args, "flatMap")], 1)


def _reduce(engine, this, args, items, owner):
    fn = _callback(args, owner)
    if len(args) > 1:
        accumulator = args[1]
    elif items:
        accumulator = items.pop(0)[1]
    else:
        raise ScriptTypeError("Reduce of empty array with no initial value")
    for index, item in items:
        accumulator = engine.call_function(fn, [accumulator, item, index, this])
    return accumulator


@method(ARRAY_METHODS, name="reduce")
def _reduce_left(engine, this, args):
    return _reduce(engine, this, args, list(enumerate(this)), "reduce")


@method(ARRAY_METHODS, name="reduceRight")
def _reduce_right(engine, this, args):
    return _reduce(engine, this, args, list(reversed(list(enumerate(this)))), "reduceRight")


def _default_order(left: Any, right: Any) -> int:
    if left is UNDEFINED:
        return 0 if right is UNDEFINED else 1
    if right is UNDEFINED:
        return -1
    a, b = to_string(left), to_string(right)
    return (a > b) - (a < b)


@method(ARRAY_METHODS, name="sort")
def _sort(engine, this, args):
    comparator = _arg(args, 0)
    if comparator is UNDEFINED:
        this.sort(key=functools.cmp_to_key(_default_order))
        return this

    def compare(left, right):
        if left is UNDEFINED or right is UNDEFINED:
            return _default_order(left, right)
        result = to_number(engine.call_function(comparator, [left, right]))
        if isinstance(result, float) and math.isnan(result):
            return 0
        return (result > 0) - (result < 0)

    this.sort(key=functools.cmp_to_key(compare))
    return this


@method(ARRAY_METHODS, name="fill")
def _fill(engine, this, args):
    start = _relative(_arg(args, 1), len(this), 0)
    end = _relative(_arg(args, 2), len(this), len(this))
    for index in range(start, end):
        this[index] = _arg(args, 0)
    return this


def _flatten(items: list, depth: int) -> list:
    result = []
    for item in items:
        if isinstance(item, list) and depth > 0:
            result.extend(_flatten(item, depth - 1))
        else:
            result.append(item)
    return result


@method(ARRAY_METHODS, name="flat")
def _flat(engine, this, args):
    return _flatten(this, _integer(_arg(args, 0), 1))


@method(ARRAY_METHODS, name="keys")
def _array_keys(engine, this, args):
    return list(range(len(this)))


@method(ARRAY_METHODS, name="entries")
def _array_entries(engine, this, args):
    return [[index, item] for index, item in enumerate(this)]


# --- strings ---

@method(STRING_METHODS, name="charAt")
def _char_at(engine, this, args):
    index = _integer(_arg(args, 0))
    return this[index] if 0 <= index < len(this) else ""


@method(STRING_METHODS, name="charCodeAt")
def _char_code_at(engine, this, args):
    index = _integer(_arg(args, 0))
    return ord(this[index]) if 0 <= index < len(this) else math.nan


@method(STRING_METHODS, name="codePointAt")
def _code_point_at(engine, this, args):
    index = _integer(_arg(args, 0))
    return ord(this[index]) if 0 <= index < len(this) else UNDEFINED


@method(STRING_METHODS, name="startsWith")
def _starts_with(engine, this, args):
    return this.startswith(to_string(_arg(args, 0)), _relative(_arg(args, 1), len(this), 0))


@method(STRING_METHODS, name="endsWith")
def _ends_with(engine, this, args):
    return this[:_relative(_arg(args, 1), len(this), len(this))].endswith(to_string(_arg(args, 0)))


@method(STRING_METHODS, name="substring")
def _substring(engine, this, args):
    def clamp(value, default):
        if value is UNDEFINED:
            return default
        number = to_number(value)
        if isinstance(number, float) and math.isnan(number):
            return 0
        return int(max(0, min(number, len(this))))

    start, end = clamp(_arg(args, 0), 0), clamp(_arg(args, 1), len(this))
    return this[min(start, end):max(start, end)]


@method(STRING_METHODS, name="substr")
def _substr(engine, this, args):
    start = _relative(_arg(args, 0), len(this), 0)
    length = len(this) - start if _arg(args, 1) is UNDEFINED else _integer(args[1])
    return this[start:start + max(length, 0)]


@method(STRING_METHODS, name="toUpperCase")
def _upper(engine, this, args):
    return this.upper()


@method(STRING_METHODS, name="toLowerCase")
def _lower(engine, this, args):
    return this.lower()


@method(STRING_METHODS, name="trim")
def _trim(engine, this, args):
    return this.strip()


@method(STRING_METHODS, name="trimStart")
def _trim_start(engine, this, args):
    return this.lstrip()


@method(STRING_METHODS, name="trimEnd")
def _trim_end(engine, this, args):
    return this.rstrip()


@method(STRING_METHODS, name="padStart")
def _pad_start(engine, this, args):
    width = _integer(_arg(args, 0))
    fill = " " if _arg(args, 1) is UNDEFINED else to_string(args[1])
    if width <= len(this) or not fill:
        return this
    padding = (fill * width)[:width - len(this)]
    return padding + this


@method(STRING_METHODS, name="padEnd")
def _pad_end(engine, this, args):
    width = _integer(_arg(args, 0))
    fill = " " if _arg(args, 1) is UNDEFINED else to_string(args[1])
    if width <= len(this) or not fill:
        return this
    return this + (fill * width)[:width - len(this)]


@method(STRING_METHODS, name="repeat")
def _repeat(engine, this, args):
    count = to_number(_arg(args, 0))
    if isinstance(count, float) and math.isnan(count):
        count = 0
    if count < 0 or count == math.inf:
        raise ScriptTypeError(f"Invalid count value: {to_string(count)}")
    return this * int(count)


@method(STRING_METHODS, name="concat")
def _string_concat(engine, this, args):
    return this + "".join(to_string(arg) for arg in args)


@method(STRING_METHODS, name="split")
def _split(engine, this, args):
    separator = _arg(args, 0)
    limit = _arg(args, 1)
    if separator is UNDEFINED:
        parts = [this]
    elif isinstance(separator, ScriptRegExp):
        parts = [p if p is not None else UNDEFINED for p in separator.pattern.split(this)]
    elif separator == "":
        parts = list(this)
    else:
        parts = this.split(to_string(separator))
    if limit is not UNDEFINED:
        parts = parts[:_integer(limit)]
    return parts


def _expand(template: str, match: "re.Match") -> str:
    """Apply $&, $1..$99 and $$ substitutions from a replacement string."""
    def substitute(token: "re.Match") -> str:
        text = token.group(0)
        if text == "$$":
            return "$"
        if text == "$&":
            return match.group(0)
        index = int(text[1:])
        if index <= (match.re.groups or 0):
            return match.group(index) or ""
        return text

    return re.sub(r"\$(\$|&|\d{1,2})", substitute, template)


def _replacer(engine, replacement):
    if is_function(replacement):
        def call(match: "re.Match") -> str:
            groups = [g if g is not None else UNDEFINED for g in match.groups()]
            return to_string(engine.call_function(replacement, [match.group(0), *groups, match.start(), match.string]))

        return call
    template = to_string(replacement)
    return lambda match: _expand(template, match)


@method(STRING_METHODS, name="replace")
def _replace(engine, this, args):
    pattern, replacement = _arg(args, 0), _arg(args, 1)
    if isinstance(pattern, ScriptRegExp):
        regex = pattern.pattern
        count = 0 if pattern.is_global else 1
    else:
        regex = re.compile(re.escape(to_string(pattern)))
        count = 1
    return regex.sub(_replacer(engine, replacement), this, count=count)


@method(STRING_METHODS, name="replaceAll")
def _replace_all(engine, this, args):
    pattern, replacement = _arg(args, 0), _arg(args, 1)
    if isinstance(pattern, ScriptRegExp):
        if not pattern.is_global:
            raise ScriptTypeError("replaceAll must be called with a global RegExp")
        regex = pattern.pattern
    else:
        regex = re.compile(re.escape(to_string(pattern)))
    return regex.sub(_replacer(engine, replacement), this)


def _match_array(match: "re.Match") -> list:
    return [match.group(0), *(g if g is not None else UNDEFINED for g in match.groups())]


@method(STRING_METHODS, name="match")
def _match(engine, this, args):
    pattern = _arg(args, 0)
    regexp = pattern if isinstance(pattern, ScriptRegExp) else ScriptRegExp(re.escape(to_string(pattern)))
    if regexp.is_global:
        found = [m.group(0) for m in regexp.pattern.finditer(this)]
        return found or None
    match = regexp.pattern.search(this)
    return _match_array(match) if match else None


@method(STRING_METHODS, name="search")
def _search(engine, this, args):
    pattern = _arg(args, 0)
    regex = pattern.pattern if isinstance(pattern, ScriptRegExp) else re.compile(re.escape(to_string(pattern)))
    match = regex.search(this)
    return match.start() if match else -1


@method(STRING_METHODS, name="localeCompare")
def _locale_compare(engine, this, args):
    other = to_string(_arg(args, 0))
    return (this > other) - (this < other)


# --- regexps ---

@method(REGEXP_METHODS, name="test")
def _test(engine, this, args):
    return this.pattern.search(to_string(_arg(args, 0))) is not None


@method(REGEXP_METHODS, name="exec")
def _exec(engine, this, args):
    match = this.pattern.search(to_string(_arg(args, 0)))
    return _match_array(match) if match else None


# --- numbers ---

def _number_to_radix(value: Any, radix: int) -> str:
    if radix == 10 or not float(value).is_integer():
        return number_to_string(value)
    if radix < 2 or radix > 36:
        raise ScriptTypeError("toString() radix must be between 2 and 36")
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    number = int(abs(value))
    text = ""
    while True:
        number, rest = divmod(number, radix)
        text = digits[rest] + text
        if number == 0:
            break
    return "-" + text if value < 0 else text


@method(NUMBER_METHODS, name="toFixed")
def _to_fixed(engine, this, args):
    digits = _integer(_arg(args, 0))
    if isinstance(this, float) and (math.isnan(this) or math.isinf(this)):
        return number_to_string(this)
    return f"{this:.{digits}f}"


@method(NUMBER_METHODS, name="toPrecision")
def _to_precision(engine, this, args):
    if _arg(args, 0) is UNDEFINED:
        return number_to_string(this)
    return f"{this:.{_integer(args[0])}g}"


# --- functions ---

@method(FUNCTION_METHODS, name="call")
def _call(engine, this, args):
    return engine.call_function(this, list(args[1:]), _arg(args, 0))


@method(FUNCTION_METHODS, name="apply")
def _apply(engine, this, args):
    arguments = _arg(args, 1)
    return engine.call_function(this, list(arguments) if isinstance(arguments, list) else [], _arg(args, 0))


@method(FUNCTION_METHODS, name="bind")
def _bind(engine, this, args):
    target = this
    bound_this = _arg(args, 0)
    preset = list(args[1:])
    if isinstance(target, Closure) and not preset:
        return target.bind(bound_this)

    def bound(engine, _this, call_args):
        return engine.call_function(target, preset + list(call_args), bound_this)

    return NativeFunction(f"bound {target.name}", bound)


# --- plain objects ---

@method(OBJECT_METHODS, name="hasOwnProperty")
def _has_own_property(engine, this, args):
    return to_property_key(_arg(args, 0)) in this
