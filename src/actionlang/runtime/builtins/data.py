"""JSON, Object, Array, String, Boolean, the Error constructors and the URI helpers."""

import json
import math
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import quote, unquote

from actionlang.errors import ScriptSyntaxError, ScriptTypeError
from actionlang.runtime.builtins.numeric import native
from actionlang.runtime.values import (
    MAX_SAFE_INTEGER,
    UNDEFINED,
    Closure,
    NativeFunction,
    is_function,
    is_nullish,
    is_number,
    normalize_number,
    to_array_length,
    to_number,
    to_property_key,
    to_string,
    truthy,
)

if TYPE_CHECKING:
    from actionlang.runtime.engine import ExecutionEngine

ERROR_TYPES = ("Error", "TypeError", "RangeError", "ReferenceError", "SyntaxError")

_URI_RESERVED = ";,/?:@&=+$#"
_URI_UNRESERVED_MARKS = "-_.!~*'()"


# --- JSON ---

def _from_json(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return normalize_number(value)
    if isinstance(value, list):
        return [_from_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _from_json(item) for key, item in value.items()}
    return value


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Unexpected token {name}")


def json_parse(engine: "ExecutionEngine", this: Any, args: list) -> Any:
    text = to_string(args[0] if args else UNDEFINED)
    try:
        return _from_json(json.loads(text, parse_constant=_reject_constant))
    except ValueError as exc:
        raise ScriptSyntaxError(f"JSON.parse: {exc}") from None


class _Serializer:
    def __init__(self, engine: "ExecutionEngine", replacer: Any):
        self.engine = engine
        self.replacer = replacer if is_function(replacer) else None
        self.allowed = {to_property_key(k) for k in replacer} if isinstance(replacer, list) else None
        self.stack: list[int] = []

    def convert(self, holder: Any, key: str, value: Any) -> Any:
        """Returns UNDEFINED for values JSON omits (functions, undefined)."""
        if self.replacer is not None:
            value = self.engine.call_function(self.replacer, [key, value], holder)
        if value is None or isinstance(value, (bool, str)):
            return value
        if is_number(value):
            if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
                return None
            return normalize_number(value)
        if value is UNDEFINED or is_function(value):
            return UNDEFINED
        if id(value) in self.stack:
            raise ScriptTypeError("Converting circular structure to JSON")
        self.stack.append(id(value))
        try:
            if isinstance(value, list):
                items = [self.convert(value, str(i), item) for i, item in enumerate(value)]
                return [None if item is UNDEFINED else item for item in items]
            if isinstance(value, dict):
                result = {}
                for name, item in value.items():
                    if self.allowed is not None and name not in self.allowed:
                        continue
                    converted = self.convert(value, name, item)
                    if converted is not UNDEFINED:
                        result[name] = converted
                return result
            return {}
        finally:
            self.stack.pop()


def json_stringify(engine: "ExecutionEngine", this: Any, args: list) -> Any:
    value = args[0] if args else UNDEFINED
    replacer = args[1] if len(args) > 1 else None
    space = args[2] if len(args) > 2 else None
    data = _Serializer(engine, replacer).convert({"": value}, "", value)
    if data is UNDEFINED:
        return UNDEFINED
    indent: Any = None
    if is_number(space) and space >= 1:
        indent = min(int(space), 10)
    elif isinstance(space, str) and space:
        indent = space[:10]
    if indent is None:
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    return json.dumps(data, indent=indent, ensure_ascii=False)


# --- Object ---

def _own_keys(value: Any) -> list[str]:
    if isinstance(value, dict):
        return list(value.keys())
    if isinstance(value, (list, str)):
        return [str(i) for i in range(len(value))]
    if isinstance(value, (Closure, NativeFunction)):
        return list(value.members.keys())
    if is_nullish(value):
        raise ScriptTypeError("Cannot convert undefined or null to object")
    return []


def _own_value(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        return value[key]
    if isinstance(value, (list, str)):
        return value[int(key)]
    return value.members[key]


def _keys(target: Any) -> list:
    return _own_keys(target)


def _values(target: Any) -> list:
    return [_own_value(target, key) for key in _own_keys(target)]


def _entries(target: Any) -> list:
    return [[key, _own_value(target, key)] for key in _own_keys(target)]


def _assign(engine: "ExecutionEngine", this: Any, args: list) -> Any:
    if not args or is_nullish(args[0]):
        raise ScriptTypeError("Cannot convert undefined or null to object")
    target = args[0]
    for source in args[1:]:
        if is_nullish(source):
            continue
        for key in _own_keys(source):
            engine.set_property(target, key, _own_value(source, key))
    return target


def _from_entries(entries: Any) -> dict:
    if not isinstance(entries, list):
        raise ScriptTypeError(f"{to_string(entries)} is not iterable")
    result = {}
    for entry in entries:
        if not isinstance(entry, list):
            raise ScriptTypeError(f"Iterator value {to_string(entry)} is not an entry object")
        key = entry[0] if entry else UNDEFINED
        result[to_property_key(key)] = entry[1] if len(entry) > 1 else UNDEFINED
    return result


def _has_own(target: Any, key: Any) -> bool:
    if is_nullish(target):
        raise ScriptTypeError("Cannot convert undefined or null to object")
    return to_property_key(key) in _own_keys(target)


def make_object() -> NativeFunction:
    def construct(engine: "ExecutionEngine", this: Any, args: list) -> Any:
        value = args[0] if args else UNDEFINED
        return {} if is_nullish(value) else value

    obj = NativeFunction("Object", construct)
    obj.members.update(
        keys=native("keys", _keys),
        values=native("values", _values),
        entries=native("entries", _entries),
        assign=NativeFunction("assign", _assign),
        # objects are not write-protected; freeze only reports the object back
        freeze=native("freeze", lambda value: value),
        isFrozen=native("isFrozen", lambda value: False),
        create=native("create", lambda proto: {}),
        hasOwn=native("hasOwn", _has_own, 2),
        fromEntries=native("fromEntries", _from_entries),
        __pytype__=(dict, list),
    )
    return obj


# --- Array ---

def _array(engine: "ExecutionEngine", this: Any, args: list) -> Any:
    if len(args) == 1 and is_number(args[0]):
        return [UNDEFINED] * to_array_length(args[0])
    return list(args)


def _array_from(engine: "ExecutionEngine", this: Any, args: list) -> Any:
    source = args[0] if args else UNDEFINED
    mapper = args[1] if len(args) > 1 else UNDEFINED
    if isinstance(source, dict):
        length = to_number(source.get("length", 0))
        length = 0 if math.isnan(length) or length <= 0 else int(min(length, MAX_SAFE_INTEGER))
        items = [source.get(str(i), UNDEFINED) for i in range(length)]
    else:
        items = engine.iterate(source)
    if is_function(mapper):
        return [engine.call_function(mapper, [item, index]) for index, item in enumerate(items)]
    return items


def make_array() -> NativeFunction:
    array = NativeFunction("Array", _array)
    array.members.update(
        isArray=native("isArray", lambda value: isinstance(value, list)),
        of=NativeFunction("of", lambda engine, this, args: list(args)),
        __pytype__=list,
    )
    array.members["from"] = NativeFunction("from", _array_from)
    return array


# --- String / Boolean ---

def make_string() -> NativeFunction:
    def convert(engine: "ExecutionEngine", this: Any, args: list) -> Any:
        return to_string(args[0]) if args else ""

    string = NativeFunction("String", convert)
    string.members.update(
        fromCharCode=native("fromCharCode", lambda *codes: "".join(chr(int(to_number(c)) & 0xFFFF) for c in codes), None),
        fromCodePoint=native("fromCodePoint", lambda *codes: "".join(chr(int(to_number(c))) for c in codes), None),
    )
    return string


def make_boolean() -> NativeFunction:
    return NativeFunction("Boolean", lambda engine, this, args: truthy(args[0]) if args else False)


# --- errors ---

def make_error(name: str) -> NativeFunction:
    """Error constructors build plain {name, message} objects, the shape catch blocks receive."""
    def construct(engine: "ExecutionEngine", this: Any, args: list) -> Any:
        message = args[0] if args else UNDEFINED
        error: dict[str, Any] = {"name": name, "message": "" if message is UNDEFINED else to_string(message)}
        options: Optional[Any] = args[1] if len(args) > 1 else None
        if isinstance(options, dict) and "cause" in options:
            error["cause"] = options["cause"]
        return error

    return NativeFunction(name, construct)


# --- URI ---

def _decode(text: Any) -> str:
    return unquote(to_string(text), errors="strict")


def make_uri() -> dict[str, NativeFunction]:
    return {
        "encodeURIComponent": native("encodeURIComponent", lambda s: quote(to_string(s), safe=_URI_UNRESERVED_MARKS)),
        "encodeURI": native("encodeURI", lambda s: quote(to_string(s), safe=_URI_UNRESERVED_MARKS + _URI_RESERVED)),
        "decodeURIComponent": native("decodeURIComponent", _decode),
        "decodeURI": native("decodeURI", _decode),
    }


def make_json() -> dict[str, NativeFunction]:
    return {
        "parse": NativeFunction("parse", json_parse),
        "stringify": NativeFunction("stringify", json_stringify),
    }
