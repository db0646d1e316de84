"""
Built-in functions available to every script without an import.

The library is bound to one PythonInterpreter instance: print/input write to
that run's OutputSink, dir() lists its Environment, and eval/exec re-enter
its evaluator and executor directly.
"""

import math
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from interpreter.errors import ResourceLimitError, ScriptAttributeError, ScriptTypeError, ScriptValueError
from interpreter.limits import estimate_int_bits
from interpreter.values import (
    Module,
    NativeFunction,
    ValueKind,
    format_value,
    hashable,
    iterate,
    kind_of,
    module_from,
    parse_float,
    parse_int,
    repr_value,
    require_number,
    truthy,
    type_name,
    unpack,
)

if TYPE_CHECKING:
    from interpreter.core import PythonInterpreter

BUILTIN_NAMES = (
    "print", "input",
    "len", "type", "isinstance", "hasattr", "getattr", "setattr", "dir", "id", "hash",
    "str", "int", "float", "bool", "list", "dict", "set", "tuple",
    "abs", "max", "min", "sum", "round", "pow", "divmod",
    "range", "enumerate", "zip", "sorted", "reversed", "filter", "map", "any", "all",
    "ord", "chr", "ascii", "repr",
    "open", "eval", "exec",
)

# Conversion builtins double as type names for isinstance()
TYPE_NAMES = ("int", "float", "str", "bool", "list", "dict", "set", "tuple")

_MISSING = object()


def _string_hash(text: str) -> int:
    """31-multiplier string hash folded to a signed 32-bit value, then made positive."""
    value = 0
    for char in text:
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    if value >= 2 ** 31:
        value -= 2 ** 32
    return abs(value)


def _require_int(value: Any, context: str) -> int:
    if kind_of(value) not in (ValueKind.NUMBER, ValueKind.BOOLEAN) or isinstance(value, float):
        raise ScriptTypeError(f"'{type_name(value)}' object cannot be interpreted as an integer in {context}")
    return int(value)


def _require_function(value: Any, context: str) -> NativeFunction:
    if not isinstance(value, NativeFunction):
        raise ScriptTypeError(f"{context} expects a function, not '{type_name(value)}'")
    return value


class BuiltinLibrary:
    """Name -> NativeFunction table for one interpreter instance."""

    def __init__(self, interpreter: "PythonInterpreter"):
        self._interpreter = interpreter
        self.functions: Dict[str, NativeFunction] = {
            name: NativeFunction(name, getattr(self, f"_{name}")) for name in BUILTIN_NAMES
        }

    def __contains__(self, name: object) -> bool:
        return name in self.functions

    def __getitem__(self, name: str) -> NativeFunction:
        return self.functions[name]

    def _check_size(self, size: int) -> None:
        limit = self._interpreter.limits.max_collection_size
        if size > limit:
            raise ResourceLimitError(f"collection size {size} exceeds the limit of {limit}")

    # I/O

    def _print(self, *args: Any, sep: Any = " ") -> None:
        self._interpreter.output.write(format_value(sep).join(format_value(arg) for arg in args))

    def _input(self, prompt: Any = "") -> str:
        # No interactive input; the prompt is echoed and a placeholder returned
        self._interpreter.output.write(format_value(prompt))
        return "user_input"

    # introspection

    def _len(self, obj: Any) -> int:
        kind = kind_of(obj)
        if kind in (ValueKind.STRING, ValueKind.LIST, ValueKind.TUPLE, ValueKind.MAPPING, ValueKind.SET):
            return len(obj)
        if kind is ValueKind.MODULE:
            return len(obj.members)
        raise ScriptTypeError(f"object of type '{type_name(obj)}' has no len()")

    def _type(self, obj: Any) -> str:
        return type_name(obj)

    def _isinstance(self, obj: Any, classinfo: Any) -> bool:
        if kind_of(classinfo) is ValueKind.TUPLE:
            return any(self._isinstance(obj, item) for item in classinfo)
        if isinstance(classinfo, NativeFunction) and classinfo.name in TYPE_NAMES:
            expected = classinfo.name
        elif kind_of(classinfo) is ValueKind.STRING:
            expected = classinfo
        else:
            raise ScriptTypeError("isinstance() arg 2 must be a type name or a tuple of types")
        actual = type_name(obj)
        return actual == expected or (expected == "int" and actual == "bool")

    def _hasattr(self, obj: Any, name: Any) -> bool:
        kind = kind_of(obj)
        if kind is ValueKind.MODULE:
            return name in obj
        if kind is ValueKind.MAPPING:
            return name in obj
        return False

    def _getattr(self, obj: Any, name: Any, default: Any = _MISSING) -> Any:
        if self._hasattr(obj, name):
            return obj.get(name) if isinstance(obj, Module) else obj[name]
        if default is not _MISSING:
            return default
        raise ScriptAttributeError(f"'{type_name(obj)}' object has no attribute '{format_value(name)}'")

    def _setattr(self, obj: Any, name: Any, value: Any) -> None:
        if kind_of(obj) is ValueKind.MAPPING:
            obj[hashable(name, "setattr()")] = value
            return None
        if kind_of(obj) is ValueKind.MODULE:
            raise ScriptAttributeError(f"module '{obj.name}' is read-only")
        raise ScriptAttributeError(f"'{type_name(obj)}' object has no attribute '{format_value(name)}'")

    def _dir(self, obj: Any = _MISSING) -> List[str]:
        if obj is _MISSING:
            return self._interpreter.environment.names()
        kind = kind_of(obj)
        if kind is ValueKind.MODULE:
            return obj.names()
        if kind is ValueKind.MAPPING:
            return sorted(format_value(key) for key in obj)
        return []

    def _id(self, obj: Any) -> int:
        return _string_hash(repr_value(obj))

    def _hash(self, obj: Any) -> int:
        return _string_hash(repr_value(obj))

    # conversions

    def _str(self, obj: Any = "") -> str:
        return format_value(obj)

    def _int(self, obj: Any = 0) -> int:
        return parse_int(obj)

    def _float(self, obj: Any = 0.0) -> float:
        return parse_float(obj)

    def _bool(self, obj: Any = False) -> bool:
        return truthy(obj)

    def _list(self, obj: Any = _MISSING) -> List[Any]:
        if obj is _MISSING:
            return []
        if kind_of(obj) in (ValueKind.STRING, ValueKind.LIST, ValueKind.TUPLE, ValueKind.SET, ValueKind.MAPPING):
            return iterate(obj, "list()")
        return [obj]

    def _dict(self, obj: Any = _MISSING) -> Dict[Any, Any]:
        if obj is _MISSING:
            return {}
        kind = kind_of(obj)
        if kind is ValueKind.MAPPING:
            return dict(obj)
        if kind in (ValueKind.LIST, ValueKind.TUPLE):
            pairs = {}
            for item in obj:
                key, value = unpack(item, 2)
                pairs[hashable(key, "dict()")] = value
            return pairs
        return {}

    def _set(self, obj: Any = _MISSING) -> set:
        if obj is _MISSING:
            return set()
        if kind_of(obj) in (ValueKind.STRING, ValueKind.LIST, ValueKind.TUPLE, ValueKind.SET, ValueKind.MAPPING):
            return {hashable(item, "set()") for item in iterate(obj, "set()")}
        return {hashable(obj, "set()")}

    def _tuple(self, obj: Any = _MISSING) -> tuple:
        if obj is _MISSING:
            return ()
        if kind_of(obj) in (ValueKind.STRING, ValueKind.LIST, ValueKind.TUPLE, ValueKind.SET, ValueKind.MAPPING):
            return tuple(iterate(obj, "tuple()"))
        return (obj,)

    # math

    def _abs(self, x: Any) -> Any:
        return abs(require_number(x, "abs()"))

    def _flatten(self, args, context: str) -> List[Any]:
        values = []
        for arg in args:
            if kind_of(arg) in (ValueKind.LIST, ValueKind.TUPLE, ValueKind.SET):
                values.extend(arg)
            else:
                values.append(arg)
        if not values:
            raise ScriptValueError(f"{context} arg is an empty sequence")
        return values

    def _max(self, *args: Any) -> Any:
        return max(self._flatten(args, "max()"))

    def _min(self, *args: Any) -> Any:
        return min(self._flatten(args, "min()"))

    def _sum(self, items: Any, start: Any = 0) -> Any:
        total = require_number(start, "sum()")
        for item in iterate(items, "sum()"):
            total = total + require_number(item, "sum()")
        return total

    def _round(self, x: Any, digits: Any = 0) -> Any:
        # Halves round up (towards positive infinity), not to even
        require_number(x, "round()")
        digits = _require_int(digits, "round()")
        factor = 10 ** digits
        result = math.floor(x * factor + 0.5) / factor
        return int(result) if digits <= 0 else result

    def _pow(self, x: Any, y: Any, mod: Any = None) -> Any:
        require_number(x, "pow()")
        require_number(y, "pow()")
        if mod is not None and isinstance(x, int) and isinstance(y, int):
            return pow(x, y, _require_int(mod, "pow()"))
        limit = self._interpreter.limits.max_int_bits
        if estimate_int_bits("**", x, y) > limit:
            raise ResourceLimitError(f"integer result would exceed {limit} bits")
        result = x ** y
        return result if mod is None else result % require_number(mod, "pow()")

    def _divmod(self, a: Any, b: Any) -> tuple:
        return divmod(require_number(a, "divmod()"), require_number(b, "divmod()"))

    # sequences

    def _range(self, *args: Any) -> List[int]:
        if not 1 <= len(args) <= 3:
            raise ScriptTypeError(f"range expected 1 to 3 arguments, got {len(args)}")
        bounds = [_require_int(arg, "range()") for arg in args]
        if len(bounds) == 3 and bounds[2] == 0:
            raise ScriptValueError("range() arg 3 must not be zero")
        numbers = range(*bounds)
        self._check_size(len(numbers))
        return list(numbers)

    def _enumerate(self, items: Any, start: Any = 0) -> List[tuple]:
        offset = _require_int(start, "enumerate()")
        return [(index + offset, item) for index, item in enumerate(iterate(items, "enumerate()"))]

    def _zip(self, *iterables: Any) -> List[tuple]:
        return list(zip(*(iterate(items, "zip()") for items in iterables)))

    def _sorted(self, items: Any, reverse: Any = False, key: Any = None) -> List[Any]:
        if key is not None:
            key = _require_function(key, "sorted() key")
        return sorted(iterate(items, "sorted()"), key=key, reverse=truthy(reverse))

    def _reversed(self, items: Any) -> List[Any]:
        return list(reversed(iterate(items, "reversed()")))

    def _filter(self, func: Optional[Any], items: Any) -> List[Any]:
        values = iterate(items, "filter()")
        if func is None:
            return [value for value in values if truthy(value)]
        func = _require_function(func, "filter()")
        return [value for value in values if truthy(func(value))]

    def _map(self, func: Any, *iterables: Any) -> List[Any]:
        func = _require_function(func, "map()")
        if not iterables:
            raise ScriptTypeError("map() must have at least two arguments")
        columns = [iterate(items, "map()") for items in iterables]
        return [func(*values) for values in zip(*columns)]

    def _any(self, items: Any) -> bool:
        return any(truthy(item) for item in iterate(items, "any()"))

    def _all(self, items: Any) -> bool:
        return all(truthy(item) for item in iterate(items, "all()"))

    # text

    def _ord(self, char: Any) -> int:
        if kind_of(char) is not ValueKind.STRING or len(char) != 1:
            raise ScriptTypeError(f"ord() expected a character, got {repr_value(char)}")
        return ord(char)

    def _chr(self, code: Any) -> str:
        return chr(_require_int(code, "chr()"))

    def _ascii(self, obj: Any) -> str:
        return repr_value(obj).encode("ascii", "backslashreplace").decode("ascii")

    def _repr(self, obj: Any) -> str:
        return repr_value(obj)

    # simulated file access

    def _open(self, filename: Any, mode: Any = "r") -> Module:
        name = format_value(filename)
        return module_from(
            "file",
            {
                "name": name,
                "mode": format_value(mode),
                "content": f"simulated content of {name}",
                "read": lambda: f"simulated read of file {name}",
                "write": lambda data: f"simulated write to file {name}: {format_value(data)}",
                "close": lambda: f"file {name} closed",
            },
            text=f"<simulated file '{name}' mode '{format_value(mode)}'>",
        )

    # reflection

    def _eval(self, expression: Any) -> Any:
        if kind_of(expression) is not ValueKind.STRING:
            raise ScriptTypeError("eval() arg 1 must be a string")
        return self._interpreter.evaluator.evaluate(expression)

    def _exec(self, code: Any) -> None:
        if kind_of(code) is not ValueKind.STRING:
            raise ScriptTypeError("exec() arg 1 must be a string")
        self._interpreter.run_source(code)
        return None
