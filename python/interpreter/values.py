"""
Runtime values for the script interpreter.

Script values are plain host objects drawn from a closed set of types. The
ValueKind tag is derived from that set by a single classifier, and every
implicit coercion the dialect performs (truthiness, printing, repr, numeric
parsing, type names) is defined here so the evaluator, executor and builtins
share one set of rules.
"""

import math
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from interpreter.errors import ScriptNameError, ScriptTypeError, ScriptValueError


class ValueKind(Enum):
    """Tag for every value a script can hold."""

    NONE = "NoneType"
    BOOLEAN = "bool"
    NUMBER = "number"
    STRING = "str"
    LIST = "list"
    TUPLE = "tuple"
    MAPPING = "dict"
    SET = "set"
    MODULE = "module"
    NATIVE_FUNCTION = "builtin_function_or_method"


class NativeFunction:
    """A host callable exposed to scripts under a fixed name."""

    def __init__(self, name: str, func: Callable[..., Any]):
        self.name = name
        self._func = func

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._func(*args, **kwargs)

    def __repr__(self) -> str:
        return f"<built-in function {self.name}>"


class Module:
    """A named, read-only mapping of constants and functions.

    Used for the simulated standard-library modules and for the small record
    objects those modules hand back (file descriptors, regex matches,
    datetime snapshots). ``text`` overrides how the object prints.
    """

    def __init__(self, name: str, members: Mapping[str, Any], text: Optional[str] = None):
        self.name = name
        self.members = MappingProxyType(dict(members))
        self.text = text

    def get(self, name: str) -> Any:
        if name not in self.members:
            raise ScriptNameError(f"module '{self.name}' has no attribute '{name}'")
        return self.members[name]

    def names(self) -> List[str]:
        return sorted(self.members)

    def __contains__(self, name: object) -> bool:
        return name in self.members

    def __repr__(self) -> str:
        return f"<module '{self.name}'>"


def kind_of(value: Any) -> ValueKind:
    """Classify a value. Raises ScriptTypeError for anything outside the closed set."""
    if value is None:
        return ValueKind.NONE
    # bool is checked before int since it subclasses int on the host
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list):
        return ValueKind.LIST
    if isinstance(value, tuple):
        return ValueKind.TUPLE
    if isinstance(value, dict):
        return ValueKind.MAPPING
    if isinstance(value, (set, frozenset)):
        return ValueKind.SET
    if isinstance(value, Module):
        return ValueKind.MODULE
    if isinstance(value, NativeFunction):
        return ValueKind.NATIVE_FUNCTION
    raise ScriptTypeError(f"unsupported value of host type '{type(value).__name__}'")


def type_name(value: Any) -> str:
    """Python-style type name of a value ('int', 'str', 'list', ...)."""
    kind = kind_of(value)
    if kind is ValueKind.NUMBER:
        return "int" if isinstance(value, int) else "float"
    return kind.value


def is_sequence(value: Any) -> bool:
    return kind_of(value) in (ValueKind.LIST, ValueKind.TUPLE)


def truthy(value: Any) -> bool:
    kind = kind_of(value)
    if kind is ValueKind.NONE:
        return False
    if kind in (ValueKind.BOOLEAN, ValueKind.NUMBER):
        return value != 0
    if kind in (ValueKind.STRING, ValueKind.LIST, ValueKind.TUPLE, ValueKind.MAPPING, ValueKind.SET):
        return len(value) > 0
    return True


def repr_value(value: Any) -> str:
    kind = kind_of(value)
    if kind is ValueKind.NONE:
        return "None"
    if kind is ValueKind.BOOLEAN:
        return "True" if value else "False"
    if kind is ValueKind.NUMBER:
        return repr(value)
    if kind is ValueKind.STRING:
        return repr(value)
    if kind is ValueKind.LIST:
        return "[" + ", ".join(repr_value(v) for v in value) + "]"
    if kind is ValueKind.TUPLE:
        if len(value) == 1:
            return f"({repr_value(value[0])},)"
        return "(" + ", ".join(repr_value(v) for v in value) + ")"
    if kind is ValueKind.MAPPING:
        return "{" + ", ".join(f"{repr_value(k)}: {repr_value(v)}" for k, v in value.items()) + "}"
    if kind is ValueKind.SET:
        if not value:
            return "set()"
        return "{" + ", ".join(sorted(repr_value(v) for v in value)) + "}"
    if kind is ValueKind.MODULE:
        return value.text if value.text is not None else repr(value)
    return repr(value)


def format_value(value: Any) -> str:
    """Printed form of a value, as produced by print() and str()."""
    if kind_of(value) is ValueKind.STRING:
        return value
    return repr_value(value)


def parse_int(value: Any) -> int:
    kind = kind_of(value)
    if kind is ValueKind.BOOLEAN:
        return int(value)
    if kind is ValueKind.NUMBER:
        if isinstance(value, float) and not math.isfinite(value):
            raise ScriptValueError(f"cannot convert float {value!r} to integer")
        return int(value)
    if kind is ValueKind.STRING:
        try:
            return int(value.strip())
        except ValueError:
            raise ScriptValueError(f"invalid literal for int() with base 10: {value!r}") from None
    raise ScriptTypeError(f"int() argument must be a string or a number, not '{type_name(value)}'")


def parse_float(value: Any) -> float:
    kind = kind_of(value)
    if kind in (ValueKind.BOOLEAN, ValueKind.NUMBER):
        return float(value)
    if kind is ValueKind.STRING:
        try:
            return float(value.strip())
        except ValueError:
            raise ScriptValueError(f"could not convert string to float: {value!r}") from None
    raise ScriptTypeError(f"float() argument must be a string or a number, not '{type_name(value)}'")


def require_number(value: Any, context: str) -> Any:
    if kind_of(value) not in (ValueKind.NUMBER, ValueKind.BOOLEAN):
        raise ScriptTypeError(f"{context} requires a number, not '{type_name(value)}'")
    return value


def iterate(value: Any, context: str) -> List[Any]:
    """Materialise an iterable value as a list of its elements."""
    kind = kind_of(value)
    if kind in (ValueKind.LIST, ValueKind.TUPLE):
        return list(value)
    if kind is ValueKind.STRING:
        return list(value)
    if kind is ValueKind.MAPPING:
        return list(value.keys())
    if kind is ValueKind.SET:
        return list(value)
    raise ScriptTypeError(f"'{type_name(value)}' object is not iterable in {context}")


def module_from(name: str, members: Dict[str, Any], text: Optional[str] = None) -> Module:
    """Build a Module, wrapping plain host callables as NativeFunctions."""
    wrapped = {}
    for key, member in members.items():
        if callable(member) and not isinstance(member, (NativeFunction, Module)):
            member = NativeFunction(f"{name}.{key}", member)
        wrapped[key] = member
    return Module(name, wrapped, text)


def hashable(value: Any, context: str) -> Any:
    """Return value if it can be a Mapping key or Set member."""
    if kind_of(value) in (ValueKind.LIST, ValueKind.MAPPING, ValueKind.SET):
        raise ScriptTypeError(f"unhashable type: '{type_name(value)}' in {context}")
    return value


def unpack(value: Any, count: int) -> Iterable[Any]:
    """Unpack a List/Tuple into exactly ``count`` elements."""
    if not is_sequence(value) or len(value) != count:
        raise ScriptValueError(
            f"unpacking count mismatch: expected {count} values from {repr_value(value)}"
        )
    return list(value)
