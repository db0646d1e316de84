"""
Simulated standard-library modules.

Every module is a read-only Module snapshot. Members that depend on the clock
compute their value when called. ``os`` and ``sys`` never touch the host:
they return fixed answers, and sys.exit() raises ExecutionAborted.
"""

import json
import math
import random
import re
import time
from datetime import datetime
from typing import Any, Dict, Optional

from interpreter.errors import ExecutionAborted, ScriptTypeError, ScriptValueError
from interpreter.values import (
    Module,
    ValueKind,
    format_value,
    iterate,
    kind_of,
    module_from,
    parse_int,
    require_number,
)

SIMULATED_CWD = "/simulated/current/directory"
SIMULATED_LISTING = ["file1.txt", "file2.py", "folder1"]


def _factorial(n: Any) -> int:
    require_number(n, "factorial()")
    if n < 0:
        raise ScriptValueError("factorial() not defined for negative values")
    if n != int(n):
        raise ScriptValueError("factorial() only accepts integral values")
    return math.factorial(int(n))


def _log(x: Any, base: Any = None) -> float:
    if base is None:
        return math.log(x)
    return math.log(x) / math.log(base)


def _math() -> Module:
    return module_from(
        "math",
        {
            "pi": math.pi,
            "e": math.e,
            "sqrt": math.sqrt,
            "sin": math.sin,
            "cos": math.cos,
            "tan": math.tan,
            "asin": math.asin,
            "acos": math.acos,
            "atan": math.atan,
            "log": _log,
            "log10": math.log10,
            "exp": math.exp,
            "ceil": math.ceil,
            "floor": math.floor,
            "degrees": math.degrees,
            "radians": math.radians,
            "factorial": _factorial,
        },
    )


def _shuffle(items: Any) -> None:
    if kind_of(items) is not ValueKind.LIST:
        raise ScriptTypeError("shuffle() requires a list")
    random.shuffle(items)


def _random() -> Module:
    return module_from(
        "random",
        {
            "random": random.random,
            "randint": lambda a, b: random.randint(parse_int(a), parse_int(b)),
            "choice": lambda items: random.choice(iterate(items, "choice()")),
            "shuffle": _shuffle,
            "sample": lambda items, k: random.sample(iterate(items, "sample()"), parse_int(k)),
        },
    )


def _snapshot() -> Module:
    now = datetime.now()
    return module_from(
        "datetime",
        {
            "year": now.year,
            "month": now.month,
            "day": now.day,
            "hour": now.hour,
            "minute": now.minute,
            "second": now.second,
            "isoformat": now.isoformat,
        },
        text=now.isoformat(),
    )


def _datetime() -> Module:
    clock = module_from(
        "datetime.datetime",
        {
            "now": _snapshot,
            "today": lambda: datetime.now().date().isoformat(),
        },
    )
    return module_from("datetime", {"datetime": clock, "time": lambda: int(time.time())})


def _to_json(value: Any) -> Any:
    kind = kind_of(value)
    if kind in (ValueKind.LIST, ValueKind.TUPLE):
        return [_to_json(item) for item in value]
    if kind is ValueKind.MAPPING:
        return {format_value(key): _to_json(item) for key, item in value.items()}
    if kind in (ValueKind.NONE, ValueKind.BOOLEAN, ValueKind.NUMBER, ValueKind.STRING):
        return value
    raise ScriptTypeError(f"Object of type {kind.value} is not JSON serializable")


def _dumps(obj: Any, indent: Optional[Any] = None) -> str:
    return json.dumps(_to_json(obj), indent=None if indent is None else parse_int(indent))


def _loads(text: Any) -> Any:
    if kind_of(text) is not ValueKind.STRING:
        raise ScriptTypeError("loads() requires a string")
    return json.loads(text)


def _json() -> Module:
    return module_from("json", {"loads": _loads, "dumps": _dumps})


def _match_object(match: Optional["re.Match"]) -> Optional[Module]:
    if match is None:
        return None
    return module_from(
        "re.Match",
        {
            "group": lambda index=0: match.group(parse_int(index)),
            "groups": lambda: tuple(match.groups()),
            "start": match.start,
            "end": match.end,
        },
        text=f"<re.Match object; span={match.span()}, match={match.group(0)!r}>",
    )


def _compile(pattern: Any) -> "re.Pattern":
    if kind_of(pattern) is not ValueKind.STRING:
        raise ScriptTypeError("regular expression pattern must be a string")
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ScriptValueError(f"invalid regular expression {pattern!r}: {exc}") from exc


def _re() -> Module:
    return module_from(
        "re",
        {
            "search": lambda pattern, text: _match_object(_compile(pattern).search(format_value(text))),
            "match": lambda pattern, text: _match_object(_compile(pattern).match(format_value(text))),
            "findall": lambda pattern, text: _compile(pattern).findall(format_value(text)),
            "sub": lambda pattern, repl, text: _compile(pattern).sub(format_value(repl), format_value(text)),
        },
    )


def _os() -> Module:
    path = module_from(
        "os.path",
        {
            "join": lambda *parts: "/".join(format_value(part) for part in parts),
            "exists": lambda p: True,
            "isfile": lambda p: "." in format_value(p),
            "isdir": lambda p: "." not in format_value(p),
        },
    )
    return module_from(
        "os",
        {
            "getcwd": lambda: SIMULATED_CWD,
            "listdir": lambda p=".": list(SIMULATED_LISTING),
            "path": path,
        },
    )


def _exit(code: Any = 0) -> None:
    raise ExecutionAborted(parse_int(code))


def _sys() -> Module:
    return module_from(
        "sys",
        {
            "version": "3.11.0 (simulated)",
            "platform": "mcp-sandbox",
            "argv": ["python"],
            "exit": _exit,
        },
    )


_FACTORIES = {
    "math": _math,
    "random": _random,
    "datetime": _datetime,
    "json": _json,
    "re": _re,
    "os": _os,
    "sys": _sys,
}


class ModuleRegistry:
    """Fixed table of importable modules."""

    def __init__(self):
        self._modules: Dict[str, Module] = {name: factory() for name, factory in _FACTORIES.items()}

    def get(self, name: str) -> Optional[Module]:
        return self._modules.get(name)
