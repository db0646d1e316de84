"""
Run-scoped state: the variable Environment and the OutputSink.

One instance of each exists per execute() call. Control-flow bodies write
into the same Environment as the code around them; there is no block scope.
"""

from typing import Any, Dict, List

from interpreter.errors import ResourceLimitError, ScriptNameError


class Environment:
    """Mutable identifier -> value store."""

    def __init__(self):
        self._variables: Dict[str, Any] = {}

    def get(self, name: str) -> Any:
        if name not in self._variables:
            raise ScriptNameError(f"name '{name}' is not defined")
        return self._variables[name]

    def set(self, name: str, value: Any) -> None:
        self._variables[name] = value

    def names(self) -> List[str]:
        return sorted(self._variables)

    def __contains__(self, name: object) -> bool:
        return name in self._variables


class OutputSink:
    """Append-only buffer of output lines, bounded by a total character budget."""

    def __init__(self, max_size: int):
        self._lines: List[str] = []
        self._size = 0
        self._max_size = max_size

    def write(self, text: str) -> None:
        self._size += len(text) + 1
        if self._size > self._max_size:
            raise ResourceLimitError(f"output exceeds the limit of {self._max_size} characters")
        self._lines.append(text)

    def getvalue(self) -> str:
        return "\n".join(self._lines)

    def __len__(self) -> int:
        return len(self._lines)
