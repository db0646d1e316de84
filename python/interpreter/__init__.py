"""
Restricted Python-style script interpreter.

Runs short scripts (assignments, imports, for/if/while blocks, expressions)
against a fixed set of builtins and simulated modules and returns the text
they print. Each execute() call uses a fresh interpreter.
"""

from interpreter.core import NO_OUTPUT, PythonInterpreter, execute
from interpreter.errors import (
    EvaluationError,
    ExecutionAborted,
    InterpreterError,
    ResourceLimitError,
    ScriptAttributeError,
    ScriptImportError,
    ScriptNameError,
    ScriptRuntimeError,
    ScriptSyntaxError,
    ScriptTypeError,
    ScriptValueError,
)
from interpreter.limits import MAX_WHILE_ITERATIONS, InterpreterLimits

__all__ = [
    "execute",
    "PythonInterpreter",
    "InterpreterLimits",
    "NO_OUTPUT",
    "MAX_WHILE_ITERATIONS",
    # Errors
    "InterpreterError",
    "ScriptSyntaxError",
    "ScriptNameError",
    "ScriptTypeError",
    "ScriptValueError",
    "ScriptImportError",
    "ScriptAttributeError",
    "ScriptRuntimeError",
    "ResourceLimitError",
    "ExecutionAborted",
    "EvaluationError",
]
