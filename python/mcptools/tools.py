"""
Tool functions exposed by the MCP server.

Each tool returns plain text. Failures that belong to the caller (division by
zero, script errors) are reported in the returned text rather than raised.
"""

import logging
from typing import Callable, Dict, Literal

from interpreter import InterpreterError, execute
from telemetry.manager import ATTR_CODE_LENGTH, ToolOtelManager

logger = logging.getLogger(__name__)

SERVER_NAME = "Authless Calculator"

_otel = ToolOtelManager("calculator")


def format_number(value: float) -> str:
    """Render a number the way the calculator reports it: 3.0 -> "3"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def add(a: float, b: float) -> str:
    """Add two numbers."""
    _otel.span_begin("tool.add", tool="add")
    try:
        result = format_number(a + b)
    except Exception as e:
        _otel.span_failure(e)
        raise
    _otel.span_success()
    return result


def calculate(operation: Literal["add", "subtract", "multiply", "divide"], a: float, b: float) -> str:
    """Apply a basic arithmetic operation to two numbers."""
    _otel.span_begin("tool.calculate", tool="calculate", attrs={"tool.operation": operation})
    try:
        if operation == "add":
            result = a + b
        elif operation == "subtract":
            result = a - b
        elif operation == "multiply":
            result = a * b
        elif operation == "divide":
            if b == 0:
                _otel.span_success()
                return "Error: Cannot divide by zero"
            result = a / b
        else:
            raise ValueError(f"Unknown operation: {operation}")
    except Exception as e:
        _otel.span_failure(e)
        raise
    _otel.span_success()
    return format_number(result)


def execute_python(code: str) -> str:
    """Execute Python code in a restricted interpreter and return what it prints.

    Supports assignments, imports of math/random/datetime/json/re/os/sys,
    for/if/while blocks and common builtins. Output is wrapped in a code fence.
    """
    _otel.span_begin("tool.execute_python", tool="execute_python", attrs={ATTR_CODE_LENGTH: len(code)})
    try:
        output = execute(code)
    except InterpreterError as e:
        logger.warning(f"execute_python failed: {e}")
        _otel.span_failure(e)
        return f"Execution error: {e}"
    except Exception as e:
        logger.error(f"execute_python crashed: {type(e).__name__}: {e}")
        _otel.span_failure(e)
        return f"Execution error: {e}"
    _otel.span_success()
    logger.debug(f"execute_python produced {len(output)} characters")
    return f"Python execution result:\n```\n{output}\n```"


DEFAULT_TOOLS: Dict[str, Callable] = {
    "add": add,
    "calculate": calculate,
    "execute_python": execute_python,
}
