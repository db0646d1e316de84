"""
PythonInterpreter: the single entry point of the script interpreter.

An instance owns exactly one Environment and one OutputSink and runs exactly
one script. Callers that serve concurrent requests create a fresh instance
per request (see execute()), so runs never share mutable state.
"""

import logging
from typing import Optional

from interpreter.builtins import BuiltinLibrary
from interpreter.environment import Environment, OutputSink
from interpreter.errors import InterpreterError, ResourceLimitError
from interpreter.evaluator import ExpressionEvaluator
from interpreter.executor import StatementExecutor
from interpreter.limits import InterpreterLimits
from interpreter.modules import ModuleRegistry
from interpreter.source import preprocess

logger = logging.getLogger(__name__)

NO_OUTPUT = "Code executed successfully (no output)"


class PythonInterpreter:
    """Runs one script in the restricted Python-style dialect."""

    def __init__(self, limits: Optional[InterpreterLimits] = None):
        """Initialize interpreter state.

        Args:
            limits: Resource caps; read from INTERPRETER_* env vars when omitted
        """
        self.limits = limits or InterpreterLimits()
        self.environment = Environment()
        self.output = OutputSink(self.limits.max_output_size)
        self.modules = ModuleRegistry()
        self.builtins = BuiltinLibrary(self)
        self.evaluator = ExpressionEvaluator(self.environment, self.builtins.functions, self.limits)
        self.executor = StatementExecutor(
            self.environment, self.evaluator, self.modules, self.output, self.limits
        )
        self._used = False

    def execute(self, source: str) -> str:
        """Run ``source`` and return its output lines joined with newlines.

        Raises:
            InterpreterError: on any script failure; partial output is discarded
            RuntimeError: if this instance already ran a script
        """
        if self._used:
            raise RuntimeError("PythonInterpreter instances run a single script; create a new one per call")
        self._used = True

        if len(source) > self.limits.max_source_length:
            raise ResourceLimitError(
                f"source is {len(source)} characters, the limit is {self.limits.max_source_length}"
            )

        lines = preprocess(source)
        if not lines:
            return NO_OUTPUT

        logger.debug(f"Executing script with {len(lines)} lines")
        try:
            self.executor.execute_lines(lines)
        except InterpreterError as e:
            logger.debug(f"Script failed after {len(self.output)} output lines: {e}")
            raise
        except RecursionError:
            raise ResourceLimitError("script recursion is too deep") from None

        if not len(self.output):
            return NO_OUTPUT
        return self.output.getvalue()

    def run_source(self, source: str) -> None:
        """Run nested source text against this instance's state (used by exec())."""
        self.executor.execute_lines(preprocess(source))


def execute(source: str, limits: Optional[InterpreterLimits] = None) -> str:
    """Run ``source`` in a fresh PythonInterpreter and return its output."""
    return PythonInterpreter(limits).execute(source)
