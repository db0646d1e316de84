"""
Statement execution.

StatementExecutor walks a list of preprocessed lines with a cursor. Headers
of ``for``/``if``/``while`` pull their indented body out with
extract_block() and run it recursively; every other line is an import, an
assignment or a bare expression. All blocks share the run's Environment.
"""

import logging
import re
from typing import Any, List

from interpreter import nodes
from interpreter.environment import Environment, OutputSink
from interpreter.errors import (
    ResourceLimitError,
    ScriptImportError,
    ScriptRuntimeError,
    ScriptSyntaxError,
    ScriptTypeError,
)
from interpreter.evaluator import ExpressionEvaluator
from interpreter.limits import MAX_WHILE_ITERATIONS, InterpreterLimits
from interpreter.modules import ModuleRegistry
from interpreter.parser import KEYWORDS, find_assignment, parse_expression
from interpreter.source import extract_block
from interpreter.values import ValueKind, format_value, kind_of, truthy, type_name, unpack

logger = logging.getLogger(__name__)

_FOR = re.compile(r"^for\s+(.+?)\s+in\s+(.+):$")
_IF = re.compile(r"^if\s+(.+):$")
_WHILE = re.compile(r"^while\s+(.+):$")
_IMPORT = re.compile(r"^import\s+(\w+)$")
_FROM_IMPORT = re.compile(r"^from\s+(\w+)\s+import\s+(.+)$")
_IDENTIFIER = re.compile(r"^[A-Za-z_]\w*$")
_PRINT_CALL = re.compile(r"^print\s*\(")


def _is_header(line: str, keyword: str) -> bool:
    return re.match(rf"{keyword}\b", line) is not None


class StatementExecutor:
    """Runs line lists against one Environment."""

    def __init__(
        self,
        environment: Environment,
        evaluator: ExpressionEvaluator,
        modules: ModuleRegistry,
        output: OutputSink,
        limits: InterpreterLimits,
    ):
        self.environment = environment
        self.evaluator = evaluator
        self.modules = modules
        self.output = output
        self.limits = limits
        self._depth = 0

    def execute_lines(self, lines: List[str]) -> None:
        """Execute a block of lines. Nested bodies re-enter this method."""
        self._depth += 1
        try:
            if self._depth > self.limits.max_nesting_depth:
                raise ResourceLimitError(f"blocks nested deeper than {self.limits.max_nesting_depth} levels")
            index = 0
            while index < len(lines):
                line = lines[index].strip()
                if _is_header(line, "for"):
                    index = self._execute_for(lines, index)
                elif _is_header(line, "if"):
                    index = self._execute_if(lines, index)
                elif _is_header(line, "while"):
                    index = self._execute_while(lines, index)
                elif _is_header(line, "elif") or _is_header(line, "else"):
                    raise ScriptSyntaxError(f"'elif' and 'else' blocks are not supported: {line}")
                else:
                    self.execute_statement(line)
                    index += 1
        finally:
            self._depth -= 1

    # control flow

    def _execute_for(self, lines: List[str], start: int) -> int:
        header = lines[start].strip()
        match = _FOR.match(header)
        if not match:
            raise ScriptSyntaxError(f"invalid for loop syntax: {header}")
        targets = [name.strip() for name in match.group(1).split(",")]
        for name in targets:
            if not _IDENTIFIER.match(name) or name in KEYWORDS:
                raise ScriptSyntaxError(f"invalid for loop variable '{name}': {header}")

        iterable = self.evaluator.evaluate(match.group(2))
        if kind_of(iterable) not in (ValueKind.LIST, ValueKind.TUPLE):
            raise ScriptTypeError(f"'{type_name(iterable)}' object is not iterable in for loop: {match.group(2)}")

        body, consumed = extract_block(lines, start + 1)
        for item in list(iterable):
            values = unpack(item, len(targets)) if len(targets) > 1 else [item]
            for name, value in zip(targets, values):
                self.environment.set(name, value)
            self.execute_lines(body)
        return start + 1 + consumed

    def _execute_if(self, lines: List[str], start: int) -> int:
        header = lines[start].strip()
        match = _IF.match(header)
        if not match:
            raise ScriptSyntaxError(f"invalid if statement syntax: {header}")
        condition = truthy(self.evaluator.evaluate(match.group(1)))
        body, consumed = extract_block(lines, start + 1)
        if condition:
            self.execute_lines(body)
        return start + 1 + consumed

    def _execute_while(self, lines: List[str], start: int) -> int:
        header = lines[start].strip()
        match = _WHILE.match(header)
        if not match:
            raise ScriptSyntaxError(f"invalid while loop syntax: {header}")
        condition = match.group(1)
        body, consumed = extract_block(lines, start + 1)

        iterations = 0
        while truthy(self.evaluator.evaluate(condition)):
            if iterations >= MAX_WHILE_ITERATIONS:
                raise ScriptRuntimeError(
                    f"while loop exceeded {MAX_WHILE_ITERATIONS} iterations, possible infinite loop"
                )
            self.execute_lines(body)
            iterations += 1
        logger.debug(f"while loop finished after {iterations} iterations")
        return start + 1 + consumed

    # simple statements

    def execute_statement(self, line: str) -> None:
        """Execute one import, assignment or expression line."""
        if line == "pass":
            return
        if _is_header(line, "import") or _is_header(line, "from"):
            self._import(line)
            return

        token = find_assignment(line)
        if token is not None:
            self._assign(line[: token.start].strip(), token.value, line[token.end:].strip())
            return

        result = self.evaluator.evaluate(line)
        if result is None or (isinstance(result, str) and result == ""):
            return
        if not _PRINT_CALL.match(line):
            # Interactive echo of bare expression values
            self.output.write(format_value(result))

    def _import(self, line: str) -> None:
        match = _IMPORT.match(line)
        if match:
            name = match.group(1)
            module = self.modules.get(name)
            if module is None:
                raise ScriptImportError(f"No module named '{name}'")
            self.environment.set(name, module)
            return

        match = _FROM_IMPORT.match(line)
        if not match:
            raise ScriptSyntaxError(f"invalid import syntax: {line}")
        module_name = match.group(1)
        module = self.modules.get(module_name)
        if module is None:
            raise ScriptImportError(f"No module named '{module_name}'")
        for name in (part.strip() for part in match.group(2).split(",")):
            if name == "*":
                for member in module.names():
                    self.environment.set(member, module.get(member))
            elif not _IDENTIFIER.match(name):
                raise ScriptSyntaxError(f"invalid import syntax: {line}")
            elif name in module:
                self.environment.set(name, module.get(name))
            else:
                raise ScriptImportError(f"cannot import name '{name}' from '{module_name}'")

    def _assign(self, target: str, op: str, expression: str) -> None:
        if not target or not expression:
            raise ScriptSyntaxError(f"invalid assignment: {target} {op} {expression}")
        if op == "=":
            value = self.evaluator.evaluate(expression)
        else:
            # x op= e evaluates as (x) op (e)
            value = self.evaluator.evaluate(f"({target}) {op[:-1]} ({expression})")
        self._bind(target, value, augmented=op != "=")

    def _bind(self, target: str, value: Any, augmented: bool = False) -> None:
        try:
            node = parse_expression(target)
        except ScriptSyntaxError:
            raise ScriptSyntaxError(f"cannot assign to {target}") from None

        if isinstance(node, nodes.TupleDisplay):
            if augmented:
                raise ScriptSyntaxError(f"illegal target for augmented assignment: {target}")
            targets = list(node.items)
            values = unpack(value, len(targets))
        else:
            targets, values = [node], [value]

        for item, item_value in zip(targets, values):
            self.evaluator.assign(item, target.strip(), item_value)
