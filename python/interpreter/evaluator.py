"""
Expression evaluation.

ExpressionEvaluator walks the tree built by interpreter.parser against the
run's Environment and the BuiltinLibrary. Script exceptions propagate with
the offending sub-expression attached; any other host failure is converted
into a script exception of the matching kind or wrapped in EvaluationError.
"""

import logging
import operator
from typing import Any, Callable, Dict, List, Mapping

from interpreter import nodes
from interpreter.environment import Environment
from interpreter.errors import (
    EvaluationError,
    InterpreterError,
    ResourceLimitError,
    ScriptAttributeError,
    ScriptNameError,
    ScriptSyntaxError,
    ScriptTypeError,
    ScriptValueError,
)
from interpreter.limits import InterpreterLimits, estimate_int_bits
from interpreter.parser import parse_expression
from interpreter.values import (
    Module,
    NativeFunction,
    ValueKind,
    hashable,
    kind_of,
    require_number,
    truthy,
    type_name,
)

logger = logging.getLogger(__name__)

_BINARY_OPS: Dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "//": operator.floordiv,
    "%": operator.mod,
    "**": operator.pow,
}

_COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
    "is": operator.is_,
    "is not": operator.is_not,
}

_CONTAINERS = (ValueKind.STRING, ValueKind.LIST, ValueKind.TUPLE, ValueKind.MAPPING, ValueKind.SET)
_SEQUENCES = (ValueKind.STRING, ValueKind.LIST, ValueKind.TUPLE)


class ExpressionEvaluator:
    """Evaluates single expression strings."""

    def __init__(self, environment: Environment, builtins: Mapping[str, NativeFunction], limits: InterpreterLimits):
        self.environment = environment
        self.builtins = builtins
        self.limits = limits
        self._handlers: Dict[type, Callable[[Any, str], Any]] = {
            nodes.Literal: self._literal,
            nodes.Name: self._name,
            nodes.ListDisplay: self._list,
            nodes.TupleDisplay: self._tuple,
            nodes.SetDisplay: self._set,
            nodes.DictDisplay: self._dict,
            nodes.Attribute: self._attribute,
            nodes.Subscript: self._subscript,
            nodes.Call: self._call,
            nodes.UnaryOp: self._unary,
            nodes.BinOp: self._binary,
            nodes.BoolOp: self._boolean,
            nodes.Compare: self._compare,
        }

    def evaluate(self, text: str) -> Any:
        """Evaluate one expression string to a value."""
        text = text.strip()
        try:
            node = parse_expression(text)
            return self.eval_node(node, text)
        except InterpreterError as exc:
            if exc.expression is None:
                exc.expression = text
            raise
        except RecursionError:
            raise ResourceLimitError("expression is nested too deeply", text) from None

    def eval_node(self, node: nodes.Node, text: str) -> Any:
        handler = self._handlers.get(type(node))
        source = text[node.span[0]:node.span[1]]
        if handler is None:
            raise EvaluationError(source, TypeError(f"unsupported expression node {type(node).__name__}"))
        try:
            return handler(node, text)
        except InterpreterError as exc:
            if exc.expression is None:
                exc.expression = source
            raise
        except RecursionError:
            raise
        except TypeError as exc:
            raise ScriptTypeError(str(exc), source) from exc
        except ValueError as exc:
            raise ScriptValueError(str(exc), source) from exc
        except Exception as exc:
            logger.debug(f"Wrapping {type(exc).__name__} raised by {source!r}")
            raise EvaluationError(source, exc) from exc

    def lookup(self, name: str) -> Any:
        """Resolve an identifier: Environment first, then builtins."""
        if name in self.environment:
            return self.environment.get(name)
        if name in self.builtins:
            return self.builtins[name]
        raise ScriptNameError(f"name '{name}' is not defined")

    def assign(self, target: nodes.Node, text: str, value: Any) -> None:
        """Store ``value`` into a Name or ``container[key]`` target."""
        source = text[target.span[0]:target.span[1]]
        if isinstance(target, nodes.Name):
            self.environment.set(target.id, value)
            return
        if not isinstance(target, nodes.Subscript) or isinstance(target.index, nodes.Slice):
            raise ScriptSyntaxError(f"cannot assign to {source}", text)
        container = self.eval_node(target.target, text)
        key = self.eval_node(target.index, text)
        kind = kind_of(container)
        if kind is ValueKind.LIST:
            if kind_of(key) not in (ValueKind.NUMBER, ValueKind.BOOLEAN) or isinstance(key, float):
                raise ScriptTypeError(f"list indices must be integers, not '{type_name(key)}'", source)
            try:
                container[key] = value
            except IndexError as exc:
                raise EvaluationError(source, exc) from exc
            return
        if kind is ValueKind.MAPPING:
            container[hashable(key, "item assignment")] = value
            return
        raise ScriptTypeError(f"'{type_name(container)}' object does not support item assignment", source)

    def _check_size(self, size: int) -> None:
        if size > self.limits.max_collection_size:
            raise ResourceLimitError(f"collection size {size} exceeds the limit of {self.limits.max_collection_size}")

    def _items(self, items, text: str) -> List[Any]:
        return [self.eval_node(item, text) for item in items]

    # node handlers

    def _literal(self, node: nodes.Literal, text: str) -> Any:
        return node.value

    def _name(self, node: nodes.Name, text: str) -> Any:
        return self.lookup(node.id)

    def _list(self, node: nodes.ListDisplay, text: str) -> Any:
        return self._items(node.items, text)

    def _tuple(self, node: nodes.TupleDisplay, text: str) -> Any:
        return tuple(self._items(node.items, text))

    def _set(self, node: nodes.SetDisplay, text: str) -> Any:
        return {hashable(v, "set display") for v in self._items(node.items, text)}

    def _dict(self, node: nodes.DictDisplay, text: str) -> Any:
        keys = self._items(node.keys, text)
        values = self._items(node.values, text)
        return {hashable(k, "dict display"): v for k, v in zip(keys, values)}

    def _attribute(self, node: nodes.Attribute, text: str) -> Any:
        target = self.eval_node(node.target, text)
        if isinstance(target, Module):
            return target.get(node.name)
        raise ScriptAttributeError(f"'{type_name(target)}' object has no attribute '{node.name}'")

    def _subscript(self, node: nodes.Subscript, text: str) -> Any:
        target = self.eval_node(node.target, text)
        kind = kind_of(target)
        if isinstance(node.index, nodes.Slice):
            if kind not in _SEQUENCES:
                raise ScriptTypeError(f"'{type_name(target)}' object cannot be sliced")
            bounds = [
                None if part is None else self.eval_node(part, text)
                for part in (node.index.lower, node.index.upper, node.index.step)
            ]
            return target[slice(*bounds)]
        index = self.eval_node(node.index, text)
        if kind in _SEQUENCES:
            if kind_of(index) not in (ValueKind.NUMBER, ValueKind.BOOLEAN) or isinstance(index, float):
                raise ScriptTypeError(f"{type_name(target)} indices must be integers, not '{type_name(index)}'")
            return target[index]
        if kind is ValueKind.MAPPING:
            return target[hashable(index, "subscript")]
        raise ScriptTypeError(f"'{type_name(target)}' object is not subscriptable")

    def _call(self, node: nodes.Call, text: str) -> Any:
        if len(node.args) + len(node.keywords) > self.limits.max_call_arguments:
            raise ResourceLimitError(f"call has more than {self.limits.max_call_arguments} arguments")

        if isinstance(node.func, nodes.Attribute):
            target = self.eval_node(node.func.target, text)
            args = self._items(node.args, text)
            kwargs = {kw.name: self.eval_node(kw.value, text) for kw in node.keywords}
            if not isinstance(target, Module):
                return self._call_method(target, node.func.name, args, kwargs)
            callee = target.get(node.func.name)
        else:
            callee = self.eval_node(node.func, text)
            args = self._items(node.args, text)
            kwargs = {kw.name: self.eval_node(kw.value, text) for kw in node.keywords}

        if not isinstance(callee, NativeFunction):
            raise ScriptTypeError(f"'{type_name(callee)}' object is not callable")
        return callee(*args, **kwargs)

    def _call_method(self, target: Any, name: str, args: List[Any], kwargs: Dict[str, Any]) -> Any:
        # List.append is the only method call on plain values
        if kind_of(target) is ValueKind.LIST and name == "append":
            if len(args) != 1 or kwargs:
                raise ScriptTypeError(f"list.append() takes exactly one argument ({len(args) + len(kwargs)} given)")
            self._check_size(len(target) + 1)
            target.append(args[0])
            return None
        raise ScriptAttributeError(f"'{type_name(target)}' object has no attribute '{name}'")

    def _unary(self, node: nodes.UnaryOp, text: str) -> Any:
        operand = self.eval_node(node.operand, text)
        if node.op == "not":
            return not truthy(operand)
        require_number(operand, f"unary '{node.op}'")
        return -operand if node.op == "-" else +operand

    def _binary(self, node: nodes.BinOp, text: str) -> Any:
        left = self.eval_node(node.left, text)
        right = self.eval_node(node.right, text)
        for value in (left, right):
            if kind_of(value) in (ValueKind.MODULE, ValueKind.NATIVE_FUNCTION, ValueKind.NONE):
                raise ScriptTypeError(
                    f"unsupported operand type(s) for {node.op}: '{type_name(left)}' and '{type_name(right)}'"
                )
        self._check_int_bits(estimate_int_bits(node.op, left, right))
        if node.op == "*":
            self._check_repetition(left, right)
        result = _BINARY_OPS[node.op](left, right)
        if kind_of(result) in (ValueKind.STRING, ValueKind.LIST, ValueKind.TUPLE):
            self._check_size(len(result))
        return result

    def _check_int_bits(self, bits: int) -> None:
        if bits > self.limits.max_int_bits:
            raise ResourceLimitError(f"integer result would exceed {self.limits.max_int_bits} bits")

    def _check_repetition(self, left: Any, right: Any) -> None:
        for sequence, count in ((left, right), (right, left)):
            if kind_of(sequence) in _SEQUENCES and isinstance(count, int):
                self._check_size(len(sequence) * max(count, 0))

    def _boolean(self, node: nodes.BoolOp, text: str) -> Any:
        left = self.eval_node(node.left, text)
        if node.op == "and":
            return self.eval_node(node.right, text) if truthy(left) else left
        return left if truthy(left) else self.eval_node(node.right, text)

    def _compare(self, node: nodes.Compare, text: str) -> bool:
        left = self.eval_node(node.left, text)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.eval_node(comparator, text)
            if not self._compare_pair(op, left, right):
                return False
            left = right
        return True

    def _compare_pair(self, op: str, left: Any, right: Any) -> bool:
        if op in ("in", "not in"):
            if kind_of(right) not in _CONTAINERS:
                raise ScriptTypeError(f"argument of type '{type_name(right)}' is not iterable")
            if kind_of(right) in (ValueKind.MAPPING, ValueKind.SET):
                hashable(left, f"'{op}' test")
            found = left in right
            return found if op == "in" else not found
        return bool(_COMPARISONS[op](left, right))
