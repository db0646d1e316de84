"""Expression tree produced by interpreter.parser."""

from dataclasses import dataclass
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class Node:
    # (start, end) offsets into the parsed expression text
    span: Tuple[int, int]


@dataclass(frozen=True)
class Literal(Node):
    value: Any


@dataclass(frozen=True)
class Name(Node):
    id: str


@dataclass(frozen=True)
class ListDisplay(Node):
    items: Tuple[Node, ...]


@dataclass(frozen=True)
class TupleDisplay(Node):
    items: Tuple[Node, ...]


@dataclass(frozen=True)
class SetDisplay(Node):
    items: Tuple[Node, ...]


@dataclass(frozen=True)
class DictDisplay(Node):
    keys: Tuple[Node, ...]
    values: Tuple[Node, ...]


@dataclass(frozen=True)
class Attribute(Node):
    target: Node
    name: str


@dataclass(frozen=True)
class Subscript(Node):
    target: Node
    index: Node


@dataclass(frozen=True)
class Keyword(Node):
    name: str
    value: Node


@dataclass(frozen=True)
class Call(Node):
    func: Node
    args: Tuple[Node, ...]
    keywords: Tuple[Keyword, ...]


@dataclass(frozen=True)
class UnaryOp(Node):
    op: str  # "-", "+", "not"
    operand: Node


@dataclass(frozen=True)
class BinOp(Node):
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class BoolOp(Node):
    op: str  # "and" / "or"
    left: Node
    right: Node


@dataclass(frozen=True)
class Compare(Node):
    left: Node
    ops: Tuple[str, ...]
    comparators: Tuple[Node, ...]


@dataclass(frozen=True)
class Slice(Node):
    lower: Optional[Node]
    upper: Optional[Node]
    step: Optional[Node]
