"""
Expression scanner and recursive-descent parser.

Precedence, lowest first: comma lists, ``or``, ``and``, ``not``, comparisons
(including ``in``/``is``), ``+ -``, ``* / // %``, unary ``- +``, ``**``, and
postfix calls/attributes/subscripts. String literals are taken verbatim
between matching quotes; there is no escape processing.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple

from interpreter import nodes
from interpreter.errors import ScriptSyntaxError

NUMBER = "NUMBER"
STRING = "STRING"
NAME = "NAME"
OP = "OP"
EOF = "EOF"

KEYWORDS = frozenset({"and", "or", "not", "in", "is", "True", "False", "None", "if", "else", "lambda"})
ASSIGN_OPS = frozenset({"=", "+=", "-=", "*=", "/=", "//=", "%="})

_TOKEN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?)
  | (?P<string>'[^']*'|"[^"]*")
  | (?P<name>[A-Za-z_]\w*)
  | (?P<op>//=|\*\*|//|==|!=|<=|>=|\+=|-=|\*=|/=|%=|[-+*/%<>()\[\]{},:.=])
    """,
    re.VERBOSE,
)

_COMPARISON_OPS = ("==", "!=", "<", ">", "<=", ">=")


@dataclass(frozen=True)
class Token:
    type: str
    value: str
    start: int
    end: int


def tokenize(text: str) -> List[Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if match is None:
            char = text[pos]
            if char in "'\"":
                raise ScriptSyntaxError("unterminated string literal", text)
            raise ScriptSyntaxError(f"invalid character '{char}'", text)
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind.upper(), match.group(), match.start(), match.end()))
        pos = match.end()
    tokens.append(Token(EOF, "", len(text), len(text)))
    return tokens


def find_assignment(text: str) -> Optional[Token]:
    """Return the first assignment operator outside brackets, if any."""
    depth = 0
    for token in tokenize(text):
        if token.type != OP:
            continue
        if token.value in "([{":
            depth += 1
        elif token.value in ")]}":
            depth -= 1
        elif depth == 0 and token.value in ASSIGN_OPS:
            return token
    return None


class Parser:
    """Builds a nodes.Node tree from one expression string."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0
        self._last_end = 0

    def parse(self) -> nodes.Node:
        if self._peek().type == EOF:
            raise ScriptSyntaxError("empty expression", self.text)
        node = self._expression_list()
        if self._peek().type != EOF:
            self._fail()
        return node

    # token helpers

    def _peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        self._last_end = token.end
        return token

    def _at(self, value: str, offset: int = 0) -> bool:
        token = self._peek(offset)
        return token.type in (OP, NAME) and token.value == value

    def _accept(self, value: str) -> bool:
        if self._at(value):
            self._advance()
            return True
        return False

    def _expect(self, value: str) -> Token:
        if not self._at(value):
            self._fail(f"expected '{value}'")
        return self._advance()

    def _fail(self, reason: str = "invalid syntax"):
        token = self._peek()
        where = "end of expression" if token.type == EOF else f"'{token.value}'"
        raise ScriptSyntaxError(f"{reason} at {where}", self.text)

    def _span(self, start: int) -> Tuple[int, int]:
        return (start, self._last_end)

    def _starts_expression(self) -> bool:
        token = self._peek()
        if token.type == EOF:
            return False
        if token.type == OP:
            return token.value in "([{-+"
        return True

    # grammar

    def _expression_list(self) -> nodes.Node:
        start = self._peek().start
        first = self._expression()
        if not self._at(","):
            return first
        items = [first]
        while self._accept(","):
            if not self._starts_expression():
                break
            items.append(self._expression())
        return nodes.TupleDisplay(self._span(start), tuple(items))

    def _expression(self) -> nodes.Node:
        return self._or()

    def _or(self) -> nodes.Node:
        start = self._peek().start
        node = self._and()
        while self._accept("or"):
            right = self._and()
            node = nodes.BoolOp(self._span(start), "or", node, right)
        return node

    def _and(self) -> nodes.Node:
        start = self._peek().start
        node = self._not()
        while self._accept("and"):
            right = self._not()
            node = nodes.BoolOp(self._span(start), "and", node, right)
        return node

    def _not(self) -> nodes.Node:
        start = self._peek().start
        if self._accept("not"):
            operand = self._not()
            return nodes.UnaryOp(self._span(start), "not", operand)
        return self._comparison()

    def _comparison_op(self) -> Optional[str]:
        token = self._peek()
        if token.type == OP and token.value in _COMPARISON_OPS:
            self._advance()
            return token.value
        if self._at("in"):
            self._advance()
            return "in"
        if self._at("not") and self._at("in", 1):
            self._advance()
            self._advance()
            return "not in"
        if self._at("is"):
            self._advance()
            return "is not" if self._accept("not") else "is"
        return None

    def _comparison(self) -> nodes.Node:
        start = self._peek().start
        left = self._arith()
        ops, comparators = [], []
        op = self._comparison_op()
        while op is not None:
            ops.append(op)
            comparators.append(self._arith())
            op = self._comparison_op()
        if not ops:
            return left
        return nodes.Compare(self._span(start), left, tuple(ops), tuple(comparators))

    def _arith(self) -> nodes.Node:
        start = self._peek().start
        node = self._term()
        while self._peek().type == OP and self._peek().value in ("+", "-"):
            op = self._advance().value
            right = self._term()
            node = nodes.BinOp(self._span(start), op, node, right)
        return node

    def _term(self) -> nodes.Node:
        start = self._peek().start
        node = self._factor()
        while self._peek().type == OP and self._peek().value in ("*", "/", "//", "%"):
            op = self._advance().value
            right = self._factor()
            node = nodes.BinOp(self._span(start), op, node, right)
        return node

    def _factor(self) -> nodes.Node:
        start = self._peek().start
        if self._peek().type == OP and self._peek().value in ("-", "+"):
            op = self._advance().value
            operand = self._factor()
            return nodes.UnaryOp(self._span(start), op, operand)
        return self._power()

    def _power(self) -> nodes.Node:
        start = self._peek().start
        node = self._postfix()
        if self._accept("**"):
            # right-associative, binds tighter than unary minus on its left
            right = self._factor()
            node = nodes.BinOp(self._span(start), "**", node, right)
        return node

    def _postfix(self) -> nodes.Node:
        start = self._peek().start
        node = self._atom()
        while True:
            if self._accept("("):
                args, keywords = self._call_arguments()
                node = nodes.Call(self._span(start), node, args, keywords)
            elif self._accept("."):
                name = self._advance()
                if name.type != NAME or name.value in KEYWORDS:
                    self.pos -= 1
                    self._fail("expected attribute name")
                node = nodes.Attribute(self._span(start), node, name.value)
            elif self._accept("["):
                index = self._subscript()
                self._expect("]")
                node = nodes.Subscript(self._span(start), node, index)
            else:
                return node

    def _call_arguments(self):
        args: List[nodes.Node] = []
        keywords: List[nodes.Keyword] = []
        while not self._at(")"):
            start = self._peek().start
            if self._peek().type == NAME and self._at("=", 1):
                name = self._advance().value
                self._advance()
                value = self._expression()
                keywords.append(nodes.Keyword(self._span(start), name, value))
            else:
                if keywords:
                    self._fail("positional argument follows keyword argument")
                args.append(self._expression())
            if not self._accept(","):
                break
        self._expect(")")
        return tuple(args), tuple(keywords)

    def _subscript(self) -> nodes.Node:
        start = self._peek().start
        parts: List[Optional[nodes.Node]] = [None]
        colons = 0
        while True:
            if self._at(":"):
                self._advance()
                colons += 1
                if colons > 2:
                    self._fail()
                parts.append(None)
            elif self._at("]"):
                break
            else:
                if parts[-1] is not None:
                    self._fail()
                parts[-1] = self._expression()
        if colons == 0:
            if parts[0] is None:
                self._fail("empty subscript")
            return parts[0]
        parts += [None] * (3 - len(parts))
        return nodes.Slice(self._span(start), parts[0], parts[1], parts[2])

    def _sequence_items(self, closing: str) -> List[nodes.Node]:
        items = []
        while not self._at(closing):
            items.append(self._expression())
            if not self._accept(","):
                break
        self._expect(closing)
        return items

    def _atom(self) -> nodes.Node:
        token = self._peek()
        start = token.start
        if token.type == NUMBER:
            self._advance()
            text = token.value
            value = float(text) if any(c in text for c in ".eE") else int(text)
            return nodes.Literal(self._span(start), value)
        if token.type == STRING:
            self._advance()
            return nodes.Literal(self._span(start), token.value[1:-1])
        if token.type == NAME:
            if token.value in ("True", "False", "None"):
                self._advance()
                constant = {"True": True, "False": False, "None": None}[token.value]
                return nodes.Literal(self._span(start), constant)
            if token.value in KEYWORDS:
                self._fail()
            self._advance()
            return nodes.Name(self._span(start), token.value)
        if self._accept("("):
            if self._accept(")"):
                return nodes.TupleDisplay(self._span(start), ())
            first = self._expression()
            if self._accept(")"):
                return first
            self._expect(",")
            items = [first] + self._sequence_items(")")
            return nodes.TupleDisplay(self._span(start), tuple(items))
        if self._accept("["):
            items = self._sequence_items("]")
            return nodes.ListDisplay(self._span(start), tuple(items))
        if self._accept("{"):
            return self._brace_display(start)
        self._fail()

    def _brace_display(self, start: int) -> nodes.Node:
        if self._accept("}"):
            return nodes.DictDisplay(self._span(start), (), ())
        first = self._expression()
        if not self._accept(":"):
            if self._accept(","):
                items = [first] + self._sequence_items("}")
            else:
                self._expect("}")
                items = [first]
            return nodes.SetDisplay(self._span(start), tuple(items))
        keys, values = [first], [self._expression()]
        while self._accept(","):
            if self._at("}"):
                break
            keys.append(self._expression())
            self._expect(":")
            values.append(self._expression())
        self._expect("}")
        return nodes.DictDisplay(self._span(start), tuple(keys), tuple(values))


@lru_cache(maxsize=1024)
def parse_expression(text: str) -> nodes.Node:
    """Parse ``text`` into an expression tree. Raises ScriptSyntaxError."""
    return Parser(text.strip()).parse()
