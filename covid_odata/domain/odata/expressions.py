# covid_odata/domain/odata/expressions.py
"""
Tokenizer and recursive-descent parser for OData common expressions.

Used for `$filter`, the `filter(...)` transformation of `$apply` and the
paths inside `$orderby` / `groupby`. The parser only builds an AST; turning
it into SQL is the job of `covid_odata.domain.odata.sql`.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Optional, Tuple

from covid_odata.domain.odata.errors import ODataError


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class PropertyPath:
    segments: Tuple[str, ...]

    def __str__(self) -> str:
        return "/".join(self.segments)


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class UnaryOp:
    op: str  # "not" | "neg"
    operand: Any


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: Tuple[Any, ...]


# name -> accepted argument counts
FUNCTIONS = {
    "contains": (2,),
    "startswith": (2,),
    "endswith": (2,),
    "tolower": (1,),
    "toupper": (1,),
    "trim": (1,),
    "length": (1,),
    "concat": (2,),
    "year": (1,),
    "month": (1,),
    "day": (1,),
}

EQUALITY_OPS = ("eq", "ne")
RELATIONAL_OPS = ("gt", "ge", "lt", "le")
ADDITIVE_OPS = ("add", "sub")
MULTIPLICATIVE_OPS = ("mul", "div", "mod")


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    pos: int


_TOKEN_SPEC = [
    ("WS", r"\s+"),
    ("STRING", r"'(?:[^']|'')*'"),
    ("DATETIME", r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:\d{2})?"),
    ("DATE", r"\d{4}-\d{2}-\d{2}"),
    ("NUMBER", r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?"),
    ("IDENT", r"[A-Za-z_$][A-Za-z0-9_]*"),
    ("LPAREN", r"\("),
    ("RPAREN", r"\)"),
    ("COMMA", r","),
    ("SLASH", r"/"),
    ("MINUS", r"-"),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if not m:
            raise ODataError(f"Syntax error at position {pos} in '{text}'.")
        kind = m.lastgroup
        raw = m.group()
        pos = m.end()
        if kind == "WS":
            continue
        if kind == "STRING":
            value: Any = raw[1:-1].replace("''", "'")
        elif kind == "DATETIME":
            try:
                value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            except ValueError:
                raise ODataError(f"Invalid date-time literal '{raw}'.")
        elif kind == "DATE":
            try:
                value = date.fromisoformat(raw)
            except ValueError:
                raise ODataError(f"Invalid date literal '{raw}'.")
        elif kind == "NUMBER":
            value = float(raw) if any(c in raw for c in ".eE") else int(raw)
        else:
            value = raw
        tokens.append(Token(kind, value, m.start()))
    tokens.append(Token("EOF", None, len(text)))
    return tokens


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class ExpressionParser:
    """Precedence (low to high): or, and, eq/ne, gt/ge/lt/le, add/sub, mul/div/mod, not/-."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    # -- token helpers ------------------------------------------------------

    def peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        tok = self.tokens[self.index]
        if tok.kind != "EOF":
            self.index += 1
        return tok

    def at_end(self) -> bool:
        return self.peek().kind == "EOF"

    def at_keyword(self, *words: str) -> bool:
        tok = self.peek()
        return tok.kind == "IDENT" and tok.value in words

    def expect(self, kind: str, value: Optional[str] = None) -> Token:
        tok = self.peek()
        if tok.kind != kind or (value is not None and tok.value != value):
            wanted = value or kind.lower()
            found = tok.value if tok.kind != "EOF" else "end of input"
            raise ODataError(f"Expected '{wanted}' at position {tok.pos} but found '{found}' in '{self.text}'.")
        return self.advance()

    def expect_end(self) -> None:
        if not self.at_end():
            tok = self.peek()
            raise ODataError(f"Unexpected '{tok.value}' at position {tok.pos} in '{self.text}'.")

    # -- grammar ------------------------------------------------------------

    def parse_expression(self):
        return self._parse_or()

    def _parse_or(self):
        node = self._parse_and()
        while self.at_keyword("or"):
            self.advance()
            node = BinaryOp("or", node, self._parse_and())
        return node

    def _parse_and(self):
        node = self._parse_equality()
        while self.at_keyword("and"):
            self.advance()
            node = BinaryOp("and", node, self._parse_equality())
        return node

    def _parse_equality(self):
        node = self._parse_relational()
        while self.at_keyword(*EQUALITY_OPS):
            op = self.advance().value
            node = BinaryOp(op, node, self._parse_relational())
        return node

    def _parse_relational(self):
        node = self._parse_additive()
        while self.at_keyword(*RELATIONAL_OPS):
            op = self.advance().value
            node = BinaryOp(op, node, self._parse_additive())
        return node

    def _parse_additive(self):
        node = self._parse_multiplicative()
        while self.at_keyword(*ADDITIVE_OPS):
            op = self.advance().value
            node = BinaryOp(op, node, self._parse_multiplicative())
        return node

    def _parse_multiplicative(self):
        node = self._parse_unary()
        while self.at_keyword(*MULTIPLICATIVE_OPS):
            op = self.advance().value
            node = BinaryOp(op, node, self._parse_unary())
        return node

    def _parse_unary(self):
        if self.at_keyword("not"):
            self.advance()
            return UnaryOp("not", self._parse_unary())
        if self.peek().kind == "MINUS":
            self.advance()
            return UnaryOp("neg", self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self):
        tok = self.peek()
        if tok.kind == "LPAREN":
            self.advance()
            node = self.parse_expression()
            self.expect("RPAREN")
            return node
        if tok.kind in ("STRING", "NUMBER", "DATE", "DATETIME"):
            self.advance()
            return Literal(tok.value)
        if tok.kind == "IDENT":
            if tok.value == "true":
                self.advance()
                return Literal(True)
            if tok.value == "false":
                self.advance()
                return Literal(False)
            if tok.value == "null":
                self.advance()
                return Literal(None)
            if self.peek(1).kind == "LPAREN":
                return self._parse_function()
            return self.parse_path()
        found = tok.value if tok.kind != "EOF" else "end of input"
        raise ODataError(f"Unexpected '{found}' at position {tok.pos} in '{self.text}'.")

    def _parse_function(self):
        name_tok = self.advance()
        name = name_tok.value
        if name in ("any", "all"):
            raise ODataError("Lambda operators 'any' and 'all' are not supported.")
        if name not in FUNCTIONS:
            raise ODataError(f"Unknown function '{name}'.")
        self.expect("LPAREN")
        args = []
        if self.peek().kind != "RPAREN":
            args.append(self.parse_expression())
            while self.peek().kind == "COMMA":
                self.advance()
                args.append(self.parse_expression())
        self.expect("RPAREN")
        if len(args) not in FUNCTIONS[name]:
            raise ODataError(f"Function '{name}' does not accept {len(args)} argument(s).")
        return FunctionCall(name, tuple(args))

    def parse_path(self) -> PropertyPath:
        segments = [self.expect("IDENT").value]
        while self.peek().kind == "SLASH":
            self.advance()
            nxt = self.peek()
            if nxt.kind == "IDENT" and self.peek(1).kind == "LPAREN" and nxt.value in ("any", "all"):
                raise ODataError("Lambda operators 'any' and 'all' are not supported.")
            segments.append(self.expect("IDENT").value)
        return PropertyPath(tuple(segments))


def parse_filter(text: str):
    """Parse a full `$filter` value into an AST."""
    if not text or not text.strip():
        raise ODataError("The $filter query option must not be empty.")
    parser = ExpressionParser(text)
    node = parser.parse_expression()
    parser.expect_end()
    return node


def split_top_level(text: str, sep: str = ",") -> List[str]:
    """Split on `sep` outside parentheses and quoted strings."""
    parts, depth, quoted, start = [], 0, False, 0
    for i, ch in enumerate(text):
        if ch == "'":
            quoted = not quoted
        elif quoted:
            continue
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(text[start:i])
            start = i + 1
    parts.append(text[start:])
    return [p.strip() for p in parts]
