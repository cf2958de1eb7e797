"""Condition expressions.

A small recursive-descent parser turns condition text into an immutable AST
that is evaluated against a :class:`~stencil.engine.context.TemplateContext`.
The same language gates file mappings, dependencies and hooks, and drives
``{{ if }}`` blocks inside template bodies.

Grammar::

    expr       := or_expr
    or_expr    := and_expr (('or' | '||') and_expr)*
    and_expr   := not_expr (('and' | '&&') not_expr)*
    not_expr   := ('not' | '!') not_expr | comparison
    comparison := operand (('==' | '!=') operand
                          | 'in' operand
                          | 'not' 'in' operand)?
    operand    := STRING | INT | 'true' | 'false' | IDENT
                | '(' expr ')' | '[' [literal (',' literal)*] ']'

A bare operand is tested for truthiness.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Optional, Union

from stencil.engine.context import ContextValue, TemplateContext, ValueKind
from stencil.errors import ConditionEvaluationError


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

class TokenKind(str, Enum):
    IDENT = "identifier"
    STRING = "string"
    INT = "integer"
    TRUE = "true"
    FALSE = "false"
    AND = "and"
    OR = "or"
    NOT = "not"
    IN = "in"
    EQ = "=="
    NE = "!="
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"
    COMMA = ","
    END = "end of expression"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    pos: int


_KEYWORDS = {
    "and": TokenKind.AND,
    "or": TokenKind.OR,
    "not": TokenKind.NOT,
    "in": TokenKind.IN,
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
}

_SYMBOLS = {
    "&&": TokenKind.AND,
    "||": TokenKind.OR,
    "==": TokenKind.EQ,
    "!=": TokenKind.NE,
    "!": TokenKind.NOT,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    ",": TokenKind.COMMA,
}

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<int>-?\d+)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_.]*)
  | (?P<symbol>&&|\|\||==|!=|!|\(|\)|\[|\]|,)
    """,
    re.VERBOSE,
)

_ESCAPE_RE = re.compile(r"\\(.)")


def tokenize(text: str) -> list[Token]:
    """Split condition *text* into tokens, ending with an ``END`` token."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ConditionEvaluationError(
                text, f"unexpected character {text[pos]!r}", position=pos
            )
        group = match.lastgroup
        value = match.group()
        if group == "string":
            tokens.append(Token(TokenKind.STRING, _ESCAPE_RE.sub(r"\1", value[1:-1]), pos))
        elif group == "int":
            tokens.append(Token(TokenKind.INT, value, pos))
        elif group == "ident":
            tokens.append(Token(_KEYWORDS.get(value, TokenKind.IDENT), value, pos))
        elif group == "symbol":
            tokens.append(Token(_SYMBOLS[value], value, pos))
        pos = match.end()
    tokens.append(Token(TokenKind.END, "", len(text)))
    return tokens


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    value: ContextValue


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class ListLiteral:
    items: tuple[str, ...]


@dataclass(frozen=True)
class Not:
    operand: "Expr"


@dataclass(frozen=True)
class And:
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Or:
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Compare:
    op: str  # "==" or "!="
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Membership:
    item: "Expr"
    container: "Expr"
    negated: bool = False


Expr = Union[Literal, Name, ListLiteral, Not, And, Or, Compare, Membership]


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _peek(self, offset: int = 1) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        token = self.current
        if token.kind is not TokenKind.END:
            self.index += 1
        return token

    def _expect(self, kind: TokenKind) -> Token:
        if self.current.kind is not kind:
            self._fail(f"expected '{kind.value}'")
        return self._advance()

    def _fail(self, message: str) -> None:
        token = self.current
        found = token.kind.value if token.kind is TokenKind.END else repr(token.text)
        raise ConditionEvaluationError(
            self.text, f"{message}, found {found}", position=token.pos
        )

    def parse(self) -> Expr:
        expr = self._or()
        if self.current.kind is not TokenKind.END:
            self._fail("unexpected token")
        return expr

    def _or(self) -> Expr:
        left = self._and()
        while self.current.kind is TokenKind.OR:
            self._advance()
            left = Or(left, self._and())
        return left

    def _and(self) -> Expr:
        left = self._not()
        while self.current.kind is TokenKind.AND:
            self._advance()
            left = And(left, self._not())
        return left

    def _not(self) -> Expr:
        if self.current.kind is TokenKind.NOT and self._peek().kind is not TokenKind.IN:
            self._advance()
            return Not(self._not())
        return self._comparison()

    def _comparison(self) -> Expr:
        left = self._operand()
        kind = self.current.kind
        if kind in (TokenKind.EQ, TokenKind.NE):
            op = self._advance().text
            return Compare(op, left, self._operand())
        if kind is TokenKind.IN:
            self._advance()
            return Membership(left, self._operand())
        if kind is TokenKind.NOT and self._peek().kind is TokenKind.IN:
            self._advance()
            self._advance()
            return Membership(left, self._operand(), negated=True)
        return left

    def _operand(self) -> Expr:
        token = self.current
        if token.kind is TokenKind.STRING:
            self._advance()
            return Literal(ContextValue(ValueKind.STRING, token.text))
        if token.kind is TokenKind.INT:
            self._advance()
            return Literal(ContextValue(ValueKind.INT, int(token.text)))
        if token.kind in (TokenKind.TRUE, TokenKind.FALSE):
            self._advance()
            return Literal(ContextValue(ValueKind.BOOL, token.kind is TokenKind.TRUE))
        if token.kind is TokenKind.IDENT:
            self._advance()
            return Name(token.text)
        if token.kind is TokenKind.LPAREN:
            self._advance()
            expr = self._or()
            self._expect(TokenKind.RPAREN)
            return expr
        if token.kind is TokenKind.LBRACKET:
            return self._list()
        self._fail("expected a value")
        raise AssertionError("unreachable")

    def _list(self) -> Expr:
        self._expect(TokenKind.LBRACKET)
        items: list[str] = []
        if self.current.kind is not TokenKind.RBRACKET:
            while True:
                token = self.current
                if token.kind not in (TokenKind.STRING, TokenKind.INT):
                    self._fail("list items must be string or integer literals")
                items.append(self._advance().text)
                if self.current.kind is not TokenKind.COMMA:
                    break
                self._advance()
        self._expect(TokenKind.RBRACKET)
        return ListLiteral(tuple(items))


@lru_cache(maxsize=512)
def parse_condition(text: str) -> Expr:
    """Parse condition *text* into an AST.

    Raises:
        ConditionEvaluationError: If the text is not a valid expression.
    """
    if not text.strip():
        raise ConditionEvaluationError(text, "empty expression")
    return _Parser(text).parse()


# ---------------------------------------------------------------------------
# Static analysis
# ---------------------------------------------------------------------------

def references(expr: Expr) -> frozenset[str]:
    """Every context name *expr* reads, regardless of short-circuiting."""
    if isinstance(expr, Name):
        return frozenset({expr.name})
    if isinstance(expr, Not):
        return references(expr.operand)
    if isinstance(expr, (And, Or, Compare)):
        return references(expr.left) | references(expr.right)
    if isinstance(expr, Membership):
        return references(expr.item) | references(expr.container)
    return frozenset()


def check_references(
    text: str, context: TemplateContext, owner: Optional[str] = None
) -> None:
    """Fail if condition *text* reads a name *context* does not define.

    *owner* names what declared the condition (``file main.go.tmpl``,
    ``hook tidy``) and is prefixed to the error message.

    Raises:
        ConditionEvaluationError: Naming the first undefined reference.
    """
    try:
        missing = sorted(references(parse_condition(text)) - set(context))
        if missing:
            raise ConditionEvaluationError(text, f"undefined reference '{missing[0]}'")
    except ConditionEvaluationError as exc:
        if owner is None:
            raise
        raise exc.for_owner(owner) from exc


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

class _Evaluator:
    def __init__(self, text: str, context: TemplateContext) -> None:
        self.text = text
        self.context = context

    def truth(self, expr: Expr) -> bool:
        if isinstance(expr, Or):
            return self.truth(expr.left) or self.truth(expr.right)
        if isinstance(expr, And):
            return self.truth(expr.left) and self.truth(expr.right)
        if isinstance(expr, Not):
            return not self.truth(expr.operand)
        if isinstance(expr, Compare):
            left, right = self.value(expr.left), self.value(expr.right)
            if left.kind is not right.kind:
                raise ConditionEvaluationError(
                    self.text,
                    f"cannot compare {left.kind.value} with {right.kind.value}",
                )
            equal = left.value == right.value
            return equal if expr.op == "==" else not equal
        if isinstance(expr, Membership):
            found = self._contains(self.value(expr.container), self.value(expr.item))
            return not found if expr.negated else found
        return self.value(expr).truthy

    def value(self, expr: Expr) -> ContextValue:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, Name):
            try:
                return self.context[expr.name]
            except KeyError:
                raise ConditionEvaluationError(
                    self.text, f"undefined reference '{expr.name}'"
                ) from None
        if isinstance(expr, ListLiteral):
            return ContextValue(ValueKind.LIST, expr.items)
        return ContextValue(ValueKind.BOOL, self.truth(expr))

    def _contains(self, container: ContextValue, item: ContextValue) -> bool:
        if container.kind is ValueKind.LIST:
            if item.kind is ValueKind.LIST:
                raise ConditionEvaluationError(self.text, "cannot test a list for membership")
            return item.render() in container.value  # type: ignore[operator]
        if container.kind is ValueKind.STRING:
            if item.kind is not ValueKind.STRING:
                raise ConditionEvaluationError(
                    self.text, f"cannot search a string for a {item.kind.value}"
                )
            return str(item.value) in str(container.value)
        raise ConditionEvaluationError(
            self.text, f"'in' requires a list or string, got {container.kind.value}"
        )


def evaluate(
    text: Optional[str], context: TemplateContext, owner: Optional[str] = None
) -> bool:
    """Evaluate condition *text* against *context*.

    An absent or blank condition is true.  ``and``/``or`` short-circuit.
    Errors are attributed to *owner* when one is given.

    Raises:
        ConditionEvaluationError: On syntax errors, undefined references and
            comparisons between values of different kinds.
    """
    if text is None or not text.strip():
        return True
    try:
        return _Evaluator(text, context).truth(parse_condition(text))
    except ConditionEvaluationError as exc:
        if owner is None:
            raise
        raise exc.for_owner(owner) from exc


def evaluate_expr(expr: Expr, text: str, context: TemplateContext) -> bool:
    """Evaluate an already-parsed *expr*; *text* is used in error messages."""
    return _Evaluator(text, context).truth(expr)
