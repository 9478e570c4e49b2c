"""
Recursive-descent parser producing the boolean search AST.

Grammar, lowest precedence first::

    or_expr  := and_expr ("or" and_expr)*
    and_expr := not_expr (("and")? not_expr)*
    not_expr := "not" not_expr | primary
    primary  := "(" or_expr ")" | term
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .lexer import Prefix, TERM_KINDS, Token, TokenKind


class QueryParseError(ValueError):
    """Raised when a token sequence cannot be parsed."""


class FieldTarget(Enum):
    ALL = "all"
    TAG = "tag"
    TITLE = "title"
    DESCRIPTION = "description"
    URL = "url"
    ID = "id"


@dataclass(frozen=True)
class Term:
    field: FieldTarget
    text: str


@dataclass(frozen=True)
class And:
    left: "SearchFilter"
    right: "SearchFilter"


@dataclass(frozen=True)
class Or:
    left: "SearchFilter"
    right: "SearchFilter"


@dataclass(frozen=True)
class Not:
    inner: "SearchFilter"


SearchFilter = Union[Term, And, Or, Not]

_PREFIX_FIELDS: dict[Prefix, FieldTarget] = {
    Prefix.TAG: FieldTarget.TAG,
    Prefix.TITLE: FieldTarget.TITLE,
    Prefix.DESCRIPTION: FieldTarget.DESCRIPTION,
    Prefix.URL: FieldTarget.URL,
    Prefix.ID: FieldTarget.ID,
}

# (and_expr ...) chains stop here instead of treating the token as an implicit AND.
_AND_CHAIN_STOP = frozenset({TokenKind.OR, TokenKind.RPAREN})


def parse_tokens(tokens: list[Token]) -> SearchFilter | None:
    """Parse normalised tokens. An empty sequence means "match everything"."""
    if not tokens:
        return None
    parser = _Parser(tokens)
    result = parser.parse_or()
    if parser.pos < len(tokens):
        raise QueryParseError(
            f"unexpected {tokens[parser.pos]} at position {parser.pos}"
        )
    return result


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> Token | None:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def advance(self) -> Token | None:
        token = self.peek()
        if token is not None:
            self.pos += 1
        return token

    def parse_or(self) -> SearchFilter:
        left = self.parse_and()
        while self._at(TokenKind.OR):
            self.advance()
            left = Or(left, self.parse_and())
        return left

    def parse_and(self) -> SearchFilter:
        left = self.parse_not()
        while True:
            token = self.peek()
            if token is None or token.kind in _AND_CHAIN_STOP:
                return left
            if token.kind is TokenKind.AND:
                self.advance()
            left = And(left, self.parse_not())

    def parse_not(self) -> SearchFilter:
        if self._at(TokenKind.NOT):
            self.advance()
            return Not(self.parse_not())
        return self.parse_primary()

    def parse_primary(self) -> SearchFilter:
        token = self.peek()
        if token is None:
            raise QueryParseError("unexpected end of input")
        if token.kind is TokenKind.LPAREN:
            self.advance()
            expr = self.parse_or()
            self._expect_rparen()
            return expr
        if token.kind in TERM_KINDS:
            self.advance()
            return _term_from_token(token)
        raise QueryParseError(f"unexpected {token} at position {self.pos}")

    def _at(self, kind: TokenKind) -> bool:
        token = self.peek()
        return token is not None and token.kind is kind

    def _expect_rparen(self) -> None:
        token = self.advance()
        if token is None:
            raise QueryParseError("expected closing parenthesis, got end of input")
        if token.kind is not TokenKind.RPAREN:
            raise QueryParseError(f"expected ')' at position {self.pos - 1}, got {token}")


def _term_from_token(token: Token) -> Term:
    if token.prefix is None:
        return Term(FieldTarget.ALL, token.value)
    return Term(_PREFIX_FIELDS[token.prefix], token.value)
