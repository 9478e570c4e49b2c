"""Boolean query language for filtering bookmarks.

Syntax: bare words search every field, ``#tag``, ``.title``, ``>description``,
``:url`` and ``=id`` target one field, ``"quoted phrases"`` keep spaces, and
``and``/``or``/``not`` with parentheses combine terms. Adjacent terms are
ANDed.
"""

from __future__ import annotations

from typing import Iterable

from ..models import Bookmark
from .evaluate import RequiredId, evaluate, required_id_constraint, tag_matches
from .lexer import Prefix, Token, TokenKind, tokenize
from .normalize import normalize
from .parser import (
    And,
    FieldTarget,
    Not,
    Or,
    QueryParseError,
    SearchFilter,
    Term,
    parse_tokens,
)


def parse(text: str) -> SearchFilter | None:
    """Parse a query string. Returns None when the query matches everything."""
    return parse_tokens(normalize(tokenize(text)))


def matches(text: str, bookmark: Bookmark) -> bool:
    """Parse and evaluate a query against one bookmark."""
    search_filter = parse(text)
    if search_filter is None:
        return True
    return evaluate(search_filter, bookmark)


def filter_bookmarks(text: str, bookmarks: Iterable[Bookmark]) -> list[Bookmark]:
    """Return the bookmarks matching a query, preserving input order."""
    search_filter = parse(text)
    if search_filter is None:
        return list(bookmarks)
    return [bookmark for bookmark in bookmarks if evaluate(search_filter, bookmark)]


__all__ = [
    "And",
    "FieldTarget",
    "Not",
    "Or",
    "Prefix",
    "QueryParseError",
    "RequiredId",
    "SearchFilter",
    "Term",
    "Token",
    "TokenKind",
    "evaluate",
    "filter_bookmarks",
    "matches",
    "normalize",
    "parse",
    "parse_tokens",
    "required_id_constraint",
    "tag_matches",
    "tokenize",
]
