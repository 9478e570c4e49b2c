"""
Tokenizer for the bookmark query language.

Malformed input never raises here: an unterminated quote runs to the end of
the input and a prefix with nothing after it is kept as a literal word.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Prefix(Enum):
    """Field prefixes recognised in front of a word or quoted phrase."""

    TAG = "#"
    TITLE = "."
    DESCRIPTION = ">"
    URL = ":"
    ID = "="


class TokenKind(Enum):
    WORD = "word"
    QUOTED = "quoted"
    PREFIXED_WORD = "prefixed_word"
    PREFIXED_QUOTED = "prefixed_quoted"
    AND = "and"
    OR = "or"
    NOT = "not"
    LPAREN = "("
    RPAREN = ")"


OPERATOR_KINDS = frozenset({TokenKind.AND, TokenKind.OR, TokenKind.NOT})
BINARY_OPERATOR_KINDS = frozenset({TokenKind.AND, TokenKind.OR})
TERM_KINDS = frozenset(
    {
        TokenKind.WORD,
        TokenKind.QUOTED,
        TokenKind.PREFIXED_WORD,
        TokenKind.PREFIXED_QUOTED,
    }
)


@dataclass(frozen=True)
class Token:
    """A single lexical token."""

    kind: TokenKind
    value: str = ""
    prefix: Prefix | None = None

    def __str__(self) -> str:
        if self.kind in (TokenKind.QUOTED, TokenKind.PREFIXED_QUOTED):
            return f'"{self.value}"'
        if self.kind in (TokenKind.WORD, TokenKind.PREFIXED_WORD):
            return f"'{self.value}'"
        return f"'{self.kind.value}'"

    @classmethod
    def word(cls, value: str) -> "Token":
        return cls(TokenKind.WORD, value)

    @classmethod
    def quoted(cls, value: str) -> "Token":
        return cls(TokenKind.QUOTED, value)

    @classmethod
    def prefixed_word(cls, prefix: Prefix, value: str) -> "Token":
        return cls(TokenKind.PREFIXED_WORD, value, prefix)

    @classmethod
    def prefixed_quoted(cls, prefix: Prefix, value: str) -> "Token":
        return cls(TokenKind.PREFIXED_QUOTED, value, prefix)


AND = Token(TokenKind.AND)
OR = Token(TokenKind.OR)
NOT = Token(TokenKind.NOT)
LPAREN = Token(TokenKind.LPAREN)
RPAREN = Token(TokenKind.RPAREN)

_OPERATOR_WORDS: dict[str, Token] = {"and": AND, "or": OR, "not": NOT}
_PREFIX_CHARS: dict[str, Prefix] = {prefix.value: prefix for prefix in Prefix}
_WHITESPACE = frozenset(" \t\n\r")
_WORD_TERMINATORS = _WHITESPACE | {"(", ")", '"'}


def tokenize(text: str) -> list[Token]:
    """Split a raw query string into tokens."""
    tokens: list[Token] = []
    length = len(text)
    i = 0
    while i < length:
        ch = text[i]

        if ch in _WHITESPACE:
            i += 1
            continue
        if ch == "(":
            tokens.append(LPAREN)
            i += 1
            continue
        if ch == ")":
            tokens.append(RPAREN)
            i += 1
            continue
        if ch == '"':
            phrase, i = _read_quoted(text, i)
            tokens.append(Token.quoted(phrase))
            continue

        if ch in _PREFIX_CHARS:
            prefix = _PREFIX_CHARS[ch]
            i += 1
            if i < length and text[i] == '"':
                phrase, i = _read_quoted(text, i)
                tokens.append(Token.prefixed_quoted(prefix, phrase))
                continue
            word, i = _read_word(text, i)
            if word:
                tokens.append(Token.prefixed_word(prefix, word))
            else:
                tokens.append(Token.word(ch))
            continue

        if ch == "\\":
            i += 1
            if i >= length:
                tokens.append(Token.word("\\"))
                break
            escaped = text[i]
            rest, i = _read_word(text, i + 1)
            tokens.append(Token.word(escaped + rest))
            continue

        word, i = _read_word(text, i)
        tokens.append(_OPERATOR_WORDS.get(word, Token.word(word)))

    return tokens


def _read_quoted(text: str, start: int) -> tuple[str, int]:
    # `start` points at the opening quote.
    chars: list[str] = []
    i = start + 1
    length = len(text)
    while i < length:
        ch = text[i]
        if ch == "\\" and i + 1 < length:
            chars.append(text[i + 1])
            i += 2
            continue
        if ch == '"':
            return "".join(chars), i + 1
        chars.append(ch)
        i += 1
    return "".join(chars), i


def _read_word(text: str, start: int) -> tuple[str, int]:
    i = start
    length = len(text)
    while i < length and text[i] not in _WORD_TERMINATORS:
        i += 1
    return text[start:i], i
