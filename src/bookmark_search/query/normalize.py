"""
Token clean-up passes that make sloppy queries parseable.

Every pass is total and idempotent. The parser only ever sees a balanced
sequence without dangling operators, or an empty sequence.
"""

from __future__ import annotations

from .lexer import BINARY_OPERATOR_KINDS, OPERATOR_KINDS, Token, TokenKind


def normalize(tokens: list[Token]) -> list[Token]:
    """Run all normalisation passes in order."""
    tokens = remove_empty_parens(tokens)
    tokens = balance_parens(tokens)
    tokens = strip_boundary_operators(tokens)
    tokens = _settle(tokens)
    # Collapsing can expose new boundary operators, e.g. `a ( and )`.
    return strip_boundary_operators(tokens)


def _settle(tokens: list[Token]) -> list[Token]:
    # Dropping an operator can leave `( )` behind and dropping `( )` can make
    # two operators adjacent, so alternate until neither pass changes anything.
    while True:
        settled = remove_empty_parens(collapse_adjacent_operators(tokens))
        if settled == tokens:
            return settled
        tokens = settled


def remove_empty_parens(tokens: list[Token]) -> list[Token]:
    """Drop `( )` pairs until none are left, so `(( ))` disappears too."""
    current = list(tokens)
    while True:
        out: list[Token] = []
        changed = False
        i = 0
        while i < len(current):
            if (
                i + 1 < len(current)
                and current[i].kind is TokenKind.LPAREN
                and current[i + 1].kind is TokenKind.RPAREN
            ):
                changed = True
                i += 2
                continue
            out.append(current[i])
            i += 1
        current = out
        if not changed:
            return current


def balance_parens(tokens: list[Token]) -> list[Token]:
    """Drop unmatched `)` scanning forward, then unmatched `(` scanning backward."""
    keep = [True] * len(tokens)

    depth = 0
    for i, token in enumerate(tokens):
        if token.kind is TokenKind.LPAREN:
            depth += 1
        elif token.kind is TokenKind.RPAREN:
            if depth > 0:
                depth -= 1
            else:
                keep[i] = False

    depth = 0
    for i in range(len(tokens) - 1, -1, -1):
        if not keep[i]:
            continue
        token = tokens[i]
        if token.kind is TokenKind.RPAREN:
            depth += 1
        elif token.kind is TokenKind.LPAREN:
            if depth > 0:
                depth -= 1
            else:
                keep[i] = False

    return [token for token, kept in zip(tokens, keep) if kept]


def strip_boundary_operators(tokens: list[Token]) -> list[Token]:
    """Strip leading AND/OR and trailing AND/OR/NOT. A leading NOT is valid."""
    start = 0
    end = len(tokens)
    while start < end and tokens[start].kind in BINARY_OPERATOR_KINDS:
        start += 1
    while end > start and tokens[end - 1].kind in OPERATOR_KINDS:
        end -= 1
    return list(tokens[start:end])


def collapse_adjacent_operators(tokens: list[Token]) -> list[Token]:
    """Collapse operator runs and drop operators that hug a parenthesis.

    ``and and`` keeps the last binary operator, a binary operator right after
    ``(`` is dropped (``not`` is kept there), a ``not`` directly followed by a
    binary operator has nothing to negate and is dropped, and every operator
    directly before ``)`` is dropped.
    """
    out: list[Token] = []
    for token in tokens:
        kind = token.kind
        if kind in BINARY_OPERATOR_KINDS:
            while out and out[-1].kind is TokenKind.NOT:
                out.pop()
            if not out or out[-1].kind is TokenKind.LPAREN:
                continue
            if out[-1].kind in BINARY_OPERATOR_KINDS:
                out.pop()
        elif kind is TokenKind.RPAREN:
            while out and out[-1].kind in OPERATOR_KINDS:
                out.pop()
        out.append(token)
    return out
