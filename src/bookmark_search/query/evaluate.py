"""
Evaluation of a search AST against a single bookmark.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from ..models import Bookmark
from .parser import And, FieldTarget, Not, Or, SearchFilter, Term


def evaluate(search_filter: SearchFilter, bookmark: Bookmark) -> bool:
    """Return True if the bookmark satisfies the filter."""
    if isinstance(search_filter, Term):
        return _match_term(search_filter.field, search_filter.text, bookmark)
    if isinstance(search_filter, And):
        return evaluate(search_filter.left, bookmark) and evaluate(
            search_filter.right, bookmark
        )
    if isinstance(search_filter, Or):
        return evaluate(search_filter.left, bookmark) or evaluate(
            search_filter.right, bookmark
        )
    if isinstance(search_filter, Not):
        return not evaluate(search_filter.inner, bookmark)
    raise TypeError(f"Unsupported filter node: {search_filter!r}")


def tag_matches(tag: str, term: str) -> bool:
    """Exact tag match, or `term` names an ancestor of a hierarchical tag."""
    tag_lower = tag.lower()
    term_lower = term.lower()
    return tag_lower == term_lower or tag_lower.startswith(f"{term_lower}/")


def _match_term(field: FieldTarget, text: str, bookmark: Bookmark) -> bool:
    needle = text.lower()
    if field is FieldTarget.TAG:
        return any(tag_matches(tag, text) for tag in bookmark.tags)
    if field is FieldTarget.TITLE:
        return needle in bookmark.title.lower()
    if field is FieldTarget.DESCRIPTION:
        return needle in bookmark.description.lower()
    if field is FieldTarget.URL:
        return needle in bookmark.url.lower()
    if field is FieldTarget.ID:
        parsed = _parse_id(text)
        return parsed is not None and parsed == bookmark.id
    return (
        needle in bookmark.title.lower()
        or needle in bookmark.description.lower()
        or needle in bookmark.url.lower()
        or any(needle in tag.lower() for tag in bookmark.tags)
    )


def _parse_id(text: str) -> int | None:
    if not text.isdigit() or not text.isascii():
        return None
    return int(text)


@dataclass(frozen=True)
class RequiredId:
    """Id constraint implied by `=id` terms that every match must satisfy."""

    kind: Literal["none", "exact", "unsatisfiable"]
    id: int | None = None

    @classmethod
    def none(cls) -> "RequiredId":
        return cls("none")

    @classmethod
    def exact(cls, bookmark_id: int) -> "RequiredId":
        return cls("exact", bookmark_id)

    @classmethod
    def unsatisfiable(cls) -> "RequiredId":
        return cls("unsatisfiable")


def required_id_constraint(search_filter: SearchFilter) -> RequiredId:
    """Work out whether a filter can only ever match one specific id."""
    if isinstance(search_filter, Term):
        if search_filter.field is not FieldTarget.ID:
            return RequiredId.none()
        parsed = _parse_id(search_filter.text)
        if parsed is None:
            return RequiredId.unsatisfiable()
        return RequiredId.exact(parsed)
    if isinstance(search_filter, And):
        return _and_required(
            required_id_constraint(search_filter.left),
            required_id_constraint(search_filter.right),
        )
    if isinstance(search_filter, Or):
        return _or_required(
            required_id_constraint(search_filter.left),
            required_id_constraint(search_filter.right),
        )
    return RequiredId.none()


def _and_required(left: RequiredId, right: RequiredId) -> RequiredId:
    if left.kind == "unsatisfiable" or right.kind == "unsatisfiable":
        return RequiredId.unsatisfiable()
    if left.kind == "exact" and right.kind == "exact":
        return left if left.id == right.id else RequiredId.unsatisfiable()
    if left.kind == "exact":
        return left
    return right


def _or_required(left: RequiredId, right: RequiredId) -> RequiredId:
    if left.kind == "unsatisfiable":
        return right
    if right.kind == "unsatisfiable":
        return left
    if left.kind == "exact" and right.kind == "exact" and left.id == right.id:
        return left
    return RequiredId.none()
