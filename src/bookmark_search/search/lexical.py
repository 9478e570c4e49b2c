"""
Keyword scoring used next to semantic search in hybrid ranking.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable

from ..models import Bookmark


TITLE_WEIGHT = 2.0
TAG_WEIGHT = 3.0
DESC_LENGTH_BASELINE = 100

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
        "in", "on", "at", "to", "for", "of", "with", "by", "from", "as",
        "and", "or", "but", "not", "no", "so", "if", "then",
    }
)

_NON_ALNUM = re.compile(r"[\W_]+")


@dataclass(frozen=True)
class LexicalResult:
    """Keyword match summary for one bookmark."""

    id: int
    matched_terms: int
    total_hits: float


def tokenize_query(query: str) -> list[str]:
    """Lowercased alphanumeric terms of the query, minus stop words and single characters."""
    return [
        term
        for term in (part.lower() for part in _NON_ALNUM.split(query))
        if len(term) > 1 and term not in STOP_WORDS
    ]


def description_length_weight(length: int) -> float:
    """Weight of a description hit: 1.0 up to the baseline, then logarithmic decay.

    Long descriptions offer more surface for substring hits; 400 characters
    weigh roughly 0.42 of a short description.
    """
    if length <= DESC_LENGTH_BASELINE:
        return 1.0
    return 1.0 / (1.0 + math.log(length / DESC_LENGTH_BASELINE))


def score_lexical(query: str, bookmarks: Iterable[Bookmark]) -> list[LexicalResult]:
    """Score bookmarks by keyword hits in title, description and tags.

    Bookmarks with no matching term are dropped. Results are ordered by
    ``matched_terms`` then ``total_hits``, both descending, then by id.
    """
    terms = tokenize_query(query)
    if not terms:
        return []

    results: list[LexicalResult] = []
    for bookmark in bookmarks:
        matched_terms, total_hits = _count_matches(terms, bookmark)
        if matched_terms:
            results.append(
                LexicalResult(id=bookmark.id, matched_terms=matched_terms, total_hits=total_hits)
            )

    results.sort(key=lambda result: (-result.matched_terms, -result.total_hits, result.id))
    return results


def _count_matches(terms: list[str], bookmark: Bookmark) -> tuple[int, float]:
    title = bookmark.title.lower()
    description = bookmark.description.lower()
    tags = [tag.lower() for tag in bookmark.tags]
    description_weight = description_length_weight(len(bookmark.description))

    matched_terms = 0
    total_hits = 0.0
    for term in terms:
        hits = 0.0
        if term in title:
            hits += TITLE_WEIGHT
        if term in description:
            hits += description_weight
        hits += TAG_WEIGHT * sum(
            1 for tag in tags if tag == term or tag.startswith(f"{term}/")
        )
        if hits > 0:
            matched_terms += 1
            total_hits += hits
    return matched_terms, total_hits
