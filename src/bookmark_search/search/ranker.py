"""
Reciprocal Rank Fusion of the semantic and lexical rankings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..config import DEFAULT_SEMANTIC_WEIGHT


RRF_K = 60


@dataclass(frozen=True)
class HybridResult:
    """Fused score for a bookmark plus its 1-based rank in each input list."""

    id: int
    score: float
    semantic_rank: int | None = None
    lexical_rank: int | None = None

    @property
    def matched_by(self) -> str:
        if self.semantic_rank is not None and self.lexical_rank is not None:
            return "semantic+lexical"
        if self.semantic_rank is not None:
            return "semantic"
        return "lexical"


def _first_ranks(ids: Sequence[int]) -> dict[int, int]:
    ranks: dict[int, int] = {}
    for position, bookmark_id in enumerate(ids):
        ranks.setdefault(bookmark_id, position)
    return ranks


def rrf_fusion(
    semantic_ids: Sequence[int],
    lexical_ids: Sequence[int],
    semantic_weight: float = DEFAULT_SEMANTIC_WEIGHT,
) -> list[HybridResult]:
    """Merge two best-first id lists into one.

    An id at 0-based rank ``r`` contributes ``weight / (RRF_K + r + 1)`` from
    each list it appears in, with ``semantic_weight`` for the semantic list
    and ``1 - semantic_weight`` for the lexical one. The weight is clamped to
    [0, 1]. Equal scores are ordered by ascending id.
    """
    alpha = min(max(semantic_weight, 0.0), 1.0)
    semantic_ranks = _first_ranks(semantic_ids)
    lexical_ranks = _first_ranks(lexical_ids)

    results: list[HybridResult] = []
    for bookmark_id in semantic_ranks.keys() | lexical_ranks.keys():
        score = 0.0
        semantic_rank = semantic_ranks.get(bookmark_id)
        lexical_rank = lexical_ranks.get(bookmark_id)
        if semantic_rank is not None:
            score += alpha / (RRF_K + semantic_rank + 1)
        if lexical_rank is not None:
            score += (1.0 - alpha) / (RRF_K + lexical_rank + 1)
        results.append(
            HybridResult(
                id=bookmark_id,
                score=score,
                semantic_rank=semantic_rank + 1 if semantic_rank is not None else None,
                lexical_rank=lexical_rank + 1 if lexical_rank is not None else None,
            )
        )

    results.sort(key=lambda result: (-result.score, result.id))
    return results
