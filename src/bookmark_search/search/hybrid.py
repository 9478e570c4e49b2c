"""
Hybrid bookmark search: boolean filter, then semantic + lexical ranking fused with RRF.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable

import structlog

from ..config import DEFAULT_SEMANTIC_WEIGHT
from ..models import Bookmark
from ..query import filter_bookmarks
from .lexical import score_lexical
from .ranker import HybridResult, rrf_fusion
from .semantic import SemanticSearchDisabledError, SemanticSearchService

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HybridHit:
    """Ranked bookmark returned by hybrid search."""

    bookmark: Bookmark
    score: float
    semantic_rank: int | None = None
    lexical_rank: int | None = None
    semantic_available: bool = False

    @property
    def matched_by(self) -> str:
        if self.semantic_rank is not None and self.lexical_rank is not None:
            return "semantic+lexical"
        if self.semantic_rank is not None:
            return "semantic"
        if self.lexical_rank is not None:
            return "lexical"
        return "filter"


class HybridSearchEngine:
    """Filter bookmarks with the query language and rank them by meaning and keywords."""

    def __init__(
        self,
        semantic_service: SemanticSearchService | None = None,
        semantic_weight: float | None = None,
    ) -> None:
        self.semantic_service = semantic_service
        self._semantic_weight = semantic_weight

    @property
    def semantic_weight(self) -> float:
        if self._semantic_weight is not None:
            return self._semantic_weight
        if self.semantic_service is not None:
            return self.semantic_service.semantic_weight
        return DEFAULT_SEMANTIC_WEIGHT

    def search(
        self,
        bookmarks: Iterable[Bookmark],
        *,
        query: str = "",
        semantic: str | None = None,
        threshold: float | None = None,
        limit: int | None = None,
    ) -> list[HybridHit]:
        """Search `bookmarks`.

        `query` is a boolean filter; `semantic` is free text to rank by.
        Without `semantic` the filtered bookmarks come back in input order.
        When the semantic service is absent or disabled the ranking is
        lexical only and every hit has ``semantic_available=False``.
        """
        candidates = filter_bookmarks(query, bookmarks)
        if not semantic or not semantic.strip():
            hits = [HybridHit(bookmark=bookmark, score=0.0) for bookmark in candidates]
            return hits[:limit] if limit is not None else hits
        if not candidates:
            return []

        by_id = {bookmark.id: bookmark for bookmark in candidates}
        semantic_ids, lexical_ids = self._rank(semantic, candidates, threshold)
        if semantic_ids is None:
            fused = rrf_fusion([], lexical_ids, semantic_weight=0.0)
        else:
            fused = rrf_fusion(semantic_ids, lexical_ids, semantic_weight=self.semantic_weight)

        hits = [
            self._to_hit(result, by_id[result.id], semantic_ids is not None)
            for result in fused
        ]
        logger.debug(
            "hybrid_search_done",
            candidates=len(candidates),
            hits=len(hits),
            semantic_available=semantic_ids is not None,
        )
        return hits[:limit] if limit is not None else hits

    def _rank(
        self,
        text: str,
        candidates: list[Bookmark],
        threshold: float | None,
    ) -> tuple[list[int] | None, list[int]]:
        service = self.semantic_service
        if service is None or not service.is_enabled():
            return None, self._lexical_ids(text, candidates)

        with ThreadPoolExecutor(max_workers=2) as executor:
            semantic_future = executor.submit(
                service.search,
                text,
                [bookmark.id for bookmark in candidates],
                threshold,
                len(candidates),
            )
            lexical_future = executor.submit(self._lexical_ids, text, candidates)
            lexical_ids = lexical_future.result()
            try:
                semantic_ids: list[int] | None = semantic_future.result()
            except SemanticSearchDisabledError:
                semantic_ids = None
        return semantic_ids, lexical_ids

    @staticmethod
    def _lexical_ids(text: str, candidates: list[Bookmark]) -> list[int]:
        return [result.id for result in score_lexical(text, candidates)]

    @staticmethod
    def _to_hit(result: HybridResult, bookmark: Bookmark, semantic_available: bool) -> HybridHit:
        return HybridHit(
            bookmark=bookmark,
            score=result.score,
            semantic_rank=result.semantic_rank,
            lexical_rank=result.lexical_rank,
            semantic_available=semantic_available,
        )
