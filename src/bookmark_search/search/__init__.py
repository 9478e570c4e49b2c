"""Ranking: vector search service, keyword scoring and their fusion."""

from .hybrid import HybridHit, HybridSearchEngine
from .lexical import LexicalResult, description_length_weight, score_lexical, tokenize_query
from .ranker import RRF_K, HybridResult, rrf_fusion
from .semantic import (
    NotInitializedError,
    ReconcileResult,
    SemanticSearchDisabledError,
    SemanticSearchError,
    SemanticSearchService,
)

__all__ = [
    "HybridHit",
    "HybridSearchEngine",
    "LexicalResult",
    "description_length_weight",
    "score_lexical",
    "tokenize_query",
    "RRF_K",
    "HybridResult",
    "rrf_fusion",
    "NotInitializedError",
    "ReconcileResult",
    "SemanticSearchDisabledError",
    "SemanticSearchError",
    "SemanticSearchService",
]
