"""
bookmark_search - search core for a personal bookmark manager.

Provides a boolean query language for filtering bookmarks, a local
embedding-based semantic index persisted to ``vectors.bin``, keyword
scoring, and Reciprocal Rank Fusion of the two rankings.

Example usage:
    >>> from bookmark_search import Bookmark, filter_bookmarks
    >>> marks = [Bookmark(1, "Rust Book", tags=("programming/rust",))]
    >>> [b.id for b in filter_bookmarks("#programming and rust", marks)]
    [1]
"""

from .config import SemanticSearchConfig, resolve_data_dir
from .embeddings import EmbeddingModel
from .models import Bookmark
from .preprocess import content_hash, preprocess_content
from .query import filter_bookmarks, matches, parse
from .search import (
    HybridHit,
    HybridSearchEngine,
    ReconcileResult,
    SemanticSearchService,
    rrf_fusion,
    score_lexical,
)
from .storage import VectorIndex, VectorStorage

__all__ = [
    # Data
    "Bookmark",
    # Query language
    "parse",
    "matches",
    "filter_bookmarks",
    # Semantic pipeline
    "SemanticSearchConfig",
    "resolve_data_dir",
    "EmbeddingModel",
    "preprocess_content",
    "content_hash",
    "VectorIndex",
    "VectorStorage",
    "SemanticSearchService",
    "ReconcileResult",
    # Ranking
    "score_lexical",
    "rrf_fusion",
    "HybridHit",
    "HybridSearchEngine",
]
