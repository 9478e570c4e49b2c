"""
Semantic search service.

Owns the embedding model, the in-memory vector index and its on-disk
storage. Constructing the service does no work; ``initialize()`` (called
explicitly, or lazily by the first operation) loads the model and rehydrates
``vectors.bin``. A single re-entrant lock serialises start-up, searches,
index mutation and persistence.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, TypeVar

import numpy as np
import structlog

from ..config import VECTORS_FILENAME, SemanticSearchConfig
from ..embeddings import EmbeddingError, EmbeddingModel
from ..models import Bookmark
from ..preprocess import content_hash, preprocess_content
from ..storage import (
    SearchResult,
    VectorIndex,
    VectorIndexError,
    VectorStorage,
    VectorStorageError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class SemanticSearchError(RuntimeError):
    """Base class for service-level failures."""


class SemanticSearchDisabledError(SemanticSearchError):
    def __init__(self) -> None:
        super().__init__("Semantic search is disabled")


class NotInitializedError(SemanticSearchError):
    def __init__(self) -> None:
        super().__init__("Semantic search service is not initialized")


@dataclass
class ReconcileResult:
    """What a reconcile pass changed in the index."""

    orphans_removed: int = 0
    stale_reembedded: int = 0
    missing_embedded: int = 0
    embed_failures: int = 0
    index_rewritten: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.orphans_removed or self.stale_reembedded or self.missing_embedded)


@dataclass
class _ServiceState:
    model: EmbeddingModel
    index: VectorIndex
    storage: VectorStorage


class SemanticSearchService:
    """Thread-safe front door to embedding, vector search and persistence."""

    def __init__(
        self,
        config: SemanticSearchConfig,
        base_path: str | Path,
        *,
        model_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.config = config
        self.base_path = Path(base_path)
        self._model_factory = model_factory
        self._lock = threading.RLock()
        self._state: _ServiceState | None = None
        self._reconciled = False

    # -- status -----------------------------------------------------------

    def is_enabled(self) -> bool:
        return self.config.enabled

    def is_initialized(self) -> bool:
        with self._lock:
            return self._state is not None

    def indexed_count(self) -> int:
        """Entries in the index; 0 until the service has started."""
        with self._lock:
            return len(self._state.index) if self._state is not None else 0

    @property
    def default_threshold(self) -> float:
        return self.config.default_threshold

    @property
    def semantic_weight(self) -> float:
        return self.config.semantic_weight

    @property
    def dimensions(self) -> int:
        with self._lock:
            if self._state is None:
                raise NotInitializedError()
            return self._state.index.dimensions

    # -- lifecycle --------------------------------------------------------

    def initialize(self) -> None:
        """Load the model and stored vectors. Later calls are no-ops."""
        self._ensure_enabled()
        with self._lock:
            if self._state is None:
                self._state = self._do_init()

    def _do_init(self) -> _ServiceState:
        logger.info(
            "semantic_search_starting",
            model=self.config.model,
            base_path=str(self.base_path),
        )
        model = EmbeddingModel(
            self.config.model,
            self.base_path,
            download_timeout=self.config.download_timeout_secs,
            model_factory=self._model_factory,
        )
        storage = VectorStorage(self.base_path / VECTORS_FILENAME)
        index = self._load_index(storage, model)
        logger.info(
            "semantic_search_ready",
            model=model.name,
            dimensions=model.dimensions,
            entries=len(index),
        )
        return _ServiceState(model=model, index=index, storage=storage)

    @staticmethod
    def _load_index(storage: VectorStorage, model: EmbeddingModel) -> VectorIndex:
        if not storage.exists():
            return VectorIndex(model.dimensions)
        try:
            return storage.load_report(model.model_id_hash(), model.dimensions).index
        except VectorStorageError as exc:
            if not exc.recoverable:
                logger.error("vector_index_load_failed", path=str(storage.path), error=str(exc))
                raise
            logger.warning(
                "vector_index_discarded",
                path=str(storage.path),
                reason=str(exc),
            )
            return VectorIndex(model.dimensions)

    def _ensure_enabled(self) -> None:
        if not self.config.enabled:
            raise SemanticSearchDisabledError()

    @contextmanager
    def _locked_state(self) -> Iterator[_ServiceState]:
        self._ensure_enabled()
        with self._lock:
            if self._state is None:
                self._state = self._do_init()
            yield self._state

    # -- search -----------------------------------------------------------

    def search(
        self,
        query: str,
        candidate_ids: Iterable[int] | None = None,
        threshold: float | None = None,
        limit: int = 10,
    ) -> list[int]:
        """Bookmark ids most similar to `query`, best first."""
        return [
            result.id
            for result in self.search_with_scores(query, candidate_ids, threshold, limit)
        ]

    def search_with_scores(
        self,
        query: str,
        candidate_ids: Iterable[int] | None = None,
        threshold: float | None = None,
        limit: int = 10,
    ) -> list[SearchResult]:
        effective_threshold = self.config.default_threshold if threshold is None else threshold
        with self._locked_state() as state:
            query_vector = state.model.embed(query)
            return state.index.search(
                query_vector,
                candidate_ids=candidate_ids,
                threshold=effective_threshold,
                limit=limit,
            )

    # -- mutation ---------------------------------------------------------

    def with_index_mut(self, fn: Callable[[VectorIndex, EmbeddingModel], T]) -> T:
        """Run ``fn(index, model)`` while holding the service lock."""
        with self._locked_state() as state:
            return fn(state.index, state.model)

    def save_index(self) -> None:
        with self._locked_state() as state:
            state.storage.save(state.index, state.model.model_id_hash())

    def index_bookmark(self, bookmark: Bookmark) -> bool:
        """Embed `bookmark` if its text changed. Returns True when the index changed.

        A bookmark without title or description has nothing to embed; any
        stale entry for it is dropped.
        """
        content = preprocess_content(
            bookmark.title, bookmark.description, bookmark.tags, bookmark.url
        )
        with self._locked_state() as state:
            if content is None:
                return state.index.remove(bookmark.id) is not None
            digest = content_hash(
                bookmark.title, bookmark.description, bookmark.tags, bookmark.url
            )
            existing = state.index.get(bookmark.id)
            if existing is not None and existing.content_hash == digest:
                return False
            state.index.insert(bookmark.id, digest, state.model.embed(content))
            return True

    def remove_bookmark(self, bookmark_id: int) -> bool:
        with self._locked_state() as state:
            return state.index.remove(bookmark_id) is not None

    def reconcile(self, bookmarks: Iterable[Bookmark]) -> ReconcileResult:
        """Bring the index in line with the bookmark store, once per service lifetime.

        Removes entries for bookmarks that no longer exist (or no longer have
        embeddable text), re-embeds entries whose content hash changed and
        embeds bookmarks missing from the index. New texts go to the model
        in one batch. Embedding failures are counted and logged, not raised.
        The index is saved when anything changed.
        """
        with self._locked_state() as state:
            if self._reconciled:
                logger.debug("reconcile_skipped", reason="already reconciled")
                return ReconcileResult()
            self._reconciled = True

            wanted: dict[int, tuple[int, str]] = {}
            for bookmark in bookmarks:
                content = preprocess_content(
                    bookmark.title, bookmark.description, bookmark.tags, bookmark.url
                )
                if content is not None:
                    digest = content_hash(
                        bookmark.title, bookmark.description, bookmark.tags, bookmark.url
                    )
                    wanted[bookmark.id] = (digest, content)

            result = ReconcileResult()
            for bookmark_id in state.index.ids():
                if bookmark_id not in wanted:
                    state.index.remove(bookmark_id)
                    result.orphans_removed += 1

            pending: list[tuple[int, int, str]] = []
            for bookmark_id, (digest, content) in wanted.items():
                existing = state.index.get(bookmark_id)
                if existing is None or existing.content_hash != digest:
                    pending.append((bookmark_id, digest, content))

            vectors = self._embed_pending(state.model, pending)
            for (bookmark_id, digest, _), vector in zip(pending, vectors):
                if vector is None:
                    result.embed_failures += 1
                    continue
                stale = state.index.contains(bookmark_id)
                try:
                    state.index.insert(bookmark_id, digest, vector)
                except VectorIndexError as exc:
                    logger.warning(
                        "reconcile_embed_failed", bookmark_id=bookmark_id, error=str(exc)
                    )
                    result.embed_failures += 1
                    continue
                if stale:
                    result.stale_reembedded += 1
                else:
                    result.missing_embedded += 1

            if result.has_changes:
                state.storage.save(state.index, state.model.model_id_hash())
                result.index_rewritten = True

            logger.info(
                "index_reconciled",
                orphans_removed=result.orphans_removed,
                stale_reembedded=result.stale_reembedded,
                missing_embedded=result.missing_embedded,
                embed_failures=result.embed_failures,
                entries=len(state.index),
            )
            return result

    @staticmethod
    def _embed_pending(
        model: EmbeddingModel, pending: list[tuple[int, int, str]]
    ) -> list[np.ndarray | None]:
        """Embed `pending` texts in one batch.

        If the batch fails, each text is retried alone so one bad bookmark
        does not cost the rest; failed items come back as None.
        """
        if not pending:
            return []
        try:
            return list(model.embed_batch([content for _, _, content in pending]))
        except EmbeddingError as exc:
            logger.warning("reconcile_batch_failed", size=len(pending), error=str(exc))

        vectors: list[np.ndarray | None] = []
        for bookmark_id, _, content in pending:
            try:
                vectors.append(model.embed(content))
            except EmbeddingError as exc:
                logger.warning(
                    "reconcile_embed_failed", bookmark_id=bookmark_id, error=str(exc)
                )
                vectors.append(None)
        return vectors
