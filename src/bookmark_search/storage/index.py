"""
In-memory vector index with cosine similarity search.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

import numpy as np


_EPSILON = float(np.finfo(np.float32).eps)
# Ids and content hashes are persisted as u64.
_U64_MAX = 2**64 - 1


class VectorIndexError(ValueError):
    """Raised when a vector violates the index contract."""


class DimensionMismatchError(VectorIndexError):
    def __init__(self, expected: int, got: int) -> None:
        super().__init__(f"Dimension mismatch: expected {expected}, got {got}")
        self.expected = expected
        self.got = got


class ZeroNormVectorError(VectorIndexError):
    def __init__(self) -> None:
        super().__init__("Vector has zero norm; cosine similarity is undefined")


class ValueOutOfRangeError(VectorIndexError):
    def __init__(self, field: str, value: int) -> None:
        super().__init__(f"{field} {value} does not fit in an unsigned 64-bit integer")
        self.field = field
        self.value = value


@dataclass
class VectorEntry:
    """Embedding stored for a bookmark plus the hash of the text it came from."""

    content_hash: int
    embedding: np.ndarray


@dataclass(frozen=True)
class SearchResult:
    id: int
    score: float


class VectorIndex:
    """Bookmark id -> embedding map with a fixed dimensionality."""

    def __init__(self, dimensions: int) -> None:
        if dimensions <= 0:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        self._dimensions = dimensions
        self._entries: dict[int, VectorEntry] = {}

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, bookmark_id: object) -> bool:
        return bookmark_id in self._entries

    def __iter__(self) -> Iterator[tuple[int, VectorEntry]]:
        return self.iter()

    def is_empty(self) -> bool:
        return not self._entries

    def insert(
        self,
        bookmark_id: int,
        content_hash: int,
        embedding: Sequence[float] | np.ndarray,
    ) -> None:
        """Insert or overwrite the entry for `bookmark_id`."""
        for field, value in (("bookmark id", bookmark_id), ("content hash", content_hash)):
            if not 0 <= value <= _U64_MAX:
                raise ValueOutOfRangeError(field, value)
        vector = self._validated(embedding)
        self._entries[bookmark_id] = VectorEntry(content_hash=content_hash, embedding=vector)

    def remove(self, bookmark_id: int) -> VectorEntry | None:
        return self._entries.pop(bookmark_id, None)

    def get(self, bookmark_id: int) -> VectorEntry | None:
        return self._entries.get(bookmark_id)

    def contains(self, bookmark_id: int) -> bool:
        return bookmark_id in self._entries

    def ids(self) -> list[int]:
        return list(self._entries)

    def iter(self) -> Iterator[tuple[int, VectorEntry]]:
        return iter(list(self._entries.items()))

    def clear(self) -> None:
        self._entries.clear()

    def bulk_load(self, entries: Iterable[tuple[int, int, Sequence[float] | np.ndarray]]) -> None:
        """Insert a batch of ``(id, content_hash, embedding)`` triples.

        Stops at the first invalid entry; earlier entries stay inserted.
        """
        for bookmark_id, content_hash, embedding in entries:
            self.insert(bookmark_id, content_hash, embedding)

    def search(
        self,
        query: Sequence[float] | np.ndarray,
        candidate_ids: Iterable[int] | None = None,
        threshold: float = 0.0,
        limit: int = 10,
    ) -> list[SearchResult]:
        """Rank entries by cosine similarity to `query`.

        Only entries scoring at least `threshold` are returned, best first;
        equal scores are ordered by ascending id.
        """
        vector = self._validated(query)
        if limit <= 0:
            return []

        if candidate_ids is None:
            ids = list(self._entries)
        else:
            allowed = set(candidate_ids)
            ids = [bookmark_id for bookmark_id in self._entries if bookmark_id in allowed]
        if not ids:
            return []

        query_norm = float(np.linalg.norm(vector))
        results: list[SearchResult] = []
        for bookmark_id in ids:
            score = _cosine_similarity(vector, query_norm, self._entries[bookmark_id].embedding)
            if score >= threshold:
                results.append(SearchResult(id=bookmark_id, score=score))

        results.sort(key=lambda result: (-result.score, result.id))
        return results[:limit]

    def _validated(self, embedding: Sequence[float] | np.ndarray) -> np.ndarray:
        vector = np.array(embedding, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self._dimensions:
            raise DimensionMismatchError(self._dimensions, int(vector.shape[0]))
        if float(np.linalg.norm(vector)) < _EPSILON:
            raise ZeroNormVectorError()
        return vector


def _cosine_similarity(query: np.ndarray, query_norm: float, target: np.ndarray) -> float:
    target_norm = float(np.linalg.norm(target))
    if target_norm < _EPSILON:
        return 0.0
    return float(np.dot(query, target)) / (query_norm * target_norm)
