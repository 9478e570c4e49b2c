"""
Local embedding model for semantic bookmark search.

Wraps a fastembed ``TextEmbedding`` (ONNX, runs on CPU, no API calls) chosen
from a small catalogue of supported models. The model files are downloaded
into ``<cache_dir>/models`` on first use.
"""

from __future__ import annotations

import hashlib
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Callable, Sequence

import numpy as np
import structlog
from fastembed import TextEmbedding

logger = structlog.get_logger(__name__)

DEFAULT_DOWNLOAD_TIMEOUT_SECS = 300
_PROBE_TEXT = "test"

# Canonical name -> fastembed model identifier.
SUPPORTED_MODELS: dict[str, str] = {
    "all-MiniLM-L6-v2": "sentence-transformers/all-MiniLM-L6-v2",
    "bge-small-en-v1.5": "BAAI/bge-small-en-v1.5",
    "bge-base-en-v1.5": "BAAI/bge-base-en-v1.5",
    "bge-large-en-v1.5": "BAAI/bge-large-en-v1.5",
}


class EmbeddingError(RuntimeError):
    """Base class for embedding failures."""


class EmbeddingInitError(EmbeddingError):
    """The model could not be loaded or probed."""


class EmbeddingFailedError(EmbeddingError):
    """Inference failed for a given input."""


class DownloadTimeoutError(EmbeddingError):
    """Loading/downloading the model exceeded the configured timeout."""

    def __init__(self, timeout_secs: float) -> None:
        super().__init__(f"Model download timed out after {timeout_secs:g} seconds")
        self.timeout_secs = timeout_secs


class InvalidModelError(EmbeddingError):
    """The requested model is not in the supported catalogue."""


def _alias(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch.isalnum())


_ALIASES: dict[str, str] = {}
for _canonical in SUPPORTED_MODELS:
    _ALIASES[_canonical.lower()] = _canonical
    _ALIASES[_alias(_canonical)] = _canonical


def resolve_model_name(name: str) -> str:
    """Map a user supplied model name onto its canonical catalogue name."""
    key = name.strip().lower()
    canonical = _ALIASES.get(key) or _ALIASES.get(_alias(key))
    if canonical is None:
        supported = ", ".join(SUPPORTED_MODELS)
        raise InvalidModelError(f"Unknown model: {name}. Supported models: {supported}")
    return canonical


def model_id_for(name: str) -> bytes:
    """SHA-256 of the canonical model name, as stored in ``vectors.bin``."""
    return hashlib.sha256(resolve_model_name(name).encode("utf-8")).digest()


class EmbeddingModel:
    """Generate text embeddings with a local fastembed model.

    Inference is serialised behind a lock: the underlying session is not
    shared between concurrent calls, so callers block rather than run in
    parallel.
    """

    def __init__(
        self,
        model_name: str,
        cache_dir: str | Path,
        *,
        download_timeout: float | None = None,
        model_factory: Callable[..., Any] | None = None,
    ) -> None:
        self._name = resolve_model_name(model_name)
        timeout = download_timeout or DEFAULT_DOWNLOAD_TIMEOUT_SECS

        models_dir = Path(cache_dir) / "models"
        try:
            models_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise EmbeddingInitError(f"Failed to create models directory: {exc}") from exc

        factory = model_factory or TextEmbedding
        self._model = self._load(factory, models_dir, timeout)
        self._lock = threading.Lock()
        self._dimensions = self._probe_dimensions()
        logger.info(
            "embedding_model_ready",
            model=self._name,
            dimensions=self._dimensions,
            cache_dir=str(models_dir),
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> np.ndarray:
        """Embed a single text."""
        with self._lock:
            vectors = self._run([text])
        if not vectors:
            raise EmbeddingFailedError("No embedding returned")
        return vectors[0]

    def embed_batch(self, texts: Sequence[str]) -> list[np.ndarray]:
        """Embed several texts, returning vectors in input order."""
        if not texts:
            return []
        with self._lock:
            vectors = self._run(list(texts))
        if len(vectors) != len(texts):
            raise EmbeddingFailedError(
                f"Expected {len(texts)} embeddings, model returned {len(vectors)}"
            )
        return vectors

    def model_id_hash(self) -> bytes:
        """Content-independent identifier used to validate stored vectors."""
        return model_id_for(self._name)

    def _run(self, texts: list[str]) -> list[np.ndarray]:
        try:
            return [np.asarray(vector, dtype=np.float32) for vector in self._model.embed(texts)]
        except Exception as exc:
            raise EmbeddingFailedError(str(exc)) from exc

    def _load(self, factory: Callable[..., Any], models_dir: Path, timeout: float) -> Any:
        fastembed_name = SUPPORTED_MODELS[self._name]
        logger.info("loading_embedding_model", model=self._name, timeout_secs=timeout)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="embedding-load")
        future = executor.submit(factory, model_name=fastembed_name, cache_dir=str(models_dir))
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            raise DownloadTimeoutError(timeout) from exc
        except Exception as exc:
            raise EmbeddingInitError(str(exc)) from exc
        finally:
            # A timed-out download keeps running in its worker; do not block on it.
            executor.shutdown(wait=False)

    def _probe_dimensions(self) -> int:
        try:
            vectors = [np.asarray(vector) for vector in self._model.embed([_PROBE_TEXT])]
        except Exception as exc:
            raise EmbeddingInitError(f"Failed to probe dimensions: {exc}") from exc
        if not vectors or vectors[0].size == 0:
            raise EmbeddingInitError("Model returned no embedding")
        return int(vectors[0].size)
