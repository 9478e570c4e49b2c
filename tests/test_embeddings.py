"""Tests for the local embedding model wrapper."""

from __future__ import annotations

import hashlib
import threading
from pathlib import Path

import numpy as np
import pytest

from bookmark_search.embeddings import (
    SUPPORTED_MODELS,
    DownloadTimeoutError,
    EmbeddingFailedError,
    EmbeddingInitError,
    EmbeddingModel,
    InvalidModelError,
    model_id_for,
    resolve_model_name,
)

from conftest import FAKE_DIMENSIONS, fake_vector


def test_model_loads_with_fastembed_identifier(tmp_path: Path, fake_backend) -> None:
    model = EmbeddingModel("bge-small-en-v1.5", tmp_path, model_factory=fake_backend)

    backend = fake_backend.instances[0]
    assert backend.model_name == "BAAI/bge-small-en-v1.5"
    assert backend.cache_dir == str(tmp_path / "models")
    assert (tmp_path / "models").is_dir()
    assert model.name == "bge-small-en-v1.5"


def test_dimensions_are_probed(tmp_path: Path, fake_backend) -> None:
    model = EmbeddingModel("all-MiniLM-L6-v2", tmp_path, model_factory=fake_backend)

    assert model.dimensions == FAKE_DIMENSIONS
    assert fake_backend.instances[0].calls[0] == ["test"]


def test_embed_and_embed_batch(tmp_path: Path, fake_backend) -> None:
    model = EmbeddingModel("all-MiniLM-L6-v2", tmp_path, model_factory=fake_backend)

    single = model.embed("rust video")
    batch = model.embed_batch(["rust", "music"])

    np.testing.assert_array_equal(single, fake_vector("rust video"))
    assert single.dtype == np.float32
    assert len(batch) == 2
    np.testing.assert_array_equal(batch[1], fake_vector("music"))
    assert model.embed_batch([]) == []


def test_backend_failure_becomes_embedding_failed(tmp_path: Path, fake_backend) -> None:
    model = EmbeddingModel("all-MiniLM-L6-v2", tmp_path, model_factory=fake_backend)
    fake_backend.instances[0].fail_on.add("boom")

    with pytest.raises(EmbeddingFailedError):
        model.embed("boom")


def test_unknown_model_is_rejected(tmp_path: Path, fake_backend) -> None:
    with pytest.raises(InvalidModelError):
        EmbeddingModel("gpt-embeddings", tmp_path, model_factory=fake_backend)
    assert fake_backend.instances == []


def test_loader_exception_becomes_init_error(tmp_path: Path) -> None:
    def broken_factory(**kwargs):
        raise OSError("no network")

    with pytest.raises(EmbeddingInitError):
        EmbeddingModel("all-MiniLM-L6-v2", tmp_path, model_factory=broken_factory)


def test_slow_download_times_out(tmp_path: Path, fake_backend) -> None:
    release = threading.Event()

    def slow_factory(**kwargs):
        release.wait(5)
        return fake_backend(**kwargs)

    try:
        with pytest.raises(DownloadTimeoutError) as excinfo:
            EmbeddingModel(
                "all-MiniLM-L6-v2", tmp_path, download_timeout=0.05, model_factory=slow_factory
            )
    finally:
        release.set()
    assert excinfo.value.timeout_secs == 0.05


@pytest.mark.parametrize(
    ("raw", "canonical"),
    [
        ("all-MiniLM-L6-v2", "all-MiniLM-L6-v2"),
        ("ALL-MINILM-L6-V2", "all-MiniLM-L6-v2"),
        ("allminilml6v2", "all-MiniLM-L6-v2"),
        (" bge-base-en-v1.5 ", "bge-base-en-v1.5"),
        ("BGELargeENv15", "bge-large-en-v1.5"),
    ],
)
def test_resolve_model_name_aliases(raw: str, canonical: str) -> None:
    assert resolve_model_name(raw) == canonical


def test_model_id_is_sha256_of_canonical_name(tmp_path: Path, fake_backend) -> None:
    model = EmbeddingModel("allminilml6v2", tmp_path, model_factory=fake_backend)

    expected = hashlib.sha256(b"all-MiniLM-L6-v2").digest()
    assert model.model_id_hash() == expected
    assert model_id_for("all-MiniLM-L6-v2") == expected
    assert len(expected) == 32


def test_model_ids_differ_between_models() -> None:
    ids = {model_id_for(name) for name in SUPPORTED_MODELS}

    assert len(ids) == len(SUPPORTED_MODELS)
