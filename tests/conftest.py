"""Shared fixtures: a deterministic stand-in for fastembed and sample bookmarks."""

from __future__ import annotations

from typing import Iterable

import numpy as np
import pytest

from bookmark_search.config import SemanticSearchConfig
from bookmark_search.models import Bookmark

# Each vocabulary word owns one dimension; the last dimension is a small bias
# so that text without any vocabulary word still has a non-zero embedding.
VOCABULARY = ("rust", "python", "video", "cooking", "music", "async")
FAKE_DIMENSIONS = len(VOCABULARY) + 1


def fake_vector(text: str) -> np.ndarray:
    lowered = text.lower()
    counts = [float(lowered.count(word)) for word in VOCABULARY]
    return np.array(counts + [0.1], dtype=np.float32)


class FakeTextEmbedding:
    """Mimics ``fastembed.TextEmbedding``: ``embed`` yields one vector per text."""

    instances: list["FakeTextEmbedding"] = []

    def __init__(self, model_name: str, cache_dir: str | None = None, **kwargs) -> None:
        self.model_name = model_name
        self.cache_dir = cache_dir
        self.calls: list[list[str]] = []
        self.fail_on: set[str] = set()
        FakeTextEmbedding.instances.append(self)

    def embed(self, documents: Iterable[str], **kwargs):
        batch = list(documents)
        self.calls.append(batch)
        for text in batch:
            if any(marker in text for marker in self.fail_on):
                raise RuntimeError(f"cannot embed {text!r}")
            yield fake_vector(text)


@pytest.fixture
def fake_backend():
    FakeTextEmbedding.instances = []
    yield FakeTextEmbedding
    FakeTextEmbedding.instances = []


@pytest.fixture
def enabled_config() -> SemanticSearchConfig:
    return SemanticSearchConfig(enabled=True, default_threshold=0.0)


@pytest.fixture
def bookmarks() -> list[Bookmark]:
    return [
        Bookmark(
            id=1,
            title="The Rust Programming Language",
            description="Official book covering ownership and async Rust.",
            tags=("programming/rust", "books"),
            url="https://doc.rust-lang.org/book/",
        ),
        Bookmark(
            id=2,
            title="Python Cooking Recipes",
            description="Idiomatic Python snippets.",
            tags=("programming/python",),
            url="https://example.com/python-recipes",
        ),
        Bookmark(
            id=3,
            title="Rust Video Course",
            description="Conference talks and video lessons.",
            tags=("video", "programming/rust"),
            url="https://videos.example.org/rust",
        ),
        Bookmark(
            id=4,
            title="Weeknight Cooking",
            description="Quick dinners.",
            tags=("cooking", "archived"),
            url="https://food.example.net/weeknight",
        ),
        Bookmark(
            id=5,
            title="Lo-fi Music Stream",
            description="",
            tags=("music",),
            url="https://music.example.com/lofi",
        ),
    ]
