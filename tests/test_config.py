"""Tests for configuration, data directory resolution, models and logging setup."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog
from pydantic import ValidationError

from bookmark_search.config import (
    DEFAULT_SEMANTIC_MODEL,
    DEFAULT_SEMANTIC_THRESHOLD,
    SemanticSearchConfig,
    resolve_data_dir,
)
from bookmark_search.logging_config import configure_logging
from bookmark_search.models import Bookmark


def test_config_defaults() -> None:
    config = SemanticSearchConfig()

    assert config.enabled is False
    assert config.model == DEFAULT_SEMANTIC_MODEL == "all-MiniLM-L6-v2"
    assert config.default_threshold == DEFAULT_SEMANTIC_THRESHOLD == 0.35
    assert config.download_timeout_secs == 300
    assert config.semantic_weight == 0.6


@pytest.mark.parametrize(
    "overrides",
    [
        {"default_threshold": 1.5},
        {"default_threshold": -0.1},
        {"download_timeout_secs": 0},
        {"semantic_weight": 1.01},
    ],
)
def test_config_rejects_out_of_range_values(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        SemanticSearchConfig(**overrides)


def test_from_env_reads_prefixed_variables(monkeypatch) -> None:
    monkeypatch.setenv("BOOKMARK_SEARCH_ENABLED", "Yes")
    monkeypatch.setenv("BOOKMARK_SEARCH_MODEL", "bge-small-en-v1.5")
    monkeypatch.setenv("BOOKMARK_SEARCH_DEFAULT_THRESHOLD", "0.5")
    monkeypatch.setenv("BOOKMARK_SEARCH_DOWNLOAD_TIMEOUT_SECS", "60")

    config = SemanticSearchConfig.from_env()

    assert config.enabled is True
    assert config.model == "bge-small-en-v1.5"
    assert config.default_threshold == 0.5
    assert config.download_timeout_secs == 60


def test_from_env_overrides_win(monkeypatch) -> None:
    monkeypatch.setenv("BOOKMARK_SEARCH_ENABLED", "0")
    monkeypatch.setenv("BOOKMARK_SEARCH_SEMANTIC_WEIGHT", "0.2")

    config = SemanticSearchConfig.from_env(semantic_weight=0.9, model=None)

    assert config.enabled is False
    assert config.semantic_weight == 0.9
    assert config.model == DEFAULT_SEMANTIC_MODEL


def test_resolve_data_dir_precedence(tmp_path: Path, monkeypatch) -> None:
    env_dir = tmp_path / "from_env"
    explicit = tmp_path / "explicit"
    monkeypatch.setenv("BOOKMARK_SEARCH_DATA_DIR", str(env_dir))

    assert resolve_data_dir() == env_dir.resolve()
    assert env_dir.is_dir()
    assert resolve_data_dir(str(explicit)) == explicit.resolve()
    assert explicit.is_dir()


def test_resolve_data_dir_default(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("BOOKMARK_SEARCH_DATA_DIR", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))

    assert resolve_data_dir() == (tmp_path / ".bookmark_search").resolve()


def test_bookmark_from_dict() -> None:
    bookmark = Bookmark.from_dict(
        {"id": "7", "title": None, "tags": "rust, books,", "url": "https://x.dev"}
    )

    assert bookmark == Bookmark(id=7, title="", tags=("rust", "books"), url="https://x.dev")
    assert Bookmark.from_dict(bookmark.to_dict()) == bookmark


def test_configure_logging_json(caplog) -> None:
    configure_logging("INFO", "json")
    try:
        with caplog.at_level(logging.INFO):
            structlog.get_logger("bookmark_search.test").warning("sample_event", entries=3)
    finally:
        structlog.reset_defaults()

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["event"] == "sample_event"
    assert payload["entries"] == 3
    assert payload["level"] == "warning"
    assert payload["logger"] == "bookmark_search.test"


def test_configure_logging_level_name_is_case_insensitive() -> None:
    configure_logging("debug", "console")
    try:
        assert structlog.is_configured()
    finally:
        structlog.reset_defaults()
