"""
Configuration for the semantic search subsystem and its data directory.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field


DEFAULT_DATA_DIR = "~/.bookmark_search"
ENV_DATA_DIR = "BOOKMARK_SEARCH_DATA_DIR"
ENV_PREFIX = "BOOKMARK_SEARCH_"

DEFAULT_SEMANTIC_MODEL = "all-MiniLM-L6-v2"
DEFAULT_SEMANTIC_THRESHOLD = 0.35
DEFAULT_DOWNLOAD_TIMEOUT_SECS = 300
DEFAULT_SEMANTIC_WEIGHT = 0.6

VECTORS_FILENAME = "vectors.bin"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class SemanticSearchConfig(BaseModel):
    """Settings that control the semantic search service."""

    enabled: bool = Field(default=False, description="Enable semantic search.")
    model: str = Field(
        default=DEFAULT_SEMANTIC_MODEL,
        description="Embedding model name from the supported catalogue.",
    )
    default_threshold: float = Field(
        default=DEFAULT_SEMANTIC_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Minimum cosine similarity for a semantic hit.",
    )
    download_timeout_secs: int = Field(
        default=DEFAULT_DOWNLOAD_TIMEOUT_SECS,
        gt=0,
        description="Upper bound for loading or downloading the model.",
    )
    semantic_weight: float = Field(
        default=DEFAULT_SEMANTIC_WEIGHT,
        ge=0.0,
        le=1.0,
        description="Weight of the semantic ranking in hybrid fusion.",
    )

    @classmethod
    def from_env(cls, **overrides: object) -> "SemanticSearchConfig":
        """
        Build a config from ``BOOKMARK_SEARCH_*`` environment variables.

        Precedence:
        1) explicit keyword overrides
        2) BOOKMARK_SEARCH_ENABLED, BOOKMARK_SEARCH_MODEL, ...
        3) field defaults
        """
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            if name == "enabled":
                values[name] = raw.strip().lower() in _TRUE_VALUES
            else:
                values[name] = raw
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(values)


def resolve_data_dir(override_path: str | None = None) -> Path:
    """
    Resolve the directory holding ``vectors.bin`` and the model cache.

    Precedence:
    1) explicit override_path
    2) BOOKMARK_SEARCH_DATA_DIR
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DATA_DIR) or DEFAULT_DATA_DIR
    resolved = Path(raw_path).expanduser().resolve()
    resolved.mkdir(parents=True, exist_ok=True)
    return resolved
