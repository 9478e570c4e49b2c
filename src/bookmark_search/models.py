"""
Bookmark record consumed by the search core.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class Bookmark:
    """A bookmark as supplied by the external bookmark store."""

    id: int
    title: str = ""
    description: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)
    url: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Bookmark":
        raw_tags = data.get("tags") or ()
        if isinstance(raw_tags, str):
            raw_tags = [tag for tag in raw_tags.split(",") if tag.strip()]
        return cls(
            id=int(data["id"]),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            tags=tuple(str(tag).strip() for tag in raw_tags),
            url=str(data.get("url") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
            "url": self.url,
        }
