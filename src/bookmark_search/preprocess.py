"""
Text preparation for bookmark embeddings.

Output format: ``"{title} - {description}"`` with either side omitted when it
is empty, optionally followed by ``" - {tags}"`` and ``" - {url keywords}"``.
Title and description are sanitized first (HTML entities decoded, markup
characters dropped, whitespace collapsed). Bookmarks whose title and
description are both blank after that are not embedded at all; tags and a
URL alone are not enough signal.
"""

from __future__ import annotations

import hashlib
import html
import re
from typing import Iterable
from urllib.parse import urlsplit


MAX_CONTENT_LENGTH = 512
TRUNCATION_SUFFIX = "..."
SECTION_SEPARATOR = " - "

_URL_STOP_WORDS = frozenset(
    {
        # TLDs and URL scaffolding
        "com", "org", "net", "io", "dev", "co", "uk", "de", "fr", "jp", "cn",
        "www", "http", "https", "html", "htm", "php", "asp", "jsp", "cgi",
        # Path noise
        "en", "us", "index", "home", "page", "pages", "post", "posts",
        "article", "articles", "blog", "docs", "doc", "documentation",
        "wiki", "help", "faq", "about", "contact", "login", "signin",
        "signup", "register", "search", "tag", "tags", "category",
        "categories", "archive", "archives", "feed", "rss", "api",
        "v1", "v2", "v3",
        # Tracking
        "utm", "ref", "src", "id", "amp",
    }
)
_PAGE_EXTENSIONS = (".html", ".htm", ".php", ".asp", ".jsp")
_PATH_WORD_SPLIT = re.compile(r"[-_.]")
# Markdown, HTML and template characters; sentence punctuation is kept.
_MARKUP_NOISE = str.maketrans({char: " " for char in "`*#|[]<>{}~\\"})


def preprocess_content(
    title: str,
    description: str,
    tags: Iterable[str] = (),
    url: str = "",
) -> str | None:
    """Build the embedding input for a bookmark, or None if it has no text."""
    title = sanitize_text(title)
    description = sanitize_text(description)
    if not title and not description:
        return None

    sections = [part for part in (title, description) if part]
    tag_words = " ".join(tag.strip() for tag in tags if tag.strip())
    if tag_words:
        sections.append(tag_words)
    url_keywords = extract_url_keywords(url)
    if url_keywords:
        sections.append(url_keywords)

    return truncate_content(SECTION_SEPARATOR.join(sections))


def sanitize_text(text: str) -> str:
    """Decode HTML entities, blank out markup characters and collapse whitespace."""
    return " ".join(html.unescape(text).translate(_MARKUP_NOISE).split())


def truncate_content(content: str, max_length: int = MAX_CONTENT_LENGTH) -> str:
    """Cap content at `max_length` characters, marking the cut with an ellipsis."""
    if len(content) <= max_length:
        return content
    return content[: max_length - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX


def extract_url_keywords(url: str) -> str:
    """Pull meaningful words out of a URL's host and path.

    ``https://rust-lang.github.io/rust-by-example/`` gives
    ``"rust lang github rust-by-example example"``: compound path segments
    are kept whole as well as split into their words.
    """
    if not url or "://" not in url:
        return ""
    try:
        parsed = urlsplit(url.strip())
    except ValueError:
        return ""
    if not parsed.scheme or not parsed.netloc:
        return ""

    keywords: list[str] = []
    for part in (parsed.hostname or "").split("."):
        keywords.extend(word for word in part.split("-") if _is_meaningful(word))

    for segment in parsed.path.split("/"):
        for extension in _PAGE_EXTENSIONS:
            if segment.endswith(extension):
                segment = segment[: -len(extension)]
        if _is_meaningful(segment):
            keywords.append(segment)
        keywords.extend(
            word for word in _PATH_WORD_SPLIT.split(segment) if _is_meaningful(word)
        )

    seen: set[str] = set()
    unique: list[str] = []
    for keyword in (word.lower() for word in keywords):
        if keyword not in seen:
            seen.add(keyword)
            unique.append(keyword)
    return " ".join(unique)


def _is_meaningful(word: str) -> bool:
    if len(word) < 3 or word.isdigit():
        return False
    return word.lower() not in _URL_STOP_WORDS


def content_hash(
    title: str,
    description: str,
    tags: Iterable[str] = (),
    url: str = "",
) -> int:
    """Stable 64-bit fingerprint of the text that feeds an embedding.

    Used to skip re-embedding when an edited bookmark's text did not change.
    Fields are length-prefixed so ``("ab", "c")`` and ``("a", "bc")`` differ.
    """
    digest = hashlib.blake2b(digest_size=8)
    tag_list = list(tags)
    digest.update(len(tag_list).to_bytes(8, "little"))
    for value in (title.strip(), description.strip(), *tag_list, url):
        encoded = value.encode("utf-8")
        digest.update(len(encoded).to_bytes(8, "little"))
        digest.update(encoded)
    return int.from_bytes(digest.digest(), "little")
