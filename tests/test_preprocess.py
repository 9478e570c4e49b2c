"""Tests for embedding text preparation and content hashing."""

from __future__ import annotations

from bookmark_search.preprocess import (
    MAX_CONTENT_LENGTH,
    content_hash,
    extract_url_keywords,
    preprocess_content,
    sanitize_text,
    truncate_content,
)


def test_title_and_description_joined() -> None:
    assert preprocess_content("Rust Book", "Learn Rust") == "Rust Book - Learn Rust"


def test_single_side_has_no_separator() -> None:
    assert preprocess_content("  Rust Book ", "") == "Rust Book"
    assert preprocess_content("", " Learn Rust ") == "Learn Rust"


def test_blank_bookmark_has_no_content() -> None:
    assert preprocess_content("  ", "\n") is None
    assert preprocess_content("", "", tags=("rust",), url="https://rust-lang.org") is None


def test_markup_and_entities_are_cleaned() -> None:
    content = preprocess_content("**Rust** Book", "A &quot;fast&quot;\n\n  `systems` language")

    assert content == 'Rust Book - A "fast" systems language'


def test_markup_only_bookmark_has_no_content() -> None:
    assert preprocess_content("***", "`#|`") is None
    assert preprocess_content("&lt;&gt;", "  [ ] ") is None


def test_sanitize_text() -> None:
    assert sanitize_text("Tom&nbsp;&amp;\n\n  Jerry") == "Tom & Jerry"
    assert sanitize_text("## Rust &amp; Go [docs](x)") == "Rust & Go docs (x)"
    assert sanitize_text("{{ template }} ~~old~~ C:\\path") == "template old C: path"


def test_tags_and_url_keywords_are_appended() -> None:
    content = preprocess_content(
        "Rust Book", "", tags=("programming/rust", "books"), url="https://doc.rust-lang.org/book/"
    )

    assert content == "Rust Book - programming/rust books - rust lang book"


def test_long_content_is_truncated_with_suffix() -> None:
    content = preprocess_content("x" * 600, "")

    assert content is not None
    assert len(content) == MAX_CONTENT_LENGTH
    assert content.endswith("...")


def test_truncation_counts_characters_not_bytes() -> None:
    text = "é" * 600
    truncated = truncate_content(text)

    assert len(truncated) == MAX_CONTENT_LENGTH
    assert truncated[:-3] == "é" * (MAX_CONTENT_LENGTH - 3)


def test_short_content_untouched() -> None:
    assert truncate_content("short") == "short"


def test_extract_url_keywords_keeps_compound_segments() -> None:
    keywords = extract_url_keywords("https://rust-lang.github.io/rust-by-example/")

    assert keywords.split() == ["rust", "lang", "github", "rust-by-example", "example"]


def test_extract_url_keywords_drops_noise() -> None:
    assert extract_url_keywords("https://www.example.com/docs/index.html") == "example"
    assert extract_url_keywords("not a url") == ""
    assert extract_url_keywords("") == ""


def test_content_hash_is_stable_and_sensitive() -> None:
    first = content_hash("Rust", "Book", ("a",), "https://x.dev")

    assert first == content_hash("Rust", "Book", ("a",), "https://x.dev")
    assert first != content_hash("Rust", "Book!", ("a",), "https://x.dev")
    assert first != content_hash("Rust", "Book", ("b",), "https://x.dev")
    assert 0 <= first < 2**64


def test_content_hash_is_length_prefixed() -> None:
    assert content_hash("ab", "c") != content_hash("a", "bc")


def test_content_hash_ignores_surrounding_whitespace() -> None:
    assert content_hash(" Rust ", "Book\n") == content_hash("Rust", "Book")
