import json
from pathlib import Path
from typing import Annotated, Any, NoReturn

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .config import VECTORS_FILENAME, SemanticSearchConfig, resolve_data_dir
from .embeddings import SUPPORTED_MODELS, EmbeddingError, model_id_for
from .logging_config import configure_logging
from .models import Bookmark
from .query import (
    And,
    Not,
    Or,
    QueryParseError,
    SearchFilter,
    Term,
    filter_bookmarks,
    normalize,
    parse_tokens,
    tokenize,
)
from .search import HybridSearchEngine, SemanticSearchService
from .storage import VectorStorage, VectorStorageError

app = Typer(no_args_is_help=True, help="Search a bookmark export with boolean, keyword and semantic queries.")
console = Console()


def _fail(message: str) -> NoReturn:
    console.print(f"[bold red]{escape(message)}[/]")
    raise Exit(code=1)


def load_bookmarks(path: Path) -> list[Bookmark]:
    """Read a JSON export: either a list of bookmarks or ``{"bookmarks": [...]}``."""
    try:
        payload: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        _fail(f"Could not read bookmarks from {path}: {exc}")
    if isinstance(payload, dict):
        payload = payload.get("bookmarks", [])
    if not isinstance(payload, list):
        _fail(f"Expected a list of bookmarks in {path}")
    try:
        return [Bookmark.from_dict(item) for item in payload]
    except (KeyError, TypeError, ValueError) as exc:
        _fail(f"Invalid bookmark record in {path}: {exc}")


def render_filter(search_filter: SearchFilter | None) -> str:
    if search_filter is None:
        return "<match all>"
    if isinstance(search_filter, Term):
        return f"{search_filter.field.value}:{search_filter.text!r}"
    if isinstance(search_filter, And):
        return f"({render_filter(search_filter.left)} AND {render_filter(search_filter.right)})"
    if isinstance(search_filter, Or):
        return f"({render_filter(search_filter.left)} OR {render_filter(search_filter.right)})"
    if isinstance(search_filter, Not):
        return f"NOT {render_filter(search_filter.inner)}"
    raise TypeError(f"Unsupported filter node: {search_filter!r}")


@app.callback()
def main(
    log_level: Annotated[
        str, Option("--log-level", help="DEBUG, INFO, WARNING or ERROR.")
    ] = "WARNING",
    log_format: Annotated[
        str, Option("--log-format", help="`console` or `json`.")
    ] = "console",
) -> None:
    configure_logging(log_level, log_format)


@app.command("filter")
def filter_command(
    query: Annotated[str, Argument(help="Boolean query, e.g. `#rust and not #archived`.")],
    bookmarks_file: Annotated[
        Path, Option("--bookmarks", "-b", help="JSON export of bookmarks.")
    ],
) -> None:
    """Print the bookmarks matching a boolean query."""
    bookmarks = load_bookmarks(bookmarks_file)
    try:
        matched = filter_bookmarks(query, bookmarks)
    except QueryParseError as exc:
        _fail(f"Invalid query: {exc}")

    table = Table(title=f"{len(matched)} of {len(bookmarks)} bookmarks")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Tags")
    for bookmark in matched:
        table.add_row(str(bookmark.id), escape(bookmark.title), escape(", ".join(bookmark.tags)))
    console.print(table)


@app.command()
def explain(
    query: Annotated[str, Argument(help="Query to break down.")],
) -> None:
    """Show how a query is tokenized, normalized and parsed."""
    tokens = tokenize(query)
    normalized = normalize(tokens)
    try:
        tree = escape(render_filter(parse_tokens(normalized)))
    except QueryParseError as exc:
        tree = f"[red]parse error: {escape(str(exc))}[/]"
    content = "\n".join(
        [
            f"[bold]Tokens:[/] {escape(' '.join(str(token) for token in tokens)) or '-'}",
            f"[bold]Normalized:[/] {escape(' '.join(str(token) for token in normalized)) or '-'}",
            f"[bold]Filter:[/] {tree}",
        ]
    )
    console.print(Panel(content, title="Query", title_align="left", border_style="bold cyan"))


@app.command("inspect-index")
def inspect_index(
    data_dir: Annotated[
        str | None, Option("--data-dir", help="Directory holding vectors.bin.")
    ] = None,
) -> None:
    """Print the header of the stored vector index."""
    storage = VectorStorage(resolve_data_dir(data_dir) / VECTORS_FILENAME)
    if not storage.exists():
        _fail(f"No vector index at {storage.path}")
    try:
        header = storage.read_header()
    except VectorStorageError as exc:
        _fail(f"Unreadable vector index: {exc}")

    model_name = next(
        (name for name in SUPPORTED_MODELS if model_id_for(name) == header.model_id),
        "unknown",
    )
    table = Table(title=str(storage.path), show_header=False)
    table.add_row("Format version", str(header.version))
    table.add_row("Model", model_name)
    table.add_row("Model id", header.model_id.hex())
    table.add_row("Dimensions", str(header.dimensions))
    table.add_row("Entries", str(header.entry_count))
    table.add_row("Checksum", f"{header.checksum:#010x}")
    console.print(table)


@app.command()
def search(
    text: Annotated[str, Argument(help="Free text to rank bookmarks by.")],
    bookmarks_file: Annotated[
        Path, Option("--bookmarks", "-b", help="JSON export of bookmarks.")
    ],
    query: Annotated[
        str, Option("--query", "-q", help="Boolean filter applied before ranking.")
    ] = "",
    limit: Annotated[int, Option("--limit", "-n", min=1)] = 10,
    threshold: Annotated[
        float | None, Option("--threshold", help="Minimum semantic similarity.")
    ] = None,
    data_dir: Annotated[
        str | None, Option("--data-dir", help="Directory for vectors.bin and models.")
    ] = None,
) -> None:
    """Hybrid search. Semantic ranking needs BOOKMARK_SEARCH_ENABLED=1."""
    bookmarks = load_bookmarks(bookmarks_file)
    try:
        config = SemanticSearchConfig.from_env()
    except ValidationError as exc:
        _fail(f"Invalid semantic search settings: {exc}")

    service = None
    if config.enabled:
        service = SemanticSearchService(config, resolve_data_dir(data_dir))
    engine = HybridSearchEngine(service)

    try:
        if service is not None:
            service.reconcile(bookmarks)
        hits = engine.search(
            bookmarks, query=query, semantic=text, threshold=threshold, limit=limit
        )
    except (QueryParseError, EmbeddingError, VectorStorageError) as exc:
        _fail(f"Search failed: {exc}")

    if hits and not hits[0].semantic_available:
        console.print("[dim]Semantic search is off; ranking by keywords only.[/]")
    table = Table(title=f"Results for {text!r}")
    table.add_column("#", justify="right")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Score", justify="right")
    table.add_column("Matched by")
    for position, hit in enumerate(hits, start=1):
        table.add_row(
            str(position),
            str(hit.bookmark.id),
            escape(hit.bookmark.title),
            f"{hit.score:.4f}",
            hit.matched_by,
        )
    console.print(table)
