import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .assistant import NoteAssistant
from .config import Settings
from .embeddings import EmbeddingProvider
from .errors import SemanticNotesError
from .generation import TextGenerator
from .indexing import BatchReprocessor, NoteEmbedder, build_rate_limiter
from .search import SemanticSearchEngine
from .storage import DuckDBNoteStore, NoteRecord

app = Typer(help="Semantic search over rich-text notes.")
console = Console()

OwnerOption = Annotated[
    str, Option("--owner", "-o", help="Owner whose notes are searched or updated.")
]
DbPathOption = Annotated[
    str | None, Option("--db-path", help="DuckDB file holding the notes.")
]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _build_provider(settings: Settings) -> EmbeddingProvider:
    return EmbeddingProvider(
        model=settings.embedding_model,
        dim=settings.embedding_dim,
        max_input_chars=settings.max_input_chars,
    )


def _build_generator(settings: Settings) -> TextGenerator:
    return TextGenerator(
        model=settings.generation_model,
        min_summary_chars=settings.min_summary_chars,
        min_title_chars=settings.min_title_chars,
    )


def _open_store(settings: Settings) -> DuckDBNoteStore:
    return DuckDBNoteStore(settings.resolved_db_path())


def _fail(message: str) -> None:
    console.print(Panel(message, title="Error", border_style="bold red"))
    raise Exit(code=1)


@app.callback()
def main(
    log_level: Annotated[
        str | None, Option("--log-level", help="Logging level (default INFO).")
    ] = None,
) -> None:
    configure_logging(log_level or Settings.from_env().log_level)


@app.command()
def search(
    query: Annotated[str, Argument(help="Free-text search query.")],
    owner: OwnerOption,
    threshold: Annotated[
        float | None, Option("--threshold", "-t", help="Minimum similarity.")
    ] = None,
    limit: Annotated[int | None, Option("--limit", "-n", help="Maximum results.")] = None,
    db_path: DbPathOption = None,
) -> None:
    """Rank an owner's notes by semantic similarity to QUERY."""
    settings = Settings.from_env(db_path=db_path)
    store = _open_store(settings)
    try:
        engine = SemanticSearchEngine(_build_provider(settings), storage=store)
        response = engine.search_notes(
            owner,
            query,
            threshold=settings.search_threshold if threshold is None else threshold,
            limit=settings.search_limit if limit is None else limit,
        )
    except (SemanticNotesError, ValueError) as exc:
        _fail(str(exc))
    finally:
        store.close()

    if not response.results:
        console.print(Panel(response.message or "No matching notes.", border_style="yellow"))
        return

    table = Table(title=f"{response.message} (of {response.total_found} above threshold)")
    table.add_column("Similarity", justify="right")
    table.add_column("Note")
    table.add_column("Title")
    for result in response.results:
        table.add_row(f"{result.similarity:.3f}", result.id, result.title or "")
    console.print(table)


@app.command()
def reprocess(
    owner: OwnerOption,
    full_rebuild: Annotated[
        bool, Option("--full-rebuild", help="Re-embed every note, not just missing ones.")
    ] = False,
    chunk_size: Annotated[
        int | None, Option("--chunk-size", help="Notes embedded concurrently.")
    ] = None,
    delay: Annotated[
        float | None, Option("--delay", help="Seconds to wait between chunks.")
    ] = None,
    rate_limiter: Annotated[
        str | None,
        Option(
            "--rate-limiter",
            help="'fixed' waits the full delay; 'token-bucket' counts chunk run time.",
        ),
    ] = None,
    db_path: DbPathOption = None,
) -> None:
    """Generate embeddings for an owner's notes."""
    try:
        settings = Settings.from_env(
            db_path=db_path,
            batch_chunk_size=chunk_size,
            batch_delay_seconds=delay,
            batch_rate_limiter=rate_limiter,
        )
    except ValidationError as exc:
        _fail(f"Invalid option: {exc}")
    store = _open_store(settings)
    try:
        reprocessor = BatchReprocessor(
            store,
            _build_provider(settings),
            chunk_size=settings.batch_chunk_size,
            rate_limiter=build_rate_limiter(
                settings.batch_rate_limiter, settings.batch_delay_seconds
            ),
            min_content_chars=settings.min_content_chars,
        )
        with console.status("Generating embeddings..."):
            summary = reprocessor.run(owner, full_rebuild=full_rebuild)
    except ValueError as exc:
        _fail(str(exc))
    finally:
        store.close()

    lines = [summary.message]
    lines.extend(f"- {detail}" for detail in summary.error_details)
    style = "bold green" if summary.errors == 0 else "bold yellow"
    console.print(Panel("\n".join(lines), title="Batch reprocessing", border_style=style))


@app.command()
def embed(
    note_id: Annotated[str, Argument(help="Note to embed.")],
    owner: OwnerOption,
    db_path: DbPathOption = None,
) -> None:
    """Embed a single note and save the vector."""
    settings = Settings.from_env(db_path=db_path)
    store = _open_store(settings)
    try:
        embedder = NoteEmbedder(
            store,
            _build_provider(settings),
            min_content_chars=settings.min_content_chars,
        )
        result = embedder.embed_note(owner, note_id)
    except (SemanticNotesError, ValueError) as exc:
        _fail(str(exc))
    finally:
        store.close()

    console.print(
        Panel(
            f"Embedded note `{note_id}`: {result.dimensions} dimensions, "
            f"{result.tokens} tokens.",
            border_style="bold green",
        )
    )


@app.command()
def summarize(
    note_id: Annotated[str, Argument(help="Note to summarize.")],
    owner: OwnerOption,
    db_path: DbPathOption = None,
) -> None:
    """Summarize a note and save the summary on it."""
    settings = Settings.from_env(db_path=db_path)
    store = _open_store(settings)
    try:
        assistant = NoteAssistant(store, _build_generator(settings))
        outcome = assistant.summarize(owner, note_id=note_id)
    except (SemanticNotesError, ValueError) as exc:
        _fail(str(exc))
    finally:
        store.close()

    lines = [outcome.result.summary, ""]
    lines.extend(f"- {point}" for point in outcome.result.key_points)
    lines.append(f"\nConfidence: {outcome.result.confidence:.2f}")
    if not outcome.saved:
        lines.append("[yellow]Summary could not be saved to the note.[/]")
    console.print(Panel("\n".join(lines), title=f"Summary of {note_id}", border_style="bold green"))


@app.command()
def title(
    note_id: Annotated[str, Argument(help="Note to suggest titles for.")],
    owner: OwnerOption,
    apply: Annotated[
        bool, Option("--apply", help="Save the recommended title on the note.")
    ] = False,
    db_path: DbPathOption = None,
) -> None:
    """Suggest titles for a note."""
    settings = Settings.from_env(db_path=db_path)
    store = _open_store(settings)
    try:
        assistant = NoteAssistant(store, _build_generator(settings))
        outcome = assistant.suggest_titles(owner, note_id=note_id, apply=apply)
    except (SemanticNotesError, ValueError) as exc:
        _fail(str(exc))
    finally:
        store.close()

    table = Table(title=f"Title suggestions for {note_id}")
    table.add_column("Suggestion")
    table.add_column("Recommended", justify="center")
    for suggestion in outcome.result.suggestions:
        marker = "*" if suggestion == outcome.result.recommended else ""
        table.add_row(suggestion, marker)
    console.print(table)
    if outcome.applied:
        console.print(f"Applied title: [bold]{outcome.applied}[/]")


@app.command()
def stats(owner: OwnerOption, db_path: DbPathOption = None) -> None:
    """Show how many notes have embeddings."""
    settings = Settings.from_env(db_path=db_path)
    store = _open_store(settings)
    try:
        result = store.embedding_stats(owner)
    finally:
        store.close()

    table = Table(title=f"Embedding coverage for {owner}")
    table.add_column("Total notes", justify="right")
    table.add_column("With embeddings", justify="right")
    table.add_column("Without embeddings", justify="right")
    table.add_column("Coverage", justify="right")
    table.add_row(
        str(result.total_notes),
        str(result.notes_with_embeddings),
        str(result.notes_without_embeddings),
        result.coverage,
    )
    console.print(table)


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@app.command("import-notes")
def import_notes(
    path: Annotated[Path, Argument(help="JSON file holding a list of notes.")],
    owner: OwnerOption,
    db_path: DbPathOption = None,
) -> None:
    """Load notes from a JSON export into the note store."""
    try:
        raw_notes = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        _fail(f"Could not read {path}: {exc}")
    if not isinstance(raw_notes, list):
        _fail("Expected a JSON list of notes")

    settings = Settings.from_env(db_path=db_path)
    store = _open_store(settings)
    imported = 0
    try:
        for raw in raw_notes:
            if not isinstance(raw, dict) or not raw.get("id"):
                continue
            store.upsert_note(
                NoteRecord(
                    id=str(raw["id"]),
                    owner_id=owner,
                    title=raw.get("title"),
                    summary=raw.get("summary"),
                    content=raw.get("content"),
                    embedding=raw.get("embedding"),
                    created_at=_parse_timestamp(raw.get("createdAt") or raw.get("created_at")),
                    updated_at=_parse_timestamp(raw.get("updatedAt") or raw.get("updated_at")),
                )
            )
            imported += 1
    except ValueError as exc:
        _fail(f"Invalid note in {path}: {exc}")
    finally:
        store.close()

    console.print(f"Imported {imported} notes for [bold]{owner}[/].")


@app.command()
def serve(
    host: Annotated[str, Option("--host", help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, Option("--port", help="Port to listen on.")] = 8000,
    db_path: DbPathOption = None,
) -> None:
    """Run the HTTP API."""
    from .server import run_server

    run_server(host=host, port=port, settings=Settings.from_env(db_path=db_path))
