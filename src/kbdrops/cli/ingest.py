"""kb ingest: ingest a URL or a text note into the knowledge base.

Usage:
  kb ingest https://example.com/article
  kb ingest --text "A thought worth keeping." --title "Note"

Exit codes: 0 stored / pending / duplicate, 1 invalid or failed, 2 lock busy.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from kbdrops.cli.common import open_db, resolve_config
from kbdrops.cli.errors import (
    EXIT_BUSY,
    EXIT_ERROR,
    err_database,
    err_embedding_failed,
    err_empty_input,
    err_extraction,
    err_lock,
    err_lock_busy,
    err_ssrf_blocked,
)
from kbdrops.db.repository import Repository
from kbdrops.errors import EmbeddingError, ExtractionError, LockBusyError, LockError
from kbdrops.extract import Extractor, SsrfError
from kbdrops.ingest.chunker import SentenceChunker
from kbdrops.ingest.embedding import build_gateway
from kbdrops.ingest.lock import IngestLock
from kbdrops.ingest.pipeline import IngestOutcome, IngestPipeline, IngestStatus

console = Console()


def ingest_cmd(
    target: Annotated[
        list[str] | None,
        typer.Argument(help="URL to ingest (words are joined with spaces).", show_default=False),
    ] = None,
    text: Annotated[
        str | None,
        typer.Option("--text", "-t", help="Ingest this text as a note instead of a URL."),
    ] = None,
    title: Annotated[
        str | None,
        typer.Option("--title", help="Title for a --text note."),
    ] = None,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Knowledge base directory (default ~/.kb-drops)."),
    ] = None,
) -> None:
    """Ingest a URL (tweet, video, PDF, article) or a text note."""
    raw = " ".join(target or []).strip()
    if not raw and not (text and text.strip()):
        console.print(err_empty_input())
        raise typer.Exit(EXIT_ERROR)

    cfg = resolve_config(data_dir)
    conn = open_db(cfg.db_path)
    try:
        pipeline = IngestPipeline(
            repo=Repository(conn),
            gateway=build_gateway(cfg.embedding),
            extractor=Extractor(),
            lock=IngestLock(cfg.lock_path, stale_after=cfg.lock.stale_after),
            chunker=SentenceChunker(
                chunk_size=cfg.chunking.chunk_size,
                overlap=cfg.chunking.overlap,
                min_chunk=cfg.chunking.min_chunk,
            ),
            validation_cfg=cfg.validation,
        )

        label = raw if raw else "text note"
        console.print(f"[bold]→ Ingesting:[/] {escape(label)}")
        try:
            if text is not None and text.strip():
                outcome = pipeline.ingest_text(text, title=title)
            else:
                outcome = pipeline.ingest(raw)
        except LockBusyError:
            console.print(err_lock_busy(cfg.lock.stale_after))
            raise typer.Exit(EXIT_BUSY)
        except LockError as exc:
            console.print(err_lock(str(exc)))
            raise typer.Exit(EXIT_ERROR)
        except SsrfError:
            console.print(err_ssrf_blocked(raw))
            raise typer.Exit(EXIT_ERROR)
        except ExtractionError as exc:
            console.print(err_extraction(raw, str(exc)))
            raise typer.Exit(EXIT_ERROR)
        except EmbeddingError as exc:
            console.print(err_embedding_failed(str(exc)))
            raise typer.Exit(EXIT_ERROR)
        except sqlite3.Error as exc:
            console.print(err_database(str(exc)))
            raise typer.Exit(EXIT_ERROR)
    finally:
        conn.close()

    _print_outcome(outcome)
    if outcome.status is IngestStatus.INVALID:
        raise typer.Exit(EXIT_ERROR)


def _print_outcome(outcome: IngestOutcome) -> None:
    if outcome.status is IngestStatus.OK:
        console.print(f'\n[green]✓[/] Ingested: "{escape(outcome.title)}"')
        console.print(f"   ID:     {outcome.source_id}")
        console.print(f"   Type:   {outcome.source_type}")
        console.print(f"   Chunks: {outcome.chunks}")
        console.print(f"   Embed:  {outcome.provider}")
    elif outcome.status is IngestStatus.PENDING_TRANSCRIPT:
        console.print(f'\n[yellow]…[/] Stored without content: "{escape(outcome.title)}"')
        console.print(f"   ID:     {outcome.source_id}")
        console.print(f"   Type:   {outcome.source_type}")
        console.print("   [dim]No transcript available yet; the source is kept as pending.[/]")
    elif outcome.status in (IngestStatus.DUPLICATE_URL, IngestStatus.DUPLICATE_CONTENT):
        console.print(f"\n[yellow]⚠ Duplicate:[/] {escape(outcome.message)}")
    else:
        console.print(f"\n[red]✗ Rejected:[/] {escape(outcome.message)}")
