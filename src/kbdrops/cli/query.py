"""kb query: rank stored chunks against a question.

Usage:
  kb query "how does raft elect a leader"
  kb query --top-k 3 "sqlite wal mode"
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from kbdrops.cli.common import open_db, resolve_config
from kbdrops.cli.errors import EXIT_ERROR, err_embedding_failed, err_no_db
from kbdrops.db.repository import Repository
from kbdrops.errors import EmbeddingError
from kbdrops.ingest.embedding import build_gateway
from kbdrops.rag.retriever import SearchResult, retrieve

console = Console()

# Metadata keys worth showing next to a hit.
_SHOWN_METADATA = ("author", "has_transcript", "transcript_source")


def query_cmd(
    question: Annotated[list[str], typer.Argument(help="Question to search for.")],
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Maximum number of sources to return."),
    ] = None,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Knowledge base directory (default ~/.kb-drops)."),
    ] = None,
) -> None:
    """Search the knowledge base."""
    text = " ".join(question).strip()
    cfg = resolve_config(data_dir)
    if not cfg.db_path.exists():
        console.print(err_no_db(str(cfg.db_path)))
        raise typer.Exit(EXIT_ERROR)

    conn = open_db(cfg.db_path)
    try:
        results = retrieve(
            text,
            Repository(conn),
            build_gateway(cfg.embedding),
            top_k=top_k or cfg.retrieval.top_k,
            excerpt_chars=cfg.retrieval.excerpt_chars,
        )
    except EmbeddingError as exc:
        console.print(err_embedding_failed(str(exc)))
        raise typer.Exit(EXIT_ERROR)
    finally:
        conn.close()

    if not results:
        console.print("No results.")
        return

    for rank, result in enumerate(results, start=1):
        _print_result(rank, result)


def _print_result(rank: int, result: SearchResult) -> None:
    console.print(
        f"\n[bold]{rank}. {escape(result.title or '(untitled)')}[/]  "
        f"[dim]\\[{result.source_type}] score {result.score:.3f}[/]"
    )
    console.print(f"   [cyan]{escape(result.url or '(no url)')}[/]  [dim]{result.source_id[:8]}#{result.chunk_index}[/]")
    extras = [f"{k}={result.metadata[k]}" for k in _SHOWN_METADATA if k in result.metadata]
    if extras:
        console.print(f"   [dim]{escape(', '.join(extras))}[/]")
    console.print(f"   {escape(result.excerpt)}", highlight=False)
