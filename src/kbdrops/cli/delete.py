"""kb delete: remove a source and its chunks by ID or unique ID prefix.

Usage:
  kb delete 3f2a9c1e
  kb delete 3f2a9c1e --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from kbdrops.cli.common import open_db, resolve_config
from kbdrops.cli.errors import (
    EXIT_ERROR,
    err_ambiguous_prefix,
    err_no_db,
    err_source_not_found,
)
from kbdrops.db.repository import Repository

console = Console()


def delete_cmd(
    source_id: Annotated[str, typer.Argument(help="Source ID or unique ID prefix.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Knowledge base directory (default ~/.kb-drops)."),
    ] = None,
) -> None:
    """Delete a source and all of its chunks."""
    cfg = resolve_config(data_dir)
    if not cfg.db_path.exists():
        console.print(err_no_db(str(cfg.db_path)))
        raise typer.Exit(EXIT_ERROR)

    conn = open_db(cfg.db_path)
    repo = Repository(conn)
    try:
        matches = repo.find_sources_by_prefix(source_id)
        if not matches:
            console.print(err_source_not_found(source_id))
            raise typer.Exit(EXIT_ERROR)
        if len(matches) > 1:
            console.print(err_ambiguous_prefix(source_id, [m.id for m in matches]))
            raise typer.Exit(EXIT_ERROR)

        source = matches[0]
        chunk_count = repo.count_chunks_by_source(source.id)
        console.print(f"\nDelete source: [bold]{escape(source.title or '(untitled)')}[/]")
        console.print(f"  ID: {escape(source.id)}  |  URL: {escape(source.url or '(no url)')}  |  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm deletion?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        repo.delete_source(source.id)
        console.print(f'\n[green]✓[/] Deleted: "{escape(source.title)}" ({escape(source.id)})')
    finally:
        conn.close()
