"""kb list: show every ingested source, newest first."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from kbdrops.cli.common import open_db, resolve_config
from kbdrops.cli.errors import EXIT_ERROR, err_no_db
from kbdrops.db.repository import Repository

console = Console()

_SHORT_ID = 8


def list_cmd(
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Knowledge base directory (default ~/.kb-drops)."),
    ] = None,
) -> None:
    """List ingested sources with chunk counts."""
    cfg = resolve_config(data_dir)
    if not cfg.db_path.exists():
        console.print(err_no_db(str(cfg.db_path)))
        raise typer.Exit(EXIT_ERROR)

    conn = open_db(cfg.db_path)
    try:
        sources = Repository(conn).list_sources()
    finally:
        conn.close()

    if not sources:
        console.print("No sources ingested yet.")
        return

    console.print(f"{len(sources)} source(s):\n")
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("URL", style="dim", overflow="fold")
    table.add_column("Chunks", justify="right")
    table.add_column("Created", style="dim", no_wrap=True)
    for s in sources:
        table.add_row(
            escape(s.id[:_SHORT_ID]),
            escape(s.source_type),
            escape(s.title or "(untitled)"),
            escape(s.url or "(no url)"),
            str(s.chunk_count or 0),
            s.created_at or "",
        )
    console.print(table)
