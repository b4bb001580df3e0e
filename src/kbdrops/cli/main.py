"""kbdrops CLI entry point."""

from __future__ import annotations

import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from kbdrops import __version__
from kbdrops.cli.delete import delete_cmd
from kbdrops.cli.ingest import ingest_cmd
from kbdrops.cli.list_sources import list_cmd
from kbdrops.cli.query import query_cmd


def _print_version(value: bool) -> None:
    if not value:
        return
    typer.echo(f"kbdrops {__version__}")
    raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # LiteLLM is chatty at DEBUG
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)


app = typer.Typer(
    name="kb",
    help=(
        "kb: personal knowledge base.\n\n"
        "  kb ingest <url>     Fetch, chunk, embed and store a URL (or --text note).\n"
        "  kb query <question> Rank stored chunks against a question."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_print_version,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr."),
    ] = False,
) -> None:
    """kb: personal knowledge base."""
    _configure_logging(verbose)


app.command("ingest")(ingest_cmd)
app.command("list")(list_cmd)
app.command("delete")(delete_cmd)
app.command("query")(query_cmd)


if __name__ == "__main__":
    app()
