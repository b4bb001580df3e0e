"""kbdrops rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from kbdrops.cli.errors import err_lock_busy
    console.print(err_lock_busy(cfg.lock.stale_after))
    raise typer.Exit(2)
"""

from __future__ import annotations

from rich.markup import escape

# Exit codes
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BUSY = 2


def err_no_db(db_path: str) -> str:
    """No knowledge base database at *db_path*."""
    return (
        f"[red]Error:[/] No knowledge base found at '{escape(db_path)}'.\n"
        "  Run:  kb ingest <url>   (or pass --data-dir to point at an existing one)"
    )


def err_lock_busy(stale_after: float) -> str:
    """Another ingestion holds the lock; it is reclaimed after *stale_after* seconds."""
    return (
        "[red]Error:[/] Another ingestion is running. Try again later.\n"
        f"  If no ingestion is running, the lock clears itself after {_duration(stale_after)}."
    )


def _duration(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute" + ("" if minutes == 1 else "s")
    return f"{seconds:g} seconds"


def err_lock(detail: str) -> str:
    """The lock file could not be created or removed."""
    return (
        f"[red]Error:[/] Cannot lock the data directory: {escape(detail)}\n"
        "  Check that the --data-dir directory exists and is writable."
    )


def err_ssrf_blocked(url: str) -> str:
    """URL resolves to a private/reserved address."""
    return (
        f"[red]Error:[/] URL resolves to private address (SSRF protection): '{escape(url)}'\n"
        "  Use a publicly reachable URL."
    )


def err_extraction(url: str, detail: str) -> str:
    """No extraction strategy produced content for *url*."""
    return (
        f"[red]Error:[/] Could not extract content from '{escape(url)}'.\n"
        f"  {escape(detail)}\n"
        "  Check the URL in a browser, or save the text and run:  kb ingest --text \"...\""
    )


def err_embedding_failed(detail: str) -> str:
    """Every embedding provider failed."""
    return (
        f"[red]Error:[/] {escape(detail)}\n"
        "  Check your API keys:  export GEMINI_API_KEY=...  and/or  export OPENAI_API_KEY=sk-...\n"
        "  Nothing was stored; re-run the command once a provider is reachable."
    )


def err_database(detail: str) -> str:
    """SQLite failure during read or commit."""
    return (
        f"[red]Error:[/] Database error: {escape(detail)}\n"
        "  Nothing was stored. Check disk space and permissions of the data directory."
    )


def err_config(detail: str) -> str:
    """Invalid configuration file or value."""
    return f"[red]Error:[/] Invalid configuration.\n  {escape(detail)}"


def err_source_not_found(prefix: str) -> str:
    """No source id starts with *prefix*."""
    return (
        f"[red]Error:[/] Source not found: '{escape(prefix)}'\n"
        "  Run:  kb list   to see source IDs."
    )


def err_ambiguous_prefix(prefix: str, matches: list[str]) -> str:
    """More than one source id starts with *prefix*."""
    listing = "\n".join(f"    {escape(m)}" for m in matches[:10])
    more = f"\n    … and {len(matches) - 10} more" if len(matches) > 10 else ""
    return (
        f"[red]Error:[/] '{escape(prefix)}' matches {len(matches)} sources:\n"
        f"{listing}{more}\n"
        "  Use a longer ID prefix."
    )


def err_empty_input() -> str:
    """Neither a URL nor --text was given."""
    return (
        "[red]Error:[/] Nothing to ingest.\n"
        "  Run:  kb ingest <url>   or   kb ingest --text \"note text\""
    )
