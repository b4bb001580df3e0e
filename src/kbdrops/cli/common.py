"""Shared CLI plumbing: config resolution and database opening."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
import yaml
from rich.console import Console

from kbdrops.cli.errors import EXIT_ERROR, err_config
from kbdrops.config import ConfigError, KbConfig, load_config
from kbdrops.db.connection import Database

console = Console()


def resolve_config(data_dir: Path | None) -> KbConfig:
    """Load config; ``--data-dir`` overrides every other layer."""
    try:
        cfg = load_config()
    except (ConfigError, yaml.YAMLError, OSError) as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(EXIT_ERROR) from exc
    if data_dir is not None:
        cfg.data_dir = data_dir.expanduser()
    return cfg


def open_db(db_path: Path) -> sqlite3.Connection:
    return Database(db_path).open()
