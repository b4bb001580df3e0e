"""Layered configuration for kbdrops.

Later layers win:

  defaults < ~/.kbdrops/config.yaml < ./kbdrops.yaml < KB_* env vars < CLI flags

The global file is for tuning only. Provider credentials (GEMINI_API_KEY,
OPENAI_API_KEY, ...) come from the environment and are refused in it.
"""

from __future__ import annotations

import os
import re
import warnings
from collections.abc import Iterator
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, TypeVar

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".kbdrops"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "kbdrops.yaml"
_DEFAULT_DATA_DIR: Path = Path.home() / ".kb-drops"

DB_FILENAME = "kb.db"
LOCK_FILENAME = "kb.lock"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s). Does NOT match max_input_chars etc.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["data_dir", "embedding", "chunking", "validation", "retrieval", "lock"]
)

_S = TypeVar("_S")


class ConfigError(ValueError):
    """A config layer holds a forbidden, mistyped or out-of-range value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding gateway configuration (kbdrops.yaml: embedding:).

    Attributes:
        primary: LiteLLM model string tried first for every batch.
        secondary: LiteLLM model string used when the primary fails.
        batch_size: Texts per provider call.
        batch_delay: Seconds slept between successive batch calls.
        max_input_chars: Per-text truncation applied before any provider call.
        cache_size: Capacity of the in-process LRU embedding cache.
        timeout: Per-request timeout in seconds.
        retry_attempts: Attempts per provider before falling back.
    """

    primary: str = "gemini/text-embedding-004"
    secondary: str = "openai/text-embedding-3-small"
    batch_size: int = 10
    batch_delay: float = 0.2
    max_input_chars: int = 8_000
    cache_size: int = 1_000
    timeout: float = 30.0
    retry_attempts: int = 3


@dataclass
class ChunkingCfg:
    """Sentence chunker sizes in characters (kbdrops.yaml: chunking:)."""

    chunk_size: int = 800
    overlap: int = 200
    min_chunk: int = 100


@dataclass
class ValidationCfg:
    """Content validator heuristics (kbdrops.yaml: validation:).

    The defaults were tuned by hand against real extractions; they are
    heuristics, not invariants.
    """

    min_chars: int = 20
    min_length: int = 500
    min_video_transcript_length: int = 200
    prose_ratio: float = 0.15
    long_paragraph: int = 80
    error_signal_hits: int = 2
    max_content_chars: int = 200_000


@dataclass
class RetrievalCfg:
    """Query-time configuration (kbdrops.yaml: retrieval:)."""

    top_k: int = 10
    excerpt_chars: int = 2_500


@dataclass
class LockCfg:
    """Ingestion lock configuration (kbdrops.yaml: lock:)."""

    stale_after: float = 15 * 60.0


@dataclass
class KbConfig:
    """Everything a kb command needs; see load_config()."""

    data_dir: Path = field(default_factory=lambda: _DEFAULT_DATA_DIR)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    validation: ValidationCfg = field(default_factory=ValidationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    lock: LockCfg = field(default_factory=LockCfg)

    @property
    def db_path(self) -> Path:
        return self.data_dir / DB_FILENAME

    @property
    def lock_path(self) -> Path:
        return self.data_dir / LOCK_FILENAME


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _key_paths(data: dict[str, Any], prefix: str = "") -> Iterator[tuple[str, str]]:
    """Yield (dotted path, key) for every key in a nested mapping."""
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        yield dotted, str(key)
        if isinstance(value, dict):
            yield from _key_paths(value, dotted)


def _reject_secrets(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* holds anything that looks like a credential."""
    for dotted, key in _key_paths(data):
        if _API_KEY_RE.search(key):
            env_name = key.upper().replace("-", "_")
            raise ConfigError(
                f"'{dotted}' in {source} looks like a secret.\n"
                f"  Credentials are read from environment variables only.\n"
                f"  Delete the key and run:  export {env_name}=<value>"
            )


def _check_ranges(cfg: KbConfig) -> None:
    """Reject values that would make the pipeline misbehave silently."""
    for name in ("batch_size", "retry_attempts", "cache_size"):
        value = getattr(cfg.embedding, name)
        if value < 1:
            raise ConfigError(f"embedding.{name} must be >= 1, got {value}")
    if not 0 <= cfg.chunking.overlap < cfg.chunking.chunk_size:
        raise ConfigError("chunking.overlap must be in [0, chunking.chunk_size)")
    if not 0.0 <= cfg.validation.prose_ratio <= 1.0:
        raise ConfigError("validation.prose_ratio must be in [0.0, 1.0]")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _read_layer(path: Path, *, forbid_secrets: bool) -> dict[str, Any]:
    """Parse one YAML layer; a missing file is an empty layer."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    if forbid_secrets:
        _reject_secrets(data, path)
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(f"Unknown config key '{key}' in {path} (ignored)", UserWarning, stacklevel=3)
    return data


def _merge(layers: list[dict[str, Any]]) -> dict[str, Any]:
    """Merge *layers* left to right; nested mappings merge key by key."""
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = _merge([merged[key], value])
            else:
                merged[key] = value
    return merged


def _section(cls: type[_S], raw: Any, name: str) -> _S:
    """Build dataclass *cls* from the mapping *raw*, coercing to each default's type."""
    defaults = cls()
    if raw is None:
        return defaults
    if not isinstance(raw, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    values = {}
    for f in fields(cls):
        if f.name not in raw:
            continue
        kind = type(getattr(defaults, f.name))
        try:
            values[f.name] = kind(raw[f.name])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{name}.{f.name}: expected {kind.__name__}, got {raw[f.name]!r}") from exc
    return replace(defaults, **values)


def _apply_env_overrides(cfg: KbConfig) -> None:
    """Apply KB_* environment variable overrides in place."""
    if data_dir := os.environ.get("KB_DATA_DIR"):
        cfg.data_dir = Path(data_dir).expanduser()
    if model := os.environ.get("KB_PRIMARY_EMBEDDING_MODEL"):
        cfg.embedding.primary = model
    if model := os.environ.get("KB_SECONDARY_EMBEDDING_MODEL"):
        cfg.embedding.secondary = model


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> KbConfig:
    """Load and return a merged *KbConfig*.

    Layers apply global, then project, then environment. ``--data-dir`` and
    other CLI flags are applied by the caller on the returned object.

    Args:
        project_dir: Directory holding *kbdrops.yaml*. Defaults to CWD.
        global_config_path: Replaces ~/.kbdrops/config.yaml (tests use this).

    Raises:
        ConfigError: A layer holds a secret, a value has the wrong type, or a
            value is out of range.
    """
    global_path = global_config_path or _GLOBAL_CONFIG_PATH
    project_path = (project_dir or Path.cwd()) / _PROJECT_CONFIG_NAME
    data = _merge([
        _read_layer(global_path, forbid_secrets=True),
        _read_layer(project_path, forbid_secrets=False),
    ])

    cfg = KbConfig(
        embedding=_section(EmbeddingCfg, data.get("embedding"), "embedding"),
        chunking=_section(ChunkingCfg, data.get("chunking"), "chunking"),
        validation=_section(ValidationCfg, data.get("validation"), "validation"),
        retrieval=_section(RetrievalCfg, data.get("retrieval"), "retrieval"),
        lock=_section(LockCfg, data.get("lock"), "lock"),
    )
    if data.get("data_dir"):
        cfg.data_dir = Path(str(data["data_dir"])).expanduser()
    _apply_env_overrides(cfg)
    _check_ranges(cfg)
    return cfg
