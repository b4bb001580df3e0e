"""Tests for kbdrops.config: layered YAML loading."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest

from kbdrops.config import ConfigError, KbConfig, load_config


@pytest.fixture
def no_global(tmp_path) -> Path:
    return tmp_path / "absent" / "config.yaml"


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_defaults_without_any_file(tmp_path, no_global):
    cfg = load_config(tmp_path, global_config_path=no_global)
    assert isinstance(cfg, KbConfig)
    assert cfg.data_dir == Path.home() / ".kb-drops"
    assert cfg.embedding.primary == "gemini/text-embedding-004"
    assert cfg.embedding.secondary == "openai/text-embedding-3-small"
    assert cfg.embedding.batch_size == 10
    assert cfg.chunking.chunk_size == 800
    assert cfg.chunking.overlap == 200
    assert cfg.validation.min_length == 500
    assert cfg.retrieval.top_k == 10
    assert cfg.lock.stale_after == 900.0


def test_db_and_lock_paths_live_in_data_dir(tmp_path):
    cfg = KbConfig(data_dir=tmp_path)
    assert cfg.db_path == tmp_path / "kb.db"
    assert cfg.lock_path == tmp_path / "kb.lock"


def test_empty_file_is_defaults(tmp_path, no_global):
    _write(tmp_path / "kbdrops.yaml", "")
    assert load_config(tmp_path, global_config_path=no_global).chunking.chunk_size == 800


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_project_overrides_global(tmp_path):
    global_path = _write(
        tmp_path / "home" / "config.yaml",
        "embedding:\n  batch_size: 5\n  batch_delay: 1.5\nchunking:\n  chunk_size: 600\n",
    )
    project = tmp_path / "project"
    _write(project / "kbdrops.yaml", "embedding:\n  batch_size: 20\n")

    cfg = load_config(project, global_config_path=global_path)
    assert cfg.embedding.batch_size == 20
    assert cfg.embedding.batch_delay == 1.5
    assert cfg.chunking.chunk_size == 600


def test_data_dir_expands_user(tmp_path, no_global):
    _write(tmp_path / "kbdrops.yaml", "data_dir: ~/my-kb\n")
    cfg = load_config(tmp_path, global_config_path=no_global)
    assert cfg.data_dir == Path.home() / "my-kb"


def test_env_overrides_files(tmp_path, no_global, monkeypatch):
    _write(tmp_path / "kbdrops.yaml", "data_dir: /from/file\nembedding:\n  primary: gemini/x\n")
    monkeypatch.setenv("KB_DATA_DIR", str(tmp_path / "env"))
    monkeypatch.setenv("KB_PRIMARY_EMBEDDING_MODEL", "openai/text-embedding-3-large")
    monkeypatch.setenv("KB_SECONDARY_EMBEDDING_MODEL", "ollama/nomic-embed-text")

    cfg = load_config(tmp_path, global_config_path=no_global)
    assert cfg.data_dir == tmp_path / "env"
    assert cfg.embedding.primary == "openai/text-embedding-3-large"
    assert cfg.embedding.secondary == "ollama/nomic-embed-text"


# ---------------------------------------------------------------------------
# Rejections and warnings
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["api_key", "gemini_api_key", "token", "client_secret", "password"])
def test_global_config_rejects_secrets(tmp_path, key):
    global_path = _write(tmp_path / "config.yaml", f"embedding:\n  {key}: abc\n")
    with pytest.raises(ConfigError, match="environment variables"):
        load_config(tmp_path / "project", global_config_path=global_path)


def test_max_input_chars_is_not_a_secret(tmp_path):
    global_path = _write(tmp_path / "config.yaml", "embedding:\n  max_input_chars: 4000\n")
    cfg = load_config(tmp_path / "project", global_config_path=global_path)
    assert cfg.embedding.max_input_chars == 4000


def test_unknown_top_level_key_warns(tmp_path, no_global):
    _write(tmp_path / "kbdrops.yaml", "embeddings:\n  batch_size: 3\n")
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        cfg = load_config(tmp_path, global_config_path=no_global)
    assert any("embeddings" in str(w.message) for w in caught)
    assert cfg.embedding.batch_size == 10


@pytest.mark.parametrize(
    "text",
    [
        "embedding:\n  batch_size: 0\n",
        "embedding:\n  retry_attempts: 0\n",
        "embedding:\n  cache_size: 0\n",
        "chunking:\n  chunk_size: 200\n  overlap: 200\n",
        "chunking:\n  overlap: -1\n",
        "validation:\n  prose_ratio: 1.5\n",
    ],
)
def test_out_of_range_values_rejected(tmp_path, no_global, text):
    _write(tmp_path / "kbdrops.yaml", text)
    with pytest.raises(ConfigError):
        load_config(tmp_path, global_config_path=no_global)


def test_mistyped_value_rejected(tmp_path, no_global):
    _write(tmp_path / "kbdrops.yaml", "retrieval:\n  top_k: lots\n")
    with pytest.raises(ConfigError, match="retrieval.top_k"):
        load_config(tmp_path, global_config_path=no_global)


def test_non_mapping_file_rejected(tmp_path, no_global):
    _write(tmp_path / "kbdrops.yaml", "- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path, global_config_path=no_global)


def test_numeric_strings_are_coerced(tmp_path, no_global):
    _write(tmp_path / "kbdrops.yaml", "lock:\n  stale_after: '60'\nembedding:\n  timeout: 5\n")
    cfg = load_config(tmp_path, global_config_path=no_global)
    assert cfg.lock.stale_after == 60.0
    assert cfg.embedding.timeout == 5.0
