"""Tests for mykhata config loading."""

import os
import tempfile
from pathlib import Path
from unittest.mock import patch

from mykhata.config import AppConfig, OCRConfig, load_config


def test_load_config_defaults():
    """Loading with no path returns all defaults."""
    config = load_config()
    assert isinstance(config, AppConfig)
    assert config.ocr.backend == "tesseract"
    assert config.ocr.language == "eng"
    assert config.ocr.psm == 6
    assert config.preprocess.max_dimension == 1200
    assert config.preprocess.gamma == 1.2
    assert config.preprocess.jpeg_quality == 95
    assert config.cache.ocr_ttl == 1800
    assert config.cache.user_ttl == 300
    assert config.cache.receipt_ttl == 600
    assert config.pool.max_workers == 2
    assert config.pool.memory_threshold_mb == 512
    assert config.pool.cooldown_seconds == 1.0
    assert config.categorizer.confidence_threshold == 0.7
    assert config.categorizer.history_limit == 100
    assert config.storage.enabled is False
    assert config.scheduler.profile_refresh_schedule == "0 3 * * *"


def test_load_config_nonexistent_file():
    """Loading a nonexistent file returns defaults."""
    config = load_config("/nonexistent/path.toml")
    assert config.ocr.backend == "tesseract"


def test_load_config_from_toml():
    """Loading a valid TOML file populates config."""
    toml_content = b"""\
[ocr]
backend = "claude"
psm = 4

[ocr.claude]
api_key = "file-key"
model = "claude-test"

[pool]
max_workers = 4
memory_threshold_mb = 1024

[cache]
ocr_ttl = 60

[categorizer]
confidence_threshold = 0.5

[database]
path = "/tmp/ledger.db"

[storage]
enabled = true
folder_id = "folder123"

[scheduler]
purge_interval = 30
profile_refresh_schedule = ""
"""
    with tempfile.NamedTemporaryFile(suffix=".toml", delete=False) as f:
        f.write(toml_content)
        f.flush()
        path = f.name

    try:
        config = load_config(path)
        assert config.ocr.backend == "claude"
        assert config.ocr.psm == 4
        assert config.ocr.claude.api_key == "file-key"
        assert config.ocr.claude.model == "claude-test"
        assert config.pool.max_workers == 4
        assert config.pool.memory_threshold_mb == 1024
        assert config.cache.ocr_ttl == 60
        # unspecified keys keep their defaults
        assert config.cache.user_ttl == 300
        assert config.categorizer.confidence_threshold == 0.5
        assert config.database.path == "/tmp/ledger.db"
        assert config.storage.enabled is True
        assert config.storage.folder_id == "folder123"
        assert config.scheduler.purge_interval == 30
        assert config.scheduler.profile_refresh_schedule == ""
    finally:
        os.unlink(path)


def test_api_keys_from_environment():
    """API keys fall back to environment variables."""
    env = {"ANTHROPIC_API_KEY": "env-claude", "GEMINI_API_KEY": "env-gemini"}
    with patch.dict(os.environ, env):
        config = load_config()
    assert config.ocr.claude.api_key == "env-claude"
    assert config.ocr.gemini.api_key == "env-gemini"


def test_config_file_key_wins_over_environment(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('[ocr.gemini]\napi_key = "file-key"\n')
    with patch.dict(os.environ, {"GEMINI_API_KEY": "env-key"}):
        config = load_config(path)
    assert config.ocr.gemini.api_key == "file-key"


def test_ocr_config_dataclass():
    cfg = OCRConfig(backend="gemini")
    assert cfg.backend == "gemini"
    assert cfg.claude.api_key == ""
    assert cfg.gemini.model


def test_load_config_accepts_path_object(tmp_path):
    path = Path(tmp_path) / "c.toml"
    path.write_text("[preprocess]\nmax_dimension = 800\n")
    assert load_config(path).preprocess.max_dimension == 800
