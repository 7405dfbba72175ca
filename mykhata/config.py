"""TOML configuration loader for mykhata."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]


@dataclass
class ClaudeOCRConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class GeminiOCRConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class OCRConfig:
    backend: str = "tesseract"
    language: str = "eng"
    psm: int = 6
    tesseract_cmd: str = ""
    claude: ClaudeOCRConfig = field(default_factory=ClaudeOCRConfig)
    gemini: GeminiOCRConfig = field(default_factory=GeminiOCRConfig)


@dataclass
class PreprocessConfig:
    max_dimension: int = 1200
    sharpen_sigma: float = 1.0
    gamma: float = 1.2
    jpeg_quality: int = 95


@dataclass
class CacheConfig:
    ocr_ttl: int = 1800
    user_ttl: int = 300
    receipt_ttl: int = 600


@dataclass
class PoolConfig:
    max_workers: int = 2
    memory_threshold_mb: int = 512
    cooldown_seconds: float = 1.0


@dataclass
class CategorizerConfig:
    confidence_threshold: float = 0.7
    history_limit: int = 100
    similar_limit: int = 10
    suggestion_limit: int = 5


@dataclass
class DatabaseConfig:
    path: str = "~/.config/mykhata/ledger.db"


@dataclass
class StorageConfig:
    enabled: bool = False
    credentials_path: str = "~/.config/mykhata/gdrive_credentials.json"
    token_path: str = "~/.config/mykhata/gdrive_token.json"
    folder_id: str = ""


@dataclass
class SchedulerConfig:
    purge_interval: int = 120
    profile_refresh_schedule: str = "0 3 * * *"


@dataclass
class AppConfig:
    ocr: OCRConfig = field(default_factory=OCRConfig)
    preprocess: PreprocessConfig = field(default_factory=PreprocessConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)
    categorizer: CategorizerConfig = field(default_factory=CategorizerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys can be overridden via environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    ocr = raw.get("ocr", {})
    pre = raw.get("preprocess", {})
    cch = raw.get("cache", {})
    pol = raw.get("pool", {})
    cat = raw.get("categorizer", {})
    dbs = raw.get("database", {})
    sto = raw.get("storage", {})
    sch = raw.get("scheduler", {})

    claude_cfg = ocr.get("claude", {})
    gemini_cfg = ocr.get("gemini", {})

    # Resolve API keys: config file → environment variable
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )

    return AppConfig(
        ocr=OCRConfig(
            backend=ocr.get("backend", "tesseract"),
            language=ocr.get("language", "eng"),
            psm=ocr.get("psm", 6),
            tesseract_cmd=ocr.get("tesseract_cmd", ""),
            claude=ClaudeOCRConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
            gemini=GeminiOCRConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
        ),
        preprocess=PreprocessConfig(
            max_dimension=pre.get("max_dimension", 1200),
            sharpen_sigma=pre.get("sharpen_sigma", 1.0),
            gamma=pre.get("gamma", 1.2),
            jpeg_quality=pre.get("jpeg_quality", 95),
        ),
        cache=CacheConfig(
            ocr_ttl=cch.get("ocr_ttl", 1800),
            user_ttl=cch.get("user_ttl", 300),
            receipt_ttl=cch.get("receipt_ttl", 600),
        ),
        pool=PoolConfig(
            max_workers=pol.get("max_workers", 2),
            memory_threshold_mb=pol.get("memory_threshold_mb", 512),
            cooldown_seconds=pol.get("cooldown_seconds", 1.0),
        ),
        categorizer=CategorizerConfig(
            confidence_threshold=cat.get("confidence_threshold", 0.7),
            history_limit=cat.get("history_limit", 100),
            similar_limit=cat.get("similar_limit", 10),
            suggestion_limit=cat.get("suggestion_limit", 5),
        ),
        database=DatabaseConfig(
            path=dbs.get("path", "~/.config/mykhata/ledger.db"),
        ),
        storage=StorageConfig(
            enabled=sto.get("enabled", False),
            credentials_path=sto.get(
                "credentials_path",
                "~/.config/mykhata/gdrive_credentials.json",
            ),
            token_path=sto.get(
                "token_path",
                "~/.config/mykhata/gdrive_token.json",
            ),
            folder_id=sto.get("folder_id", ""),
        ),
        scheduler=SchedulerConfig(
            purge_interval=sch.get("purge_interval", 120),
            profile_refresh_schedule=sch.get(
                "profile_refresh_schedule", "0 3 * * *"
            ),
        ),
    )
