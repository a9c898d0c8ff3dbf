"""Relay application configuration.

Loads settings from a single YAML file:
  * relay.settings.yaml: server, logging, storage and session-token settings

The path defaults to ``relay.settings.yaml`` in the working directory and can
be overridden with the ``RELAY_SETTINGS`` environment variable.  Relative
storage directories are resolved against the settings file location (or the
project root when the file lives in a ``config/`` directory).
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("relay.settings.yaml")
SETTINGS_ENV_VAR = "RELAY_SETTINGS"

DEFAULT_WORDS = [
    "apple", "brave", "candy", "delta", "eagle",
    "flame", "grape", "house", "ivory", "jelly",
    "knife", "lemon", "mango", "noble", "ocean",
    "pearl", "queen", "river", "stone", "tiger",
    "unity", "vivid", "whale", "xenon", "young", "zebra",
]


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _base_dir_for(settings_path: Path) -> Path:
    """Directory that relative paths in *settings_path* are resolved against."""
    settings_dir = settings_path.resolve().parent
    if settings_dir.name == "config":
        return settings_dir.parent
    return settings_dir


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str           = "0.0.0.0"
    port:            int           = 8000
    public_base_url: Optional[str] = None


class LoggingSettings(BaseModel):
    level: str = "info"


class StorageSettings(BaseModel):
    """Where session directories, ledgers and activity logs live."""
    uploads_dir:     str  = "./uploads"
    logs_dir:        str  = "./logs"
    ledger_filename: str  = "meta.txt"
    log_filename:    str  = "write.log"
    fsync:           bool = True

    @field_validator("ledger_filename", "log_filename")
    @classmethod
    def _plain_filename(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError(f"not a plain file name: {value!r}")
        return value


class SessionSettings(BaseModel):
    """Session token generation."""
    token_mode:   Literal["phrase", "word"] = "phrase"
    word_count:   int       = Field(default=2, ge=1, le=8)
    suffix_bytes: int       = Field(default=3, ge=0, le=16)
    max_attempts: int       = Field(default=8, ge=1)
    words:        List[str] = Field(default_factory=lambda: list(DEFAULT_WORDS))

    @field_validator("words")
    @classmethod
    def _non_empty_pool(cls, value: List[str]) -> List[str]:
        words = [w.strip().lower() for w in value if w and w.strip()]
        if not words:
            raise ValueError("session word pool must not be empty")
        return words


class AppSettings(BaseModel):
    server:   ServerSettings  = Field(default_factory=ServerSettings)
    logging:  LoggingSettings = Field(default_factory=LoggingSettings)
    storage:  StorageSettings = Field(default_factory=StorageSettings)
    sessions: SessionSettings = Field(default_factory=SessionSettings)

    @property
    def uploads_path(self) -> Path:
        return Path(self.storage.uploads_dir)

    @property
    def logs_path(self) -> Path:
        return Path(self.storage.logs_dir)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppSettings:
    """Load *relay.settings.yaml* into an :class:`AppSettings` object.

    Relative ``uploads_dir`` / ``logs_dir`` values are made absolute so the
    storage roots do not depend on the process working directory.
    """
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))
    settings_path = Path(settings_path)

    data = _load_yaml(settings_path)
    app_settings = AppSettings(**data)

    base_dir = _base_dir_for(settings_path)
    storage = app_settings.storage
    for attr in ("uploads_dir", "logs_dir"):
        raw = Path(getattr(storage, attr))
        if not raw.is_absolute():
            setattr(storage, attr, str(base_dir / raw))

    logger.info(
        "Settings loaded (uploads=%s, logs=%s, token_mode=%s)",
        storage.uploads_dir,
        storage.logs_dir,
        app_settings.sessions.token_mode,
    )
    return app_settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget cached settings (for testing)."""
    global _config
    _config = None
