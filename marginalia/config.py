"""
Configuration management for marginalia stores.

The configuration is stored as a TOML file in the store directory.
It identifies the owning workspace and sets the import limits.
"""

import os
import tomllib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import tomli_w


CONFIG_FILENAME = "marginalia.toml"
CONFIG_VERSION = 1

DEFAULT_WORD_LIMIT = 25_000
DEFAULT_PAGE_LIMIT = 50
DEFAULT_FALLBACK_CHUNK_WORDS = 900


@dataclass
class LimitsConfig:
    """Hard limits enforced before any persistence."""
    word_limit: int = DEFAULT_WORD_LIMIT
    page_limit: int = DEFAULT_PAGE_LIMIT
    fallback_chunk_words: int = DEFAULT_FALLBACK_CHUNK_WORDS


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    workspace_id: str = field(default_factory=lambda: f"ws-{uuid.uuid4()}")
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    pdf_extractor: str = "pypdf"

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def db_path(self) -> Path:
        """Path to the SQLite database."""
        return self.path / "marginalia.db"


def get_default_store_path() -> Path:
    """Store directory: $MARGINALIA_STORE_PATH or ~/.marginalia."""
    env = os.environ.get("MARGINALIA_STORE_PATH")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".marginalia"


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    workspace_id = store.get("workspace_id", "")
    if not workspace_id:
        raise ValueError(f"Config is missing store.workspace_id: {config_path}")

    limits = data.get("limits", {})
    for key in ("word_limit", "page_limit", "fallback_chunk_words"):
        value = limits.get(key)
        if value is not None and (not isinstance(value, int) or value < 1):
            raise ValueError(f"limits.{key} must be a positive integer, got {value!r}")

    return StoreConfig(
        path=store_path,
        version=version,
        created=store.get("created", ""),
        workspace_id=workspace_id,
        limits=LimitsConfig(
            word_limit=limits.get("word_limit", DEFAULT_WORD_LIMIT),
            page_limit=limits.get("page_limit", DEFAULT_PAGE_LIMIT),
            fallback_chunk_words=limits.get("fallback_chunk_words", DEFAULT_FALLBACK_CHUNK_WORDS),
        ),
        pdf_extractor=data.get("pdf", {}).get("extractor", "pypdf"),
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
            "workspace_id": config.workspace_id,
        },
        "limits": {
            "word_limit": config.limits.word_limit,
            "page_limit": config.limits.page_limit,
            "fallback_chunk_words": config.limits.fallback_chunk_words,
        },
        "pdf": {
            "extractor": config.pdf_extractor,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    config = StoreConfig(path=store_path)
    save_config(config)
    return config
