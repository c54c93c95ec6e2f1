"""Resolved runtime configuration for vecsync.

Every setting is resolved exactly once, at startup, with this precedence:

1. explicit override (a non-None keyword passed to ``IndexConfig.resolve``)
2. source-specific default (``SOURCE_DEFAULTS[source]``)
3. environment variable (see ``ENV_KEYS``)
4. global default from ``vecsync.constants``

Components receive the resulting ``IndexConfig`` and never re-derive settings.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Callable

from dotenv import load_dotenv

from vecsync import __version__
from vecsync import constants as c

# Load environment variables
load_dotenv()


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


ENV_KEYS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "db_path": ("VECSYNC_DB_PATH", str),
    "store": ("VECSYNC_STORE", str),
    "ravendb_url": ("RAVENDB_URL", str),
    "ravendb_database": ("RAVENDB_DATABASE", str),
    "backends": ("VECSYNC_BACKENDS", _parse_list),
    "ollama_host": ("OLLAMA_HOST", str),
    "model_name": ("EMBEDDING_MODEL", str),
    "dimension": ("EMBEDDING_DIMENSIONS", int),
    "auto_setup": ("VECSYNC_AUTO_SETUP", _parse_bool),
    "embed_batch_size": ("VECSYNC_EMBED_BATCH_SIZE", int),
    "embed_max_concurrent": ("VECSYNC_EMBED_CONCURRENCY", int),
    "min_content_length": ("VECSYNC_MIN_CONTENT_LENGTH", int),
}

# Per-source defaults, layered between explicit overrides and the environment
SOURCE_DEFAULTS: dict[str, dict[str, Any]] = {
    "folder": {"recursive": True},
    "drive": {"embed_max_concurrent": 2},
    "crawl": {"buffer_size": 50},
    "code": {"min_content_length": 50},
    "server": {"embed_max_concurrent": 2, "auto_setup": False},
}


@dataclass(frozen=True)
class IndexConfig:
    """All settings a vecsync command needs, resolved once."""

    # Storage
    db_path: str = c.DEFAULT_DB_PATH
    store: str = c.DEFAULT_STORE
    ravendb_url: str = c.DEFAULT_RAVENDB_URL
    ravendb_database: str = c.DEFAULT_RAVENDB_DATABASE
    ravendb_collection: str = c.DEFAULT_RAVENDB_COLLECTION
    store_content: bool = True
    buffer_size: int = c.WRITE_BUFFER_SIZE

    # Embedding
    backends: tuple[str, ...] = c.DEFAULT_BACKENDS
    ollama_host: str = c.DEFAULT_OLLAMA_HOST
    model_name: str = c.DEFAULT_EMBEDDING_MODEL
    gemini_model: str = c.DEFAULT_GEMINI_EMBEDDING_MODEL
    dimension: int | None = None
    auto_setup: bool = True
    embed_batch_size: int = c.EMBED_BATCH_SIZE
    embed_max_concurrent: int = c.EMBED_MAX_CONCURRENT
    embed_retries: int = c.EMBED_RETRIES
    embed_retry_delay: float = c.EMBED_RETRY_DELAY
    embed_timeout: float = c.EMBED_TIMEOUT

    # Ledger
    min_content_length: int = c.MIN_CONTENT_LENGTH
    version: str = __version__

    # Folder sync
    extensions: tuple[str, ...] | None = None
    recursive: bool = True
    ignore_dirs: tuple[str, ...] = c.DEFAULT_IGNORE_DIRS

    # Drive sync
    max_files: int = c.DRIVE_MAX_FILES
    incremental: bool = False
    drive_state_file: str = c.DRIVE_STATE_FILE

    # Crawl sync
    crawl_max_pages: int = c.CRAWL_MAX_PAGES
    crawl_max_depth: int = c.CRAWL_MAX_DEPTH
    crawl_concurrency: int = c.CRAWL_CONCURRENCY
    crawl_page_timeout: float = c.CRAWL_PAGE_TIMEOUT

    # Code sync
    code_max_depth: int = c.CODE_MAX_DEPTH
    code_max_file_size: int = c.CODE_MAX_FILE_SIZE
    include_binary: bool = False
    ignore_patterns: tuple[str, ...] = ()

    # Server mode
    file_check_interval: float = c.FILE_CHECK_INTERVAL
    full_sync_interval: float = c.FULL_SYNC_INTERVAL
    deletion_threshold: int = c.DELETION_THRESHOLD

    @classmethod
    def resolve(cls, source: str | None = None, **overrides: Any) -> "IndexConfig":
        """Build a config from overrides, source defaults, environment and constants.

        Args:
            source: Optional source kind ("folder", "drive", "crawl", "code", "server")
                whose default table is layered below the explicit overrides.
            **overrides: Field values; None means "not given".

        Returns:
            IndexConfig: The fully resolved configuration.

        Raises:
            TypeError: If an override names an unknown field.
        """
        names = {f.name for f in fields(cls)}
        unknown = set(overrides) - names
        if unknown:
            raise TypeError(f"Unknown config field(s): {', '.join(sorted(unknown))}")

        source_defaults = SOURCE_DEFAULTS.get(source or "", {})
        values: dict[str, Any] = {}

        for name in names:
            if overrides.get(name) is not None:
                values[name] = overrides[name]
                continue
            if name in source_defaults:
                values[name] = source_defaults[name]
                continue
            if name in ENV_KEYS:
                env_name, parse = ENV_KEYS[name]
                raw = os.getenv(env_name)
                if raw:
                    values[name] = parse(raw)

        if isinstance(values.get("extensions"), (list, set)):
            values["extensions"] = tuple(values["extensions"])
        if isinstance(values.get("backends"), (list, str)):
            backends = values["backends"]
            values["backends"] = _parse_list(backends) if isinstance(backends, str) else tuple(backends)

        return cls(**values)
