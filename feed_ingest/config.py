"""Configuration for feed_ingest.

Settings are read from FEED_INGEST_* environment variables. Use get_config()
for the cached process-wide instance and load_config() to build a fresh one.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_USER_AGENT = "FeedIngest/1.0 (+RSS Feed Reader)"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _default_db_path() -> Path:
    return Path.home() / ".feed_ingest" / "feed_ingest.db"


@dataclass
class PipelineConfig:
    """Runtime settings shared by the pipeline, storage and server."""

    name: str = "feed_ingest"
    log_level: str = "INFO"
    log_format: str = "json"
    fetch_timeout: float = 10.0
    batch_size: int = 5
    permissive_xml: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    db_path: Path = field(default_factory=_default_db_path)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {raw!r}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_config() -> PipelineConfig:
    """Build a configuration from the environment.

    Returns:
        PipelineConfig with environment overrides applied

    Raises:
        ValueError: If a variable holds a value of the wrong type
    """
    log_level = os.getenv("FEED_INGEST_LOG_LEVEL", "INFO").upper()
    if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ValueError(f"FEED_INGEST_LOG_LEVEL is not a logging level: {log_level!r}")

    log_format = os.getenv("FEED_INGEST_LOG_FORMAT", "json").lower()
    if log_format not in ("json", "text"):
        raise ValueError(f"FEED_INGEST_LOG_FORMAT must be 'json' or 'text', got {log_format!r}")

    db_path = os.getenv("FEED_INGEST_DB_PATH")

    return PipelineConfig(
        name=os.getenv("FEED_INGEST_NAME", "feed_ingest"),
        log_level=log_level,
        log_format=log_format,
        fetch_timeout=_env_float("FEED_INGEST_FETCH_TIMEOUT", 10.0),
        batch_size=_env_int("FEED_INGEST_BATCH_SIZE", 5),
        permissive_xml=_env_bool("FEED_INGEST_PERMISSIVE_XML", True),
        user_agent=os.getenv("FEED_INGEST_USER_AGENT", DEFAULT_USER_AGENT),
        db_path=Path(db_path) if db_path else _default_db_path(),
    )


_config: Optional[PipelineConfig] = None


def get_config() -> PipelineConfig:
    """Get the cached configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
