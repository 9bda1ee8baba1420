import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Tuple

import yaml

from .constants import (
    CANONICAL_FIELDS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_WORKERS,
    DEFAULT_REQUIRED_FIELDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF_SECONDS,
)
from .errors import ConfigError

REQUIRED_ROOT_KEYS = ["paths", "storage"]
STORAGE_BACKENDS = {"local": "path", "relational": "url"}
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class IngestSettings:
    """Tuning knobs for one ingestion run."""

    batch_size: int = DEFAULT_BATCH_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    required_fields: Tuple[str, ...] = DEFAULT_REQUIRED_FIELDS


def load_config(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config {path} must be a mapping at the top level")
    validate_config(cfg, path)
    return cfg


def validate_config(cfg: MutableMapping[str, Any], path: Path) -> None:
    missing = [key for key in REQUIRED_ROOT_KEYS if key not in cfg]
    if missing:
        raise ConfigError(f"Config {path} missing required sections: {missing}")

    storage = cfg.get("storage") or {}
    backend = storage.get("backend")
    if backend not in STORAGE_BACKENDS:
        raise ConfigError(
            f"storage.backend must be one of {sorted(STORAGE_BACKENDS)}, got {backend!r}"
        )
    location_key = STORAGE_BACKENDS[backend]
    if not storage.get(location_key):
        raise ConfigError(f"storage.{location_key} is required for the {backend} backend")

    # Raise ConfigError on bad values
    log_level(cfg)
    ingest_settings(cfg)


def log_level(cfg: Mapping[str, Any]) -> int:
    """Numeric logging level from the optional top-level ``log_level`` name."""
    name = str(cfg.get("log_level") or "INFO").upper()
    if name not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {list(LOG_LEVELS)}, got {name!r}")
    return getattr(logging, name)


def ingest_settings(cfg: Mapping[str, Any]) -> IngestSettings:
    """Read the optional ``ingest`` section, applying defaults."""
    ingest = cfg.get("ingest") or {}
    retry = ingest.get("retry") or {}

    batch_size = _as_int(ingest.get("batch_size", DEFAULT_BATCH_SIZE), "ingest.batch_size")
    if batch_size <= 0:
        raise ConfigError("ingest.batch_size must be greater than 0")

    max_workers = _as_int(ingest.get("max_workers", DEFAULT_MAX_WORKERS), "ingest.max_workers")
    if max_workers < 1:
        raise ConfigError("ingest.max_workers must be at least 1")

    attempts = _as_int(retry.get("max_attempts", DEFAULT_RETRY_ATTEMPTS), "ingest.retry.max_attempts")
    if attempts < 1:
        raise ConfigError("ingest.retry.max_attempts must be at least 1")

    try:
        backoff = float(retry.get("backoff_seconds", DEFAULT_RETRY_BACKOFF_SECONDS))
    except (TypeError, ValueError) as exc:
        raise ConfigError("ingest.retry.backoff_seconds must be a number") from exc
    if backoff < 0:
        raise ConfigError("ingest.retry.backoff_seconds must not be negative")

    required = tuple(ingest.get("required_fields") or DEFAULT_REQUIRED_FIELDS)
    unknown = [name for name in required if name not in CANONICAL_FIELDS]
    if unknown:
        raise ConfigError(f"ingest.required_fields has unknown fields: {unknown}")

    return IngestSettings(
        batch_size=batch_size,
        max_workers=max_workers,
        retry_attempts=attempts,
        retry_backoff_seconds=backoff,
        required_fields=required,
    )


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
