import logging
from pathlib import Path
from typing import Any, Mapping

from ..errors import ConfigError
from .base import StorageBackend
from .local import LocalStore
from .relational import RelationalStore

logger = logging.getLogger(__name__)


def create_backend(config: Mapping[str, Any]) -> StorageBackend:
    """Build the configured storage backend once, for the whole process."""
    storage = config.get("storage", {}) if isinstance(config, Mapping) else {}
    backend = storage.get("backend")
    if backend == "local":
        store: StorageBackend = LocalStore(Path(storage["path"]))
    elif backend == "relational":
        store = RelationalStore(url=storage["url"], echo=bool(storage.get("echo", False)))
    else:
        raise ConfigError(f"Unsupported storage backend: {backend!r}")
    logger.info("Using %s storage backend", store.name)
    return store
