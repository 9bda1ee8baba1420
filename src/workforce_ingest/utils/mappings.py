from pathlib import Path
from typing import Any
import logging

import yaml

from ..errors import ConfigError


def load_yaml_mapping(
    path_val: str | Path | None,
    logger: logging.Logger | None = None,
    required: bool = False,
) -> dict[str, Any]:
    """Read a YAML mapping file; an absent optional file yields ``{}``."""
    if not path_val:
        return {}
    path = Path(path_val)
    if not path.exists():
        if required:
            raise ConfigError(f"Mapping file {path} not found")
        if logger:
            logger.warning("Mapping file %s missing", path)
        return {}
    with path.open("r", encoding="utf-8") as handle:
        try:
            loaded = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Mapping file {path} is not valid YAML: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"Mapping file {path} must contain a mapping")
    return loaded
