import logging
from pathlib import Path
from typing import Any, Mapping

from .config_loader import log_level

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
QUIET_LOGGERS = ("openpyxl", "sqlalchemy.engine")


def configure_logging(config: Mapping[str, Any]) -> Path:
    """Send ingestion logs to the console and ``<log_dir>/ingest.log``."""
    log_dir = Path((config.get("paths") or {}).get("log_dir", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "ingest.log"

    level = log_level(config)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging %s to %s", logging.getLevelName(level), log_file)
    return log_file
