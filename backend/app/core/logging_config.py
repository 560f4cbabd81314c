from __future__ import annotations

import logging
from pathlib import Path

from app.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
IMPORT_STATS_LOGGER = "app.ics_import.stats"

_configured = False


def configure_logging(settings: Settings) -> None:
    global _configured
    level = getattr(logging, settings.effective_log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    if _configured:
        return
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    # SQL echo is far too chatty outside of debug sessions.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True


def get_import_stats_logger(log_file: str) -> logging.Logger:
    """Logger that appends one line per import run to ``log_file``."""
    stats_logger = logging.getLogger(IMPORT_STATS_LOGGER)
    target = Path(log_file).resolve()
    for handler in stats_logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == target:
            return stats_logger
    target.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(target, encoding="utf-8")
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
    stats_logger.addHandler(handler)
    stats_logger.setLevel(logging.INFO)
    return stats_logger
