# -*- coding: utf-8 -*-
from __future__ import annotations
import os
import logging, logging.handlers
from pathlib import Path

LOG_FILENAME = "maintenance_hub.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

# loggers that do not propagate to root under uvicorn
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")


def log_path_for(settings) -> Path:
    return Path(settings.DATA_ROOT).expanduser() / "logs" / LOG_FILENAME


def resolve_level(name) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(settings) -> Path:
    """
    Send the service and check-batches logs to DATA_ROOT/logs/maintenance_hub.log.

    Safe to call more than once. The same file keeps its handler and only
    the level changes; a different DATA_ROOT replaces the handler.
    """
    log_path = log_path_for(settings)
    target = os.path.abspath(log_path)
    level = resolve_level(settings.LOG_LEVEL)
    loggers = [logging.getLogger(), *(logging.getLogger(n) for n in SERVER_LOGGERS)]

    handler = None
    for lg in loggers:
        for h in _our_handlers(lg):
            if h.baseFilename == target:
                handler = h
            else:
                lg.removeHandler(h)
                h.close()

    if handler is None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)

    for lg in loggers:
        lg.setLevel(level)
        if handler not in lg.handlers:
            lg.addHandler(handler)

    return log_path


def _our_handlers(logger: logging.Logger):
    return [
        h for h in list(logger.handlers)
        if isinstance(h, logging.handlers.RotatingFileHandler) and h.baseFilename.endswith(LOG_FILENAME)
    ]
