"""Logging setup shared by every block_lottery module.

``get_logger(name)`` configures the root logger the first time it is called:
a console handler always, a file handler only when ``LOG_FILE`` is set.
``LOG_LEVEL`` picks the level (INFO when unset or unknown).
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_configured = False


def _level_from_env() -> int:
    level = logging.getLevelName(os.getenv('LOG_LEVEL', 'INFO').upper())
    return level if isinstance(level, int) else logging.INFO


def _handlers(log_file: str) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding='utf-8'))
    return handlers


def _ensure_configured() -> None:
    global _configured
    if _configured:
        return

    level = _level_from_env()
    root = logging.getLogger()
    root.setLevel(level)

    try:
        handlers = _handlers(os.getenv('LOG_FILE', ''))
    except OSError:
        handlers = _handlers('')
        root.exception('Cannot open LOG_FILE; logging to console only')

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger that shares the package-wide root configuration."""
    _ensure_configured()
    return logging.getLogger(name)
