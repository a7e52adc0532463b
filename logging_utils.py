"""Logging set-up shared by the player, the playlist builder and the tests.

Console plus rotating file handler with one format.  The file is the one
served by the web remote at ``/log``.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

import config

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def _resolve_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return int(level)


def setup_logging(
    *,
    level: str | int | None = None,
    log_file: Optional[str | Path] = None,
    add_console: bool = True,
    logger_name: Optional[str] = None,
) -> logging.Logger:
    """Configure logging once; later calls only adjust levels.

    - level: name or number, defaults to ``config.LOG_LEVEL``
    - log_file: rotating log path, defaults to ``config.LOG_FILE``
    - logger_name: root logger by default
    """
    resolved = _resolve_level(level if level is not None else getattr(config, "LOG_LEVEL", "INFO"))
    logger = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    logger.setLevel(resolved)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(resolved)
        return logger

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    path = Path(log_file or getattr(config, "LOG_FILE", "runtime.log"))
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
        )
    except OSError as exc:
        # read-only media: keep console output only
        logger.warning("[logging] file handler disabled for %s: %s", path, exc)
    else:
        file_handler.setLevel(resolved)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if add_console:
        console = logging.StreamHandler()
        console.setLevel(resolved)
        console.setFormatter(formatter)
        logger.addHandler(console)

    return logger
