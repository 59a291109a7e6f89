"""Logging setup with console output and an optional rotating file."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO", log_dir: str | None = None) -> logging.Logger:
    """Attach handlers to the package logger once; later calls only adjust the level."""
    logger = logging.getLogger("edgar_crawler")
    logger.setLevel(level.upper())

    if logger.handlers:
        return logger

    fmt = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    logger.addHandler(console)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        # 10MB per file, keep 5
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "crawler.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
        )
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)

    return logger
