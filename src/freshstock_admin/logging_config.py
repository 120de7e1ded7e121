"""Logging setup shared by the API server and the CLI."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler

from .config import Settings, get_settings

_ROOT_LOGGER = "freshstock_admin"


def setup_logging(settings: Settings | None = None) -> logging.Logger:
    """Attach console and rotating file handlers to the package logger once."""

    settings = settings or get_settings()
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(settings.log_level.upper())

    # Prevent adding handlers multiple times if the app factory runs again
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(console_handler)

    file_handler = RotatingFileHandler(
        settings.log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"  # 5 MB
    )
    file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(file_handler)

    return logger
