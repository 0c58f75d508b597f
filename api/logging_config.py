"""Centralized logging configuration for AdPulse API."""

import os
import sys
import logging
from pathlib import Path

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))

_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def setup_logging():
    """Configure application-wide logging with file rotation."""
    from logging.handlers import RotatingFileHandler

    root_logger = logging.getLogger()
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    root_logger.setLevel(level)

    # lifespan may run more than once per process (tests, reload)
    if any(getattr(h, "_adpulse", False) for h in root_logger.handlers):
        return

    fmt = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(fmt)
    console.setLevel(level)
    console._adpulse = True
    root_logger.addHandler(console)

    LOG_DIR.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        LOG_DIR / "adpulse.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(fmt)
    file_handler._adpulse = True
    root_logger.addHandler(file_handler)

    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
