"""Application-wide logging setup."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from chatflow.config import settings

_IS_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Install console (and optional rotating file) handlers on the root logger.

    Calling it more than once is a no-op, so both the CLI and the API
    factory can call it unconditionally.

    Args:
        level: Override for ``settings.log_level``.
    """
    global _IS_CONFIGURED
    if _IS_CONFIGURED:
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel((level or settings.log_level).upper())

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=settings.log_file,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _IS_CONFIGURED = True
