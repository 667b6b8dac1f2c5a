"""Process-wide logging setup."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from roombook.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_configured = False


def configure_logging(level: Optional[str] = None, *, force: bool = False) -> None:
    """Install the stdout handler once; later calls are no-ops unless forced."""

    global _configured
    if _configured and not force:
        return

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=resolved_level,
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=force,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
