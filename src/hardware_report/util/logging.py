"""Logging setup for the command-line entry point."""
from __future__ import annotations

import logging
import os
from typing import Optional

LOG_LEVEL_ENV_VAR = "HARDWARE_REPORT_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
NOISY_LOGGERS = ("urllib3",)


def setup_logging(level: Optional[str] = None, *, verbose: bool = False) -> None:
    """Configure root logging; ``verbose`` forces DEBUG, otherwise ``level``
    falls back to ``$HARDWARE_REPORT_LOG_LEVEL`` and then INFO."""
    if verbose:
        level = "DEBUG"
    elif level is None:
        level = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO")
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    # The HTTP connection pool logs every request at DEBUG.
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))
