"""Central console logging configuration for the span tagging middleware.

Startup-time modules (tracer bootstrap, configuration) import `log` from this
file instead of configuring the `logging` module themselves. Per-request
diagnostics go through `observability.logging.get_json_logger`, which adds
trace correlation ids.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Final

LOG_LEVEL: Final = os.getenv("SPAN_LOG_LEVEL", "INFO").upper()


# Basic color support (Windows 10+ supports ANSI sequences in recent versions).
class ColorFormatter(logging.Formatter):
    RESET = "\033[0m"
    COLORS = {
        logging.DEBUG: "\033[36m",    # Cyan
        logging.INFO: "\033[32m",     # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",    # Red
        logging.CRITICAL: "\033[41m", # Red background
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "")
        reset = self.RESET if color else ""
        # Colour a copy so other handlers still see the plain level name.
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{reset}"
        return super().format(record)


def configure_root_logger(name: str = "span_tagging") -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:  # Already configured.
        return logger

    handler = logging.StreamHandler(sys.stdout)
    formatter = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    handler.setFormatter(ColorFormatter(formatter))

    logger.addHandler(handler)
    logger.setLevel(LOG_LEVEL)
    logger.propagate = False
    return logger


log: logging.Logger = configure_root_logger()
