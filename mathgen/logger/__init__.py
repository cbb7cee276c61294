"""Logger module for mathgen

This module provides a structured logging interface that allows users to
drop in their own logger implementations.

Usage:
    from mathgen.logger import session_logger

    session_logger.info("Batch generated", count=10, seed="abc123")

    # Or implement your own
    class MyCustomLogger(Logger):
        def info(self, message: str, **kwargs):
            ...
"""

import logging
import os

from mathgen.logger.interface import Logger
from mathgen.logger.structured_logger import StructuredLogger

# Configuration from environment
LOG_LEVEL_STR = os.environ.get("MATHGEN_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.environ.get("MATHGEN_LOG_FILE")
LOG_JSON = os.environ.get("MATHGEN_LOG_JSON", "false").lower() == "true"

LOG_LEVEL = getattr(logging, LOG_LEVEL_STR, logging.INFO)

# Shared logger instance
session_logger: Logger = StructuredLogger(
    level=LOG_LEVEL,
    log_file=LOG_FILE,
    json_format=LOG_JSON,
)

__all__ = [
    "Logger",
    "StructuredLogger",
    "session_logger",
]
