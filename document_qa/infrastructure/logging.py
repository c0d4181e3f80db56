from __future__ import annotations

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(levelname)s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Send package logs to stderr so stdout stays machine-readable JSON."""
    name = (level or os.getenv("DOCQA_LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, name, logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("document_qa").setLevel(resolved)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logging.getLogger().handlers:
        configure_logging()
    return logger
