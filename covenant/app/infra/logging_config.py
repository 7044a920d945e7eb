"""Logging setup for scripts and embedding applications."""
import json
import logging
import sys
import time
from typing import Optional

from .. import config


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def configure_logging(level: Optional[str] = None, json_format: Optional[bool] = None) -> None:
    """Attach a single stderr handler to the ``covenant`` logger."""
    level = level or config.LOG_LEVEL
    json_format = config.LOG_JSON if json_format is None else json_format

    logger = logging.getLogger("covenant")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
