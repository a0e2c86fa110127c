"""Structured logging configuration for feed_ingest."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from feed_ingest.config import PipelineConfig


ROOT_LOGGER_NAME = "feed_ingest"

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Extra attributes copied into JSON log entries when present on a record
_CONTEXT_FIELDS = ("component", "feed_url", "page_url", "status_code", "items_count")


class StructuredFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in _CONTEXT_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(config: Optional[PipelineConfig] = None) -> logging.Logger:
    """Configure the feed_ingest logger hierarchy.

    Logs go to stderr: stdout carries the MCP stdio transport.

    Args:
        config: Configuration providing log_level and log_format

    Returns:
        The configured feed_ingest logger
    """
    if config is None:
        config = PipelineConfig()

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, config.log_level.upper()))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if config.log_format == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)
    root.propagate = False

    return root


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the feed_ingest hierarchy.

    Args:
        name: Usually the calling module's __name__

    Returns:
        Logger whose name starts with "feed_ingest"
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


logger = logging.getLogger(ROOT_LOGGER_NAME)
