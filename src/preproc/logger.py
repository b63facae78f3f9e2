"""Structured JSON logging module.

JSON-formatted logging for services that embed the preprocessor. Library
modules only create loggers with ``logging.getLogger(__name__)``; calling
``setup_logging`` is left to the application, once at startup:

    from preproc import setup_logging

    setup_logging()  # level from Settings.LOG_LEVEL (env or .env)
"""

import json
import logging
import sys
from typing import Any, Optional

from preproc.settings import get_settings

# Extra fields attached by the preprocessing modules
EXTRA_FIELDS = (
    "config_file",
    "image_index",
    "step",
    "steps",
    "device_id",
    "num_images",
)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Formats log records as JSON objects with standardized fields:
    - timestamp: ISO format timestamp
    - level: Log level (INFO, WARNING, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - config_file, image_index, step, steps, device_id, num_images:
      Optional extra fields
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string representation
        """
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: Optional[str] = None) -> None:
    """Setup JSON structured logging for the application.

    Configures the root logger with:
    - JSON formatter
    - StreamHandler to stdout
    - Specified log level

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR); defaults
            to Settings.LOG_LEVEL
    """
    if log_level is None:
        log_level = get_settings().LOG_LEVEL

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
