"""Structured logging configuration for the element model.

Provides JSON formatting for production pipelines and human-readable
formatting for development. Only the ``clinical_model`` logger hierarchy is
configured; applications embedding the model keep control of the root logger.

Security Impact:
    - The model never logs primitive values, only type and element names
    - Structured format enables better log analysis
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from clinical_model.infrastructure.settings import settings

PACKAGE_LOGGER = "clinical_model"

# Attributes copied from a record's ``extra`` into the JSON document.
CONTEXT_FIELDS = ("element_type", "element_name", "resource_type", "constraint")


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter for logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Parameters:
            record: Log record to format

        Returns:
            JSON string representation of log record
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        return json.dumps(log_data)


def setup_logging(use_json: Optional[bool] = None, log_level: Optional[str] = None) -> logging.Logger:
    """Setup logging for the ``clinical_model`` package.

    Parameters:
        use_json: Use JSON formatting; defaults to ``settings.log_json``
        log_level: Logging level name; defaults to ``settings.log_level``

    Returns:
        The configured package logger
    """
    if use_json is None:
        use_json = settings.log_json
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    package_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if use_json:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handler.setFormatter(formatter)
    package_logger.addHandler(handler)
    package_logger.propagate = False
    return package_logger

