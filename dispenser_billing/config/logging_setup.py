"""
Logging setup.

Configures root logging for the CLI. Records from outside the
``dispenser_billing`` package are dropped unless asked for, and tap
lifecycle records carry the dispenser id as a structured field.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

PACKAGE_LOGGER = "dispenser_billing"

# Structured fields the ledger and registry attach via ``extra=``
CONTEXT_FIELDS = ("dispenser_id", "event_id")


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    only_package: Optional[str] = PACKAGE_LOGGER,
) -> logging.Handler:
    """Install a single stderr handler on the root logger.

    Logs go to stderr so JSON command output on stdout stays parseable.

    Args:
        level: Level name; unknown names fall back to INFO
        json_format: Emit one JSON object per line
        only_package: Logger name prefix to keep; None keeps every record

    Returns:
        The installed handler
    """
    level_value = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else ContextFormatter())
    if only_package:
        handler.addFilter(logging.Filter(only_package))

    logging.basicConfig(level=level_value, handlers=[handler], force=True)
    return handler


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class ContextFormatter(logging.Formatter):
    """Pipe-separated lines with ``key=value`` context appended."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if context:
            line += " | " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per line, context fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        payload.update(_context(record))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True)
