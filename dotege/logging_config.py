"""Logging configuration.

Monitor and registry log records carry the container they concern through
``extra=`` (container_id, container_name, action). Both formatters surface
that context: JSON output as top-level fields, text output as a trailing
``[name id]`` tag, so every line about a container can be traced back to it.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from dotege.config import Settings, settings as default_settings

# Context fields promoted to top-level keys in JSON output
CONTAINER_FIELDS = ("container_id", "container_name", "action")

# Attributes every LogRecord has; anything else came from extra=
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _record_extra(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, timezone.utc)


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Container context becomes top-level keys; any other extra values are
    nested under "extra", stringified when not JSON serializable.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = _record_extra(record)
        for key in CONTAINER_FIELDS:
            if key in extra:
                log_entry[key] = extra.pop(key)

        if extra:
            log_entry["extra"] = {key: _jsonable(value) for key, value in extra.items()}

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class TextFormatter(logging.Formatter):
    """[timestamp] LEVEL logger: message [container_name container_id]"""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = _timestamp(record).strftime("%Y-%m-%d %H:%M:%S")
        message = f"[{timestamp}] {record.levelname:8} {record.name}: {record.getMessage()}"

        name = getattr(record, "container_name", "")
        container_id = getattr(record, "container_id", "")
        if name or container_id:
            message += f" [{' '.join(part for part in (name, container_id[:12]) if part)}]"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


def setup_logging(config: Settings | None = None) -> None:
    """Configure the root logger from settings (log_format, log_level)."""
    config = config or default_settings

    handler = logging.StreamHandler(sys.stdout)
    if config.log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)
    root_logger.addHandler(handler)

    # The docker SDK logs every API request at debug
    logging.getLogger("docker").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
