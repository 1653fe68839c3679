"""Structured JSON-lines logging for annoconv."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import os
from typing import Any, TextIO


ROOT_LOGGER = "annoconv"
LEVEL_ENV = "ANNOCONV_LOG_LEVEL"

# Attributes present on every LogRecord; anything else arrived through `extra`.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord(ROOT_LOGGER, logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class JsonLineFormatter(logging.Formatter):
    """Render a record as one JSON object: timestamp, level, logger, event fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, default=str, ensure_ascii=False)


def configure_logging(level: str | None = None, stream: TextIO | None = None) -> logging.Logger:
    """Attach the JSON handler to the annoconv logger once.

    The level comes from `level`, else `ANNOCONV_LOG_LEVEL`, else INFO. Calling
    again with an explicit level only changes the level.
    """

    logger = logging.getLogger(ROOT_LOGGER)
    if logger.handlers:
        if level is not None:
            logger.setLevel(level.upper())
        return logger

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonLineFormatter())
    logger.addHandler(handler)
    logger.setLevel((level or os.environ.get(LEVEL_ENV) or "INFO").upper())
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Return a logger under the configured annoconv namespace."""

    configure_logging()
    return logging.getLogger(name)


def log_event(
    logger: logging.Logger,
    event: str,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Emit `event` as the message with `fields` as structured keys."""

    logger.log(level, event, extra={"event": event, **fields})
