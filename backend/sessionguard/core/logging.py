"""SessionGuard logging.

Security events (rejected tokens, denied ownership checks, revocations)
carry their context through ``extra=``, e.g.::

    logger.warning("Authentication rejected", extra={"auth_reason": "revoked"})

Both formatters below render that context: the JSON formatter as top-level
keys, the dev formatter as ``key=value`` pairs after the message.
"""

import json
import logging
import sys
from typing import Any, Literal

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

# Never rendered even if a caller passes them.
REDACTED_FIELDS = frozenset({"token", "raw_token", "authorization"})


def event_context(record: logging.LogRecord) -> dict[str, Any]:
    """Return the ``extra`` fields attached to ``record``, in insertion order.

    Unset (None) values are dropped and raw credentials are never returned.
    """
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS
        and not key.startswith("_")
        and key.lower() not in REDACTED_FIELDS
        and value is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Values go through json.dumps() so quotes and newlines in messages cannot
    break a line. Context keys never overwrite the base fields.
    """

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in event_context(record).items():
            log_entry.setdefault(key, value)
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """Readable single-line format with event context appended."""

    def __init__(self):
        super().__init__(fmt=DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = event_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        # Keep any traceback on the lines after the context
        head, sep, tail = line.partition("\n")
        return f"{head} | {pairs}{sep}{tail}"


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format - 'structured' for JSON, 'dev' for readable
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if format_type == "structured" else DevFormatter())
    logging.root.handlers = [handler]
    logging.root.setLevel(getattr(logging, level.upper()))

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    # SQL echo only when debugging
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
    )

    logging.getLogger("sessionguard").info(
        "Logging configured", extra={"log_level": level.upper(), "log_format": format_type}
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``sessionguard`` namespace."""
    return logging.getLogger(f"sessionguard.{name}")
