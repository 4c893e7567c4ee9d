"""
Logging configuration.

Configures the root logger once at startup from ``log_level`` and
``log_format``. JSON output writes one object per line so log shippers can
index the audit stream (``tna_intake.audit``) alongside application logs.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from .config import Settings


# Attributes every LogRecord has; anything else was passed via ``extra=``.
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(settings: Settings) -> None:
    """
    Install a single stream handler on the root logger.

    Safe to call more than once; previous handlers installed here are replaced.
    """
    handler = logging.StreamHandler(sys.stdout)
    if settings.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    handler.set_name("tna_intake")

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == "tna_intake":
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.log_level)

    # Keep driver chatter out of request logs unless debugging SQL
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )
