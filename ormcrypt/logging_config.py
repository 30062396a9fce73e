"""Optional log output for the ``ormcrypt`` logger hierarchy.

The library itself only emits records through ``logging.getLogger(__name__)``
and never installs handlers.  An application that wants ormcrypt's
diagnostics in a fixed format calls ``setup_logging()`` once at startup:

    from ormcrypt.logging_config import setup_logging
    setup_logging()

When DEBUG=true records are written in a human-readable format, otherwise
as single-line JSON for log aggregators.  Only the ``ormcrypt`` logger is
touched; the root logger and other libraries keep their configuration.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TextIO

from ormcrypt.config import Settings, get_settings

LOGGER_NAME = "ormcrypt"

# Passed through ``extra=`` by ormcrypt modules.
_EXTRA_FIELDS = ("entity", "strategy")


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value:
                payload[field] = value
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class _OrmcryptHandler(logging.StreamHandler):
    """Marks the handler installed by setup_logging so a second call replaces it."""


def setup_logging(settings: Settings | None = None, stream: TextIO | None = None) -> logging.Logger:
    """Attach a formatted handler to the ``ormcrypt`` logger and return it."""
    settings = settings or get_settings()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    for handler in list(logger.handlers):
        if isinstance(handler, _OrmcryptHandler):
            logger.removeHandler(handler)

    handler = _OrmcryptHandler(stream or sys.stderr)
    if settings.debug:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    else:
        handler.setFormatter(JSONFormatter())

    logger.addHandler(handler)
    return logger
