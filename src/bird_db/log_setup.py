"""
Logging configuration.

Text output uses the same format as the rest of the service; JSON output
emits one object per line and merges request fields passed via ``extra=``.
"""

import json
import logging

from bird_db.config import Config

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "client_ip")


class JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _REQUEST_FIELDS:
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data)


def configure_logging(config: Config) -> None:
    """Install the root handler according to ``config.log_format``."""
    handler = logging.StreamHandler()
    if config.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    logging.basicConfig(
        handlers=[handler], level=config.log_level.upper(), force=True
    )
