from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from src.config import settings


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s - %(message)s"


def configure_logging(*, level: str | None = None, fmt: str | None = None) -> None:
    """Install a single stdout handler on the root logger.

    Safe to call more than once (the API factory and the worker both call it).
    """

    level = (level or settings.log_level).upper()
    fmt = (fmt or settings.log_format).lower()

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_wa_assistant", False):
            root.removeHandler(existing)
    handler._wa_assistant = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)

    # httpx logs every request at INFO, which drowns the access log.
    logging.getLogger("httpx").setLevel(logging.WARNING)
