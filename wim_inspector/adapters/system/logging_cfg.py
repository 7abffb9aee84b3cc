# /wim_inspector/adapters/system/logging_cfg.py
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from wim_inspector.config import settings


class JSONHandler(logging.StreamHandler):
    """One JSON object per line; `extra={"extra": {...}}` is merged into the payload."""

    def emit(self, record: logging.LogRecord) -> None:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = logging.Formatter().formatException(record.exc_info)
        self.stream.write(json.dumps(payload, default=str) + "\n")
        self.flush()


def configure_logger(level: int | str | None = None) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level if level is not None else settings.LOG_LEVEL)
    root.addHandler(JSONHandler(stream=sys.stdout))
