"""LeadBoard — Structured JSON Logging.

One JSON object per line on stdout. Timestamps carry the regional offset so
log lines line up with the dashboard's day boundaries.
"""

import logging
import json
import sys
from datetime import datetime

from leadboard.config import settings
from leadboard.core.timeutil import REGIONAL_TZ

SERVICE = "leadboard"
EXTRA_FIELDS = ("endpoint", "job_id", "phone_id", "duration_ms", "status_code")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, REGIONAL_TZ).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "service": SERVICE,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def _level() -> int:
    return getattr(logging, settings.log_level.upper(), logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Named ``leadboard.*`` logger writing JSON lines to stdout."""
    logger = logging.getLogger(f"{SERVICE}.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        # uvicorn configures the root logger; avoid printing twice
        logger.propagate = False
    logger.setLevel(_level())
    return logger
