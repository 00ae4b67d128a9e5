# hivecrop/observability.py
"""JSON / text log formatting, configured once from the app lifespan."""

import json
import logging
from datetime import datetime, timezone

_EXTRA_KEYS = ("path", "error_code", "hive_id", "crop_name", "count")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install a single stream handler on the root logger (safe to call twice)."""
    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, "_hivecrop", False):
            root.removeHandler(h)

    handler = logging.StreamHandler()
    handler._hivecrop = True  # type: ignore[attr-defined]
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
