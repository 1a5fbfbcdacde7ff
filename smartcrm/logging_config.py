"""
Logging setup for the sync service and its CLI.

setup_logging() runs once per process (the API lifespan or sync_ctl). Modules
log through ``logging.getLogger("smartcrm.<area>")`` and attach sync metadata
with ``extra=``:
    logger.warning("Operation failed, will retry",
                   extra={"operation_id": op.id, "retry_count": op.retry_count})

Both formatters carry that metadata. "json" emits it as top-level keys; "text"
appends it to the line as ``[operation_id=... retry_count=...]``.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from smartcrm import config

# Extras the sync code attaches to its records, in output order
STRUCTURED_FIELDS = (
    "operation_id", "op_type", "entity_type", "entity_id",
    "retry_count", "queue_size", "duration_ms",
)

# Third-party loggers held at WARNING
NOISY_LOGGERS = ("urllib3", "asyncio", "uvicorn.access", "httpx")


def sync_context(record: logging.LogRecord) -> dict:
    """Return the structured extras present on ``record``."""
    return {key: getattr(record, key) for key in STRUCTURED_FIELDS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }
        entry.update(sync_context(record))
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Console format; sync extras follow the message in brackets."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = sync_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} [{pairs}]"


_FORMATTERS = {"json": JSONFormatter, "text": TextFormatter}

_initialized = False


def setup_logging(level: str = None, fmt: str = None, log_file: str = None):
    """Install handlers on the root logger. Later calls are no-ops.

    Args:
        level: Log level name (default: config.LOG_LEVEL)
        fmt: "text" or "json" (default: config.LOG_FORMAT)
        log_file: Extra file destination (default: config.LOG_FILE; empty for stdout only)
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = (level or config.LOG_LEVEL).upper()
    fmt = fmt or config.LOG_FORMAT
    log_file = config.LOG_FILE if log_file is None else log_file

    formatter = _FORMATTERS.get(fmt, TextFormatter)()
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("smartcrm").info(
        "Logging configured: level=%s, format=%s%s",
        level, fmt, f", file={log_file}" if log_file else "",
    )
