"""
Application logging.

Events are short dotted names ("job.claimed", "request.completed") with the
details passed as `extra=`. Production (Railway, or LOG_FORMAT=json) gets one
JSON object per line on stdout; local runs get readable lines.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

# Keys callers may pass via logger.info("event", extra={...})
CONTEXT_FIELDS = (
    "correlation_id", "user_id", "method", "path", "status", "duration_ms",
    "client_ip", "error", "error_type", "job_id", "document_id", "template",
    "storage_path", "attempt", "interval",
)


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Context fields actually set on this record"""
    context = {}
    for key in CONTEXT_FIELDS:
        value = getattr(record, key, None)
        if value is not None and value != "":
            context[key] = value
    return context


class StructuredFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "event": record.getMessage(),
            "logger": record.name,
        }
        entry.update(record_context(record))

        if record.levelno >= logging.WARNING:
            entry["source"] = f"{record.filename}:{record.lineno}"

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """`12:00:01 INFO    job.claimed job_id=... attempt=1`"""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = " ".join(f"{key}={value}" for key, value in record_context(record).items())
        return f"{line} {pairs}" if pairs else line


def _use_json() -> bool:
    return bool(os.getenv("RAILWAY_ENVIRONMENT")) or os.getenv("LOG_FORMAT") == "json"


def setup_logger(name: str = "resumegen", level: str = "INFO") -> logging.Logger:
    """
    Configure the named logger once. LOG_LEVEL overrides `level`.

    LOG_FILE adds a rotating JSON file (skipped on Railway, whose filesystem
    is read-only).
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = getattr(logging, os.getenv("LOG_LEVEL", level).upper(), logging.INFO)
    logger.setLevel(log_level)
    as_json = _use_json()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter() if as_json else ConsoleFormatter())
    logger.addHandler(console)

    log_file = os.getenv("LOG_FILE")
    if log_file and not os.getenv("RAILWAY_ENVIRONMENT"):
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setFormatter(StructuredFormatter())
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not setup file logging: {e}")

    return logger


logger = setup_logger()
