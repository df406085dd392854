"""
Structured logging configuration.

Every engine log line can carry the same handful of context fields:
subsystem (resolver, navigator, store, engine), input source (device
tag), command key, engine mode, sequence number, event type and latency.
They are passed with `extra=log_fields(...)` on plain loggers, or through
the StructuredLogger helpers, and rendered either as JSON or as a
compact human-readable prefix.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

# Context attributes copied from log records, with their JSON key
STRUCTURED_FIELDS = (
    ("subsystem", "subsystem"),
    ("source", "source"),
    ("command", "command"),
    ("mode", "mode"),
    ("seq", "seq"),
    ("event_type", "event"),
    ("latency_ms", "latency_ms"),
)


def log_fields(**fields: Any) -> Dict[str, Any]:
    """Build an `extra=` mapping for plain logger calls."""
    return {k: v for k, v in fields.items() if v is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr, key in STRUCTURED_FIELDS:
            value = getattr(record, attr, None)
            if value is not None and value != "":
                data[key] = value
        data.update(getattr(record, "extra_data", None) or {})

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class HumanFormatter(logging.Formatter):
    """`HH:MM:SS.mmm LEVL [subsystem] mode=.. src=.. cmd=..: message`, colored on a TTY."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    TAGS = (("mode", "mode="), ("source", "src="), ("command", "cmd="))

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        parts = [clock, record.levelname[:4]]

        subsystem = getattr(record, "subsystem", None)
        if subsystem:
            parts.append(f"[{subsystem}]")
        parts.extend(
            f"{label}{getattr(record, attr)}"
            for attr, label in self.TAGS
            if getattr(record, attr, None)
        )

        message = record.getMessage()
        latency = getattr(record, "latency_ms", None)
        if latency is not None:
            message += f" ({latency:.1f}ms)"

        line = f"{' '.join(parts)}: {message}"
        if self.use_colors and sys.stderr.isatty():
            line = f"{self.COLORS.get(record.levelname, '')}{line}{self.RESET}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """Logger with helpers for event and latency records."""

    def _structured(self, level: int, msg: str, **fields: Any) -> None:
        known = {attr for attr, _ in STRUCTURED_FIELDS}
        extra = log_fields(**{k: v for k, v in fields.items() if k in known})
        rest = {k: v for k, v in fields.items() if k not in known}
        if rest:
            extra["extra_data"] = rest
        self.log(level, msg, extra=extra)

    def event(self, event_type: str, msg: str, **fields: Any) -> None:
        """Log a named engine event at INFO."""
        self._structured(logging.INFO, msg, event_type=event_type, **fields)

    def latency(self, operation: str, latency_ms: float, **fields: Any) -> None:
        """Log a latency measurement at DEBUG."""
        self._structured(logging.DEBUG, f"{operation} completed", latency_ms=latency_ms, **fields)


# Loggers created after this import (every vaudio module logger) are structured
logging.setLoggerClass(StructuredLogger)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger."""
    return logging.getLogger(name)  # type: ignore[return-value]


def _rotating(path: str, formatter: logging.Formatter, max_bytes: int, backup_count: int) -> logging.Handler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: str = "INFO",
    log_dir: Optional[str] = None,
    json_file: Optional[str] = None,
    json_console: bool = False,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> None:
    """
    Configure root logging for the CLI.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for vaudio.log and the JSON log; no files if None
        json_file: JSON log path (relative paths land in log_dir)
        json_console: Emit JSON instead of human-readable lines on stderr
        max_bytes: Rotation size per file
        backup_count: Rotated files to keep
    """

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    root.handlers = []

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if json_console else HumanFormatter())
    root.addHandler(console)

    if not log_dir:
        return

    os.makedirs(log_dir, exist_ok=True)
    json_path = json_file or "vaudio.json.log"
    if not os.path.isabs(json_path):
        json_path = os.path.join(log_dir, json_path)

    root.addHandler(_rotating(
        os.path.join(log_dir, "vaudio.log"),
        HumanFormatter(use_colors=False),
        max_bytes,
        backup_count,
    ))
    root.addHandler(_rotating(json_path, JSONFormatter(), max_bytes, backup_count))
