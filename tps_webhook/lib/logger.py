"""Application-wide structured logging configuration."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

_DEFAULT_LEVEL = logging.INFO
_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_RESERVED_ATTRS = {
    "args", "exc_info", "exc_text", "message", "msg", "levelno", "levelname", "name",
    "pathname", "filename", "module", "lineno", "funcName", "created", "msecs",
    "relativeCreated", "thread", "threadName", "processName", "process", "stack_info",
    "taskName", "asctime", "color_message",
}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS}


class JsonFormatter(logging.Formatter):
    """Render log records as JSON for easier ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Merge extra properties if they are simple types
        for key, value in _extra_fields(record).items():
            try:
                json.dumps(value)
                payload[key] = value
            except (TypeError, ValueError):
                payload[key] = repr(value)

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines with full timestamps and ``key=value`` extras."""

    def __init__(self) -> None:
        super().__init__(fmt=_TEXT_FORMAT, datefmt=_TEXT_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extra_fields(record)
        if extras:
            line += " " + " ".join(f"{key}={value!r}" for key, value in sorted(extras.items()))
        return line


def configure_logging(
    level: str | int = _DEFAULT_LEVEL,
    *,
    log_file: Path | None = None,
    log_format: str = "json",
    force: bool = False,
) -> None:
    """Configure root logger for console output and, optionally, a log file."""

    root = logging.getLogger()
    if getattr(root, "_structured_configured", False) and not force:  # type: ignore[attr-defined]
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = _DEFAULT_LEVEL
    root.setLevel(level)

    formatter: logging.Formatter = TextFormatter() if log_format == "text" else JsonFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in list(root.handlers):
        if getattr(handler, "_structured_handler", False):
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler._structured_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    root._structured_configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
