"""Logging setup: rotating JSON-lines file plus an optional console stream."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "focus-music.log"
CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Attribute names every LogRecord carries; anything else came from `extra=`.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; `extra=` fields land under `context`."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        payload: dict[str, object] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace(
                "+00:00", "Z"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        # Unknown extras (dataclasses, paths) degrade to their repr.
        return json.dumps(payload, ensure_ascii=True, default=repr)


def setup_logging(
    log_dir: Path,
    level: str | int = "INFO",
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    log_file: Path | None = None,
    console: bool = True,
) -> Path:
    """Replace root handlers and return the log file path in use.

    The dashboard owns the terminal, so it passes ``console=False``.
    """
    log_path = log_file if log_file is not None else log_dir / LOG_FILE_NAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = [
        _file_handler(log_path, max_bytes=max_bytes, backup_count=backup_count)
    ]
    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handlers.append(stream)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(_coerce_level(level))
    for handler in handlers:
        root.addHandler(handler)
    return log_path


def _file_handler(path: Path, *, max_bytes: int, backup_count: int) -> logging.Handler:
    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(JsonLogFormatter())
    return handler


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO
