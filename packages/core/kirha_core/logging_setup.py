"""Structured local logging for the installer and launcher."""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any


_LOGGER_NAME = "kirha"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        if hasattr(record, "event"):
            payload["event"] = getattr(record, "event")
        return json.dumps(payload, ensure_ascii=True)


def _file_handler(log_dir: Path, keep_files: int) -> logging.Handler | None:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.TimedRotatingFileHandler(
            filename=str(log_dir / "kirha-bootstrap.log"),
            when="midnight",
            backupCount=max(2, keep_files),
            encoding="utf-8",
        )
    except OSError:
        return None
    handler.setFormatter(JsonFormatter())
    return handler


def configure_logging(
    log_dir: Path | None = None,
    keep_files: int = 7,
    console: bool = True,
    console_level: int = logging.INFO,
    stream: IO[str] | None = None,
) -> logging.Logger:
    logger = logging.getLogger(_LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    if log_dir is not None:
        handler = _file_handler(log_dir, keep_files)
        if handler is not None:
            handler.setLevel(logging.INFO)
            logger.addHandler(handler)

    if console:
        # Defaults to stderr, so stdout stays free for the delegated binary.
        stream_handler = logging.StreamHandler(stream)
        stream_handler.setLevel(console_level)
        stream_handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(stream_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    logger.debug("logging configured", extra={"event": "logging_configured"})
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    if not name:
        return logging.getLogger(_LOGGER_NAME)
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")


def reset_logging() -> None:
    """Drop handlers installed by configure_logging (used between CLI runs in tests)."""
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
