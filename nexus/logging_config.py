"""Structured logging configuration for Nexus."""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Chatty third-party loggers kept at WARNING unless LOG_LEVEL is DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Conversation / turn identifiers passed via extra={"context": {...}}
        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    console_format: str | None = None,
) -> None:
    """
    Setup logging for the gateway and the client core.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
                   Defaults to LOG_LEVEL env var or INFO.
        log_file: Rotating JSON log file. Defaults to logs/app.log.
        console_format: "json" or "text" for stdout.
                        Defaults to LOG_FORMAT env var or json.
    """
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or str(DEFAULT_LOG_PATH)
    console_format = (console_format or os.getenv("LOG_FORMAT", "json")).lower()

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    third_party_level = log_level if log_level == "DEBUG" else "WARNING"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": "nexus.logging_config.JSONFormatter"},
                "text": {
                    "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
                    "datefmt": "%H:%M:%S",
                },
            },
            "handlers": {
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": log_file,
                    "maxBytes": 10 * 1024 * 1024,  # 10 MB
                    "backupCount": 5,
                    "formatter": "json",
                    "encoding": "utf-8",
                },
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "text" if console_format == "text" else "json",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                name: {"level": third_party_level} for name in NOISY_LOGGERS
            },
            "root": {
                "level": log_level,
                "handlers": ["file", "console"],
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; call as get_logger(__name__)."""
    return logging.getLogger(name)
