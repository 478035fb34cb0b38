from __future__ import annotations

import logging
import time
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Sequence

from settings import Settings, get_settings

CONTEXT_KEYS = (
    "session_id",
    "device",
    "register_count",
    "reading_count",
    "reason",
    "interval",
    "subscriber_count",
    "elapsed_ms",
)

# Third-party loggers routed through the contextual handler.
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_configured = False


class ContextualFormatter(logging.Formatter):
    """Appends ``key=value`` pairs for known ``extra`` fields; timestamps are UTC."""

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._context_keys: Sequence[str] = tuple(context_keys or CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = " ".join(
            f"{key}={record.__dict__[key]}"
            for key in self._context_keys
            if record.__dict__.get(key) is not None
        )
        return f"{message} | {context}" if context else message


def build_logging_config(settings: Settings, level: str | int | None = None) -> Dict[str, Any]:
    log_level = level if level is not None else settings.log_level
    loggers: Dict[str, Any] = {
        # pymodbus reports connect failures itself; the connector already
        # logs one warning per failed poll.
        "pymodbus": {"level": settings.modbus_log_level},
    }
    for name in _UVICORN_LOGGERS:
        loggers[name] = {"handlers": ["console"], "level": log_level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "contextual": {
                "()": "logging_config.ContextualFormatter",
                "fmt": "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
                "context_keys": list(CONTEXT_KEYS),
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "contextual",
            }
        },
        "loggers": loggers,
        "root": {"handlers": ["console"], "level": log_level},
    }


def configure_logging(level: str | int | None = None, force: bool = False) -> None:
    """Install the service's logging setup once per process unless ``force`` is set."""
    global _configured
    if _configured and not force:
        return
    dictConfig(build_logging_config(get_settings(), level))
    _configured = True
