"""Structured logging helpers shared across the backend."""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict, Mapping, Optional

__all__ = ["StructuredFormatter", "configure_logging", "get_logger"]

ROOT_LOGGER_NAME = "backend"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


class StructuredFormatter(logging.Formatter):
    """Formatter that appends ``extra`` fields as sorted ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = _extract_extra(record)
        if not fields:
            return base
        rendered = " ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))
        return f"{base} {rendered}"


def configure_logging(config: Optional[Mapping[str, Any]] = None) -> None:
    """Install the structured console handler using the ``logging`` config block."""

    config = dict(config or {})
    level = str(config.get("level", "INFO")).upper()
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": StructuredFormatter,
                    "format": config.get("format", DEFAULT_FORMAT),
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "structured",
                }
            },
            "loggers": {
                ROOT_LOGGER_NAME: {
                    "handlers": ["console"],
                    "level": level,
                    "propagate": False,
                }
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""

    return logging.getLogger(name)


def _extract_extra(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }
