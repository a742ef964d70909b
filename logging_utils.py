"""Tagged console logging for the Beat Catcher core.

Every message carries a level and a subsystem tag; extra key=value fields are
appended to the message so tick diagnostics stay on one line.
"""
from __future__ import annotations

import logging
from typing import Any

_logger = logging.getLogger("beatcatcher")
if not _logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[%(levelname)s][%(tag)s] %(message)s")
    handler.setFormatter(formatter)
    _logger.addHandler(handler)
    _logger.setLevel(logging.INFO)


class _TagAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: dict[str, Any]):
        tag = kwargs.pop("tag", "Core")
        kwargs.setdefault("extra", {})["tag"] = tag
        return msg, kwargs


_logger_adapter = _TagAdapter(_logger, {})


def _level_value(level: str) -> int:
    level_name = (level or "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def log_event(level: str, tag: str, message: str, **fields: Any) -> None:
    """Log a message with level+tag, appending key=value fields when provided."""
    if fields:
        extras = " ".join(f"{k}={v}" for k, v in fields.items())
        message = f"{message} | {extras}"
    _logger_adapter.log(_level_value(level), message, tag=tag)


def set_log_level(level: str) -> None:
    """Set global log level (DEBUG/INFO/WARNING/ERROR)."""
    _logger.setLevel(_level_value(level))


def get_log_level() -> str:
    """Return current global log level name."""
    return logging.getLevelName(_logger.level)
