"""Logging for the showroom admin client.

Records carry an optional ``data`` payload (``logger.info("...", data={...})``)
and the admin/session ids of the active dashboard session.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# admin_id / session_id of the signed-in admin, set by the dashboard controller
session_context: ContextVar[Dict[str, Any]] = ContextVar("session_context", default={})

NOISY_LOGGERS = ("httpx", "httpcore", "websockets")


def _session_fields() -> Dict[str, Any]:
    ctx = session_context.get()
    return {key: ctx.get(key) for key in ("admin_id", "session_id") if ctx.get(key)}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **_session_fields(),
        }
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Single-line colored output for interactive use."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:8}"
        if self.color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"
        admin = _session_fields().get("admin_id", "-")

        parts = [when, level, str(admin), record.name, record.getMessage()]
        data = getattr(record, "data", None)
        if data:
            parts.append(json.dumps(data, default=str))
        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextLogger(logging.LoggerAdapter):
    """Adapter that moves a ``data=`` kwarg into the record."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        if "data" in kwargs:
            kwargs.setdefault("extra", {})["data"] = kwargs.pop("data")
        return msg, kwargs


_loggers: Dict[str, ContextLogger] = {}


def get_logger(name: str) -> ContextLogger:
    if name not in _loggers:
        _loggers[name] = ContextLogger(logging.getLogger(name), {})
    return _loggers[name]


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Root log level name.
        json_output: Emit JSON to stdout instead of the console format.
        log_file: Also append JSON records to this file.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    root.handlers.clear()

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(StructuredFormatter() if json_output else ConsoleFormatter(sys.stdout.isatty()))
    root.addHandler(stream)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter())
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_from_settings(settings: Any) -> None:
    """Apply ``log_level``/``log_file`` from settings; JSON outside development.

    ``debug`` forces DEBUG regardless of ``log_level``.
    """
    setup_logging(
        "DEBUG" if settings.debug else settings.log_level,
        json_output=settings.environment != "development",
        log_file=settings.log_file,
    )
