"""
Sage Plugin Logging — local stderr logs plus best-effort host mirroring.

- ``setup_logging()``: one stderr handler, text (level colored on a TTY) or
  one JSON object per line. Env: SAGE_LOG_LEVEL, SAGE_LOG_COLOR,
  SAGE_LOG_FORMAT.
- ``HostLogger``: the plugin's own log calls, mirrored to the chat host's
  ``/log`` endpoint.

JSON records carry these extras when set (logger.info(..., extra={...})):
    session_id, suggestion_id, prompt_key, kind, duration_ms, status
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sage_plugin.host.client import HostClient


_TEXT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
}
_RESET = "\033[0m"

# Host log levels are lowercase words; "warn" is what the host expects.
_HOST_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_STRUCTURED_FIELDS = (
    "session_id",
    "suggestion_id",
    "prompt_key",
    "kind",
    "duration_ms",
    "status",
)


class ColorFormatter(logging.Formatter):
    """Text formatter; wraps the level name in an ANSI color."""

    def __init__(self, use_color: bool = True):
        super().__init__(fmt=_TEXT_FORMAT, datefmt="%H:%M:%S")
        self.use_color = use_color

    def formatMessage(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno) if self.use_color else None
        if color is None:
            return super().formatMessage(record)
        # Shallow copy so other handlers see the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{_RESET}"
        return super().formatMessage(colored)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record (SAGE_LOG_FORMAT=json)."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in _STRUCTURED_FIELDS
            if hasattr(record, key)
        )
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _use_color() -> bool:
    setting = os.getenv("SAGE_LOG_COLOR", "auto").lower()
    if setting in ("true", "false"):
        return setting == "true"
    return sys.stderr.isatty()


def setup_logging() -> None:
    """Configure the root logger once, at sidecar startup."""
    level = getattr(logging, os.getenv("SAGE_LOG_LEVEL", "INFO").upper(), logging.INFO)
    if os.getenv("SAGE_LOG_FORMAT", "text").lower() == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = ColorFormatter(use_color=_use_color())

    # stderr: stdout may belong to the host
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for noisy in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class HostLogger:
    """Writes plugin log lines locally and mirrors them to the host.

    The host side is best-effort: any failure there is dropped, so a broken
    host log endpoint can never break event handling.
    """

    def __init__(
        self,
        host: "HostClient | None",
        service: str = "sage-plugin",
        logger: logging.Logger | None = None,
    ) -> None:
        self._host = host
        self._service = service
        self._logger = logger or logging.getLogger("sage_plugin.plugin")

    async def __call__(
        self, level: str, message: str, extra: dict[str, Any] | None = None
    ) -> None:
        extra = extra or {}
        try:
            self._logger.log(
                _HOST_LEVELS.get(level, logging.INFO), "%s %s", message, extra
            )
        except Exception:
            pass

        if self._host is None:
            return
        try:
            await self._host.log(
                service=self._service, level=level, message=message, extra=extra
            )
        except Exception:
            pass  # logging must never break the plugin
