"""Logging setup shared by the MCP and HTTP entry points.

Everything goes to stderr: stdout carries the MCP stdio protocol.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Optional

APP_NAMESPACE = "trade_mcp"

_LIBRARY_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "anyio": logging.WARNING,
    "mcp": logging.WARNING,
}


def _level_from_str(value: Optional[str]) -> int:
    level = logging.getLevelName((value or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _canonical_name(name: str) -> str:
    """Map module logger names to the canonical 'trade_mcp.*' namespace."""
    if name == APP_NAMESPACE or name.startswith(APP_NAMESPACE + "."):
        return name
    return f"{APP_NAMESPACE}.{name}"


class UtcFormatter(logging.Formatter):
    """
    Plain formatter with UTC timestamps.
    Example:
      2025-10-02 01:36:22.123+0000 INFO     trade_mcp.client_manager - [0X][GET][RECEIVE] path=/swap/v1/quote status=200
    """

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        ct = self.converter(record.created)
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", ct) + f".{int(record.msecs):03d}+0000"
        line = f"{timestamp} {record.levelname:<8} {record.name} - {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _install_console_handler(root: logging.Logger) -> None:
    """Install a single stderr handler, once."""
    for handler in root.handlers:
        if getattr(handler, "_trade_mcp_handler", False):
            return

    handler = logging.StreamHandler(stream=sys.stderr)
    handler._trade_mcp_handler = True  # type: ignore[attr-defined]
    handler.setLevel(logging.NOTSET)
    handler.setFormatter(UtcFormatter())
    root.addHandler(handler)


def init_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(logging.WARNING)
    _install_console_handler(root)

    logging.getLogger(APP_NAMESPACE).setLevel(_level_from_str(level))

    for name, lib_level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(lib_level)

    # uvicorn ships its own handlers; route its records through ours instead
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.setLevel(_level_from_str(level))
        lg.propagate = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger in the canonical 'trade_mcp.*' namespace."""
    return logging.getLogger(_canonical_name(name or APP_NAMESPACE))
