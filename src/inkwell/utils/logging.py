"""Logging setup for the Inkwell tool pipeline.

Every record carries the id of the tool run it belongs to (``-`` outside a
run), so interleaved runs of different tools stay apart in the log file.
"""

from __future__ import annotations

import contextvars
import logging
import logging.handlers
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

__all__ = ["ToolContextFilter", "current_tool_id", "setup_logging", "tool_context"]

_DEFAULT_LOG_DIR = Path.home() / ".inkwell" / "logs"
_LOG_FILE_NAME = "inkwell.log"
_NO_TOOL = "-"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(tool_id)s | %(name)s | %(message)s"

_CURRENT_TOOL: contextvars.ContextVar[str] = contextvars.ContextVar("inkwell_tool_id", default=_NO_TOOL)
_LOG_PATH: Path | None = None


class ToolContextFilter(logging.Filter):
    """Stamp ``record.tool_id`` with the tool run active in this task."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.tool_id = _CURRENT_TOOL.get()
        return True


def current_tool_id() -> str:
    return _CURRENT_TOOL.get()


@contextmanager
def tool_context(tool_id: str) -> Iterator[None]:
    """Attribute log records emitted inside the block to ``tool_id``.

    The value lives in a context variable, so concurrent asyncio tasks each
    see their own tool id.
    """

    token = _CURRENT_TOOL.set(tool_id or _NO_TOOL)
    try:
        yield
    finally:
        _CURRENT_TOOL.reset(token)


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = False,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Log to a rotating file and, when ``console`` is set, to stderr.

    Tool progress goes to stdout, so the console handler is only wanted
    while debugging. Returns the log file path; repeated calls are no-ops
    unless ``force`` is given.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    context_filter = ToolContextFilter()

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _quiet_external_loggers(level)

    _LOG_PATH = log_path
    return log_path


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    return Path(log_dir or os.environ.get("INKWELL_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()


def _quiet_external_loggers(root_level: int) -> None:
    quiet_level = max(root_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
