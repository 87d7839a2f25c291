"""
Animochi Logging Subsystem

Purpose
-------
One logging pipeline for every quest and wallet call:

- Records are handed to a bounded queue and written by a background
  QueueListener, so a slow stdout or disk never stalls the event loop.
- Console output is JSON in production (or with LOG_JSON) and a readable,
  optionally colored line otherwise.
- With LOG_TO_FILE, a JSON file under LOGS_DIR rotates at UTC midnight.
- `LogContext` binds user_id, action and a correlation id to everything
  logged inside a block; `ContextFilter` copies them onto each record.

Import never installs handlers. `setup_logging()` is called by the entry
point and `shutdown_logging()` drains the queue on exit, so test runners
keep their own log capture.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from animochi.core.config.config import Config

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "animochi.json.log"
QUEUE_MAX_SIZE = 10_000

# Fields every record carries once ContextFilter has run
CONTEXT_FIELDS = ("user_id", "action", "correlation_id", "component", "operation")

NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg", "asyncio")

_context: ContextVar[Dict[str, Any]] = ContextVar("animochi_log_context", default={})
_listener: Optional[QueueListener] = None


class _Settings(NamedTuple):
    level: int
    use_json: bool
    colors: bool
    to_file: bool
    logs_dir: Path


def _read_settings() -> _Settings:
    level = logging.getLevelName(str(Config.LOG_LEVEL).upper())
    if not isinstance(level, int):
        level = logging.INFO
    as_json = bool(Config.LOG_JSON) or Config.is_production()
    return _Settings(
        level=level,
        use_json=as_json,
        colors=not as_json and sys.stdout.isatty(),
        to_file=bool(Config.LOG_TO_FILE),
        logs_dir=Path(Config.LOGS_DIR),
    )


# ============================================================================
# Filter & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the active LogContext onto each record; explicit `extra` fields win."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _context.get()
        fallback = {
            "user_id": "N/A",
            "action": "N/A",
            "correlation_id": "N/A",
            "component": record.name.split(".", 1)[0],
            "operation": "N/A",
        }
        for name in CONTEXT_FIELDS:
            if getattr(record, name, None) is None:
                setattr(record, name, context.get(name) or fallback[name])
        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[94m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[1;91m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        levelname = record.levelname
        record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


# Attributes every LogRecord has; anything else came in through `extra`
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """One JSON object per line; `extra` fields are nested under "extra"."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value not in (None, "N/A"):
                payload[name] = value

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Setup / Shutdown
# ============================================================================


class _DroppingQueueHandler(QueueHandler):
    """Drop records rather than block the caller when the queue is full."""

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            sys.stderr.write("animochi: log queue full, record dropped\n")


def _build_handlers(settings: _Settings) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    if settings.use_json:
        console.setFormatter(JSONFormatter())
    elif settings.colors:
        console.setFormatter(ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT))
    else:
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    handlers: List[logging.Handler] = [console]

    if settings.to_file:
        settings.logs_dir.mkdir(parents=True, exist_ok=True)
        rotating = TimedRotatingFileHandler(
            settings.logs_dir / LOG_FILE_NAME,
            when="midnight",
            backupCount=1,
            encoding="utf-8",
            utc=True,
        )
        rotating.setFormatter(JSONFormatter())
        handlers.append(rotating)

    return handlers


def setup_logging() -> None:
    """Route the root logger through the queue; calling twice is a no-op."""
    global _listener

    if _listener is not None:
        return

    settings = _read_settings()
    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(QUEUE_MAX_SIZE)

    _listener = QueueListener(log_queue, *_build_handlers(settings), respect_handler_level=True)
    _listener.start()

    queue_handler = _DroppingQueueHandler(log_queue)
    queue_handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(queue_handler)
    root.setLevel(settings.level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "log_level": logging.getLevelName(settings.level),
            "json": settings.use_json,
            "log_to_file": settings.to_file,
        },
    )


def shutdown_logging() -> None:
    """Flush queued records and detach the handlers installed by setup_logging."""
    global _listener

    if _listener is None:
        return

    logging.getLogger(__name__).info("Shutting down logging")
    listener, _listener = _listener, None
    listener.stop()

    for handler in listener.handlers:
        handler.close()

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, _DroppingQueueHandler):
            root.removeHandler(handler)


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


def get_log_context() -> Dict[str, Any]:
    """A copy of the fields bound by the innermost active LogContext."""
    return dict(_context.get())


class LogContext:
    """
    Bind contextual fields to every log record emitted inside the block.

    Works as both a sync and an async context manager. A correlation id is
    generated when none is given.

    >>> async with LogContext(user_id="u-1", action="claim_quest_reward"):
    ...     logger.info("claiming")
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **fields: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            **fields,
            "correlation_id": correlation_id or uuid.uuid4().hex[:8],
        }
        if user_id is not None:
            self.context["user_id"] = str(user_id)
        if action is not None:
            self.context["action"] = action
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)
