"""
Logging setup for the progression engine.

Records are handed to a bounded queue and written by a background listener
thread, so stream and file I/O never block the event loop. Output is either
one JSON document per record (production, aggregation) or a single readable
line (development).

Context binding
---------------
`log_context(...)` binds fields such as `match_id` or `player_id` to every
record logged inside the block, across awaits:

    with log_context(match_id="m-42"):
        await rewards.award_match_rewards_for_match("m-42", stats)

Fields passed with `extra={...}` and bound context both end up under the
JSON document's `context` key.

`setup_logging()` is called once by ApplicationContext; importing this module
configures nothing.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from zdefense.core.config.config import Config

_bound_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

# Attributes every LogRecord carries; anything else came from `extra`.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

_QUEUE_HANDLER_ATTR = "_zdefense_queue_handler"


@dataclass(frozen=True)
class LoggingSettings:
    level: int
    json_output: bool
    colors: bool
    to_file: bool
    logs_dir: Path
    queue_size: int = 10_000
    file_name: str = "zdefense.json.log"
    file_backups: int = 7

    @classmethod
    def from_config(cls) -> "LoggingSettings":
        json_output = (
            Config.is_production() if Config.LOG_JSON is None else bool(Config.LOG_JSON)
        )
        return cls(
            level=getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO),
            json_output=json_output,
            colors=(
                not json_output and bool(Config.LOG_COLORS) and sys.stdout.isatty()
            ),
            to_file=bool(Config.LOG_TO_FILE),
            logs_dir=Path(Config.LOGS_DIR).resolve(),
        )


# ============================================================================
# Filter & Formatters
# ============================================================================


class BoundContextFilter(logging.Filter):
    """Copy the fields bound with `log_context()` onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _bound_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """The non-standard attributes of a record (extras and bound context)."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        document: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        context = record_context(record)
        if context:
            document["context"] = context
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """One line per record, with the context fields appended as key=value."""

    LINE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-40s | %(message)s"
    LEVEL_COLORS = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
    }

    def __init__(self, colors: bool = False) -> None:
        super().__init__(fmt=self.LINE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        self._colors = colors

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if context:
            line += " | " + " ".join(f"{k}={v}" for k, v in context.items())
        if self._colors and record.levelname in self.LEVEL_COLORS:
            line = f"{self.LEVEL_COLORS[record.levelname]}{line}\033[0m"
        return line


# ============================================================================
# Queue plumbing
# ============================================================================


class DroppingQueueHandler(QueueHandler):
    """Drops (and counts) records instead of blocking when the queue is full."""

    def __init__(self, log_queue: "queue.Queue[logging.LogRecord]") -> None:
        super().__init__(log_queue)
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1
            sys.stderr.write("Logging queue full; dropping log record.\n")


_listener: Optional[QueueListener] = None


def _build_handlers(settings: LoggingSettings) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        JSONFormatter() if settings.json_output else ConsoleFormatter(settings.colors)
    )
    handlers: List[logging.Handler] = [console]

    if settings.to_file:
        settings.logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=str(settings.logs_dir / settings.file_name),
            when="midnight",
            backupCount=settings.file_backups,
            encoding="utf-8",
            utc=True,
        )
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(settings.level)
    return handlers


def setup_logging(settings: Optional[LoggingSettings] = None) -> None:
    """Install the queue handler on the root logger. Safe to call twice."""
    global _listener

    root = logging.getLogger()
    if getattr(root, _QUEUE_HANDLER_ATTR, None) is not None:
        return

    settings = settings or LoggingSettings.from_config()
    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(settings.queue_size)

    _listener = QueueListener(
        log_queue, *_build_handlers(settings), respect_handler_level=True
    )
    _listener.start()

    queue_handler = DroppingQueueHandler(log_queue)
    queue_handler.setLevel(settings.level)
    queue_handler.addFilter(BoundContextFilter())
    root.setLevel(settings.level)
    root.addHandler(queue_handler)
    setattr(root, _QUEUE_HANDLER_ATTR, queue_handler)

    for noisy in ("sqlalchemy.engine", "asyncio", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "log_level": logging.getLevelName(settings.level),
            "json_output": settings.json_output,
            "to_file": settings.to_file,
        },
    )


def shutdown_logging() -> None:
    """Flush the queue and detach the handler."""
    global _listener

    root = logging.getLogger()
    queue_handler = getattr(root, _QUEUE_HANDLER_ATTR, None)
    if queue_handler is None:
        return

    if _listener is not None:
        _listener.stop()
        _listener = None

    root.removeHandler(queue_handler)
    queue_handler.close()
    setattr(root, _QUEUE_HANDLER_ATTR, None)


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Bind `fields` to every record logged inside the block."""
    token = _bound_context.set({**_bound_context.get(), **fields})
    try:
        yield _bound_context.get()
    finally:
        _bound_context.reset(token)
