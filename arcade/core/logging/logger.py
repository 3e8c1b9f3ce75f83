"""
Arcade Logging Subsystem

Purpose
-------
Structured logging for the game services and background workers.

- JSON records for aggregation (always in the log file, on the console in
  production or when LOG_JSON is set).
- Game context (player, machine, game, pull session, operation,
  correlation id) bound with `LogContext` and stamped on every record
  emitted inside it, including records from nested tasks.
- Records leave the event loop through a bounded QueueHandler; a
  QueueListener thread does the console and file I/O. When the queue is
  full the record is dropped and counted instead of blocking a request.

Usage
-----
>>> setup_logging()
>>> log = get_logger(__name__)
>>> async with LogContext(player_id=7, machine_id=2, operation="gacha_pull"):
...     log.info("Pull resolved", extra={"pull_count": 10})

Keys passed through `extra=` must not collide with LogRecord attributes
(`message`, `name`, `module`, `args` ...); the standard library raises
KeyError for those.

`setup_logging()` is called by the process entry point, never on import.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from arcade.core.config.config import Config

CONTEXT_FIELDS = (
    "player_id",
    "machine_id",
    "game_id",
    "session_id",
    "operation",
    "correlation_id",
)

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s%(context_suffix)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "arcade.json.log"
QUEUE_MAX_SIZE = 10_000

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_log_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar(
    "arcade_log_context", default=None
)


# ============================================================================
# Context binding
# ============================================================================


def current_log_context() -> Dict[str, Any]:
    """Copy of the context bound to the running task."""
    return dict(_log_context.get() or {})


class LogContext:
    """
    Bind game context for the duration of a block.

    Nested contexts inherit the enclosing fields and override the ones they
    set; the correlation id is generated once at the outermost level.
    Usable with both `with` and `async with`.
    """

    def __init__(self, **fields: Any) -> None:
        self._fields = {k: v for k, v in fields.items() if v is not None}
        self._token: Optional[Token[Optional[Dict[str, Any]]]] = None

    @property
    def context(self) -> Dict[str, Any]:
        return current_log_context() if self._token is not None else dict(self._fields)

    def __enter__(self) -> "LogContext":
        merged = current_log_context()
        merged.update(self._fields)
        merged.setdefault("correlation_id", uuid.uuid4().hex[:8])
        self._token = _log_context.set(merged)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the bound context onto the record; explicit `extra=` wins."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get() or {}
        for key in CONTEXT_FIELDS:
            if getattr(record, key, None) is None:
                setattr(record, key, context.get(key))
        return True


class ConsoleFormatter(logging.Formatter):
    """Human-readable line with a `[player=7 machine=2 ...]` suffix."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        bound = [
            f"{key.replace('_id', '')}={getattr(record, key)}"
            for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        ]
        record.context_suffix = f" [{' '.join(bound)}]" if bound else ""
        return super().format(record)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
            and key not in CONTEXT_FIELDS
            and key != "context_suffix"
            and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue plumbing
# ============================================================================


class BoundedQueueHandler(QueueHandler):
    """Never blocks the event loop; counts records dropped on overload."""

    def __init__(self, log_queue: "queue.Queue[logging.LogRecord]") -> None:
        super().__init__(log_queue)
        self.enqueued = 0
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
            self.enqueued += 1
        except queue.Full:
            self.dropped += 1


@dataclass
class _LoggingState:
    handler: Optional[BoundedQueueHandler] = None
    listener: Optional[QueueListener] = None
    outputs: List[logging.Handler] = field(default_factory=list)
    log_file: Optional[Path] = None


_state = _LoggingState()


# ============================================================================
# Setup / Shutdown
# ============================================================================


def _resolve_level(level: Optional[str]) -> int:
    name = (level or getattr(Config, "LOG_LEVEL", "INFO") or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def _json_console(json_output: Optional[bool]) -> bool:
    if json_output is not None:
        return json_output
    configured = getattr(Config, "LOG_JSON", None)
    if configured is not None:
        return bool(configured)
    return Config.is_production()


def setup_logging(
    *,
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
    log_dir: Optional[Path] = None,
    file_output: bool = True,
) -> None:
    """
    Install the queue handler on the root logger.

    Arguments default to `Config` (LOG_LEVEL, LOG_JSON, LOGS_DIR). Calling
    again while logging is set up is a no-op.
    """
    if _state.listener is not None:
        return

    numeric_level = _resolve_level(level)

    console = logging.StreamHandler(sys.stdout)
    if _json_console(json_output):
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(ConsoleFormatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    outputs: List[logging.Handler] = [console]

    log_file: Optional[Path] = None
    if file_output:
        directory = Path(log_dir or Config.LOGS_DIR)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / LOG_FILE_NAME
        file_handler = TimedRotatingFileHandler(
            filename=str(log_file),
            when="midnight",
            backupCount=1,
            encoding="utf-8",
            utc=True,
        )
        file_handler.setFormatter(JSONFormatter())
        outputs.append(file_handler)

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(QUEUE_MAX_SIZE)
    handler = BoundedQueueHandler(log_queue)
    # Root-logger filters skip propagated records; the handler filter does not.
    handler.addFilter(ContextFilter())

    listener = QueueListener(log_queue, *outputs, respect_handler_level=True)
    listener.start()

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.addHandler(handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _state.handler = handler
    _state.listener = listener
    _state.outputs = outputs
    _state.log_file = log_file

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": getattr(Config, "ENVIRONMENT", "development"),
            "log_level": logging.getLevelName(numeric_level),
            "json_console": _json_console(json_output),
            "log_file": str(log_file) if log_file else None,
        },
    )


def shutdown_logging() -> None:
    """Drain the queue, close outputs and detach from the root logger."""
    if _state.listener is None:
        return

    logging.getLogger(__name__).info("Shutting down logging subsystem")
    _state.listener.stop()

    root = logging.getLogger()
    if _state.handler is not None:
        root.removeHandler(_state.handler)
        _state.handler.close()
    for output in _state.outputs:
        output.flush()
        output.close()

    _state.handler = None
    _state.listener = None
    _state.outputs = []
    _state.log_file = None


def get_logging_status() -> Dict[str, Any]:
    handler = _state.handler
    return {
        "initialized": _state.listener is not None,
        "log_file": str(_state.log_file) if _state.log_file else None,
        "queue_size": handler.queue.qsize() if handler is not None else 0,  # type: ignore[attr-defined]
        "records_enqueued": handler.enqueued if handler is not None else 0,
        "records_dropped": handler.dropped if handler is not None else 0,
    }


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
