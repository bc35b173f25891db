"""In-memory circular buffer log handler for the sync activity log."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

SYNC_LOGGERS = (
    "app.main",
    "app.sync",
    "app.ingestion",
    "app.ai",
)


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    logger: str
    message: str


class BufferHandler(logging.Handler):
    """Keeps the last *maxlen* records so recent rejections can be audited."""

    def __init__(self, maxlen: int = 500) -> None:
        super().__init__()
        self._buffer: deque[LogEntry] = deque(maxlen=maxlen)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc)
                .strftime("%Y-%m-%d %H:%M:%S UTC"),
                level=record.levelname,
                logger=record.name,
                message=self.format(record),
            )
            self._buffer.append(entry)
        except Exception:
            self.handleError(record)

    def entries(self, limit: int = 100, level: str | None = None) -> list[dict]:
        """Most recent entries first, optionally only at or above *level*."""
        items = list(self._buffer)
        if level:
            threshold = logging.getLevelName(level.upper())
            if isinstance(threshold, int):
                items = [e for e in items if logging.getLevelName(e.level) >= threshold]
        items = items[-limit:]
        items.reverse()
        return [asdict(e) for e in items]

    def clear(self) -> None:
        self._buffer.clear()


_handler: BufferHandler | None = None


def get_buffer_handler() -> BufferHandler:
    global _handler
    if _handler is None:
        _handler = BufferHandler()
        _handler.setFormatter(logging.Formatter("%(message)s"))
        _handler.setLevel(logging.INFO)
    return _handler


def install_buffer_handler(target_loggers=SYNC_LOGGERS) -> BufferHandler:
    """Attach the buffer handler to the sync package loggers."""
    handler = get_buffer_handler()
    for name in target_loggers:
        lg = logging.getLogger(name)
        if handler not in lg.handlers:
            lg.addHandler(handler)
        lg.setLevel(logging.INFO)
    return handler
